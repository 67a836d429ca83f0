"""Tests for agents/location.py: query planning, tool traces and synthesized answers."""
import pytest
import pytest_asyncio

from conftest import FailingStore, sample_rows
from warehouse_ai.agents import LocationAgent
from warehouse_ai.agents.location import mentioned_areas, plan
from warehouse_ai.protocol import AgentMessage


async def ask(agent, text, session_id="s1"):
    return await agent.process_message(AgentMessage(session_id=session_id, content=text))


@pytest_asyncio.fixture
async def agent(store):
    a = LocationAgent(store)
    await a.start()
    yield a
    await a.stop()


async def started_agent(store):
    a = LocationAgent(store)
    await a.start()
    return a


class TestPlanner:
    @pytest.mark.parametrize("query,shape", [
        ("What product has the highest quantity?", "ranking"),
        ("which item has the least stock", "ranking"),
        ("compare frozen vs dry areas", "comparison"),
        ("difference between the areas", "comparison"),
        ("How many pallets of flour do we have?", "count"),
        ("where is product 1263755", "lookup"),
        ("find license plate LP200002", "lookup"),
        ("show inventory in area D", "area"),
        ("what is in refrigerated storage", "area"),
        ("give me a warehouse summary", "summary"),
        ("explain what tools you use", "explanation"),
        ("what expires in the next 7 days", "flexible"),
        ("hello", "flexible"),
    ])
    def test_first_match_wins(self, query, shape):
        assert plan(query).name == shape

    def test_explain_with_count_is_not_a_count(self):
        assert plan("explain the count").name != "count"

    def test_mentioned_areas(self):
        assert mentioned_areas("compare dry vs frozen") == ["F", "D"]
        assert mentioned_areas("what is in area r") == ["R"]
        assert mentioned_areas("area for staging") == []


class TestLifecycleAndManifest:
    @pytest.mark.asyncio
    async def test_manifest_snapshot(self, agent):
        manifest = agent.get_manifest()
        assert manifest.agent_id == "location-agent-001"
        assert manifest.status == "healthy"
        names = [t.name for t in manifest.tools]
        assert len(names) == 9
        assert "find_product_locations" in names
        assert all(t.intent_tags for t in manifest.tools)
        assert agent.get_manifest() == manifest

    @pytest.mark.asyncio
    async def test_health(self, agent, store):
        assert (await agent.health_check()).status == "healthy"
        store.fail_with = RuntimeError("db down")
        health = await agent.health_check()
        assert health.status == "unhealthy"
        assert health.details["dataStoreReachable"] is False

    @pytest.mark.asyncio
    async def test_not_running(self, store):
        idle = LocationAgent(store)
        assert (await idle.health_check()).status == "unhealthy"
        response = await ask(idle, "where is product 1263755")
        assert response.status == "error"
        assert response.tool_calls == []


class TestLookup:
    @pytest.mark.asyncio
    async def test_product_number(self, agent):
        response = await ask(agent, "where is product 1263755")
        assert response.status == "success"
        assert response.agent_id == "location-agent-001"
        call = response.tool_calls[0]
        assert call.tool == "find_product_locations"
        assert call.params["product_number"] == "1263755"
        assert call.ok
        assert "F-01-02-1" in response.content
        assert "F-01-03-2" in response.content

    @pytest.mark.asyncio
    async def test_unknown_product(self, agent):
        response = await ask(agent, "where is product 9999999")
        assert response.status == "success"
        assert "Product 9999999 not found" in response.content

    @pytest.mark.asyncio
    async def test_license_plate(self, agent):
        response = await ask(agent, "find license plate LP200002")
        assert response.tool_calls[0].tool == "find_by_license_plate"
        assert response.tool_calls[0].params["license_plate"] == "LP200002"
        assert "D-05-02-1" in response.content

    @pytest.mark.asyncio
    async def test_pallet(self, agent):
        response = await ask(agent, "where is pallet P910001")
        assert response.tool_calls[0].tool == "find_by_pallet_id"
        assert "D-05-01-1" in response.content

    @pytest.mark.asyncio
    async def test_description(self, agent):
        response = await ask(agent, "where is the flour")
        assert response.tool_calls[0].params == {"product_description": "flour", "limit": 10}
        assert "D-05-01-1" in response.content

    @pytest.mark.asyncio
    async def test_nothing_to_look_up(self, agent):
        response = await ask(agent, "find")
        assert response.tool_calls == []
        assert "product number" in response.content


class TestRanking:
    @pytest.mark.asyncio
    async def test_highest_is_two_phase(self, agent):
        response = await ask(agent, "What product has the highest quantity?")
        assert [c.tool for c in response.tool_calls] == ["quantity_analysis", "find_product_locations"]
        assert response.tool_calls[0].params["analysis_type"] == "high_volume"
        assert response.tool_calls[1].params["product_number"] == "2045511"
        assert "Highest quantity product: 2045511" in response.content
        assert "accounts for" in response.content

    @pytest.mark.asyncio
    async def test_lowest_ranks_ascending(self, agent):
        response = await ask(agent, "which product has the least stock")
        assert response.tool_calls[0].params["analysis_type"] == "low_stock"
        assert response.tool_calls[1].params["product_number"] == "3300120"
        assert "Lowest quantity product: 3300120" in response.content


class TestComparison:
    @pytest.mark.asyncio
    async def test_mentioned_areas_only(self, agent):
        response = await ask(agent, "compare frozen vs dry areas")
        assert response.status == "success"
        assert [c.params["area_id"] for c in response.tool_calls] == ["F", "D"]
        assert all(c.tool == "get_inventory_by_area" for c in response.tool_calls)
        assert "Frozen Area (F)" in response.content
        assert "Dry Area (D)" in response.content
        assert "Dry holds the most units" in response.content

    @pytest.mark.asyncio
    async def test_all_areas_when_fewer_than_two_named(self, agent):
        response = await ask(agent, "compare the areas")
        assert [c.params["area_id"] for c in response.tool_calls] == ["F", "D", "R"]
        assert "Refrigerated Area (R)" in response.content

    @pytest.mark.asyncio
    async def test_one_failure_fails_the_batch(self):
        agent = await started_agent(FailingStore(sample_rows(), "area_id", "R"))
        response = await ask(agent, "compare the areas")
        assert response.status == "error"
        assert len(response.tool_calls) == 3
        assert response.tool_calls[0].ok and response.tool_calls[1].ok
        assert not response.tool_calls[2].ok
        assert "get_inventory_by_area failed" in response.content


class TestCount:
    @pytest.mark.asyncio
    async def test_description_count(self, agent):
        response = await ask(agent, "How many pallets of flour do we have?")
        call = response.tool_calls[0]
        assert call.tool == "find_product_locations"
        assert call.params["product_description"] == "flour"
        assert "Found 2 location(s) for flour (2 pallet(s))" in response.content
        assert "360 units" in response.content

    @pytest.mark.asyncio
    async def test_area_count(self, agent):
        response = await ask(agent, "how many locations in dry storage")
        assert response.tool_calls[0].params == {"area_id": "D", "limit": 1000}
        assert "Dry Area (D)** has 2 location(s)" in response.content

    @pytest.mark.asyncio
    async def test_product_count(self, agent):
        response = await ask(agent, "count product 1263755")
        assert response.tool_calls[0].params["product_number"] == "1263755"
        assert "Found 2 location(s) for 1263755" in response.content

    @pytest.mark.asyncio
    async def test_overall_totals(self, agent):
        response = await ask(agent, "how many locations are there")
        assert response.tool_calls[0].tool == "analyze_space_utilization"
        assert "6 locations" in response.content


class TestArea:
    @pytest.mark.asyncio
    async def test_area_breakdown(self, agent):
        response = await ask(agent, "what is in refrigerated storage")
        assert response.tool_calls[0].params["area_id"] == "R"
        assert "Refrigerated Area (R) inventory" in response.content
        assert "DAMAGED: 1" in response.content

    @pytest.mark.asyncio
    async def test_defaults_to_frozen(self, agent):
        response = await ask(agent, "show inventory in area")
        assert response.tool_calls[0].params["area_id"] == "F"


class TestSummary:
    @pytest.mark.asyncio
    async def test_all_sections(self, agent):
        response = await ask(agent, "give me a warehouse summary")
        assert response.status == "success"
        assert [c.tool for c in response.tool_calls] == [
            "analyze_space_utilization", "check_expiration_dates", "quantity_analysis"]
        assert "Space utilization" in response.content
        assert "Expiring within 30 days" in response.content
        assert "Stock levels" in response.content

    @pytest.mark.asyncio
    async def test_failed_section_degrades_to_partial(self):
        agent = await started_agent(FailingStore(sample_rows(), "expiration_date"))
        response = await ask(agent, "give me a warehouse summary")
        assert response.status == "partial"
        assert "Space utilization" in response.content
        assert "Stock levels" in response.content
        assert "Expiring" not in response.content
        failed = [c for c in response.tool_calls if not c.ok]
        assert [c.tool for c in failed] == ["check_expiration_dates"]
        assert any("check_expiration_dates failed" in r for r in response.reasoning)

    @pytest.mark.asyncio
    async def test_all_sections_failed(self, agent, store):
        store.fail_with = RuntimeError("db down")
        response = await ask(agent, "give me a warehouse summary")
        assert response.status == "error"
        assert len(response.tool_calls) == 3
        assert "all data sources failed" in response.content


class TestExplanationAndCatchAll:
    @pytest.mark.asyncio
    async def test_explanation_lists_live_catalog(self, agent):
        response = await ask(agent, "explain what tools you use")
        for name in agent.catalog.names():
            assert name in response.content
        assert "*Lookup*" in response.content
        assert "*Analytics*" in response.content
        assert "6 locations" in response.content

    @pytest.mark.asyncio
    async def test_expiration_window(self, agent):
        response = await ask(agent, "what expires in the next 7 days")
        call = response.tool_calls[0]
        assert call.tool == "check_expiration_dates"
        assert call.params["days_threshold"] == 7
        assert "1 item(s) expire within 7 days" in response.content
        assert "1263755" in response.content

    @pytest.mark.asyncio
    async def test_space(self, agent):
        response = await ask(agent, "how is space utilization looking")
        assert response.tool_calls[0].tool == "analyze_space_utilization"
        assert "Warehouse-wide" in response.content

    @pytest.mark.asyncio
    async def test_damaged_slots(self, agent):
        response = await ask(agent, "any damaged slots?")
        assert response.tool_calls[0].params == {"slot_status": "DAMAGED"}
        assert "1 item(s) match slot_status=DAMAGED" in response.content

    @pytest.mark.asyncio
    async def test_aisle_coordinates(self, agent):
        response = await ask(agent, "what's on aisle 5 bay 1")
        assert response.tool_calls[0].params == {"aisle": 5, "bay": 1}
        assert "1 slot(s)" in response.content

    @pytest.mark.asyncio
    async def test_multiple_products(self, agent):
        response = await ask(agent, "product 1263755 and product 2045511 please")
        assert [c.params["product_number"] for c in response.tool_calls] == ["1263755", "2045511"]

    @pytest.mark.asyncio
    async def test_guidance(self, agent):
        response = await ask(agent, "hello")
        assert response.status == "success"
        assert response.tool_calls == []
        assert "Where is product 1263755?" in response.content
