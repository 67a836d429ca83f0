"""Tests for tools/: catalog registration, validation and the inventory tools."""
import pytest

from warehouse_ai.errors import ToolExecutionError
from warehouse_ai.tools import ToolCatalog, ToolParam
from warehouse_ai.tools.inventory import catalog, percent
from warehouse_ai.tools.inventory.area import get_inventory_by_area, inventory_status_search
from warehouse_ai.tools.inventory.expiration import check_expiration_dates, expiration_priority
from warehouse_ai.tools.inventory.locations import (
    find_by_license_plate,
    find_by_location,
    find_by_pallet_id,
    find_product_locations,
)
from warehouse_ai.tools.inventory.quantity import quantity_analysis, quantity_category
from warehouse_ai.tools.inventory.space import analyze_space_utilization, efficiency_label


# ──────────────────────────────────────────────────────────
# Catalog
# ──────────────────────────────────────────────────────────

class TestToolCatalog:
    def test_inventory_catalog_has_nine_tools(self):
        assert len(catalog) == 9
        assert len(set(catalog.names())) == 9

    def test_duplicate_registration_rejected(self):
        local = ToolCatalog()

        @local.register("ping", description="ping")
        async def ping(**kwargs):
            return {}

        with pytest.raises(ValueError):
            @local.register("ping", description="again")
            async def ping_again(**kwargs):
                return {}

    def test_descriptor_schema(self):
        descriptor = catalog.get("get_inventory_by_area").descriptor()
        assert descriptor.parameter_schema["required"] == ["area_id"]
        assert descriptor.parameter_schema["properties"]["limit"]["type"] == "integer"
        assert "frozen" in descriptor.intent_tags

    def test_validate_missing_required(self):
        with pytest.raises(ToolExecutionError, match="area_id"):
            catalog.get("get_inventory_by_area").validate({})

    def test_validate_unknown_param(self):
        with pytest.raises(ToolExecutionError):
            catalog.get("find_by_pallet_id").validate({"pallet_id": "P1", "colour": "red"})

    def test_param_schema(self):
        p = ToolParam("area_id", description="area", enum=["F", "D"])
        assert p.schema() == {"type": "string", "description": "area", "enum": ["F", "D"]}

    def test_by_category(self):
        groups = catalog.by_category()
        assert list(groups) == ["lookup", "area", "analytics"]
        assert [t.name for t in groups["area"]] == ["get_inventory_by_area", "inventory_status_search"]
        assert sum(len(tools) for tools in groups.values()) == 9

    def test_uncategorized_tools_are_general(self):
        local = ToolCatalog()

        @local.register("ping", description="ping")
        async def ping(**kwargs):
            return {}

        assert [t.name for t in local.by_category()["general"]] == ["ping"]


# ──────────────────────────────────────────────────────────
# Thresholds
# ──────────────────────────────────────────────────────────

class TestThresholds:
    @pytest.mark.parametrize("util,label", [(0, "Low"), (69, "Low"), (70, "Optimal"), (95, "Optimal"),
                                            (96, "High"), (98, "High"), (99, "Critical")])
    def test_efficiency(self, util, label):
        assert efficiency_label(util) == label

    @pytest.mark.parametrize("days,priority", [(-3, "Critical"), (7, "Critical"), (8, "High"), (14, "High"),
                                               (21, "Medium"), (22, "Low")])
    def test_expiration_priority(self, days, priority):
        assert expiration_priority(days) == priority

    @pytest.mark.parametrize("total,category", [(0, "Zero"), (15, "Low"), (16, "Normal"), (100, "Normal"),
                                                (500, "High"), (501, "Overstock")])
    def test_quantity_category(self, total, category):
        assert quantity_category(total) == category

    def test_percent_of_zero(self):
        assert percent(5, 0) == 0


# ──────────────────────────────────────────────────────────
# Lookups
# ──────────────────────────────────────────────────────────

class TestLookupTools:
    @pytest.mark.asyncio
    async def test_product_number(self, store):
        result = await find_product_locations(store=store, product_number="1263755")
        assert result["total_found"] == 2
        assert [p["warehouse_locn"] for p in result["products"]] == ["F-01-02-1", "F-01-03-2"]

    @pytest.mark.asyncio
    async def test_description_case_insensitive(self, store):
        result = await find_product_locations(store=store, product_description="flour")
        assert result["total_found"] == 2

    @pytest.mark.asyncio
    async def test_requires_a_criterion(self, store):
        with pytest.raises(ValueError):
            await find_product_locations(store=store)

    @pytest.mark.asyncio
    async def test_license_plate_exact_and_partial(self, store):
        exact = await find_by_license_plate(store=store, license_plate="LP100001")
        assert exact["total_found"] == 1
        partial = await find_by_license_plate(store=store, license_plate="LP1000", exact_match=False)
        assert partial["total_found"] == 2
        assert partial["search_type"] == "partial"

    @pytest.mark.asyncio
    async def test_pallet(self, store):
        result = await find_by_pallet_id(store=store, pallet_id="P920001")
        assert result["items"][0]["product_number"] == "3300120"

    @pytest.mark.asyncio
    async def test_location_excludes_empty_by_default(self, store):
        result = await find_by_location(store=store, area_id="R", aisle=9)
        assert result["total_found"] == 1
        with_empty = await find_by_location(store=store, area_id="R", aisle=9, include_empty=True)
        assert with_empty["summary"]["total_slots"] == 2
        assert with_empty["summary"]["empty_slots"] == 1
        assert with_empty["summary"]["bay_range"] == "1-2"


# ──────────────────────────────────────────────────────────
# Area and status
# ──────────────────────────────────────────────────────────

class TestAreaTools:
    @pytest.mark.asyncio
    async def test_area_summary(self, store):
        result = await get_inventory_by_area(store=store, area_id="f")
        s = result["summary"]
        assert s["area_name"] == "Frozen"
        assert s["total_products"] == 2
        assert s["total_units"] == 160
        assert s["total_eaches"] == 10
        assert s["utilization_percent"] == 65

    @pytest.mark.asyncio
    async def test_unknown_area(self, store):
        with pytest.raises(ValueError):
            await get_inventory_by_area(store=store, area_id="X")

    @pytest.mark.asyncio
    async def test_exclude_expired(self, store):
        result = await get_inventory_by_area(store=store, area_id="R", include_expired=False)
        assert [i["product_number"] for i in result["inventory"]] == ["3300120"]

    @pytest.mark.asyncio
    async def test_status_search(self, store):
        result = await inventory_status_search(store=store, slot_status="damaged")
        assert result["total_found"] == 1
        assert any(r["type"] == "maintenance" for r in result["recommendations"])


# ──────────────────────────────────────────────────────────
# Analytics
# ──────────────────────────────────────────────────────────

class TestAnalyticsTools:
    @pytest.mark.asyncio
    async def test_space_warehouse_wide(self, store):
        result = await analyze_space_utilization(store=store)
        stats = result["total_stats"]
        assert stats["total_locations"] == 6
        assert stats["total_cube"] == 460
        assert stats["used_cube"] == 245
        assert stats["utilization_percent"] == 53
        assert stats["efficiency"] == "Low"
        assert result["analysis_scope"] == "Warehouse-wide"
        pcts = [u["utilization_percent"] for u in result["utilization"]]
        assert pcts == sorted(pcts, reverse=True)

    @pytest.mark.asyncio
    async def test_space_no_rows(self, store):
        with pytest.raises(ValueError, match="No inventory data"):
            await analyze_space_utilization(store=store, area_id="D", aisle=42)

    @pytest.mark.asyncio
    async def test_expiration_window(self, store):
        result = await check_expiration_dates(store=store, days_threshold=30)
        assert [i["product_number"] for i in result["expiring_items"]] == ["1263755", "3300120"]
        assert result["summary"]["priority_items"] == 2

    @pytest.mark.asyncio
    async def test_expiration_includes_expired(self, store):
        result = await check_expiration_dates(store=store, days_threshold=30, include_expired=True)
        first = result["expiring_items"][0]
        assert first["product_number"] == "3300999"
        assert first["days_until_expiration"] == -2
        assert first["priority"] == "Critical"

    @pytest.mark.asyncio
    async def test_quantity_summary(self, store):
        result = await quantity_analysis(store=store, analysis_type="summary")
        s = result["summary"]
        assert s["total_products"] == 6
        assert s["total_units"] == 528
        assert s["top_products"][0]["product_number"] == "2045511"
        assert s["top_products"][0]["locations"] == 2
        assert s["quantity_distribution"]["Zero"] == 1

    @pytest.mark.asyncio
    async def test_high_volume_descending(self, store):
        result = await quantity_analysis(store=store, analysis_type="high_volume")
        assert [i["qty_avail_units"] for i in result["items"]] == [300, 120, 60]

    @pytest.mark.asyncio
    async def test_zero_stock(self, store):
        result = await quantity_analysis(store=store, analysis_type="zero_stock")
        assert [i["product_number"] for i in result["items"]] == ["3300999"]

    @pytest.mark.asyncio
    async def test_unknown_analysis_type(self, store):
        with pytest.raises(ValueError):
            await quantity_analysis(store=store, analysis_type="vibes")
