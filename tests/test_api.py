"""Tests for the router HTTP surface in main.py."""
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from conftest import sample_rows
from warehouse_ai.config import settings
from warehouse_ai.main import create_app
from warehouse_ai.store import MemoryInventoryStore


@pytest.fixture
def store():
    return MemoryInventoryStore(sample_rows())


@pytest.fixture
def client(store):
    with patch.object(settings, "openai_api_key", ""):
        with TestClient(create_app(store=store, remote_agents={})) as c:
            yield c


class TestQueryEndpoint:
    def test_answer_shape(self, client):
        resp = client.post("/query", json={"query": "Where is product 1263755?", "sessionId": "s1"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["agentUsed"] == "location-agent-001"
        assert data["sessionId"] == "s1"
        assert data["status"] == "success"
        assert data["classification"]["intent"] == "product_location_search"
        assert data["classification"]["targetAgent"] == "location-agent-001"
        assert isinstance(data["responseTime"], int)
        assert "F-01-02-1" in data["response"]
        assert data["reasoning"][0] == "Rule-based fallback"

    def test_generated_session_id(self, client):
        data = client.post("/query", json={"query": "give me a warehouse summary"}).json()
        assert data["sessionId"].startswith("session_")

    @pytest.mark.parametrize("body", [{"query": ""}, {"query": "   "}, {}])
    def test_empty_query_is_400(self, client, body):
        resp = client.post("/query", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"error": "InputValidationError", "details": "Query is required"}

    def test_malformed_body_is_400(self, client):
        resp = client.post("/query", json={"query": ["not", "a", "string"]})
        assert resp.status_code == 400
        assert resp.json()["error"] == "InvalidRequest"

    def test_agent_failure_status_in_body(self, client, store):
        store.fail_with = RuntimeError("db down")
        data = client.post("/query", json={"query": "where is product 1263755"}).json()
        assert data["status"] == "error"


class TestStateEndpoints:
    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["agents"][0]["agentId"] == "location-agent-001"
        assert data["classifier"]["llmEnabled"] is False

    def test_agents(self, client):
        data = client.get("/agents").json()
        assert data["stats"]["totalAgents"] == 2
        assert data["stats"]["healthyAgents"] == 2
        assert data["stats"]["totalTools"] == 10
        entry = data["agents"][0]
        assert entry["agentId"] == "location-agent-001"
        assert len(entry["tools"]) == 9
        assert [a["agentId"] for a in data["agents"]] == ["location-agent-001", "summarizer-agent-001"]

    def test_conversation(self, client):
        client.post("/query", json={"query": "where is product 1263755", "sessionId": "s9", "userId": "u1"})
        resp = client.get("/conversation/s9")
        assert resp.status_code == 200
        data = resp.json()
        assert data["sessionId"] == "s9"
        assert data["userId"] == "u1"
        assert len(data["history"]) == 2

    def test_unknown_conversation_is_404(self, client):
        resp = client.get("/conversation/nope")
        assert resp.status_code == 404
        assert resp.json()["error"] == "ConversationNotFound"


class TestUnexpectedErrors:
    def test_unexpected_exception_is_json_500(self, store):
        with patch.object(settings, "openai_api_key", ""):
            with TestClient(create_app(store=store, remote_agents={}), raise_server_exceptions=False) as c:
                c.app.state.orchestrator.process_query = AsyncMock(side_effect=RuntimeError("boom"))
                resp = c.post("/query", json={"query": "where is product 1263755"})
        assert resp.status_code == 500
        assert resp.json() == {"error": "InternalError", "details": "boom"}
