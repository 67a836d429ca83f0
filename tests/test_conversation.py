"""Tests for conversation.py: bounded history and per-session state."""
from datetime import timedelta

import pytest

from warehouse_ai.conversation import ConversationContext, ConversationStore
from warehouse_ai.protocol import utcnow


class TestConversationContext:
    def test_history_is_bounded(self):
        ctx = ConversationContext("s1", max_turns=4)
        for i in range(3):
            ctx.record_exchange(f"q{i}", f"a{i}", "agent-a", "intent", {})
        assert len(ctx.history) == 4
        assert [t.content for t in ctx.history] == ["q1", "a1", "q2", "a2"]

    def test_record_exchange_updates_context(self):
        ctx = ConversationContext("s1")
        before = ctx.last_activity
        ctx.record_exchange("where is 1263755", "Aisle 1", "agent-a", "product_location_search",
                            {"product_number": "1263755"})
        assert ctx.last_intent == "product_location_search"
        assert ctx.last_agent == "agent-a"
        assert ctx.context["last_parameters"] == {"product_number": "1263755"}
        assert ctx.history[0].role == "user"
        assert ctx.history[1].role == "agent"
        assert ctx.history[1].agent_id == "agent-a"
        assert ctx.last_activity >= before

    def test_last_tool_results_replaced_each_exchange(self):
        ctx = ConversationContext("s1")
        assert ctx.last_tool_results == []
        ctx.record_exchange("q1", "a1", "agent-a", "intent", {},
                            [{"tool": "find_by_pallet_id", "result": {"items": []}}])
        assert ctx.last_tool_results == [{"tool": "find_by_pallet_id", "result": {"items": []}}]
        ctx.record_exchange("q2", "a2", "agent-a", "intent", {})
        assert ctx.last_tool_results == []

    def test_recent_turns(self):
        ctx = ConversationContext("s1")
        ctx.record_exchange("q", "a", "agent-a", "intent", {})
        assert [t.content for t in ctx.recent_turns(1)] == ["a"]
        assert ctx.recent_turns(0) == []

    def test_to_wire(self):
        ctx = ConversationContext("s1", user_id="u1")
        ctx.record_exchange("q", "a", "agent-a", "space_analysis", {})
        wire = ctx.to_wire()
        assert wire["sessionId"] == "s1"
        assert wire["userId"] == "u1"
        assert wire["context"]["lastIntent"] == "space_analysis"
        assert wire["context"]["lastAgent"] == "agent-a"
        assert "agentId" not in wire["history"][0]
        assert wire["history"][1]["agentId"] == "agent-a"
        assert wire["preferences"] == {"responseStyle": "detailed", "preferredAgent": None}


class TestConversationStore:
    def test_get_or_create_reuses_context(self):
        store = ConversationStore()
        first = store.get_or_create("s1")
        assert store.get_or_create("s1") is first
        assert len(store) == 1

    def test_user_id_filled_in_later(self):
        store = ConversationStore()
        store.get_or_create("s1")
        assert store.get_or_create("s1", user_id="u1").user_id == "u1"
        assert store.get_or_create("s1", user_id="u2").user_id == "u1"

    def test_max_turns_propagates(self):
        store = ConversationStore(max_turns=2)
        assert store.get_or_create("s1").history.maxlen == 2

    def test_get_missing_and_clear(self):
        store = ConversationStore()
        assert store.get("nope") is None
        store.get_or_create("s1")
        store.clear()
        assert len(store) == 0


class TestIdleEviction:
    def test_idle_sessions_dropped(self):
        store = ConversationStore(idle_ttl_s=60)
        old = store.get_or_create("old")
        old.last_activity = utcnow() - timedelta(seconds=120)
        store.get_or_create("fresh")
        assert store.get("old") is None
        assert store.get("fresh") is not None

    def test_returning_session_after_ttl_starts_fresh(self):
        store = ConversationStore(idle_ttl_s=60)
        ctx = store.get_or_create("s1")
        ctx.record_exchange("q", "a", "agent-a", "intent", {})
        ctx.last_activity = utcnow() - timedelta(seconds=120)
        again = store.get_or_create("s1")
        assert again is not ctx
        assert len(again.history) == 0

    def test_evict_idle_counts_and_keeps_active(self):
        store = ConversationStore(idle_ttl_s=60)
        store.get_or_create("a")
        store.get_or_create("b")
        assert store.evict_idle() == 0
        assert store.evict_idle(now=utcnow() + timedelta(seconds=61)) == 2
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_locked_session_is_kept(self):
        store = ConversationStore(idle_ttl_s=60)
        ctx = store.get_or_create("busy")
        async with ctx.lock:
            assert store.evict_idle(now=utcnow() + timedelta(seconds=120)) == 0
        assert store.get("busy") is ctx
