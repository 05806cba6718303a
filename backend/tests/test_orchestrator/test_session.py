"""Tests for session storage and history trimming."""

from __future__ import annotations

from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from contextcanvas.orchestrator.session import (
    DEFAULT_SESSION_ID,
    OrchestrationSession,
    SessionStore,
    drop_unanswered_tool_calls,
    trim_history,
)
from tests.conftest import text_reply, tool_call_reply


def _tool_exchange(i: int) -> list:
    """user, assistant(tool call), tool result, screenshot turn, assistant(text)."""
    call = tool_call_reply(("append_to_canvas", {"code": "x();"}), round_id=f"ex{i}")
    return [
        HumanMessage(content=f"request {i}"),
        call,
        ToolMessage(content="ok", tool_call_id=call.tool_calls[0]["id"]),
        HumanMessage(content=[{"type": "text", "text": "screenshot"}]),
        text_reply(f"reply {i}"),
    ]


def _history(n: int) -> list:
    return [msg for i in range(n) for msg in _tool_exchange(i)]


# ---------------------------------------------------------------------------
# 1. Trimming
# ---------------------------------------------------------------------------

class TestTrimHistory:
    def test_under_limit_is_unchanged(self):
        history = _history(2)
        assert trim_history(history, 20) == history

    def test_drops_oldest_whole_exchanges(self):
        history = _history(3)
        trimmed = trim_history(history, 8)
        assert trimmed == history[10:]
        assert trimmed[0].content == "request 2"

    def test_cut_never_lands_between_call_and_result(self):
        history = _history(4)
        for limit in range(1, len(history)):
            trimmed = trim_history(history, limit)
            for i, msg in enumerate(trimmed):
                if isinstance(msg, ToolMessage):
                    assert i > 0
                    assert isinstance(trimmed[i - 1], (AIMessage, ToolMessage))
            if trimmed:
                assert isinstance(trimmed[0], HumanMessage)
                assert trimmed[0].content.startswith("request")

    def test_oversized_newest_exchange_is_kept_whole(self):
        history = _history(3)
        assert trim_history(history, 3) == history[10:]

    def test_text_only_exchanges(self):
        history = []
        for i in range(15):
            history += [HumanMessage(content=f"q{i}"), text_reply(f"a{i}")]
        trimmed = trim_history(history, 20)
        assert len(trimmed) == 20
        assert trimmed[0].content == "q5"

    def test_zero_limit(self):
        assert trim_history(_history(1), 0) == []


# ---------------------------------------------------------------------------
# 2. Unanswered tool calls
# ---------------------------------------------------------------------------

def test_drop_unanswered_tool_calls():
    call = tool_call_reply(("a", {}), ("b", {}), round_id="x")
    turns = [
        HumanMessage(content="hi"),
        call,
        ToolMessage(content="ok", tool_call_id=call.tool_calls[0]["id"]),
    ]
    assert drop_unanswered_tool_calls(turns) == turns[:1]


def test_complete_exchange_is_kept():
    history = _history(2)
    assert drop_unanswered_tool_calls(history) == history


# ---------------------------------------------------------------------------
# 3. Session store
# ---------------------------------------------------------------------------

class TestSessionStore:
    def test_default_session(self):
        store = SessionStore()
        session = store.get_or_create(None)
        assert session.session_id == DEFAULT_SESSION_ID
        assert store.get_or_create() is session
        assert len(store) == 1

    def test_sessions_are_isolated(self):
        store = SessionStore()
        a = store.get_or_create("a")
        b = store.get_or_create("b")
        a.history.append(HumanMessage(content="only in a"))
        assert b.history == []
        assert a.lock is not b.lock

    def test_evict(self):
        store = SessionStore()
        store.get_or_create("a")
        assert store.evict("a") is True
        assert store.evict("a") is False
        assert store.get("a") is None

    def test_evict_idle(self):
        store = SessionStore()
        old = store.get_or_create("old")
        store.get_or_create("fresh")
        old.last_used -= 7200
        assert store.evict_idle(3600) == ["old"]
        assert store.get("fresh") is not None


def test_orchestration_session_tokens():
    state = OrchestrationSession(source="", width=10, height=10)
    state.add_usage({"input_tokens": 5, "output_tokens": 2})
    state.add_usage({"input_tokens": 1})
    assert state.tokens == {"input_tokens": 6, "output_tokens": 2, "total_tokens": 8}
