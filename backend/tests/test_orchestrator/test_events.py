"""Tests for NDJSON progress events."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from contextcanvas import events
from contextcanvas.events import StreamEvent


def test_one_line_per_event():
    line = events.message("hello\nworld").to_ndjson()
    assert line.endswith("\n")
    assert line.count("\n") == 1
    assert json.loads(line) == {"event": "message", "data": {"text": "hello\nworld"}}


def test_done_payload():
    tokens = {"input_tokens": 1, "output_tokens": 2, "total_tokens": 3}
    event = events.done("ctx.fill();", tokens, "ok")
    assert event.data == {"final_source": "ctx.fill();", "tokens": tokens, "response": "ok"}


def test_tool_error_payload():
    event = events.tool_error("update_element", "moon", "Element 'moon' not found in canvas")
    assert event.event == "tool_error"
    assert event.data["detail"] == "moon"


def test_non_ascii_is_kept():
    assert "☀" in events.message("☀").to_ndjson()


def test_unknown_event_name_rejected():
    with pytest.raises(ValidationError):
        StreamEvent(event="progress", data={})
