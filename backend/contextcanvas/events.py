"""Progress events streamed to the browser as newline-delimited JSON.

Each line is ``{"event": <name>, "data": {...}}``. Events are produced in the
order the tool loop reaches them and written as they are produced; nothing
is buffered, retried or deduplicated.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, Field

EventName = Literal[
    "connected",
    "tool_use",
    "canvas_update",
    "message",
    "usage",
    "tool_error",
    "error",
    "done",
]


class StreamEvent(BaseModel):
    event: EventName
    data: dict[str, Any] = Field(default_factory=dict)

    def to_ndjson(self) -> str:
        return json.dumps({"event": self.event, "data": self.data}, ensure_ascii=False) + "\n"


def connected(session_id: str) -> StreamEvent:
    return StreamEvent(event="connected", data={"sessionId": session_id})


def tool_use(kind: str, detail: str) -> StreamEvent:
    return StreamEvent(event="tool_use", data={"kind": kind, "detail": detail})


def tool_error(kind: str, detail: str, message: str) -> StreamEvent:
    return StreamEvent(event="tool_error", data={"kind": kind, "detail": detail, "message": message})


def canvas_update(source: str, image_data_url: str, placeholder: bool = False) -> StreamEvent:
    return StreamEvent(
        event="canvas_update",
        data={"source": source, "image": image_data_url, "placeholder": placeholder},
    )


def message(text: str) -> StreamEvent:
    return StreamEvent(event="message", data={"text": text})


def usage(tokens: dict[str, int]) -> StreamEvent:
    return StreamEvent(event="usage", data={"tokens": tokens})


def error(text: str) -> StreamEvent:
    return StreamEvent(event="error", data={"message": text})


def done(final_source: str, tokens: dict[str, int], response: str = "") -> StreamEvent:
    return StreamEvent(
        event="done",
        data={"final_source": final_source, "tokens": tokens, "response": response},
    )
