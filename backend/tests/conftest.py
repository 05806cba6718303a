"""Shared test fixtures and fakes (no network, no browser, no API key)."""

from __future__ import annotations

import base64
import io
from typing import Any

import pytest
from langchain_core.messages import AIMessage
from PIL import Image

from contextcanvas.config import Settings
from contextcanvas.llm.gateway import ModelGateway
from contextcanvas.orchestrator.loop import ToolLoop
from contextcanvas.orchestrator.tools import default_registry
from contextcanvas.render.rasterizer import CanvasRasterizer
from contextcanvas.render.webpage import WebpageImportError, validate_url


# Sample canvas sources

SUN_CANVAS = """ctx.fillStyle = "#87ceeb";
ctx.fillRect(0, 0, canvas.width, canvas.height);
// ELEMENT: sun
ctx.fillStyle = "gold";
ctx.beginPath();
ctx.arc(120, 100, 50, 0, Math.PI * 2);
ctx.fill();
// END ELEMENT: sun"""

HOUSE_CANVAS = """// ELEMENT: house
ctx.fillStyle = "#8b4513";
ctx.fillRect(300, 300, 200, 150);
// ELEMENT: door
ctx.fillStyle = "#333";
ctx.fillRect(380, 380, 40, 70);
// END ELEMENT: door
// END ELEMENT: house
// ELEMENT: grass
ctx.fillStyle = "green";
ctx.fillRect(0, 450, 1024, 318);
// END ELEMENT: grass"""


def png_bytes(width: int = 4, height: int = 4, color: tuple[int, int, int] = (0, 128, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


TINY_PNG_B64 = base64.b64encode(png_bytes()).decode("ascii")


def tool_call_reply(*calls: tuple[str, dict[str, Any]], text: str = "", round_id: str = "r") -> AIMessage:
    """An assistant turn requesting ``calls`` as (name, args) pairs."""
    content: list[dict[str, Any]] = []
    if text:
        content.append({"type": "text", "text": text})
    tool_calls = []
    for i, (name, args) in enumerate(calls):
        call_id = f"toolu_{round_id}_{i}"
        content.append({"type": "tool_use", "id": call_id, "name": name, "input": args})
        tool_calls.append({"name": name, "args": args, "id": call_id, "type": "tool_call"})
    return AIMessage(
        content=content,
        tool_calls=tool_calls,
        usage_metadata={"input_tokens": 100, "output_tokens": 20, "total_tokens": 120},
    )


def text_reply(text: str) -> AIMessage:
    return AIMessage(
        content=[{"type": "text", "text": text}],
        usage_metadata={"input_tokens": 50, "output_tokens": 10, "total_tokens": 60},
    )


class OverloadedError(Exception):
    """Mimics the SDK error raised for HTTP 529."""

    def __init__(self) -> None:
        super().__init__("Error code: 529 - Overloaded")
        self.body = {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}


class FakeChatModel:
    """Stands in for ChatAnthropic: replays scripted replies (or raises scripted errors)."""

    def __init__(self, script: list[Any] | None = None, default: Any = None) -> None:
        self.script = list(script or [])
        self.default = default
        self.calls: list[list[Any]] = []
        self.bound_tools: list[dict[str, Any]] | None = None

    def bind_tools(self, tools: list[dict[str, Any]], **kwargs: Any) -> "FakeChatModel":
        self.bound_tools = tools
        return self

    async def ainvoke(self, messages: list[Any]) -> AIMessage:
        self.calls.append(list(messages))
        item = self.script.pop(0) if self.script else self.default
        if item is None:
            raise AssertionError("FakeChatModel ran out of scripted replies")
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item(len(self.calls))
        return item


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeScreenshotter:
    def __init__(self, fail_with: str | None = None) -> None:
        self.fail_with = fail_with
        self.captured: list[tuple[str, int, int]] = []

    async def capture(self, url: str, width: int, height: int) -> bytes:
        validate_url(url)
        self.captured.append((url, width, height))
        if self.fail_with:
            raise WebpageImportError(self.fail_with)
        return png_bytes(width // 100, height // 100)


async def fake_render(source: str, width: int, height: int) -> bytes:
    return png_bytes(8, 6)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        anthropic_api_key="",
        retry_attempts=3,
        retry_base_delay_s=2.0,
        max_tool_rounds=10,
        history_limit=20,
        model_timeout_s=5.0,
        render_timeout_s=5.0,
        session_timeout_s=60.0,
    )


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def rasterizer() -> CanvasRasterizer:
    return CanvasRasterizer(timeout_s=5.0, runner=fake_render)


def make_gateway(settings: Settings, model: FakeChatModel, sleep: Any = None) -> ModelGateway:
    return ModelGateway(settings, model_factory=lambda options: model, sleep=sleep or SleepRecorder())


def make_loop(
    settings: Settings,
    model: FakeChatModel,
    rasterizer: CanvasRasterizer | None = None,
    screenshotter: Any = None,
) -> ToolLoop:
    return ToolLoop(
        gateway=make_gateway(settings, model),
        rasterizer=rasterizer or CanvasRasterizer(timeout_s=5.0, runner=fake_render),
        registry=default_registry(),
        settings=settings,
        screenshotter=screenshotter or FakeScreenshotter(),
    )
