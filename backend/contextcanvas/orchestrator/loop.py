"""Tool-use loop: model call, tool dispatch, re-render, repeat.

One round:
  1. send history + turns + tool schemas to the gateway
  2. surface any text in the reply
  3. no tool calls -> done
  4. run each tool call in order against the session's canvas source
  5. render the source once, append tool results + screenshot + redacted source
The loop stops after ``max_tool_rounds`` rounds with tool calls; that is a
normal terminal state, not an error.

Everything is sequential: one gateway call or render in flight at a time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage

from contextcanvas import events
from contextcanvas.canvas.document import CanvasDocument
from contextcanvas.canvas.redaction import count_embedded_images, redact_embedded_images
from contextcanvas.config import Settings
from contextcanvas.events import StreamEvent
from contextcanvas.llm.gateway import GatewayError, GatewayOptions, ModelGateway, message_text, usage_tokens
from contextcanvas.llm.prompts import (
    CANVAS_SYSTEM_PROMPT,
    CHAT_TURN_TEMPLATE,
    EMPTY_CANVAS_NOTE,
    TOOL_RESULT_TEMPLATE,
)
from contextcanvas.orchestrator.registry import ToolContext, ToolOutcome, ToolRegistry
from contextcanvas.orchestrator.session import (
    ChatSession,
    OrchestrationSession,
    drop_unanswered_tool_calls,
    trim_history,
)
from contextcanvas.render.rasterizer import CanvasRasterizer, RenderedImage
from contextcanvas.render.webpage import WebpageScreenshotter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionDeadlineExceeded(GatewayError):
    """The exchange ran past ``session_timeout_s``."""


@dataclass
class ChatTurnRequest:
    message: str
    source: str = ""
    width: int = 1024
    height: int = 768
    screenshot: str | None = None  # data URL or bare base64 PNG
    viewport: dict[str, float] | None = None
    options: GatewayOptions | None = None


@dataclass
class ChatOutcome:
    success: bool
    response: str
    source: str
    tool_uses: list[dict[str, Any]] = field(default_factory=list)
    tokens: dict[str, int] = field(default_factory=dict)
    elements: list[str] = field(default_factory=list)
    image: str | None = None  # latest render as a data URL
    error: str | None = None


def image_block(data_b64: str, media_type: str = "image/png") -> dict[str, Any]:
    return {
        "type": "image",
        "source": {"type": "base64", "media_type": media_type, "data": data_b64},
    }


def text_block(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


def parse_screenshot(screenshot: str) -> tuple[str, str]:
    """Split a ``data:<mime>;base64,<data>`` URL into (data, mime); bare base64 is PNG."""
    if screenshot.startswith("data:") and "," in screenshot:
        header, data = screenshot.split(",", 1)
        media_type = header[5:].split(";", 1)[0] or "image/png"
        return data, media_type
    return screenshot, "image/png"


def _format_viewport(viewport: dict[str, float] | None) -> str:
    if not viewport:
        return ""
    return (
        f" The user is viewing it at {viewport.get('scale', 1.0):.2f}x zoom, "
        f"panned by ({viewport.get('offsetX', 0):.0f}, {viewport.get('offsetY', 0):.0f})."
    )


def _source_for_model(source: str) -> str:
    return redact_embedded_images(source) if source.strip() else EMPTY_CANVAS_NOTE


def build_user_turn(request: ChatTurnRequest) -> HumanMessage:
    content: list[dict[str, Any]] = []
    if request.screenshot:
        data, media_type = parse_screenshot(request.screenshot)
        content.append(image_block(data, media_type))
    content.append(
        text_block(
            CHAT_TURN_TEMPLATE.format(
                message=request.message,
                width=request.width,
                height=request.height,
                viewport=_format_viewport(request.viewport),
                source=_source_for_model(request.source),
            )
        )
    )
    return HumanMessage(content=content)


class ToolLoop:
    def __init__(
        self,
        gateway: ModelGateway,
        rasterizer: CanvasRasterizer,
        registry: ToolRegistry,
        settings: Settings,
        screenshotter: WebpageScreenshotter | None = None,
        system_prompt: str = CANVAS_SYSTEM_PROMPT,
    ) -> None:
        self.gateway = gateway
        self.rasterizer = rasterizer
        self.registry = registry
        self.settings = settings
        self.screenshotter = screenshotter
        self.system_prompt = system_prompt

    async def run(self, chat: ChatSession, request: ChatTurnRequest) -> AsyncIterator[StreamEvent]:
        """Run one exchange, yielding progress events. Always ends with ``done``.

        The caller must hold ``chat.lock``.
        """
        state = OrchestrationSession(source=request.source, width=request.width, height=request.height)
        state.turns.append(build_user_turn(request))
        tool_ctx = ToolContext(
            source=state.source,
            width=state.width,
            height=state.height,
            screenshotter=self.screenshotter,
            counters=chat.counters,
        )
        last_text = ""

        try:
            while True:
                reply = await self._within_deadline(
                    state,
                    self.gateway.complete(
                        self.system_prompt,
                        [*chat.history, *state.turns],
                        tools=self.registry.schemas(),
                        options=request.options,
                    ),
                )
                state.turns.append(reply)
                state.add_usage(usage_tokens(reply))
                yield events.usage(state.tokens)

                text = message_text(reply)
                if text:
                    last_text = text
                    yield events.message(text)

                if not reply.tool_calls:
                    state.final_text = text
                    logger.info(
                        "Exchange finished after %d tool rounds (%d tool calls)",
                        state.iteration,
                        len(state.tool_uses),
                    )
                    break

                async for event in self._run_tools(state, tool_ctx, reply):
                    yield event

                image = await self._within_deadline(
                    state, self.rasterizer.render(state.source, state.width, state.height)
                )
                state.image = image
                yield events.canvas_update(state.source, image.to_data_url(), image.placeholder)
                state.turns.append(self._tool_result_turn(state, image))

                state.iteration += 1
                if state.iteration >= self.settings.max_tool_rounds:
                    state.cap_hit = True
                    state.final_text = last_text
                    logger.warning("Tool loop hit the %d-round cap", self.settings.max_tool_rounds)
                    break
        except GatewayError as e:
            logger.error("Exchange aborted: %s", e)
            state.error = str(e)
            state.final_text = last_text
            yield events.error(str(e))
        except Exception as e:
            logger.exception("Unexpected failure in tool loop")
            state.error = str(e) or type(e).__name__
            state.final_text = last_text
            yield events.error(state.error)
        finally:
            turns = drop_unanswered_tool_calls(state.turns)
            chat.history = trim_history([*chat.history, *turns], self.settings.history_limit)
            chat.touch()

        yield events.done(state.source, state.tokens, state.final_text)

    async def _run_tools(
        self,
        state: OrchestrationSession,
        tool_ctx: ToolContext,
        reply: AIMessage,
    ) -> AsyncIterator[StreamEvent]:
        for call in reply.tool_calls:
            name = call["name"]
            args = call.get("args") or {}
            yield events.tool_use(name, self._describe_call(name, args))

            tool_ctx.source = state.source
            outcome = await self._within_deadline(state, self._dispatch(tool_ctx, name, args))
            state.source = tool_ctx.source

            state.tool_uses.append(
                {"kind": name, "detail": outcome.detail, "result": outcome.content, "error": outcome.is_error}
            )
            if outcome.is_error:
                yield events.tool_error(name, outcome.detail, outcome.content)

            state.turns.append(
                ToolMessage(
                    content=outcome.content,
                    tool_call_id=call["id"],
                    status="error" if outcome.is_error else "success",
                )
            )

    async def _dispatch(self, tool_ctx: ToolContext, name: str, args: dict[str, Any]) -> ToolOutcome:
        spec = self.registry.get(name)
        if spec is None:
            logger.warning("Model called unknown tool %r", name)
            return ToolOutcome(content=f"Error: unknown tool '{name}'", is_error=True, detail=name)

        missing = spec.missing_arguments(args)
        if missing:
            return ToolOutcome(
                content=f"Error: missing required argument(s): {', '.join(missing)}",
                is_error=True,
                detail=name,
            )

        try:
            return await spec.handler(tool_ctx, args)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Tool %s rejected its arguments: %s", name, e)
            return ToolOutcome(content=f"Error: invalid arguments for {name}: {e}", is_error=True, detail=name)

    @staticmethod
    def _describe_call(name: str, args: dict[str, Any]) -> str:
        if name == "update_element":
            return str(args.get("name", ""))
        if name == "import_webpage":
            return str(args.get("url", ""))
        code = str(args.get("code", ""))
        return f"{len(code.splitlines())} lines"

    def _tool_result_turn(self, state: OrchestrationSession, image: RenderedImage) -> BaseMessage:
        source = _source_for_model(state.source)
        if count_embedded_images(state.source):
            logger.debug("Redacted embedded images from canvas source sent to model")
        text = TOOL_RESULT_TEMPLATE.format(round=state.iteration + 1, source=source)
        if image.placeholder:
            text += f"\n\nThe canvas failed to render: {image.error}"
        return HumanMessage(content=[image_block(image.to_base64(), image.media_type), text_block(text)])

    def _deadline_error(self) -> SessionDeadlineExceeded:
        return SessionDeadlineExceeded(f"Exchange exceeded {self.settings.session_timeout_s:g}s deadline")

    async def _within_deadline(self, state: OrchestrationSession, step: Awaitable[T]) -> T:
        """Await one step, cancelling it once the exchange's time budget runs out."""
        remaining = self.settings.session_timeout_s - (time.monotonic() - state.started)
        if remaining <= 0:
            if asyncio.iscoroutine(step):
                step.close()
            raise self._deadline_error()
        try:
            return await asyncio.wait_for(step, remaining)
        except asyncio.TimeoutError as e:
            raise self._deadline_error() from e


async def run_to_completion(loop: ToolLoop, chat: ChatSession, request: ChatTurnRequest) -> ChatOutcome:
    """Drain the event stream into a single outcome (non-streaming endpoint)."""
    outcome = ChatOutcome(success=True, response="", source=request.source)

    async for event in loop.run(chat, request):
        if event.event == "tool_use":
            outcome.tool_uses.append(dict(event.data))
        elif event.event == "tool_error" and outcome.tool_uses:
            # tool_error always directly follows its tool_use
            outcome.tool_uses[-1]["error"] = event.data["message"]
        elif event.event == "canvas_update":
            outcome.image = event.data["image"]
        elif event.event == "error":
            outcome.success = False
            outcome.error = event.data["message"]
        elif event.event == "done":
            outcome.source = event.data["final_source"]
            outcome.tokens = event.data["tokens"]
            outcome.response = event.data["response"]

    outcome.elements = CanvasDocument.from_source(outcome.source).element_names
    return outcome
