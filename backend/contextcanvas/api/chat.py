"""POST /api/chat, /api/chat-stream: tool-using canvas chat (buffered + NDJSON streaming)."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from contextcanvas import events
from contextcanvas.config import Settings
from contextcanvas.dependencies import get_session_store, get_settings, get_tool_loop
from contextcanvas.llm.gateway import GatewayOptions
from contextcanvas.models.requests import ChatRequest
from contextcanvas.models.responses import ChatResponse, SessionDeleteResponse, ToolUse
from contextcanvas.orchestrator.loop import ChatTurnRequest, ToolLoop, run_to_completion
from contextcanvas.orchestrator.session import ChatSession, SessionStore

router = APIRouter()
logger = logging.getLogger(__name__)


def _missing_message() -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Message is required"})


def _turn_request(req: ChatRequest, settings: Settings) -> ChatTurnRequest:
    dims = req.canvas_dimensions
    return ChatTurnRequest(
        message=req.message,
        source=req.canvas_js or "",
        width=dims.width if dims else settings.canvas_width,
        height=dims.height if dims else settings.canvas_height,
        screenshot=req.canvas_screenshot,
        viewport=req.viewport.as_dict() if req.viewport else None,
        options=GatewayOptions(
            temperature=req.temperature if req.temperature is not None else 1.0,
            thinking=req.enable_thinking,
            thinking_budget=settings.thinking_budget,
            max_tokens=settings.max_tokens,
        ),
    )


def _open_session(store: SessionStore, session_id: str | None, settings: Settings) -> ChatSession:
    store.evict_idle(settings.session_idle_s)
    return store.get_or_create(session_id)


@router.post("/chat", response_model=ChatResponse)
async def chat(
    req: ChatRequest,
    loop: ToolLoop = Depends(get_tool_loop),
    store: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    if not req.message.strip():
        return _missing_message()

    session = _open_session(store, req.session_id, settings)
    async with session.lock:
        outcome = await run_to_completion(loop, session, _turn_request(req, settings))

    if not outcome.success:
        logger.error("Error in chat endpoint: %s", outcome.error)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Failed to process message",
                "details": outcome.error,
                "canvasJS": outcome.source,
                "canvasImage": outcome.image,
                "response": outcome.response,
            },
        )

    return ChatResponse(
        success=True,
        response=outcome.response,
        canvas_js=outcome.source,
        canvas_image=outcome.image,
        tool_uses=[ToolUse(**use) for use in outcome.tool_uses],
        usage=outcome.tokens,
        elements=outcome.elements,
    )


async def _stream_events(
    loop: ToolLoop,
    session: ChatSession,
    request: ChatTurnRequest,
) -> AsyncGenerator[str, None]:
    yield events.connected(session.session_id).to_ndjson()
    async with session.lock:
        async for event in loop.run(session, request):
            yield event.to_ndjson()


@router.post("/chat-stream")
async def chat_stream(
    req: ChatRequest,
    loop: ToolLoop = Depends(get_tool_loop),
    store: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    if not req.message.strip():
        return _missing_message()

    session = _open_session(store, req.session_id, settings)
    return StreamingResponse(
        _stream_events(loop, session, _turn_request(req, settings)),
        media_type="application/x-ndjson",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.delete("/sessions/{session_id}", response_model=SessionDeleteResponse)
async def delete_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> SessionDeleteResponse:
    return SessionDeleteResponse(success=True, removed=store.evict(session_id))
