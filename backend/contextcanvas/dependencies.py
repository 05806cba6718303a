"""FastAPI dependency injection."""

from __future__ import annotations

from fastapi import Depends

from contextcanvas.config import Settings, settings
from contextcanvas.llm.gateway import ModelGateway
from contextcanvas.orchestrator.loop import ToolLoop
from contextcanvas.orchestrator.session import SessionStore
from contextcanvas.orchestrator.tools import default_registry
from contextcanvas.render.rasterizer import CanvasRasterizer
from contextcanvas.render.webpage import WebpageScreenshotter

_session_store = SessionStore()


def get_settings() -> Settings:
    return settings


def get_session_store() -> SessionStore:
    return _session_store


def get_gateway(settings: Settings = Depends(get_settings)) -> ModelGateway:
    return ModelGateway(settings)


def get_rasterizer(settings: Settings = Depends(get_settings)) -> CanvasRasterizer:
    return CanvasRasterizer(timeout_s=settings.render_timeout_s)


def get_screenshotter(settings: Settings = Depends(get_settings)) -> WebpageScreenshotter:
    return WebpageScreenshotter(timeout_s=settings.render_timeout_s)


def get_tool_loop(
    settings: Settings = Depends(get_settings),
    gateway: ModelGateway = Depends(get_gateway),
    rasterizer: CanvasRasterizer = Depends(get_rasterizer),
    screenshotter: WebpageScreenshotter = Depends(get_screenshotter),
) -> ToolLoop:
    return ToolLoop(
        gateway=gateway,
        rasterizer=rasterizer,
        registry=default_registry(),
        settings=settings,
        screenshotter=screenshotter,
    )
