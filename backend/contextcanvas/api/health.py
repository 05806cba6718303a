"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from contextcanvas import __version__
from contextcanvas.models.responses import HealthResponse
from contextcanvas.orchestrator.tools import default_registry

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        message="Context Canvas server running",
        version=__version__,
        tools=default_registry().names,
    )
