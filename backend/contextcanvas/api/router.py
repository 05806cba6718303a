"""Master API router: mounts all endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from contextcanvas.api import chat, health, infer, iterate

api_router = APIRouter(prefix="/api")

api_router.include_router(health.router)
api_router.include_router(chat.router)
api_router.include_router(iterate.router)
api_router.include_router(infer.router)
