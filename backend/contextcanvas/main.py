"""FastAPI app factory."""

from __future__ import annotations

import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from contextcanvas import __version__
from contextcanvas.config import settings

load_dotenv()

logging.basicConfig(
    level=getattr(logging, settings.contextcanvas_log_level.upper(), logging.INFO),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Context Canvas",
        description="Tool-using canvas chat: the model edits canvas JavaScript and sees each render",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Import tool modules so @canvas_tool decorators fire
    import contextcanvas.orchestrator.tools  # noqa: F401
    from contextcanvas.api.router import api_router

    app.include_router(api_router)

    return app


app = create_app()
