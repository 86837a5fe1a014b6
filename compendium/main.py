"""
Compendium API - Application Factory

FastAPI app exposing the ingestion pipeline to the admin UI.

Run:
    uvicorn compendium.main:create_app --factory
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from . import __version__
from .core.config import Settings, get_settings
from .core.errors import setup_error_handlers
from .core.logging import configure_logging
from .routers import laws_router
from .services.pipeline import LawPipeline

logger = logging.getLogger(__name__)


def create_app(
    pipeline: Optional[LawPipeline] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        pipeline: Pre-built pipeline (tests); built from settings at startup otherwise
        settings: Settings override
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)
        if getattr(app.state, "pipeline", None) is None:
            app.state.pipeline = LawPipeline.from_settings(settings)
        logger.info("Compendium API starting (env=%s)", settings.ENVIRONMENT)
        try:
            yield
        finally:
            await app.state.pipeline.aclose()
            logger.info("Compendium API stopped")

    app = FastAPI(
        title="Compendium Ingestion API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.pipeline = pipeline

    setup_error_handlers(app)
    app.include_router(laws_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app
