"""FastAPI entry-point exposing the analysis engine."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from codescope.api.analyze import router as analyze_router
from codescope.api.routes import router as agents_router
from codescope.config import config
from codescope.log import setup_logging
from codescope.runtime import get_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application."""
    setup_logging(config.log_level, config.log_dir)
    logger.info("Starting codescope (%s, engine=%s)", config.environment, config.engine)
    yield
    # Shutdown: drop queued work and let in-flight workers finish
    await get_scheduler().shutdown()


app = FastAPI(title="Codescope Analysis Engine", lifespan=lifespan)
app.include_router(agents_router)
app.include_router(analyze_router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "environment": config.environment}
