"""
FastAPI application entry point.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from speedlesen.config import Settings, get_settings
from speedlesen.errors import SpeedlesenError
from speedlesen.routes import router
from speedlesen.store import StoreFacade, open_store

logger = logging.getLogger(__name__)


async def _handle_store_error(request: Request, exc: SpeedlesenError):
    logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


def create_app(
    settings: Optional[Settings] = None, store: Optional[StoreFacade] = None
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    app = FastAPI(title="Speedlesen Tracker", version="0.1.0")
    app.state.store = store or open_store(settings)
    app.add_exception_handler(SpeedlesenError, _handle_store_error)
    app.include_router(router, prefix=settings.api_prefix)
    return app
