# src/api/app.py
"""API application factory."""

import logging
import time

from fastapi import FastAPI, Request

from src.api.errors import register_exception_handlers
from src.api.routes import analysts, evaluate, update
from src.api.services import Services
from src.api.settings import ApiSettings

logger = logging.getLogger(__name__)


def create_app(services: Services, settings: ApiSettings | None = None) -> FastAPI:
    """Create the API application around explicitly built services.

    Args:
        services: Services the routes operate on.
        settings: API settings.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or ApiSettings()
    app = FastAPI(title=settings.title)
    app.state.services = services

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.monotonic()
        response = await call_next(request)
        duration = time.monotonic() - start
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({duration:.3f}s)"
        )
        return response

    register_exception_handlers(app, debug=settings.debug)

    app.include_router(update.router)
    app.include_router(evaluate.router)
    app.include_router(analysts.router)

    @app.get("/health", tags=["Health"])
    async def health() -> dict:
        return {"success": True, "status": "ok"}

    return app
