"""FastAPI application factory for oasguard."""

from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI

from oasguard import __version__
from oasguard.api.middleware import RequestBodyLimitMiddleware, RequestTimingMiddleware
from oasguard.api.routers import validate
from oasguard.api.schemas import HealthResponse
from oasguard.settings import Settings


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="oasguard",
        description="Structural and style validation for OpenAPI and Swagger documents.",
        version=__version__,
    )
    app.state.settings = settings

    # Middleware
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(RequestBodyLimitMiddleware)

    app.include_router(validate.router, tags=["validation"])

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    return app


def main() -> None:
    """Run the REST API server using settings from environment / .env file."""
    settings = Settings()

    logging.basicConfig(level=settings.log_level.upper())
    logger = logging.getLogger("oasguard.api")
    logger.info(
        "oasguard API Server v%s starting (host=%s, port=%d)",
        __version__, settings.api_server_host, settings.effective_port,
    )

    uvicorn.run(
        "oasguard.api.app:create_app",
        factory=True,
        host=settings.api_server_host,
        port=settings.effective_port,
        log_level=settings.log_level.lower(),
    )
