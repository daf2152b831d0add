"""FastAPI application entry point."""

import logging
import math
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from session_rag.api.deps import build_container
from session_rag.api.v1.router import api_router
from session_rag.core.config import Settings, get_settings
from session_rag.core.database import create_all, create_engine, create_session_factory
from session_rag.core.errors import AppError, RateLimitExceededError
from session_rag.observability import (
    RequestLoggingMiddleware,
    build_metrics_backend,
    configure_logging,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan events."""
    settings: Settings = app.state.settings

    # Startup
    engine = create_engine(settings.database_url, echo=settings.database_echo)
    if settings.database_auto_create:
        await create_all(engine)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.container = build_container(settings, app.state.metrics)
    logger.info("%s %s started", settings.app_name, settings.app_version)

    yield

    # Shutdown
    await app.state.container.aclose()
    await engine.dispose()


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render domain errors as ``{"error": {...}}`` with the mapped status."""
    status_code = exc.http_status
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)

    headers: dict[str, str] = {}
    if isinstance(exc, RateLimitExceededError):
        headers["Retry-After"] = str(max(1, math.ceil(exc.retry_after)))

    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "message": exc.message,
                "status_code": status_code,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "path": request.url.path,
                "method": request.method,
            }
        },
        headers=headers,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application. Providers and the database are wired in ``lifespan``."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.metrics = build_metrics_backend(settings.metrics_backend)

    # Note: When allow_credentials=True, allow_origins cannot be ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware, metrics=app.state.metrics)

    app.add_exception_handler(AppError, app_error_handler)
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "version": settings.app_version}

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> PlainTextResponse:
        """Prometheus-style metrics endpoint."""
        return PlainTextResponse(app.state.metrics.render_prometheus())

    return app


app = create_app()
