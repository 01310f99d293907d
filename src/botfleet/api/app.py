"""FastAPI application factory."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from botfleet.api.dependencies.services import get_service_container
from botfleet.api.middleware.correlation import CorrelationIdMiddleware
from botfleet.api.middleware.request_metrics import RequestMetricsMiddleware
from botfleet.api.routes import (
    health_routes,
    instance_routes,
    provisioning_routes,
)
from botfleet.config import get_settings, Settings
from botfleet.infrastructure.observability.tracing import setup_tracing


logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()
    logger.info(
        "application_starting",
        environment=settings.environment.value,
        debug=settings.debug,
    )
    setup_tracing(settings.observability)

    container = get_service_container()
    worker_task: asyncio.Task[None] | None = None
    if settings.worker.enabled:
        worker_task = asyncio.create_task(container.worker.start())

    yield

    logger.info("application_shutting_down")
    if worker_task is not None:
        await container.worker.stop()
        worker_task.cancel()
        await asyncio.gather(worker_task, return_exceptions=True)
    logger.info("application_shutdown_complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Bot Gateway Provisioner",
        description="Provisions messaging-bot gateway instances onto container platforms",
        version="1.0.0",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        lifespan=lifespan,
    )

    # Middleware (order matters - first added = outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)
    if settings.observability.metrics_enabled:
        app.add_middleware(RequestMetricsMiddleware)

    # Routes
    app.include_router(health_routes.router)
    app.include_router(instance_routes.router, prefix=settings.api_prefix)
    app.include_router(provisioning_routes.router, prefix=settings.api_prefix)

    return app
