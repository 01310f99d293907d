"""Health check and metrics routes."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from botfleet.api.dependencies.services import get_service_container, ServiceContainer


router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0",
    }


@router.get("/health/ready")
async def readiness_check(
    container: Annotated[ServiceContainer, Depends(get_service_container)],
) -> dict[str, Any]:
    """Readiness check - reports the in-process components the API depends on."""
    checks: dict[str, str] = {
        "tracker": "ok",
        "event_hub": "ok",
        "worker": "running" if container.worker.running else "idle",
    }
    if container.settings.worker.enabled and not container.worker.running:
        checks["worker"] = "not_running"

    all_ok = checks["worker"] != "not_running"
    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
        "active_runs": len(container.tracker.active_instance_ids()),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Liveness check - verifies the service is running."""
    return {"status": "alive"}


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
