"""Provisioning progress routes: snapshot query and live event stream."""

from __future__ import annotations

import asyncio
from typing import Annotated

import structlog
from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    WebSocket,
    WebSocketDisconnect,
)

from botfleet.api.dependencies.services import get_service_container, ServiceContainer
from botfleet.api.schemas.provisioning_schemas import CatalogResponse, CatalogStepResponse
from botfleet.domain.models.provisioning import ProvisioningProgress
from botfleet.domain.provisioning_steps import (
    DEFAULT_BACKEND_KIND,
    PROVISIONING_STEPS,
    STEP_PHASES,
    step_name,
)
from botfleet.infrastructure.messaging.progress_hub import EVENT_PROGRESS


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/provisioning", tags=["provisioning"])


@router.get("/catalog", response_model=CatalogResponse)
async def get_catalog() -> CatalogResponse:
    """Ordered provisioning steps of every backend kind."""
    return CatalogResponse(
        default_backend_kind=DEFAULT_BACKEND_KIND,
        backends={
            kind: [
                CatalogStepResponse(id=s, name=step_name(s), phase=STEP_PHASES[s])
                for s in steps
            ]
            for kind, steps in PROVISIONING_STEPS.items()
        },
    )


@router.get("/{instance_id}", response_model=ProvisioningProgress)
async def get_provisioning_status(
    instance_id: str,
    container: Annotated[ServiceContainer, Depends(get_service_container)],
) -> ProvisioningProgress:
    """Live progress of a run, or a view derived from the stored instance."""
    progress = await container.lifecycle.get_status_view(instance_id)
    if progress is None:
        raise HTTPException(
            status_code=404, detail=f"No provisioning status for instance {instance_id}"
        )
    return progress


@router.websocket("/{instance_id}/events")
async def provisioning_events(websocket: WebSocket, instance_id: str) -> None:
    """Stream buffered logs, then progress snapshots and log lines as they happen."""
    container = get_service_container()
    await websocket.accept()
    subscription = container.event_hub.subscribe(instance_id)

    current = container.tracker.get_progress(instance_id)
    if current is not None:
        subscription.put({
            "type": EVENT_PROGRESS,
            "instance_id": instance_id,
            "progress": current.model_dump(mode="json"),
        })

    async def _forward() -> None:
        async for message in subscription:
            await websocket.send_json(message)

    forward = asyncio.create_task(_forward())
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("progress_stream_disconnected", instance_id=instance_id)
    finally:
        forward.cancel()
        await asyncio.gather(forward, return_exceptions=True)
        subscription.close()
