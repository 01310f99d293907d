"""Gateway instance API routes."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    HTTPException,
    Query,
    status,
)

from botfleet.api.dependencies.services import get_service_container, ServiceContainer
from botfleet.api.schemas.instance_schemas import (
    CreateInstanceRequest,
    InstanceListResponse,
    InstanceLogsResponse,
    InstanceResponse,
    ProvisionAcceptedResponse,
)
from botfleet.domain.models.backend import LogQuery
from botfleet.domain.models.instance import (
    BotInstance,
    InstanceStatus,
    InvalidInstanceTransitionError,
)
from botfleet.domain.ports.targets import TargetConfigurationError
from botfleet.domain.services.lifecycle_service import InstanceNotFoundError
from botfleet.infrastructure.targets.factory import UnsupportedTargetError


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/instances", tags=["instances"])


def _to_response(instance: BotInstance) -> InstanceResponse:
    """Map domain model to API response."""
    return InstanceResponse(
        id=instance.id,
        name=instance.name,
        profile_name=instance.profile_name,
        backend_kind=instance.backend_kind,
        status=instance.status,
        health=instance.health,
        gateway_host=instance.gateway_host,
        gateway_port=instance.gateway_port,
        version_tag=instance.version_tag,
        last_error=instance.last_error,
        error_count=instance.error_count,
        running_since=instance.running_since,
        created_at=instance.created_at,
        updated_at=instance.updated_at,
    )


async def _get_instance(container: ServiceContainer, instance_id: str) -> BotInstance:
    instance = await container.instance_repo.get_by_id(instance_id)
    if instance is None:
        raise HTTPException(status_code=404, detail=f"Instance {instance_id} not found")
    return instance


@router.post(
    "",
    response_model=InstanceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_instance(
    request: CreateInstanceRequest,
    container: Annotated[ServiceContainer, Depends(get_service_container)],
) -> InstanceResponse:
    """Register a new instance. It stays PENDING until provisioned."""
    instance = BotInstance(
        name=request.name,
        profile_name=request.profile_name,
        target=request.target,
        gateway_port=request.gateway_port,
        version_tag=request.version_tag,
        config=request.config,
        environment=request.environment,
    )
    await container.instance_repo.save(instance)
    logger.info(
        "instance_created",
        instance_id=instance.id,
        backend_kind=instance.backend_kind.value,
    )
    return _to_response(instance)


@router.get("", response_model=InstanceListResponse)
async def list_instances(
    container: Annotated[ServiceContainer, Depends(get_service_container)],
    instance_status: Annotated[InstanceStatus | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> InstanceListResponse:
    if instance_status is None:
        items = await container.instance_repo.list_all(limit=limit, offset=offset)
    else:
        items = await container.instance_repo.list_by_status(
            instance_status, limit=limit, offset=offset
        )
    return InstanceListResponse(
        items=[_to_response(i) for i in items],
        total=len(items),
        limit=limit,
        offset=offset,
    )


@router.get("/{instance_id}", response_model=InstanceResponse)
async def get_instance(
    instance_id: str,
    container: Annotated[ServiceContainer, Depends(get_service_container)],
) -> InstanceResponse:
    return _to_response(await _get_instance(container, instance_id))


@router.post(
    "/{instance_id}/provision",
    response_model=ProvisionAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def provision_instance(
    instance_id: str,
    background_tasks: BackgroundTasks,
    container: Annotated[ServiceContainer, Depends(get_service_container)],
) -> ProvisionAcceptedResponse:
    """Start a provisioning run in the background and return immediately."""
    instance = await _get_instance(container, instance_id)
    if instance.status == InstanceStatus.CREATING:
        raise HTTPException(status_code=409, detail="Instance is already being provisioned")
    try:
        instance.begin_provisioning()
    except InvalidInstanceTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    await container.instance_repo.update(instance)

    background_tasks.add_task(container.worker.run, instance)
    return ProvisionAcceptedResponse(
        instance_id=instance.id,
        status=instance.status,
        progress_url=f"{container.settings.api_prefix}/provisioning/{instance.id}",
    )


@router.post("/{instance_id}/stop", response_model=InstanceResponse)
async def stop_instance(
    instance_id: str,
    container: Annotated[ServiceContainer, Depends(get_service_container)],
) -> InstanceResponse:
    try:
        instance = await container.lifecycle.stop(instance_id)
    except InstanceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidInstanceTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except (UnsupportedTargetError, TargetConfigurationError) as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return _to_response(instance)


@router.post("/{instance_id}/restart", response_model=InstanceResponse)
async def restart_instance(
    instance_id: str,
    container: Annotated[ServiceContainer, Depends(get_service_container)],
) -> InstanceResponse:
    try:
        instance = await container.lifecycle.restart(instance_id)
    except InstanceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except (UnsupportedTargetError, TargetConfigurationError) as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return _to_response(instance)


@router.get("/{instance_id}/logs", response_model=InstanceLogsResponse)
async def get_instance_logs(
    instance_id: str,
    container: Annotated[ServiceContainer, Depends(get_service_container)],
    lines: Annotated[int | None, Query(gt=0, le=10000)] = None,
    pattern: Annotated[str | None, Query(alias="filter")] = None,
) -> InstanceLogsResponse:
    try:
        log_lines = await container.lifecycle.get_logs(
            instance_id, LogQuery(lines=lines, filter=pattern)
        )
    except InstanceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except (UnsupportedTargetError, TargetConfigurationError) as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return InstanceLogsResponse(instance_id=instance_id, lines=log_lines)


@router.delete("/{instance_id}", response_model=InstanceResponse)
async def destroy_instance(
    instance_id: str,
    container: Annotated[ServiceContainer, Depends(get_service_container)],
) -> InstanceResponse:
    """Tear down every backend resource of the instance."""
    try:
        instance = await container.lifecycle.destroy(instance_id)
    except InstanceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidInstanceTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except (UnsupportedTargetError, TargetConfigurationError) as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return _to_response(instance)
