"""API schemas for instance endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from botfleet.domain.models.backend import BackendKind, DEFAULT_GATEWAY_PORT
from botfleet.domain.models.cloud_provider import ContainerHealth
from botfleet.domain.models.instance import InstanceStatus
from botfleet.domain.models.targets import TargetConfig


class CreateInstanceRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    profile_name: str = Field(..., min_length=1, max_length=63, pattern="^[a-z0-9][a-z0-9-]*$")
    target: TargetConfig
    gateway_port: int = Field(default=DEFAULT_GATEWAY_PORT, gt=0, lt=65536)
    version_tag: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    environment: dict[str, str] = Field(default_factory=dict)


class InstanceResponse(BaseModel):
    id: str
    name: str
    profile_name: str
    backend_kind: BackendKind
    status: InstanceStatus
    health: ContainerHealth
    gateway_host: str | None = None
    gateway_port: int
    version_tag: str | None = None
    last_error: str | None = None
    error_count: int = 0
    running_since: datetime | None = None
    created_at: datetime
    updated_at: datetime


class InstanceListResponse(BaseModel):
    items: list[InstanceResponse]
    total: int
    limit: int
    offset: int


class ProvisionAcceptedResponse(BaseModel):
    instance_id: str
    status: InstanceStatus
    progress_url: str


class InstanceLogsResponse(BaseModel):
    instance_id: str
    lines: list[str]
