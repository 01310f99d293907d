"""Backend adapter contract value types."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from botfleet.domain.models.base import ValueObject


DEFAULT_GATEWAY_PORT = 18789


class BackendKind(str, Enum):
    """Execution backends a gateway instance can be provisioned on."""

    LOCAL = "local"
    DOCKER = "docker"
    KUBERNETES = "kubernetes"
    ECS_FARGATE = "ecs-fargate"
    ACI = "aci"
    CLOUDFLARE_WORKERS = "cloudflare-workers"


class TargetState(str, Enum):
    NOT_INSTALLED = "not-installed"
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"


class InstallOptions(ValueObject):
    """Options for installing a gateway instance on a target."""

    profile_name: str = Field(..., min_length=1)
    port: int = DEFAULT_GATEWAY_PORT
    version_tag: str | None = None


class InstallResult(ValueObject):
    success: bool
    instance_id: str
    message: str
    service_name: str | None = None


class GatewayConfigPayload(ValueObject):
    """Gateway configuration to apply to an installed instance."""

    profile_name: str = Field(..., min_length=1)
    gateway_port: int = DEFAULT_GATEWAY_PORT
    environment: dict[str, str] = Field(default_factory=dict)
    config: dict[str, Any] = Field(default_factory=dict)

    def render(self) -> dict[str, Any]:
        """Merge the payload into the document stored on the backend."""
        return {
            "profileName": self.profile_name,
            "gatewayPort": self.gateway_port,
            "environment": dict(self.environment),
            **self.config,
        }


class ConfigureResult(ValueObject):
    success: bool
    message: str
    requires_restart: bool = False


class TargetStatus(ValueObject):
    state: TargetState
    gateway_port: int | None = None
    error: str | None = None


class LogQuery(ValueObject):
    """Filters for reading gateway log lines."""

    lines: int | None = Field(default=None, gt=0)
    since: datetime | None = None
    filter: str | None = None


class GatewayEndpoint(ValueObject):
    host: str
    port: int
    protocol: str = "ws"

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"
