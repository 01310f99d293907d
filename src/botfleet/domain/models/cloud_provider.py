"""Provider adapter contract models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, SecretStr

from botfleet.domain.models.base import utc_now, ValueObject


MANAGED_BY_TAG = "managedBy"
MANAGED_BY_VALUE = "botfleet"
INSTANCE_ID_LABEL = "botfleet.io/instance-id"


class CloudProviderType(str, Enum):
    """Account-level container platforms."""

    AWS = "aws"
    AZURE = "azure"
    GCP = "gcp"
    DIGITALOCEAN = "digitalocean"
    SELFHOSTED = "selfhosted"
    SIMULATED = "simulated"


class ContainerStatus(str, Enum):
    PENDING = "PENDING"
    CREATING = "CREATING"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
    DELETING = "DELETING"
    DEGRADED = "DEGRADED"
    ERROR = "ERROR"


class ContainerHealth(str, Enum):
    HEALTHY = "HEALTHY"
    UNHEALTHY = "UNHEALTHY"
    UNKNOWN = "UNKNOWN"


class ContainerInstance(ValueObject):
    """Read model of a container projected from the remote platform."""

    id: str
    name: str
    status: ContainerStatus
    health: ContainerHealth = ContainerHealth.UNKNOWN
    provider: CloudProviderType
    region: str
    endpoint: str | None = None
    public_ip: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class PortMapping(ValueObject):
    container_port: int
    host_port: int | None = None
    protocol: str = Field(default="tcp", pattern="^(tcp|udp)$")


class ContainerDeploymentConfig(ValueObject):
    """What to run: one container with its sizing, environment and secrets."""

    name: str
    image: str
    cpu: float = 1.0  # vCPU
    memory: int = 2048  # MB
    replicas: int = 1
    command: list[str] | None = None
    environment: dict[str, str] = Field(default_factory=dict)
    secrets: dict[str, str] = Field(default_factory=dict)
    ports: list[PortMapping] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)


class NetworkConfig(ValueObject):
    vpc_id: str | None = None
    subnet_ids: list[str] = Field(default_factory=list)
    security_group_id: str | None = None
    public_subnet_ids: list[str] = Field(default_factory=list)


class IAMConfig(ValueObject):
    execution_role_arn: str | None = None
    task_role_arn: str | None = None
    service_account_name: str | None = None


class LoggingConfig(ValueObject):
    log_group_name: str | None = None
    log_driver: str
    log_options: dict[str, str] = Field(default_factory=dict)


class CloudResources(ValueObject):
    """Account-level scaffolding returned by bootstrap."""

    provider: CloudProviderType
    region: str
    cluster_id: str
    cluster_endpoint: str | None = None
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    iam: IAMConfig = Field(default_factory=IAMConfig)
    logging: LoggingConfig
    metadata: dict[str, Any] = Field(default_factory=dict)


class CloudCredentials(ValueObject):
    """Explicit credentials; nothing is read from the ambient environment."""

    access_key_id: str | None = None
    secret_access_key: SecretStr | None = None
    session_token: SecretStr | None = None
    client_id: str | None = None
    client_secret: SecretStr | None = None
    tenant_id: str | None = None
    subscription_id: str | None = None
    project_id: str | None = None
    api_token: SecretStr | None = None


class ProviderConfig(ValueObject):
    provider: CloudProviderType
    region: str = ""
    workspace: str = "default"
    credentials: CloudCredentials = Field(default_factory=CloudCredentials)
    resource_group: str | None = None
    key_vault_name: str | None = None
    log_analytics_workspace_id: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)


class ValidationResult(ValueObject):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class BootstrapOptions(ValueObject):
    workspace: str
    region: str = ""
    create_vpc: bool = False
    vpc_id: str | None = None
    subnet_ids: list[str] = Field(default_factory=list)
    enable_logging: bool = True
    tags: dict[str, str] = Field(default_factory=dict)


class ContainerFilters(ValueObject):
    status: ContainerStatus | None = None
    workspace: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)


class LogOptions(ValueObject):
    start_time: datetime | None = None
    end_time: datetime | None = None
    limit: int = 100


class LogEvent(ValueObject):
    timestamp: datetime
    message: str


class LogResult(ValueObject):
    events: list[LogEvent] = Field(default_factory=list)
    next_token: str | None = None
