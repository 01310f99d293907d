"""Domain models package."""

from botfleet.domain.models.backend import (
    BackendKind,
    ConfigureResult,
    DEFAULT_GATEWAY_PORT,
    GatewayConfigPayload,
    GatewayEndpoint,
    InstallOptions,
    InstallResult,
    LogQuery,
    TargetState,
    TargetStatus,
)
from botfleet.domain.models.base import (
    AggregateRoot,
    DomainEntity,
    DomainEvent,
    generate_id,
    utc_now,
    ValueObject,
)
from botfleet.domain.models.cloud_provider import (
    BootstrapOptions,
    CloudCredentials,
    CloudProviderType,
    CloudResources,
    ContainerDeploymentConfig,
    ContainerFilters,
    ContainerHealth,
    ContainerInstance,
    ContainerStatus,
    LogEvent,
    LogOptions,
    LogResult,
    PortMapping,
    ProviderConfig,
    ValidationResult,
)
from botfleet.domain.models.instance import (
    BotInstance,
    INSTANCE_VALID_TRANSITIONS,
    InstanceStatus,
    InvalidInstanceTransitionError,
)
from botfleet.domain.models.provisioning import (
    ProvisioningOutcome,
    ProvisioningProgress,
    ProvisioningStatus,
    ProvisioningStep,
    StepStatus,
)
from botfleet.domain.models.targets import (
    ContainerGroupConfig,
    EcsFargateConfig,
    TargetConfig,
)


__all__ = [
    "AggregateRoot",
    "BackendKind",
    "BootstrapOptions",
    "BotInstance",
    "CloudCredentials",
    "CloudProviderType",
    "CloudResources",
    "ConfigureResult",
    "ContainerDeploymentConfig",
    "ContainerFilters",
    "ContainerGroupConfig",
    "ContainerHealth",
    "ContainerInstance",
    "ContainerStatus",
    "DEFAULT_GATEWAY_PORT",
    "DomainEntity",
    "DomainEvent",
    "EcsFargateConfig",
    "GatewayConfigPayload",
    "GatewayEndpoint",
    "INSTANCE_VALID_TRANSITIONS",
    "InstallOptions",
    "InstallResult",
    "InstanceStatus",
    "InvalidInstanceTransitionError",
    "LogEvent",
    "LogOptions",
    "LogQuery",
    "LogResult",
    "PortMapping",
    "ProviderConfig",
    "ProvisioningOutcome",
    "ProvisioningProgress",
    "ProvisioningStatus",
    "ProvisioningStep",
    "StepStatus",
    "TargetConfig",
    "TargetState",
    "TargetStatus",
    "ValidationResult",
    "ValueObject",
    "generate_id",
    "utc_now",
]
