"""Cloud provider port: account-scoped container platform contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

from botfleet.domain.models.cloud_provider import (
    BootstrapOptions,
    CloudProviderType,
    CloudResources,
    ContainerDeploymentConfig,
    ContainerFilters,
    ContainerInstance,
    LogOptions,
    LogResult,
    ProviderConfig,
    ValidationResult,
)


ProgressCallback = Callable[[str, str], None]


class CloudProvider(ABC):
    """Port for a cloud platform capable of running managed containers."""

    provider_type: CloudProviderType

    @abstractmethod
    async def initialize(self, config: ProviderConfig) -> None:
        """Bind credentials and build platform clients."""

    @abstractmethod
    async def validate(self) -> ValidationResult:
        """Check credentials and prerequisites. Never raises."""

    @abstractmethod
    async def bootstrap(
        self, options: BootstrapOptions, on_progress: ProgressCallback | None = None
    ) -> CloudResources:
        """Create or verify shared account-level scaffolding."""

    @abstractmethod
    async def deploy_container(self, config: ContainerDeploymentConfig) -> ContainerInstance:
        """Create a managed container."""

    @abstractmethod
    async def update_container(
        self, instance_id: str, config: ContainerDeploymentConfig
    ) -> ContainerInstance:
        """Update a managed container in place."""

    @abstractmethod
    async def stop_container(self, instance_id: str) -> None:
        """Stop a managed container."""

    @abstractmethod
    async def start_container(self, instance_id: str) -> None:
        """Start a stopped managed container."""

    @abstractmethod
    async def restart_container(self, instance_id: str) -> None:
        """Restart a managed container."""

    @abstractmethod
    async def delete_container(self, instance_id: str) -> None:
        """Delete a managed container and the secrets stored for it."""

    @abstractmethod
    async def get_container(self, instance_id: str) -> ContainerInstance | None:
        """Fetch one container. Returns None when it does not exist."""

    @abstractmethod
    async def list_containers(
        self, filters: ContainerFilters | None = None
    ) -> list[ContainerInstance]:
        """List containers managed by this system."""

    @abstractmethod
    async def get_logs(self, instance_id: str, options: LogOptions | None = None) -> LogResult:
        """Read container logs."""

    @abstractmethod
    async def store_secret(self, name: str, value: str) -> str:
        """Store a secret and return its reference."""

    @abstractmethod
    async def get_secret(self, name: str) -> str | None:
        """Read a secret. Returns None when it does not exist."""

    @abstractmethod
    async def delete_secret(self, name: str) -> None:
        """Delete a secret. Missing secrets are ignored."""

    @abstractmethod
    def get_console_url(self, instance_id: str) -> str:
        """Web console link for a container."""

    async def close(self) -> None:
        """Release platform clients. Providers without clients do nothing."""
        return None


class ProviderNotInitializedError(Exception):
    """Raised when a provider operation runs before initialize()."""


class ProviderNotImplementedError(NotImplementedError):
    """Raised by every mutating operation of a stub provider."""

    def __init__(self, provider: CloudProviderType, operation: str) -> None:
        self.provider = provider
        self.operation = operation
        super().__init__(f"{provider.value} provider is not implemented yet ({operation})")


class UnsupportedOperationError(Exception):
    """Raised when a provider has no primitive for the requested operation."""


class ProviderConfigurationError(Exception):
    """Raised when a provider is initialized without required settings."""
