"""Stub providers for platforms without an adapter yet."""

from __future__ import annotations

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
from botfleet.domain.ports.providers import (
    CloudProvider,
    ProgressCallback,
    ProviderNotImplementedError,
)


CONSOLE_URLS: dict[CloudProviderType, str] = {
    CloudProviderType.AWS: "https://console.aws.amazon.com/ecs/home",
    CloudProviderType.GCP: "https://console.cloud.google.com/run",
    CloudProviderType.DIGITALOCEAN: "https://cloud.digitalocean.com/apps",
}


class UnimplementedProvider(CloudProvider):
    """Satisfies the provider contract for a platform that has no adapter.

    ``validate`` reports the gap instead of raising; every operation that
    would touch the platform raises :class:`ProviderNotImplementedError`.
    """

    def __init__(self, provider_type: CloudProviderType) -> None:
        self.provider_type = provider_type
        self._config: ProviderConfig | None = None

    def _not_implemented(self, operation: str) -> ProviderNotImplementedError:
        return ProviderNotImplementedError(self.provider_type, operation)

    async def initialize(self, config: ProviderConfig) -> None:
        self._config = config

    async def validate(self) -> ValidationResult:
        return ValidationResult(
            valid=False,
            errors=[f"{self.provider_type.value} provider is not implemented yet"],
        )

    async def bootstrap(
        self, options: BootstrapOptions, on_progress: ProgressCallback | None = None
    ) -> CloudResources:
        raise self._not_implemented("bootstrap")

    async def deploy_container(self, config: ContainerDeploymentConfig) -> ContainerInstance:
        raise self._not_implemented("deploy_container")

    async def update_container(
        self, instance_id: str, config: ContainerDeploymentConfig
    ) -> ContainerInstance:
        raise self._not_implemented("update_container")

    async def stop_container(self, instance_id: str) -> None:
        raise self._not_implemented("stop_container")

    async def start_container(self, instance_id: str) -> None:
        raise self._not_implemented("start_container")

    async def restart_container(self, instance_id: str) -> None:
        raise self._not_implemented("restart_container")

    async def delete_container(self, instance_id: str) -> None:
        raise self._not_implemented("delete_container")

    async def get_container(self, instance_id: str) -> ContainerInstance | None:
        raise self._not_implemented("get_container")

    async def list_containers(
        self, filters: ContainerFilters | None = None
    ) -> list[ContainerInstance]:
        raise self._not_implemented("list_containers")

    async def get_logs(self, instance_id: str, options: LogOptions | None = None) -> LogResult:
        raise self._not_implemented("get_logs")

    async def store_secret(self, name: str, value: str) -> str:
        raise self._not_implemented("store_secret")

    async def get_secret(self, name: str) -> str | None:
        raise self._not_implemented("get_secret")

    async def delete_secret(self, name: str) -> None:
        raise self._not_implemented("delete_secret")

    def get_console_url(self, instance_id: str) -> str:
        return CONSOLE_URLS.get(self.provider_type, "")
