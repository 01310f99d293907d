"""Container-group deployment target on Azure Container Instances."""

from __future__ import annotations

import json
import re

import structlog
from azure.core.exceptions import AzureError

from botfleet.config import AzureSettings
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
from botfleet.domain.models.cloud_provider import (
    BootstrapOptions,
    CloudCredentials,
    CloudProviderType,
    ContainerDeploymentConfig,
    ContainerStatus,
    LogOptions,
    PortMapping,
    ProviderConfig,
)
from botfleet.domain.models.targets import ContainerGroupConfig
from botfleet.domain.ports.targets import DeploymentTarget, EndpointResolutionError
from botfleet.infrastructure.providers.azure_aci import (
    AzureContainerInstancesProvider,
    container_group_name,
)
from botfleet.infrastructure.targets.ecs_fargate import resolve_image


logger = structlog.get_logger(__name__)

CONFIG_SECRET_ENV = "BOTFLEET_CONFIG"

_STATE_BY_STATUS = {
    ContainerStatus.RUNNING: TargetState.RUNNING,
    ContainerStatus.STOPPED: TargetState.STOPPED,
    ContainerStatus.ERROR: TargetState.ERROR,
}


class ContainerGroupTarget(DeploymentTarget):
    """Gateway instance running as one ACI container group.

    The group is named from the profile name. Configuration travels as a
    secret of the group, and the platform's create-or-update call is the
    upsert, so configure redeploys the group rather than patching it.
    """

    kind = BackendKind.ACI

    def __init__(
        self,
        config: ContainerGroupConfig,
        profile_name: str,
        gateway_port: int = DEFAULT_GATEWAY_PORT,
        provider: AzureContainerInstancesProvider | None = None,
        defaults: AzureSettings | None = None,
    ) -> None:
        defaults = defaults or AzureSettings()
        self._config = config
        self._provider = provider or AzureContainerInstancesProvider()
        self._initialized = False
        self._profile_name = profile_name
        self._gateway_port = gateway_port
        self._image = config.image or defaults.default_image
        self._cpu = config.cpu or defaults.default_cpu
        self._memory_mb = config.memory_mb or defaults.default_memory_mb
        self._resource_group = (
            config.resource_group or f"{defaults.resource_group_prefix}-{config.region}"
        )
        self._version_tag: str | None = None

    @property
    def container_group_name(self) -> str:
        return container_group_name(self._profile_name)

    async def _ensure_provider(self) -> AzureContainerInstancesProvider:
        if not self._initialized:
            await self._provider.initialize(ProviderConfig(
                provider=CloudProviderType.AZURE,
                region=self._config.region,
                workspace=self._profile_name,
                credentials=CloudCredentials(
                    subscription_id=self._config.subscription_id,
                    tenant_id=self._config.tenant_id,
                    client_id=self._config.client_id,
                    client_secret=self._config.client_secret,
                ),
                resource_group=self._resource_group,
                key_vault_name=self._config.key_vault_name,
                log_analytics_workspace_id=self._config.log_analytics_workspace_id,
            ))
            self._initialized = True
        return self._provider

    def _deployment(self, secrets: dict[str, str] | None = None) -> ContainerDeploymentConfig:
        labels = {"profile": self._profile_name}
        if self._config.dns_name_label:
            labels["dnsNameLabel"] = self._config.dns_name_label
        return ContainerDeploymentConfig(
            name=self._profile_name,
            image=resolve_image(self._image, self._version_tag),
            cpu=self._cpu,
            memory=self._memory_mb,
            environment={"BOTFLEET_GATEWAY_PORT": str(self._gateway_port)},
            secrets=secrets or {},
            ports=[PortMapping(container_port=self._gateway_port)],
            labels=labels,
        )

    # ------------------------------------------------------------------
    # Install / configure
    # ------------------------------------------------------------------

    async def install(self, options: InstallOptions) -> InstallResult:
        self._profile_name = options.profile_name
        self._gateway_port = options.port
        self._version_tag = options.version_tag

        try:
            provider = await self._ensure_provider()
            await provider.bootstrap(BootstrapOptions(
                workspace=self._profile_name, region=self._config.region,
            ))
            await provider.deploy_container(self._deployment())
        except AzureError as e:
            logger.warning(
                "aci_install_failed", container_group=self.container_group_name, error=str(e)
            )
            return InstallResult(
                success=False,
                instance_id=self.container_group_name,
                message=f"Container group install failed: {e}",
            )

        return InstallResult(
            success=True,
            instance_id=self.container_group_name,
            message=(
                f'Container group "{self.container_group_name}" deployed '
                f'in resource group "{self._resource_group}"'
            ),
            service_name=self.container_group_name,
        )

    async def configure(self, payload: GatewayConfigPayload) -> ConfigureResult:
        self._profile_name = payload.profile_name
        self._gateway_port = payload.gateway_port
        document = json.dumps(payload.render())

        try:
            provider = await self._ensure_provider()
            await provider.deploy_container(self._deployment({CONFIG_SECRET_ENV: document}))
        except AzureError as e:
            logger.warning(
                "aci_configure_failed", container_group=self.container_group_name, error=str(e)
            )
            return ConfigureResult(success=False, message=f"Failed to store config: {e}")

        # Create-or-update already restarted the group with the new secret
        return ConfigureResult(
            success=True,
            message=f'Configuration applied to container group "{self.container_group_name}"',
            requires_restart=False,
        )

    # ------------------------------------------------------------------
    # Running state
    # ------------------------------------------------------------------

    async def start(self) -> None:
        provider = await self._ensure_provider()
        await provider.start_container(self._profile_name)

    async def stop(self) -> None:
        provider = await self._ensure_provider()
        await provider.stop_container(self._profile_name)

    async def restart(self) -> None:
        provider = await self._ensure_provider()
        await provider.restart_container(self._profile_name)

    async def get_status(self) -> TargetStatus:
        try:
            provider = await self._ensure_provider()
            container = await provider.get_container(self._profile_name)
        except AzureError as e:
            logger.warning(
                "aci_status_failed", container_group=self.container_group_name, error=str(e)
            )
            return TargetStatus(state=TargetState.ERROR, error=str(e))

        if container is None:
            return TargetStatus(state=TargetState.NOT_INSTALLED)

        state = _STATE_BY_STATUS.get(container.status)
        if state is None:
            return TargetStatus(
                state=TargetState.ERROR,
                gateway_port=self._gateway_port,
                error=f"Container group is {container.status.value.lower()}",
            )
        return TargetStatus(state=state, gateway_port=self._gateway_port)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    async def get_logs(self, query: LogQuery | None = None) -> list[str]:
        query = query or LogQuery()
        try:
            provider = await self._ensure_provider()
            result = await provider.get_logs(
                self._profile_name, LogOptions(limit=query.lines or 100, start_time=query.since),
            )
        except AzureError as e:
            logger.debug(
                "aci_logs_unavailable", container_group=self.container_group_name, error=str(e)
            )
            return []

        events = result.events
        if query.since:
            events = [e for e in events if e.timestamp >= query.since]
        lines = [e.message for e in events]
        if query.filter:
            try:
                pattern = re.compile(query.filter, re.IGNORECASE)
            except re.error:
                pattern = re.compile(re.escape(query.filter), re.IGNORECASE)
            lines = [line for line in lines if pattern.search(line)]
        return lines

    async def get_endpoint(self) -> GatewayEndpoint:
        provider = await self._ensure_provider()
        container = await provider.get_container(self._profile_name)
        if container is None:
            raise EndpointResolutionError(
                f"Container group {self.container_group_name} does not exist"
            )
        if not container.endpoint:
            raise EndpointResolutionError(
                f"Container group {self.container_group_name} has no public address"
            )
        return GatewayEndpoint(host=container.endpoint, port=self._gateway_port, protocol="ws")

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def destroy(self) -> None:
        logger.info("aci_destroy_started", container_group=self.container_group_name)
        try:
            provider = await self._ensure_provider()
            await provider.delete_container(self._profile_name)
        except AzureError as e:
            logger.warning(
                "aci_cleanup_failed", container_group=self.container_group_name, error=str(e)
            )
