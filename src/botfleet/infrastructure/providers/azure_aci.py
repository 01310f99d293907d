"""Azure Container Instances provider."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from azure.core.exceptions import AzureError, HttpResponseError, ResourceNotFoundError
from azure.identity.aio import ClientSecretCredential
from azure.keyvault.secrets.aio import SecretClient
from azure.mgmt.containerinstance.aio import ContainerInstanceManagementClient
from azure.mgmt.containerinstance.models import (
    Container,
    ContainerGroup,
    ContainerPort,
    EnvironmentVariable,
    IpAddress,
    Port,
    ResourceRequests,
    ResourceRequirements,
)
from azure.mgmt.resource.resources.aio import ResourceManagementClient
from azure.monitor.query.aio import LogsQueryClient

from botfleet.domain.models.base import utc_now
from botfleet.domain.models.cloud_provider import (
    BootstrapOptions,
    CloudProviderType,
    CloudResources,
    ContainerDeploymentConfig,
    ContainerFilters,
    ContainerHealth,
    ContainerInstance,
    ContainerStatus,
    LogEvent,
    LoggingConfig,
    LogOptions,
    LogResult,
    MANAGED_BY_TAG,
    MANAGED_BY_VALUE,
    ProviderConfig,
    ValidationResult,
)
from botfleet.domain.ports.providers import (
    CloudProvider,
    ProgressCallback,
    ProviderConfigurationError,
    ProviderNotInitializedError,
    UnsupportedOperationError,
)


logger = structlog.get_logger(__name__)

DEFAULT_REGION = "eastus"
CONTAINER_NAME = "gateway"
INSTANCE_ID_TAG = "instanceId"
SECRET_REFERENCE_PREFIX = "keyvault:"
CONTAINER_GROUP_TAG = "containerGroup"
WORKSPACE_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
CONSOLE_BROWSE_URL = (
    "https://portal.azure.com/#blade/HubsExtension/BrowseResource/resourceType/"
    "Microsoft.ContainerInstance%2FcontainerGroups"
)


def sanitize_name(name: str, max_length: int = 63) -> str:
    """Lowercase alphanumerics and hyphens, as container group names require."""
    cleaned = re.sub(r"[^a-z0-9-]", "-", name.lower()).strip("-")
    return cleaned[:max_length]


def container_group_name(instance_id: str) -> str:
    return sanitize_name(f"{MANAGED_BY_VALUE}-{instance_id}")


def _tag_key(label: str) -> str:
    # Resource tag names may not contain slashes
    return label.replace("/", "-")


def vault_secret_name(name: str) -> str:
    if name.startswith(SECRET_REFERENCE_PREFIX):
        return name[len(SECRET_REFERENCE_PREFIX):]
    return sanitize_name(name, max_length=127)


class AzureContainerInstancesProvider(CloudProvider):
    """Runs managed containers as single-container ACI container groups.

    Platform clients are built from explicit service-principal credentials in
    :meth:`initialize`. Pre-built clients can be passed to the constructor
    instead, which is how the tests drive it.
    """

    provider_type = CloudProviderType.AZURE

    def __init__(
        self,
        container_client: Any | None = None,
        resource_client: Any | None = None,
        secret_client: Any | None = None,
        logs_client: Any | None = None,
        credential: Any | None = None,
    ) -> None:
        self._container_client = container_client
        self._resource_client = resource_client
        self._secret_client = secret_client
        self._logs_client = logs_client
        self._credential = credential
        self._config: ProviderConfig | None = None
        self._region = DEFAULT_REGION
        self._resource_group = ""
        self._subscription_id = ""

    @property
    def resource_group(self) -> str:
        return self._resource_group

    @property
    def region(self) -> str:
        return self._region

    async def initialize(self, config: ProviderConfig) -> None:
        credentials = config.credentials
        if not credentials.subscription_id:
            raise ProviderConfigurationError("Azure subscription id is required")

        self._config = config
        self._region = config.region or DEFAULT_REGION
        self._subscription_id = credentials.subscription_id
        self._resource_group = (
            config.resource_group or f"{MANAGED_BY_VALUE}-{self._region}"
        )

        needs_credential = (
            self._container_client is None
            or self._resource_client is None
            or (config.key_vault_name and self._secret_client is None)
            or (config.log_analytics_workspace_id and self._logs_client is None)
        )
        if needs_credential and self._credential is None:
            if not (credentials.tenant_id and credentials.client_id and credentials.client_secret):
                raise ProviderConfigurationError(
                    "Azure tenant id, client id and client secret are required"
                )
            self._credential = ClientSecretCredential(
                credentials.tenant_id,
                credentials.client_id,
                credentials.client_secret.get_secret_value(),
            )

        if self._container_client is None:
            self._container_client = ContainerInstanceManagementClient(
                self._credential, self._subscription_id
            )
        if self._resource_client is None:
            self._resource_client = ResourceManagementClient(
                self._credential, self._subscription_id
            )
        if config.key_vault_name and self._secret_client is None:
            self._secret_client = SecretClient(
                vault_url=f"https://{config.key_vault_name}.vault.azure.net",
                credential=self._credential,
            )
        if config.log_analytics_workspace_id and self._logs_client is None:
            self._logs_client = LogsQueryClient(self._credential)

        logger.info(
            "azure_provider_initialized",
            region=self._region,
            resource_group=self._resource_group,
            key_vault=bool(self._secret_client),
            log_analytics=bool(self._logs_client),
        )

    async def close(self) -> None:
        for client in (
            self._container_client,
            self._resource_client,
            self._secret_client,
            self._logs_client,
            self._credential,
        ):
            closer = getattr(client, "close", None)
            if closer is not None:
                await closer()

    async def validate(self) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []

        if self._config is None:
            return ValidationResult(valid=False, errors=["Azure provider not initialized"])

        try:
            group = await self._resource_client.resource_groups.get(self._resource_group)
            if group.location and group.location != self._region:
                warnings.append(
                    f"Resource group is in {group.location}, expected {self._region}"
                )
        except AzureError:
            errors.append(
                f"Resource group '{self._resource_group}' not found in region {self._region}"
            )

        if self._secret_client is not None:
            try:
                async for _ in self._secret_client.list_properties_of_secrets():
                    break
            except AzureError:
                warnings.append(
                    f"Cannot access Key Vault '{self._config.key_vault_name}'. "
                    "Secrets will not be available."
                )

        workspace_id = self._config.log_analytics_workspace_id
        if workspace_id and not WORKSPACE_ID_PATTERN.match(workspace_id):
            warnings.append("Log Analytics workspace id format appears invalid")

        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)

    async def bootstrap(
        self, options: BootstrapOptions, on_progress: ProgressCallback | None = None
    ) -> CloudResources:
        config = self._require_config()

        if on_progress:
            on_progress("Creating resource group", "in_progress")
        await self._resource_client.resource_groups.create_or_update(
            self._resource_group,
            {
                "location": self._region,
                "tags": {
                    MANAGED_BY_TAG: MANAGED_BY_VALUE,
                    "workspace": options.workspace,
                    **options.tags,
                },
            },
        )
        if on_progress:
            on_progress("Resource group ready", "complete")

        return CloudResources(
            provider=self.provider_type,
            region=self._region,
            cluster_id=self._resource_group,
            logging=LoggingConfig(
                log_driver="azure-monitor",
                log_options={"workspaceId": config.log_analytics_workspace_id or ""},
            ),
            metadata={
                "resourceGroup": self._resource_group,
                "subscriptionId": self._subscription_id,
            },
        )

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    async def deploy_container(self, config: ContainerDeploymentConfig) -> ContainerInstance:
        self._require_config()
        group_name = container_group_name(config.name)

        environment = [
            EnvironmentVariable(name=name, value=str(value))
            for name, value in config.environment.items()
        ]
        for name, value in config.secrets.items():
            if self._secret_client is not None:
                reference = await self._store_group_secret(group_name, name, value)
                environment.append(EnvironmentVariable(name=name, value=reference))
            else:
                environment.append(EnvironmentVariable(name=name, secure_value=value))

        ports = [
            ContainerPort(port=p.container_port, protocol="UDP" if p.protocol == "udp" else "TCP")
            for p in config.ports
        ]
        container = Container(
            name=CONTAINER_NAME,
            image=config.image,
            resources=ResourceRequirements(
                requests=ResourceRequests(cpu=config.cpu, memory_in_gb=config.memory / 1024),
            ),
            environment_variables=environment,
            ports=ports,
            command=config.command,
        )
        ip_address = None
        if ports:
            ip_address = IpAddress(
                type="Public",
                ports=[Port(port=p.port, protocol=p.protocol) for p in ports],
                dns_name_label=config.labels.get("dnsNameLabel"),
            )
        group = ContainerGroup(
            location=self._region,
            containers=[container],
            os_type="Linux",
            restart_policy="Always",
            ip_address=ip_address,
            tags={
                **{_tag_key(k): v for k, v in config.labels.items()},
                MANAGED_BY_TAG: MANAGED_BY_VALUE,
                INSTANCE_ID_TAG: config.name,
            },
        )

        logger.info(
            "aci_container_group_deploying",
            container_group=group_name,
            resource_group=self._resource_group,
            image=config.image,
        )
        poller = await self._container_client.container_groups.begin_create_or_update(
            self._resource_group, group_name, group
        )
        await poller.result()

        created = await self._container_client.container_groups.get(
            self._resource_group, group_name
        )
        return self._map_container_instance(created, config.name)

    async def update_container(
        self, instance_id: str, config: ContainerDeploymentConfig
    ) -> ContainerInstance:
        raise UnsupportedOperationError(
            "Azure Container Instances has no in-place update. "
            f"Delete container {instance_id} and deploy it again."
        )

    async def stop_container(self, instance_id: str) -> None:
        self._require_config()
        await self._container_client.container_groups.stop(
            self._resource_group, container_group_name(instance_id)
        )

    async def start_container(self, instance_id: str) -> None:
        self._require_config()
        poller = await self._container_client.container_groups.begin_start(
            self._resource_group, container_group_name(instance_id)
        )
        await poller.result()

    async def restart_container(self, instance_id: str) -> None:
        self._require_config()
        poller = await self._container_client.container_groups.begin_restart(
            self._resource_group, container_group_name(instance_id)
        )
        await poller.result()

    async def delete_container(self, instance_id: str) -> None:
        self._require_config()
        group_name = container_group_name(instance_id)
        try:
            poller = await self._container_client.container_groups.begin_delete(
                self._resource_group, group_name
            )
            await poller.result()
        except ResourceNotFoundError:
            logger.debug("aci_container_group_absent", container_group=group_name)

        if self._secret_client is not None:
            await self._delete_group_secrets(group_name)

    async def get_container(self, instance_id: str) -> ContainerInstance | None:
        self._require_config()
        try:
            group = await self._container_client.container_groups.get(
                self._resource_group, container_group_name(instance_id)
            )
        except ResourceNotFoundError:
            return None
        except HttpResponseError as e:
            if e.status_code == 404:
                return None
            raise
        return self._map_container_instance(group, instance_id)

    async def list_containers(
        self, filters: ContainerFilters | None = None
    ) -> list[ContainerInstance]:
        self._require_config()
        containers: list[ContainerInstance] = []
        async for group in self._container_client.container_groups.list_by_resource_group(
            self._resource_group
        ):
            tags = group.tags or {}
            if tags.get(MANAGED_BY_TAG) != MANAGED_BY_VALUE:
                continue
            containers.append(
                self._map_container_instance(group, tags.get(INSTANCE_ID_TAG) or group.name)
            )

        if filters is not None:
            if filters.status is not None:
                containers = [c for c in containers if c.status == filters.status]
            if filters.workspace is not None:
                containers = [
                    c for c in containers if c.metadata.get("workspace") == filters.workspace
                ]
            for key, value in filters.labels.items():
                containers = [c for c in containers if c.metadata.get(key) == value]
        return containers

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    async def get_logs(self, instance_id: str, options: LogOptions | None = None) -> LogResult:
        self._require_config()
        options = options or LogOptions()
        group_name = container_group_name(instance_id)

        try:
            logs = await self._container_client.containers.list_logs(
                self._resource_group, group_name, CONTAINER_NAME, tail=options.limit
            )
        except AzureError as e:
            if self._logs_client is None or not self._config.log_analytics_workspace_id:
                raise
            logger.info(
                "aci_logs_fallback_to_log_analytics",
                container_group=group_name,
                error=str(e),
            )
            return await self._get_logs_from_analytics(group_name, options)

        lines = [line for line in (logs.content or "").split("\n") if line]
        lines = lines[-options.limit:]
        # Direct container logs carry no timestamps; space them a second apart
        now = utc_now()
        events = [
            LogEvent(timestamp=now - timedelta(seconds=len(lines) - i), message=line)
            for i, line in enumerate(lines)
        ]
        return LogResult(events=events)

    async def _get_logs_from_analytics(self, group_name: str, options: LogOptions) -> LogResult:
        query = (
            f'ContainerInstanceLog_CL | where ContainerGroup_s == "{group_name}" '
            f"| take {options.limit} | project TimeGenerated, Message"
        )
        if options.start_time and options.end_time:
            timespan: Any = (options.start_time, options.end_time)
        else:
            timespan = timedelta(days=1)

        result = await self._logs_client.query_workspace(
            self._config.log_analytics_workspace_id, query, timespan=timespan
        )
        tables = getattr(result, "tables", None) or getattr(result, "partial_data", None) or []

        events: list[LogEvent] = []
        if tables:
            for row in tables[0].rows:
                timestamp = row[0]
                if not isinstance(timestamp, datetime):
                    timestamp = datetime.fromisoformat(str(timestamp))
                if timestamp.tzinfo is None:
                    timestamp = timestamp.replace(tzinfo=timezone.utc)
                events.append(LogEvent(timestamp=timestamp, message=str(row[1])))
        return LogResult(events=events)

    # ------------------------------------------------------------------
    # Secrets
    # ------------------------------------------------------------------

    async def store_secret(self, name: str, value: str) -> str:
        return await self._set_secret(name, value, {MANAGED_BY_TAG: MANAGED_BY_VALUE})

    async def _store_group_secret(self, group_name: str, name: str, value: str) -> str:
        return await self._set_secret(
            f"{group_name}-{name}",
            value,
            {MANAGED_BY_TAG: MANAGED_BY_VALUE, CONTAINER_GROUP_TAG: group_name},
        )

    async def _set_secret(self, name: str, value: str, tags: dict[str, str]) -> str:
        secret_client = self._require_vault()
        secret = vault_secret_name(name)
        await secret_client.set_secret(secret, value, tags=tags)
        return f"{SECRET_REFERENCE_PREFIX}{secret}"

    async def get_secret(self, name: str) -> str | None:
        secret_client = self._require_vault()
        try:
            secret = await secret_client.get_secret(vault_secret_name(name))
        except ResourceNotFoundError:
            return None
        return secret.value or None

    async def delete_secret(self, name: str) -> None:
        secret_client = self._require_vault()
        try:
            await secret_client.delete_secret(vault_secret_name(name))
        except ResourceNotFoundError:
            logger.debug("key_vault_secret_absent", secret=name)

    async def _delete_group_secrets(self, group_name: str) -> None:
        try:
            async for properties in self._secret_client.list_properties_of_secrets():
                tags = properties.tags or {}
                if properties.name and tags.get(CONTAINER_GROUP_TAG) == group_name:
                    await self._secret_client.delete_secret(properties.name)
        except AzureError as e:
            logger.warning(
                "key_vault_cleanup_failed",
                container_group=group_name,
                error=str(e),
            )

    def get_console_url(self, instance_id: str) -> str:
        if not self._subscription_id:
            return CONSOLE_BROWSE_URL
        return (
            "https://portal.azure.com/#@/resource"
            f"/subscriptions/{self._subscription_id}"
            f"/resourceGroups/{self._resource_group}"
            "/providers/Microsoft.ContainerInstance/containerGroups/"
            f"{container_group_name(instance_id)}/overview"
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_config(self) -> ProviderConfig:
        if self._config is None or self._container_client is None:
            raise ProviderNotInitializedError("Azure provider not initialized")
        return self._config

    def _require_vault(self) -> Any:
        self._require_config()
        if self._secret_client is None:
            raise ProviderConfigurationError("Key Vault not configured. Set key_vault_name.")
        return self._secret_client

    def _map_container_instance(self, group: Any, instance_id: str) -> ContainerInstance:
        provisioning_state = getattr(group, "provisioning_state", None)
        containers = getattr(group, "containers", None) or []
        state = None
        if containers:
            view = getattr(containers[0], "instance_view", None)
            current = getattr(view, "current_state", None) if view else None
            state = getattr(current, "state", None) if current else None
        group_view = getattr(group, "instance_view", None)
        group_state = getattr(group_view, "state", None) if group_view else None

        if provisioning_state == "Failed":
            status = ContainerStatus.ERROR
        elif state == "Running":
            status = ContainerStatus.RUNNING
        elif state == "Terminated" or group_state == "Stopped":
            status = ContainerStatus.STOPPED
        elif provisioning_state in ("Creating", "Pending", "Repairing"):
            status = ContainerStatus.CREATING
        elif provisioning_state == "Deleting":
            status = ContainerStatus.DELETING
        else:
            status = ContainerStatus.PENDING

        if status == ContainerStatus.RUNNING:
            health = ContainerHealth.HEALTHY
        elif status == ContainerStatus.ERROR:
            health = ContainerHealth.UNHEALTHY
        else:
            health = ContainerHealth.UNKNOWN

        ip_address = getattr(group, "ip_address", None)
        public_ip = getattr(ip_address, "ip", None) if ip_address else None
        fqdn = getattr(ip_address, "fqdn", None) if ip_address else None

        name = getattr(group, "name", None) or instance_id
        now = utc_now()
        return ContainerInstance(
            id=instance_id,
            name=name,
            status=status,
            health=health,
            provider=self.provider_type,
            region=getattr(group, "location", None) or self._region,
            endpoint=fqdn or public_ip,
            public_ip=public_ip,
            metadata={
                "resourceGroup": self._resource_group,
                "containerGroupName": name,
                **(getattr(group, "tags", None) or {}),
            },
            created_at=now,
            updated_at=now,
        )
