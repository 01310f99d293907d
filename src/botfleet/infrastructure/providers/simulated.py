"""In-memory provider that simulates a container platform."""

from __future__ import annotations

import asyncio
import itertools

import structlog

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
    IAMConfig,
    LogEvent,
    LoggingConfig,
    LogOptions,
    LogResult,
    NetworkConfig,
    ProviderConfig,
    ValidationResult,
)
from botfleet.domain.ports.providers import CloudProvider, ProgressCallback


logger = structlog.get_logger(__name__)

BOOTSTRAP_STEPS = (
    ("validate", "Validating configuration"),
    ("network", "Creating virtual network"),
    ("cluster", "Creating container cluster"),
    ("iam", "Setting up permissions"),
    ("logging", "Setting up logging"),
)


class SimulatedProvider(CloudProvider):
    """Simulates container operations without calling any platform.

    Deployed containers come up RUNNING immediately. Containers are keyed by
    the deployment name, like the real providers.
    """

    provider_type = CloudProviderType.SIMULATED

    def __init__(self, delay_seconds: float = 0.0) -> None:
        self._delay = delay_seconds
        self._region = "local"
        self._workspace = "default"
        self._containers: dict[str, ContainerInstance] = {}
        self._secrets: dict[str, str] = {}
        self._logs: dict[str, list[LogEvent]] = {}
        self._ports = itertools.count(3000)

    async def initialize(self, config: ProviderConfig) -> None:
        self._region = config.region or "local"
        self._workspace = config.workspace
        delay = config.options.get("delay_seconds")
        if delay is not None:
            self._delay = float(delay)

    async def validate(self) -> ValidationResult:
        return ValidationResult(
            valid=True,
            warnings=["Running in simulation mode. No real infrastructure will be created."],
        )

    async def bootstrap(
        self, options: BootstrapOptions, on_progress: ProgressCallback | None = None
    ) -> CloudResources:
        for key, message in BOOTSTRAP_STEPS:
            if on_progress:
                on_progress(key, "in_progress")
            await self._pause()
            if on_progress:
                on_progress(key, "complete")

        workspace = options.workspace
        return CloudResources(
            provider=self.provider_type,
            region=self._region,
            cluster_id=f"simulated-{workspace}",
            cluster_endpoint="http://localhost:4000",
            network=NetworkConfig(
                vpc_id=f"vpc-simulated-{workspace}",
                subnet_ids=[f"subnet-1-{workspace}", f"subnet-2-{workspace}"],
                security_group_id=f"sg-simulated-{workspace}",
            ),
            iam=IAMConfig(
                execution_role_arn=f"arn:aws:iam::000000000000:role/botfleet-{workspace}-execution",
                task_role_arn=f"arn:aws:iam::000000000000:role/botfleet-{workspace}-task",
            ),
            logging=LoggingConfig(
                log_group_name=f"/botfleet/{workspace}",
                log_driver="json-file",
                log_options={"max-size": "10m", "max-file": "3"},
            ),
            metadata={"simulated": True, "workspace": workspace},
        )

    async def deploy_container(self, config: ContainerDeploymentConfig) -> ContainerInstance:
        await self._pause()
        port = config.ports[0].container_port if config.ports else next(self._ports)
        instance = ContainerInstance(
            id=config.name,
            name=config.name,
            status=ContainerStatus.RUNNING,
            health=ContainerHealth.HEALTHY,
            provider=self.provider_type,
            region=self._region,
            endpoint="127.0.0.1",
            public_ip="127.0.0.1",
            metadata={
                **config.labels,
                "image": config.image,
                "cpu": str(config.cpu),
                "memory": str(config.memory),
                "port": str(port),
                "workspace": self._workspace,
            },
        )
        self._containers[config.name] = instance
        for name, value in config.secrets.items():
            self._secrets[f"{config.name}-{name}"] = value
        self._add_log(config.name, f"Container {config.name} created (simulated)")
        self._add_log(config.name, f"Server listening on port {port}")
        return instance

    async def update_container(
        self, instance_id: str, config: ContainerDeploymentConfig
    ) -> ContainerInstance:
        await self._pause()
        existing = self._require(instance_id)
        updated = existing.model_copy(update={
            "metadata": {
                **existing.metadata,
                "image": config.image,
                "cpu": str(config.cpu),
                "memory": str(config.memory),
            },
            "updated_at": utc_now(),
        })
        self._containers[instance_id] = updated
        self._add_log(instance_id, "Container updated (simulated)")
        return updated

    async def stop_container(self, instance_id: str) -> None:
        await self._set_status(instance_id, ContainerStatus.STOPPED, ContainerHealth.UNKNOWN)
        self._add_log(instance_id, "Container stopped (simulated)")

    async def start_container(self, instance_id: str) -> None:
        await self._set_status(instance_id, ContainerStatus.RUNNING, ContainerHealth.HEALTHY)
        self._add_log(instance_id, "Container started (simulated)")

    async def restart_container(self, instance_id: str) -> None:
        await self._set_status(instance_id, ContainerStatus.RUNNING, ContainerHealth.HEALTHY)
        self._add_log(instance_id, "Container restarted (simulated)")

    async def delete_container(self, instance_id: str) -> None:
        await self._pause()
        self._containers.pop(instance_id, None)
        self._logs.pop(instance_id, None)
        prefix = f"{instance_id}-"
        for name in [n for n in self._secrets if n.startswith(prefix)]:
            del self._secrets[name]

    async def get_container(self, instance_id: str) -> ContainerInstance | None:
        return self._containers.get(instance_id)

    async def list_containers(
        self, filters: ContainerFilters | None = None
    ) -> list[ContainerInstance]:
        containers = list(self._containers.values())
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

    async def get_logs(self, instance_id: str, options: LogOptions | None = None) -> LogResult:
        options = options or LogOptions()
        events = self._logs.get(instance_id, [])
        if options.start_time:
            events = [e for e in events if e.timestamp >= options.start_time]
        if options.end_time:
            events = [e for e in events if e.timestamp <= options.end_time]
        return LogResult(events=events[-options.limit:])

    async def store_secret(self, name: str, value: str) -> str:
        self._secrets[name] = value
        return f"simulated:{name}"

    async def get_secret(self, name: str) -> str | None:
        return self._secrets.get(name.removeprefix("simulated:"))

    async def delete_secret(self, name: str) -> None:
        self._secrets.pop(name.removeprefix("simulated:"), None)

    def get_console_url(self, instance_id: str) -> str:
        return f"http://localhost:4000/containers/{instance_id}"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _pause(self) -> None:
        if self._delay > 0:
            await asyncio.sleep(self._delay)

    def _require(self, instance_id: str) -> ContainerInstance:
        container = self._containers.get(instance_id)
        if container is None:
            raise SimulatedContainerNotFoundError(f"Container {instance_id} not found")
        return container

    async def _set_status(
        self, instance_id: str, status: ContainerStatus, health: ContainerHealth
    ) -> None:
        await self._pause()
        existing = self._require(instance_id)
        self._containers[instance_id] = existing.model_copy(
            update={"status": status, "health": health, "updated_at": utc_now()}
        )

    def _add_log(self, instance_id: str, message: str) -> None:
        self._logs.setdefault(instance_id, []).append(
            LogEvent(timestamp=utc_now(), message=message)
        )


class SimulatedContainerNotFoundError(Exception):
    """Raised when a simulated container does not exist."""
