"""Serverless-container deployment target on AWS ECS Fargate."""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from botfleet.config import AwsCliSettings
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
from botfleet.domain.models.targets import EcsFargateConfig
from botfleet.domain.ports.targets import (
    DeploymentTarget,
    EndpointResolutionError,
    TargetConfigurationError,
)
from botfleet.infrastructure.aws.cli_runner import AwsCliRunner, CliCommandError


logger = structlog.get_logger(__name__)

CONTAINER_NAME = "gateway"
CONFIG_PATH = "/tmp/botfleet-config.json"  # noqa: S108


def service_name(profile_name: str) -> str:
    return f"botfleet-{profile_name}"


def task_family(profile_name: str) -> str:
    return f"botfleet-{profile_name}"


def secret_name(profile_name: str) -> str:
    return f"botfleet/{profile_name}/config"


def log_group_name(profile_name: str) -> str:
    return f"/ecs/botfleet-{profile_name}"


def resolve_image(image: str, version_tag: str | None) -> str:
    """Swap the tag of ``image`` for ``version_tag`` when one is given."""
    if not version_tag:
        return image
    repository, _, last = image.rpartition("/")
    name = last.split(":", 1)[0]
    return f"{repository}/{name}:{version_tag}" if repository else f"{name}:{version_tag}"


class EcsFargateTarget(DeploymentTarget):
    """Gateway instance running as a single-task Fargate service.

    Drives ECS, CloudWatch Logs, Secrets Manager and EC2 through the ``aws``
    CLI. All resource names come from the profile name.
    """

    kind = BackendKind.ECS_FARGATE

    def __init__(
        self,
        config: EcsFargateConfig,
        profile_name: str,
        gateway_port: int = DEFAULT_GATEWAY_PORT,
        runner: AwsCliRunner | None = None,
        defaults: AwsCliSettings | None = None,
    ) -> None:
        if not config.subnet_ids:
            raise TargetConfigurationError("ECS Fargate targets require at least one subnet id")

        defaults = defaults or AwsCliSettings()
        self._config = config
        self._cluster = config.cluster_name or defaults.default_cluster
        self._image = config.image or defaults.default_image
        self._cpu = config.cpu or defaults.default_cpu
        self._memory = config.memory or defaults.default_memory
        self._runner = runner or AwsCliRunner(
            region=config.region,
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key.get_secret_value(),
            session_token=(
                config.session_token.get_secret_value() if config.session_token else None
            ),
            binary=defaults.binary,
            timeout_seconds=defaults.command_timeout_seconds,
        )
        self._profile_name = profile_name
        self._gateway_port = gateway_port

    @property
    def cluster_name(self) -> str:
        return self._cluster

    @property
    def service_name(self) -> str:
        return service_name(self._profile_name)

    @property
    def task_family(self) -> str:
        return task_family(self._profile_name)

    @property
    def secret_name(self) -> str:
        return secret_name(self._profile_name)

    @property
    def log_group(self) -> str:
        return log_group_name(self._profile_name)

    # ------------------------------------------------------------------
    # Install / configure
    # ------------------------------------------------------------------

    async def install(self, options: InstallOptions) -> InstallResult:
        self._profile_name = options.profile_name
        self._gateway_port = options.port
        image = resolve_image(self._image, options.version_tag)

        logger.info(
            "ecs_install_started",
            service=self.service_name,
            cluster=self._cluster,
            image=image,
        )
        try:
            # Returns the existing cluster when it is already there
            await self._runner.run("ecs", "create-cluster", "--cluster-name", self._cluster)
            await self._create_log_group()
            task_definition_arn = await self._register_task_definition(image)
            created = await self._create_or_update_service(task_definition_arn)
        except CliCommandError as e:
            logger.warning("ecs_install_failed", service=self.service_name, error=str(e))
            return InstallResult(
                success=False,
                instance_id=self.service_name,
                message=f"ECS Fargate install failed: {e}",
            )

        verb = "created" if created else "updated"
        return InstallResult(
            success=True,
            instance_id=self.service_name,
            message=(
                f'ECS Fargate service "{self.service_name}" {verb} '
                f'in cluster "{self._cluster}"'
            ),
            service_name=self.service_name,
        )

    async def configure(self, payload: GatewayConfigPayload) -> ConfigureResult:
        self._profile_name = payload.profile_name
        self._gateway_port = payload.gateway_port
        document = json.dumps(payload.render(), indent=2)

        try:
            try:
                await self._runner.run(
                    "secretsmanager", "create-secret",
                    "--name", self.secret_name,
                    "--secret-string", document,
                )
            except CliCommandError as e:
                if not e.is_conflict:
                    raise
                await self._runner.run(
                    "secretsmanager", "put-secret-value",
                    "--secret-id", self.secret_name,
                    "--secret-string", document,
                )
        except CliCommandError as e:
            logger.warning("ecs_configure_failed", secret=self.secret_name, error=str(e))
            return ConfigureResult(
                success=False,
                message=f"Failed to store config: {e}",
                requires_restart=False,
            )

        return ConfigureResult(
            success=True,
            message=f'Configuration stored in Secrets Manager as "{self.secret_name}"',
            requires_restart=True,
        )

    # ------------------------------------------------------------------
    # Running state
    # ------------------------------------------------------------------

    async def start(self) -> None:
        await self._set_desired_count(1)

    async def stop(self) -> None:
        await self._set_desired_count(0)

    async def restart(self) -> None:
        await self._runner.run(
            "ecs", "update-service",
            "--cluster", self._cluster,
            "--service", self.service_name,
            "--desired-count", "1",
            "--force-new-deployment",
        )

    async def get_status(self) -> TargetStatus:
        try:
            data = await self._runner.run_json(
                "ecs", "describe-services",
                "--cluster", self._cluster,
                "--services", self.service_name,
            )
        except CliCommandError as e:
            if e.is_not_found:
                return TargetStatus(state=TargetState.NOT_INSTALLED)
            logger.warning("ecs_status_failed", service=self.service_name, error=str(e))
            return TargetStatus(state=TargetState.ERROR, error=str(e))

        services = data.get("services") or []
        service = services[0] if services else None
        if service is None or service.get("status") == "INACTIVE":
            return TargetStatus(state=TargetState.NOT_INSTALLED)

        running = int(service.get("runningCount") or 0)
        desired = int(service.get("desiredCount") or 0)
        if running > 0:
            return TargetStatus(state=TargetState.RUNNING, gateway_port=self._gateway_port)
        if desired == 0:
            return TargetStatus(state=TargetState.STOPPED, gateway_port=self._gateway_port)
        # Desired tasks with none running counts as failed, not starting
        return TargetStatus(
            state=TargetState.ERROR,
            gateway_port=self._gateway_port,
            error=f"Service status: {service.get('status', '')}, running: {running}/{desired}",
        )

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    async def get_logs(self, query: LogQuery | None = None) -> list[str]:
        query = query or LogQuery()
        try:
            streams = await self._runner.run_json(
                "logs", "describe-log-streams",
                "--log-group-name", self.log_group,
                "--order-by", "LastEventTime",
                "--descending",
                "--limit", "1",
            )
            log_streams = streams.get("logStreams") or []
            if not log_streams:
                return []

            args = [
                "logs", "get-log-events",
                "--log-group-name", self.log_group,
                "--log-stream-name", log_streams[0]["logStreamName"],
            ]
            if query.lines:
                args += ["--limit", str(query.lines)]
            if query.since:
                args += ["--start-time", str(int(query.since.timestamp() * 1000))]

            events = (await self._runner.run_json(*args)).get("events") or []
        except (CliCommandError, KeyError) as e:
            logger.debug("ecs_logs_unavailable", log_group=self.log_group, error=str(e))
            return []

        lines = [e.get("message", "") for e in events if e.get("message")]
        if query.filter:
            pattern = _compile_filter(query.filter)
            lines = [line for line in lines if pattern.search(line)]
        return lines

    async def get_endpoint(self) -> GatewayEndpoint:
        try:
            host = await self._resolve_public_ip()
        except CliCommandError as e:
            raise EndpointResolutionError(f"Failed to resolve ECS Fargate endpoint: {e}") from e
        return GatewayEndpoint(host=host, port=self._gateway_port, protocol="ws")

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def destroy(self) -> None:
        logger.info("ecs_destroy_started", service=self.service_name, cluster=self._cluster)
        await self._cleanup("service", self._delete_service)
        await self._cleanup("task_definitions", self._deregister_task_definitions)
        await self._cleanup("secret", self._delete_secret)
        await self._cleanup("log_group", self._delete_log_group)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _create_log_group(self) -> None:
        try:
            await self._runner.run("logs", "create-log-group", "--log-group-name", self.log_group)
        except CliCommandError as e:
            if not e.is_conflict:
                raise

    async def _register_task_definition(self, image: str) -> str:
        container_definitions = [{
            "name": CONTAINER_NAME,
            "image": image,
            "essential": True,
            "portMappings": [{
                "containerPort": self._gateway_port,
                "hostPort": self._gateway_port,
                "protocol": "tcp",
            }],
            "environment": [
                {"name": "BOTFLEET_CONFIG_PATH", "value": CONFIG_PATH},
                {"name": "BOTFLEET_CONFIG_SECRET", "value": self.secret_name},
                {"name": "BOTFLEET_GATEWAY_PORT", "value": str(self._gateway_port)},
            ],
            "logConfiguration": {
                "logDriver": "awslogs",
                "options": {
                    "awslogs-group": self.log_group,
                    "awslogs-region": self._config.region,
                    "awslogs-stream-prefix": "ecs",
                },
            },
        }]

        args = [
            "ecs", "register-task-definition",
            "--family", self.task_family,
            "--network-mode", "awsvpc",
            "--requires-compatibilities", "FARGATE",
            "--cpu", str(self._cpu),
            "--memory", str(self._memory),
            "--container-definitions", json.dumps(container_definitions),
        ]
        if self._config.execution_role_arn:
            args += ["--execution-role-arn", self._config.execution_role_arn]
        if self._config.task_role_arn:
            args += ["--task-role-arn", self._config.task_role_arn]

        data = await self._runner.run_json(*args)
        arn = (data.get("taskDefinition") or {}).get("taskDefinitionArn")
        return arn or self.task_family

    def _network_configuration(self) -> str:
        awsvpc: dict[str, Any] = {
            "subnets": list(self._config.subnet_ids),
            "assignPublicIp": "ENABLED" if self._config.assign_public_ip else "DISABLED",
        }
        if self._config.security_group_id:
            awsvpc["securityGroups"] = [self._config.security_group_id]
        return json.dumps({"awsvpcConfiguration": awsvpc})

    async def _create_or_update_service(self, task_definition: str) -> bool:
        """Create the service, or point the existing one at the new revision."""
        try:
            await self._runner.run(
                "ecs", "create-service",
                "--cluster", self._cluster,
                "--service-name", self.service_name,
                "--task-definition", task_definition,
                "--desired-count", "1",
                "--launch-type", "FARGATE",
                "--network-configuration", self._network_configuration(),
            )
            return True
        except CliCommandError as e:
            if not e.is_conflict:
                raise
        await self._runner.run(
            "ecs", "update-service",
            "--cluster", self._cluster,
            "--service", self.service_name,
            "--task-definition", task_definition,
            "--desired-count", "1",
            "--network-configuration", self._network_configuration(),
        )
        return False

    async def _set_desired_count(self, count: int) -> None:
        await self._runner.run(
            "ecs", "update-service",
            "--cluster", self._cluster,
            "--service", self.service_name,
            "--desired-count", str(count),
        )

    async def _resolve_public_ip(self) -> str:
        tasks = await self._runner.run_json(
            "ecs", "list-tasks",
            "--cluster", self._cluster,
            "--service-name", self.service_name,
            "--desired-status", "RUNNING",
        )
        task_arns = tasks.get("taskArns") or []
        if not task_arns:
            raise EndpointResolutionError(
                f"No running tasks found for service {self.service_name}"
            )

        described = await self._runner.run_json(
            "ecs", "describe-tasks", "--cluster", self._cluster, "--tasks", task_arns[0],
        )
        task_list = described.get("tasks") or []
        if not task_list:
            raise EndpointResolutionError(f"Could not describe task {task_arns[0]}")

        eni_id = None
        for attachment in task_list[0].get("attachments") or []:
            if attachment.get("type") != "ElasticNetworkInterface":
                continue
            for detail in attachment.get("details") or []:
                if detail.get("name") == "networkInterfaceId" and detail.get("value"):
                    eni_id = detail["value"]
        if not eni_id:
            raise EndpointResolutionError("No network interface attached to task")

        interfaces = await self._runner.run_json(
            "ec2", "describe-network-interfaces", "--network-interface-ids", eni_id,
        )
        network_interfaces = interfaces.get("NetworkInterfaces") or [{}]
        public_ip = (network_interfaces[0].get("Association") or {}).get("PublicIp")
        if not public_ip:
            raise EndpointResolutionError(f"No public IP assigned to network interface {eni_id}")
        return str(public_ip)

    async def _cleanup(self, resource: str, action: Any) -> None:
        """Run one teardown step. Failures are logged, never raised."""
        try:
            await action()
        except CliCommandError as e:
            if e.is_not_found:
                logger.debug("ecs_cleanup_absent", resource=resource, service=self.service_name)
            else:
                logger.warning(
                    "ecs_cleanup_failed",
                    resource=resource,
                    service=self.service_name,
                    error=str(e),
                )

    async def _delete_service(self) -> None:
        await self._set_desired_count(0)
        await self._runner.run(
            "ecs", "delete-service",
            "--cluster", self._cluster,
            "--service", self.service_name,
            "--force",
        )

    async def _deregister_task_definitions(self) -> None:
        data = await self._runner.run_json(
            "ecs", "list-task-definitions", "--family-prefix", self.task_family,
        )
        for arn in data.get("taskDefinitionArns") or []:
            await self._cleanup(
                "task_definition",
                lambda arn=arn: self._runner.run(
                    "ecs", "deregister-task-definition", "--task-definition", arn,
                ),
            )

    async def _delete_secret(self) -> None:
        await self._runner.run(
            "secretsmanager", "delete-secret",
            "--secret-id", self.secret_name,
            "--force-delete-without-recovery",
        )

    async def _delete_log_group(self) -> None:
        await self._runner.run("logs", "delete-log-group", "--log-group-name", self.log_group)


def _compile_filter(expression: str) -> re.Pattern[str]:
    try:
        return re.compile(expression, re.IGNORECASE)
    except re.error:
        return re.compile(re.escape(expression), re.IGNORECASE)
