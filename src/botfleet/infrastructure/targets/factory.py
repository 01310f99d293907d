"""Deployment target selection by backend kind."""

from __future__ import annotations

from collections.abc import Callable

import structlog

from botfleet.config import Settings
from botfleet.domain.models.backend import BackendKind
from botfleet.domain.models.instance import BotInstance
from botfleet.domain.ports.targets import DeploymentTarget, TargetConfigurationError
from botfleet.infrastructure.targets.container_group import ContainerGroupTarget
from botfleet.infrastructure.targets.ecs_fargate import EcsFargateTarget
from botfleet.infrastructure.targets.instrumented import InstrumentedTarget


logger = structlog.get_logger(__name__)

TargetBuilder = Callable[[BotInstance, Settings], DeploymentTarget]


def _build_ecs_fargate(instance: BotInstance, settings: Settings) -> DeploymentTarget:
    if instance.target.ecs is None:
        raise TargetConfigurationError("ecs-fargate target requires 'ecs' configuration")
    return EcsFargateTarget(
        instance.target.ecs,
        profile_name=instance.profile_name,
        gateway_port=instance.gateway_port,
        defaults=settings.aws_cli,
    )


def _build_container_group(instance: BotInstance, settings: Settings) -> DeploymentTarget:
    if instance.target.aci is None:
        raise TargetConfigurationError("aci target requires 'aci' configuration")
    return ContainerGroupTarget(
        instance.target.aci,
        profile_name=instance.profile_name,
        gateway_port=instance.gateway_port,
        defaults=settings.azure,
    )


class TargetFactory:
    """Builds the deployment target for an instance from its backend kind.

    Every target is wrapped so its operations are traced and counted.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._builders: dict[BackendKind, TargetBuilder] = {
            BackendKind.ECS_FARGATE: _build_ecs_fargate,
            BackendKind.ACI: _build_container_group,
        }

    def register(self, kind: BackendKind, builder: TargetBuilder) -> None:
        self._builders[kind] = builder

    @property
    def supported_kinds(self) -> list[BackendKind]:
        return list(self._builders)

    def __call__(self, instance: BotInstance) -> DeploymentTarget:
        return self.create(instance)

    def create(self, instance: BotInstance) -> DeploymentTarget:
        builder = self._builders.get(instance.backend_kind)
        if builder is None:
            raise UnsupportedTargetError(
                f"Backend kind '{instance.backend_kind.value}' has no deployment target"
            )
        target = builder(instance, self._settings)
        logger.debug(
            "deployment_target_created",
            instance_id=instance.id,
            backend_kind=instance.backend_kind.value,
        )
        return InstrumentedTarget(target, instance_id=instance.id)


class UnsupportedTargetError(Exception):
    """Raised when no deployment target is registered for a backend kind."""
