"""Unit tests for deployment target selection and instrumentation."""

from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from botfleet.config import Settings
from botfleet.domain.models.backend import BackendKind, InstallOptions, TargetState
from botfleet.domain.models.instance import BotInstance
from botfleet.domain.models.targets import TargetConfig
from botfleet.domain.ports.targets import EndpointResolutionError
from botfleet.infrastructure.targets.container_group import ContainerGroupTarget
from botfleet.infrastructure.targets.ecs_fargate import EcsFargateTarget
from botfleet.infrastructure.targets.factory import TargetFactory, UnsupportedTargetError
from botfleet.infrastructure.targets.instrumented import InstrumentedTarget

from conftest import FakeTarget


def _operations(kind: str, operation: str, result: str) -> float:
    return REGISTRY.get_sample_value(
        "botfleet_target_operations_total",
        {"backend_kind": kind, "operation": operation, "result": result},
    ) or 0.0


class TestTargetFactory:
    def test_builds_ecs_fargate(self, settings: Settings, ecs_instance: BotInstance) -> None:
        target = TargetFactory(settings).create(ecs_instance)

        assert isinstance(target, InstrumentedTarget)
        assert isinstance(target.inner, EcsFargateTarget)
        assert target.kind == BackendKind.ECS_FARGATE
        assert target.service_name == "botfleet-support"

    def test_builds_container_group(self, settings: Settings, aci_instance: BotInstance) -> None:
        target = TargetFactory(settings)(aci_instance)

        assert isinstance(target.inner, ContainerGroupTarget)
        assert target.container_group_name == "botfleet-sales"

    def test_settings_supply_defaults(self, ecs_instance: BotInstance) -> None:
        settings = Settings()
        settings.aws_cli.default_cluster = "shared-cluster"
        target = TargetFactory(settings).create(ecs_instance)
        assert target.cluster_name == "shared-cluster"

    def test_unsupported_kind(self, settings: Settings) -> None:
        instance = BotInstance(
            name="Local", profile_name="local", target=TargetConfig(kind=BackendKind.DOCKER)
        )
        with pytest.raises(UnsupportedTargetError, match="docker"):
            TargetFactory(settings).create(instance)

    def test_register_builder(self, settings: Settings) -> None:
        fake = FakeTarget()
        factory = TargetFactory(settings)
        factory.register(BackendKind.DOCKER, lambda instance, _settings: fake)
        instance = BotInstance(
            name="Local", profile_name="local", target=TargetConfig(kind=BackendKind.DOCKER)
        )

        target = factory.create(instance)

        assert target.inner is fake
        assert BackendKind.DOCKER in factory.supported_kinds


class TestInstrumentedTarget:
    @pytest.mark.asyncio
    async def test_delegates_and_counts_success(self) -> None:
        fake = FakeTarget()
        target = InstrumentedTarget(fake, instance_id="i-1")
        before = _operations("ecs-fargate", "get_status", "success")

        status = await target.get_status()

        assert status.state == TargetState.RUNNING
        assert fake.calls == ["get_status"]
        assert _operations("ecs-fargate", "get_status", "success") == before + 1

    @pytest.mark.asyncio
    async def test_unsuccessful_result_counts_failure(self) -> None:
        target = InstrumentedTarget(FakeTarget(install_success=False), instance_id="i-1")
        before = _operations("ecs-fargate", "install", "failure")

        result = await target.install(InstallOptions(profile_name="support"))

        assert result.success is False
        assert _operations("ecs-fargate", "install", "failure") == before + 1

    @pytest.mark.asyncio
    async def test_exception_counts_failure_and_propagates(self) -> None:
        error = EndpointResolutionError("no tasks")
        target = InstrumentedTarget(FakeTarget(endpoint_error=error), instance_id="i-1")
        before = _operations("ecs-fargate", "get_endpoint", "failure")

        with pytest.raises(EndpointResolutionError):
            await target.get_endpoint()

        assert _operations("ecs-fargate", "get_endpoint", "failure") == before + 1

    @pytest.mark.asyncio
    async def test_void_operations(self) -> None:
        fake = FakeTarget()
        target = InstrumentedTarget(fake, instance_id="i-1")
        await target.start()
        await target.stop()
        await target.restart()
        await target.destroy()
        assert await target.get_logs() == ["gateway started"]
        assert fake.calls == ["start", "stop", "restart", "destroy", "get_logs"]

    def test_attribute_passthrough(self) -> None:
        fake = FakeTarget()
        target = InstrumentedTarget(fake, instance_id="i-1")
        assert target.statuses == fake.statuses
