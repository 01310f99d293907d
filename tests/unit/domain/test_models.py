"""Unit tests for contract value types and base models."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import SecretStr, ValidationError

from botfleet.domain.models.backend import (
    BackendKind,
    GatewayConfigPayload,
    GatewayEndpoint,
    InstallOptions,
    LogQuery,
)
from botfleet.domain.models.base import AggregateRoot, DomainEntity, DomainEvent, generate_id
from botfleet.domain.models.cloud_provider import CloudProviderType, ContainerDeploymentConfig
from botfleet.domain.models.provisioning import (
    ProvisioningProgress,
    ProvisioningStatus,
    ProvisioningStep,
    StepStatus,
)
from botfleet.domain.models.targets import EcsFargateConfig, TargetConfig


class TestBase:
    def test_ids_are_unique(self) -> None:
        assert len({generate_id() for _ in range(50)}) == 50

    def test_touch_refreshes_timestamp(self) -> None:
        entity = DomainEntity()
        before = entity.updated_at
        entity.touch()
        assert entity.updated_at >= before

    def test_aggregate_collects_events_once(self) -> None:
        agg = AggregateRoot()
        agg.add_event(DomainEvent(event_type="a"))
        agg.add_event(DomainEvent(event_type="b"))
        assert len(agg.pending_events) == 2
        assert len(agg.collect_events()) == 2
        assert agg.collect_events() == []


class TestBackendModels:
    def test_install_options_require_profile(self) -> None:
        with pytest.raises(ValidationError):
            InstallOptions(profile_name="")

    def test_install_options_default_port(self) -> None:
        assert InstallOptions(profile_name="p").port == 18789

    def test_endpoint_url(self) -> None:
        assert GatewayEndpoint(host="1.2.3.4", port=18789).url == "ws://1.2.3.4:18789"

    def test_log_query_rejects_non_positive_lines(self) -> None:
        with pytest.raises(ValidationError):
            LogQuery(lines=0)

    def test_config_payload_render(self) -> None:
        payload = GatewayConfigPayload(
            profile_name="support",
            environment={"A": "1"},
            config={"channels": ["telegram"]},
        )
        rendered = payload.render()
        assert rendered["profileName"] == "support"
        assert rendered["gatewayPort"] == 18789
        assert rendered["environment"] == {"A": "1"}
        assert rendered["channels"] == ["telegram"]

    def test_backend_kind_values(self) -> None:
        assert BackendKind("ecs-fargate") == BackendKind.ECS_FARGATE
        assert BackendKind("aci") == BackendKind.ACI


class TestTargetConfig:
    def test_ecs_requires_block(self) -> None:
        with pytest.raises(ValidationError):
            TargetConfig(kind=BackendKind.ECS_FARGATE)

    def test_aci_requires_block(self) -> None:
        with pytest.raises(ValidationError):
            TargetConfig(kind=BackendKind.ACI)

    def test_secret_is_masked(self) -> None:
        config = EcsFargateConfig(
            region="us-east-1", access_key_id="AKIA", secret_access_key=SecretStr("hunter2"),
        )
        assert "hunter2" not in repr(config)
        assert config.secret_access_key.get_secret_value() == "hunter2"


class TestProviderModels:
    def test_provider_types(self) -> None:
        assert CloudProviderType("azure") == CloudProviderType.AZURE
        assert CloudProviderType("selfhosted") == CloudProviderType.SELFHOSTED

    def test_deployment_defaults(self) -> None:
        config = ContainerDeploymentConfig(name="x", image="img")
        assert config.cpu == 1.0
        assert config.memory == 2048
        assert config.replicas == 1


class TestProvisioningProgress:
    def _progress(self) -> ProvisioningProgress:
        return ProvisioningProgress(
            instance_id="i-1",
            current_step="a",
            steps=[
                ProvisioningStep(id="a", name="A", status=StepStatus.COMPLETED),
                ProvisioningStep(id="b", name="B", status=StepStatus.IN_PROGRESS),
                ProvisioningStep(id="c", name="C"),
            ],
            started_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

    def test_find_step(self) -> None:
        progress = self._progress()
        assert progress.find_step("b").name == "B"
        assert progress.find_step("zzz") is None

    def test_first_with_status(self) -> None:
        assert self._progress().first_with_status(StepStatus.PENDING).id == "c"

    def test_completed_count(self) -> None:
        assert self._progress().completed_count == 1

    def test_terminal(self) -> None:
        progress = self._progress()
        assert progress.is_terminal is False
        progress.status = ProvisioningStatus.TIMEOUT
        assert progress.is_terminal is True

    def test_step_terminal_statuses(self) -> None:
        assert ProvisioningStep(id="x", name="X", status=StepStatus.SKIPPED).is_terminal
        assert not ProvisioningStep(id="x", name="X", status=StepStatus.IN_PROGRESS).is_terminal
