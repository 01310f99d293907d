"""Unit tests for the provisioning step catalog."""

from __future__ import annotations

import pytest

from botfleet.domain.models.backend import BackendKind
from botfleet.domain.provisioning_steps import (
    DEFAULT_BACKEND_KIND,
    LifecyclePhase,
    PHASE_ORDER,
    PROVISIONING_STEPS,
    STEP_NAMES,
    STEP_PHASES,
    step_name,
    steps_for,
    steps_in_phase,
)


class TestCatalog:
    def test_every_backend_kind_has_a_catalog(self) -> None:
        for kind in BackendKind:
            assert kind.value in PROVISIONING_STEPS

    def test_every_step_has_name_and_phase(self) -> None:
        for steps in PROVISIONING_STEPS.values():
            for step_id in steps:
                assert step_id in STEP_NAMES
                assert step_id in STEP_PHASES

    def test_catalogs_start_with_validation_and_end_with_health(self) -> None:
        for steps in PROVISIONING_STEPS.values():
            assert steps[0] == "validate_config"
            assert steps[-1] == "health_check"

    def test_steps_follow_phase_order(self) -> None:
        for steps in PROVISIONING_STEPS.values():
            positions = [PHASE_ORDER.index(STEP_PHASES[s]) for s in steps]
            assert positions == sorted(positions)

    def test_ecs_fargate_catalog(self) -> None:
        assert steps_for("ecs-fargate") == (
            "validate_config",
            "security_audit",
            "create_task_definition",
            "create_service",
            "write_config",
            "wait_for_task",
            "wait_for_gateway",
            "health_check",
        )

    def test_aci_catalog(self) -> None:
        steps = steps_for("aci")
        assert len(steps) == 8
        assert "create_container_group" in steps

    def test_kubernetes_has_nine_steps(self) -> None:
        assert len(steps_for("kubernetes")) == 9


class TestStepsFor:
    def test_unknown_kind_falls_back_to_default(self) -> None:
        assert steps_for("mainframe") == PROVISIONING_STEPS[DEFAULT_BACKEND_KIND]

    def test_default_is_docker(self) -> None:
        assert DEFAULT_BACKEND_KIND == "docker"


class TestStepName:
    def test_known_step(self) -> None:
        assert step_name("create_task_definition") == "Create task definition"

    def test_unknown_step_returns_id(self) -> None:
        assert step_name("mystery") == "mystery"


class TestStepsInPhase:
    @pytest.mark.parametrize(
        ("phase", "expected"),
        [
            (LifecyclePhase.VALIDATE, ["validate_config", "security_audit"]),
            (LifecyclePhase.INSTALL, ["create_task_definition", "create_service"]),
            (LifecyclePhase.CONFIGURE, ["write_config"]),
            (LifecyclePhase.START, ["wait_for_task"]),
            (LifecyclePhase.ENDPOINT, ["wait_for_gateway"]),
            (LifecyclePhase.HEALTH, ["health_check"]),
        ],
    )
    def test_ecs_fargate_phases(self, phase: LifecyclePhase, expected: list[str]) -> None:
        assert steps_in_phase(steps_for("ecs-fargate"), phase) == expected

    def test_local_service_install_runs_with_start(self) -> None:
        steps = steps_for("local")
        assert steps_in_phase(steps, LifecyclePhase.CONFIGURE) == ["write_config"]
        assert steps_in_phase(steps, LifecyclePhase.START) == ["install_service", "start_service"]
