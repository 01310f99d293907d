"""Provisioning step catalog.

Plain data: which steps a provisioning run has for each backend kind, the
display name of every step, and the lifecycle phase that drives it. The
tracker only ever looks steps up here.
"""

from __future__ import annotations

from enum import Enum


class LifecyclePhase(str, Enum):
    """Target operation a step is reported against."""

    VALIDATE = "validate"
    INSTALL = "install"
    CONFIGURE = "configure"
    START = "start"
    ENDPOINT = "endpoint"
    HEALTH = "health"


PHASE_ORDER: tuple[LifecyclePhase, ...] = (
    LifecyclePhase.VALIDATE,
    LifecyclePhase.INSTALL,
    LifecyclePhase.CONFIGURE,
    LifecyclePhase.START,
    LifecyclePhase.ENDPOINT,
    LifecyclePhase.HEALTH,
)

DEFAULT_BACKEND_KIND = "docker"

STEP_NAMES: dict[str, str] = {
    "validate_config": "Validate configuration",
    "security_audit": "Security audit",
    "pull_image": "Pull container image",
    "build_image": "Build container image",
    "create_container": "Create container",
    "write_config": "Write configuration",
    "start_container": "Start container",
    "install_gateway": "Install gateway",
    "install_service": "Install service",
    "start_service": "Start service",
    "generate_manifests": "Generate Kubernetes manifests",
    "apply_configmap": "Apply ConfigMap",
    "apply_deployment": "Apply Deployment",
    "apply_service": "Apply Service",
    "wait_for_pod": "Wait for pod readiness",
    "create_task_definition": "Create task definition",
    "create_service": "Create ECS service",
    "wait_for_task": "Wait for task startup",
    "create_resource_group": "Create resource group",
    "create_container_group": "Create container group",
    "wait_for_container": "Wait for container startup",
    "generate_wrangler_config": "Generate Wrangler config",
    "build_worker": "Build worker",
    "deploy_worker": "Deploy worker",
    "restore_state": "Restore state",
    "wait_for_gateway": "Wait for Gateway",
    "health_check": "Health check",
}

STEP_PHASES: dict[str, LifecyclePhase] = {
    "validate_config": LifecyclePhase.VALIDATE,
    "security_audit": LifecyclePhase.VALIDATE,
    "pull_image": LifecyclePhase.INSTALL,
    "build_image": LifecyclePhase.INSTALL,
    "create_container": LifecyclePhase.INSTALL,
    "install_gateway": LifecyclePhase.INSTALL,
    "generate_manifests": LifecyclePhase.INSTALL,
    "apply_configmap": LifecyclePhase.INSTALL,
    "apply_deployment": LifecyclePhase.INSTALL,
    "apply_service": LifecyclePhase.INSTALL,
    "create_task_definition": LifecyclePhase.INSTALL,
    "create_service": LifecyclePhase.INSTALL,
    "create_resource_group": LifecyclePhase.INSTALL,
    "create_container_group": LifecyclePhase.INSTALL,
    "generate_wrangler_config": LifecyclePhase.INSTALL,
    "build_worker": LifecyclePhase.INSTALL,
    "deploy_worker": LifecyclePhase.INSTALL,
    "write_config": LifecyclePhase.CONFIGURE,
    "restore_state": LifecyclePhase.CONFIGURE,
    "install_service": LifecyclePhase.START,
    "start_container": LifecyclePhase.START,
    "start_service": LifecyclePhase.START,
    "wait_for_pod": LifecyclePhase.START,
    "wait_for_task": LifecyclePhase.START,
    "wait_for_container": LifecyclePhase.START,
    "wait_for_gateway": LifecyclePhase.ENDPOINT,
    "health_check": LifecyclePhase.HEALTH,
}

PROVISIONING_STEPS: dict[str, tuple[str, ...]] = {
    "docker": (
        "validate_config",
        "security_audit",
        "build_image",
        "create_container",
        "write_config",
        "start_container",
        "wait_for_gateway",
        "health_check",
    ),
    "local": (
        "validate_config",
        "security_audit",
        "install_gateway",
        "write_config",
        "install_service",
        "start_service",
        "wait_for_gateway",
        "health_check",
    ),
    "kubernetes": (
        "validate_config",
        "security_audit",
        "generate_manifests",
        "apply_configmap",
        "apply_deployment",
        "apply_service",
        "wait_for_pod",
        "wait_for_gateway",
        "health_check",
    ),
    "ecs-fargate": (
        "validate_config",
        "security_audit",
        "create_task_definition",
        "create_service",
        "write_config",
        "wait_for_task",
        "wait_for_gateway",
        "health_check",
    ),
    "aci": (
        "validate_config",
        "security_audit",
        "create_resource_group",
        "create_container_group",
        "write_config",
        "wait_for_container",
        "wait_for_gateway",
        "health_check",
    ),
    "cloudflare-workers": (
        "validate_config",
        "security_audit",
        "generate_wrangler_config",
        "build_worker",
        "deploy_worker",
        "restore_state",
        "wait_for_gateway",
        "health_check",
    ),
}


def steps_for(backend_kind: str) -> tuple[str, ...]:
    """Ordered step ids for a backend kind, falling back to the default catalog."""
    return PROVISIONING_STEPS.get(backend_kind, PROVISIONING_STEPS[DEFAULT_BACKEND_KIND])


def step_name(step_id: str) -> str:
    return STEP_NAMES.get(step_id, step_id)


def steps_in_phase(step_ids: tuple[str, ...] | list[str], phase: LifecyclePhase) -> list[str]:
    """Catalog-ordered ids of the steps driven by ``phase``."""
    return [s for s in step_ids if STEP_PHASES.get(s) == phase]
