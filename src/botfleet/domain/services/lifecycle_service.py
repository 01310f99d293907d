"""Domain service driving gateway instances through their deployment targets."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from botfleet.domain.models.backend import (
    GatewayConfigPayload,
    GatewayEndpoint,
    InstallOptions,
    LogQuery,
    TargetState,
    TargetStatus,
)
from botfleet.domain.models.base import AggregateRoot
from botfleet.domain.models.instance import BotInstance, InstanceStatus
from botfleet.domain.models.provisioning import (
    ProvisioningOutcome,
    ProvisioningProgress,
    ProvisioningStatus,
    ProvisioningStep,
    StepStatus,
)
from botfleet.domain.ports.repositories import InstanceRepository
from botfleet.domain.ports.services import EventPublisher
from botfleet.domain.ports.targets import DeploymentTarget
from botfleet.domain.provisioning_steps import (
    LifecyclePhase,
    step_name,
    steps_for,
    steps_in_phase,
)
from botfleet.domain.services.provisioning_tracker import ProvisioningTracker


logger = structlog.get_logger(__name__)

T = TypeVar("T")

TargetFactory = Callable[[BotInstance], DeploymentTarget]

PRIVILEGED_PORT_LIMIT = 1024


class LifecycleService:
    """Runs provisioning, teardown and fleet reconciliation.

    A provisioning run walks the lifecycle phases in a fixed order and
    reports each one against the catalog steps mapped to it, so the service
    itself never branches on backend kind. Failures are recorded on the run
    and the instance and returned as an unsuccessful outcome.
    """

    def __init__(
        self,
        instance_repo: InstanceRepository,
        tracker: ProvisioningTracker,
        target_factory: TargetFactory,
        event_publisher: EventPublisher | None = None,
        status_poll_interval: float = 10.0,
        status_poll_attempts: int = 30,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._instance_repo = instance_repo
        self._tracker = tracker
        self._target_factory = target_factory
        self._event_publisher = event_publisher
        self._poll_interval = status_poll_interval
        self._poll_attempts = status_poll_attempts
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _publish_events(self, aggregate: AggregateRoot) -> None:
        """Collect and publish all pending domain events from an aggregate."""
        if self._event_publisher is None:
            aggregate.collect_events()
            return
        for event in aggregate.collect_events():
            await self._event_publisher.publish(event.event_type, event.model_dump(mode="json"))

    async def _run_phase(
        self,
        instance_id: str,
        step_ids: tuple[str, ...],
        phase: LifecyclePhase,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        """Run one phase, reporting it against the catalog steps it drives."""
        phase_steps = steps_in_phase(step_ids, phase)
        if phase_steps:
            await self._tracker.update_step(instance_id, phase_steps[0], StepStatus.IN_PROGRESS)

        result = await operation()

        for step_id in phase_steps:
            await self._tracker.update_step(instance_id, step_id, StepStatus.IN_PROGRESS)
            await self._tracker.update_step(instance_id, step_id, StepStatus.COMPLETED)
        return result

    async def _fail_phase_step(
        self, instance_id: str, step_ids: tuple[str, ...], phase: LifecyclePhase, message: str
    ) -> None:
        phase_steps = steps_in_phase(step_ids, phase)
        if phase_steps:
            await self._tracker.update_step(instance_id, phase_steps[0], StepStatus.ERROR, message)

    @staticmethod
    def _validate_instance(instance: BotInstance) -> None:
        if not instance.profile_name.strip():
            raise InstanceValidationError("Profile name must not be empty")
        if not 0 < instance.gateway_port < 65536:
            raise InstanceValidationError(f"Gateway port {instance.gateway_port} is out of range")

    async def _audit_security(self, instance: BotInstance) -> None:
        """Report risky settings on the run's log channel. Never fails the run."""
        if instance.gateway_port < PRIVILEGED_PORT_LIMIT:
            await self._tracker.append_log(
                instance.id,
                f"warning: gateway port {instance.gateway_port} is a privileged port",
            )
        empty = sorted(k for k, v in instance.environment.items() if not v)
        if empty:
            await self._tracker.append_log(
                instance.id, f"warning: empty environment values for {', '.join(empty)}"
            )

    async def _wait_until_running(self, target: DeploymentTarget) -> TargetStatus:
        status = await target.get_status()
        for _ in range(self._poll_attempts - 1):
            if status.state == TargetState.RUNNING:
                return status
            await self._sleep(self._poll_interval)
            status = await target.get_status()
        if status.state != TargetState.RUNNING:
            raise GatewayNotRunningError(
                f"Gateway did not reach running state (last state: {status.state.value}"
                + (f", {status.error})" if status.error else ")")
            )
        return status

    async def _require_instance(self, instance_id: str) -> BotInstance:
        instance = await self._instance_repo.get_by_id(instance_id)
        if instance is None:
            raise InstanceNotFoundError(f"Instance {instance_id} not found")
        return instance

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    async def provision(
        self, instance: BotInstance, target: DeploymentTarget | None = None
    ) -> ProvisioningOutcome:
        """Install, configure and start an instance on its target."""
        kind = instance.backend_kind.value
        step_ids = steps_for(kind)
        if instance.status != InstanceStatus.CREATING:
            instance.begin_provisioning()
            await self._instance_repo.update(instance)
        await self._tracker.start_provisioning(instance.id, kind)

        current_phase = LifecyclePhase.VALIDATE
        try:
            async def _validate() -> DeploymentTarget:
                self._validate_instance(instance)
                resolved = target if target is not None else self._target_factory(instance)
                await self._audit_security(instance)
                return resolved

            resolved_target = await self._run_phase(
                instance.id, step_ids, LifecyclePhase.VALIDATE, _validate
            )

            current_phase = LifecyclePhase.INSTALL
            install_result = await self._run_phase(
                instance.id, step_ids, LifecyclePhase.INSTALL,
                lambda: self._install(resolved_target, instance),
            )
            await self._tracker.append_log(instance.id, install_result.message)

            current_phase = LifecyclePhase.CONFIGURE
            configure_result = await self._run_phase(
                instance.id, step_ids, LifecyclePhase.CONFIGURE,
                lambda: self._configure(resolved_target, instance),
            )
            await self._tracker.append_log(instance.id, configure_result.message)

            current_phase = LifecyclePhase.START

            async def _start() -> TargetStatus:
                if configure_result.requires_restart:
                    await resolved_target.restart()
                else:
                    await resolved_target.start()
                return await self._wait_until_running(resolved_target)

            await self._run_phase(instance.id, step_ids, LifecyclePhase.START, _start)

            current_phase = LifecyclePhase.ENDPOINT
            endpoint: GatewayEndpoint = await self._run_phase(
                instance.id, step_ids, LifecyclePhase.ENDPOINT, resolved_target.get_endpoint
            )
            await self._tracker.append_log(instance.id, f"gateway reachable at {endpoint.url}")

            current_phase = LifecyclePhase.HEALTH

            async def _health() -> None:
                status = await resolved_target.get_status()
                if status.state != TargetState.RUNNING:
                    raise GatewayNotRunningError(
                        f"Health check failed: gateway is {status.state.value}"
                    )

            await self._run_phase(instance.id, step_ids, LifecyclePhase.HEALTH, _health)

        except Exception as e:
            message = str(e) or type(e).__name__
            logger.exception(
                "instance_provisioning_failed",
                instance_id=instance.id,
                backend_kind=kind,
                phase=current_phase.value,
                error=message,
            )
            await self._fail_phase_step(instance.id, step_ids, current_phase, message)
            await self._tracker.fail_provisioning(instance.id, message)
            instance.mark_failed(message)
            await self._instance_repo.update(instance)
            await self._publish_events(instance)
            return ProvisioningOutcome(instance_id=instance.id, success=False, message=message)

        instance.mark_running(endpoint.host, endpoint.port)
        await self._instance_repo.update(instance)
        await self._tracker.complete_provisioning(instance.id)
        await self._publish_events(instance)

        logger.info(
            "instance_provisioned",
            instance_id=instance.id,
            backend_kind=kind,
            endpoint=endpoint.url,
        )
        return ProvisioningOutcome(
            instance_id=instance.id,
            success=True,
            message=f"Provisioned and started on {endpoint.host}:{endpoint.port}",
            gateway_host=endpoint.host,
            gateway_port=endpoint.port,
        )

    async def _install(self, target: DeploymentTarget, instance: BotInstance) -> Any:
        result = await target.install(InstallOptions(
            profile_name=instance.profile_name,
            port=instance.gateway_port,
            version_tag=instance.version_tag,
        ))
        if not result.success:
            raise TargetOperationError(f"Install failed: {result.message}")
        return result

    async def _configure(self, target: DeploymentTarget, instance: BotInstance) -> Any:
        result = await target.configure(GatewayConfigPayload(
            profile_name=instance.profile_name,
            gateway_port=instance.gateway_port,
            environment=instance.environment,
            config=instance.config,
        ))
        if not result.success:
            raise TargetOperationError(f"Configure failed: {result.message}")
        return result

    async def reconcile_fleet(self, instances: list[BotInstance]) -> list[ProvisioningOutcome]:
        """Provision many instances concurrently. One failure never stops the rest."""
        results = await asyncio.gather(
            *(self.provision(instance) for instance in instances),
            return_exceptions=True,
        )

        outcomes: list[ProvisioningOutcome] = []
        for instance, result in zip(instances, results):
            if isinstance(result, BaseException):
                logger.error(
                    "fleet_reconcile_instance_error",
                    instance_id=instance.id,
                    error=str(result),
                )
                outcomes.append(ProvisioningOutcome(
                    instance_id=instance.id, success=False, message=str(result),
                ))
            else:
                outcomes.append(result)

        logger.info(
            "fleet_reconciled",
            total=len(outcomes),
            succeeded=sum(1 for o in outcomes if o.success),
        )
        return outcomes

    # ------------------------------------------------------------------
    # Day-two operations
    # ------------------------------------------------------------------

    async def destroy(self, instance_id: str) -> BotInstance:
        instance = await self._require_instance(instance_id)
        target = self._target_factory(instance)
        await target.destroy()
        instance.mark_deleted()
        await self._instance_repo.update(instance)
        await self._publish_events(instance)
        logger.info("instance_destroyed", instance_id=instance_id)
        return instance

    async def stop(self, instance_id: str) -> BotInstance:
        instance = await self._require_instance(instance_id)
        await self._target_factory(instance).stop()
        instance.mark_stopped()
        await self._instance_repo.update(instance)
        logger.info("instance_stopped", instance_id=instance_id)
        return instance

    async def restart(self, instance_id: str) -> BotInstance:
        instance = await self._require_instance(instance_id)
        await self._target_factory(instance).restart()
        instance.touch()
        await self._instance_repo.update(instance)
        logger.info("instance_restarted", instance_id=instance_id)
        return instance

    async def get_logs(self, instance_id: str, query: LogQuery | None = None) -> list[str]:
        instance = await self._require_instance(instance_id)
        return await self._target_factory(instance).get_logs(query)

    async def get_status_view(self, instance_id: str) -> ProvisioningProgress | None:
        """Live progress, or a view derived from the persisted instance status."""
        progress = self._tracker.get_progress(instance_id)
        if progress is not None:
            return progress

        instance = await self._instance_repo.get_by_id(instance_id)
        if instance is None or instance.status == InstanceStatus.DELETED:
            return None
        return _progress_from_instance(instance)


def _progress_from_instance(instance: BotInstance) -> ProvisioningProgress:
    step_ids = steps_for(instance.backend_kind.value)
    if instance.status in (InstanceStatus.RUNNING, InstanceStatus.STOPPED):
        status, step_status = ProvisioningStatus.COMPLETED, StepStatus.COMPLETED
    elif instance.status == InstanceStatus.ERROR:
        status, step_status = ProvisioningStatus.ERROR, StepStatus.PENDING
    else:
        status, step_status = ProvisioningStatus.IN_PROGRESS, StepStatus.PENDING

    return ProvisioningProgress(
        instance_id=instance.id,
        status=status,
        current_step=step_ids[-1] if status == ProvisioningStatus.COMPLETED else step_ids[0],
        steps=[ProvisioningStep(id=s, name=step_name(s), status=step_status) for s in step_ids],
        started_at=instance.created_at,
        completed_at=instance.updated_at if status != ProvisioningStatus.IN_PROGRESS else None,
        error=instance.last_error if status == ProvisioningStatus.ERROR else None,
    )


class InstanceNotFoundError(Exception):
    """Raised when an instance is not found."""


class InstanceValidationError(Exception):
    """Raised when an instance's settings cannot be provisioned."""


class TargetOperationError(Exception):
    """Raised when a target reports an unsuccessful install or configure."""


class GatewayNotRunningError(Exception):
    """Raised when the gateway does not reach the running state."""
