"""Per-instance provisioning progress state machine."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import structlog

from botfleet.domain.events.provisioning_events import (
    ProvisioningCompleted,
    ProvisioningFailed,
    ProvisioningStarted,
    ProvisioningTimedOut,
)
from botfleet.domain.models.base import DomainEvent, utc_now
from botfleet.domain.models.provisioning import (
    ProvisioningProgress,
    ProvisioningStatus,
    ProvisioningStep,
    StepStatus,
    TERMINAL_STEP_STATUSES,
)
from botfleet.domain.ports.services import (
    EventPublisher,
    ProgressNotifier,
    Scheduler,
    TimerHandle,
)
from botfleet.domain.provisioning_steps import step_name, steps_for


logger = structlog.get_logger(__name__)

PROVISIONING_TIMEOUT_SECONDS = 15 * 60
COMPLETED_RETENTION_SECONDS = 60
FAILED_RETENTION_SECONDS = 5 * 60

# Steps only move forward
_STEP_RANK = {
    StepStatus.PENDING: 0,
    StepStatus.IN_PROGRESS: 1,
    StepStatus.COMPLETED: 2,
    StepStatus.SKIPPED: 2,
    StepStatus.ERROR: 2,
}


class ProvisioningTracker:
    """Owns the progress record of every provisioning run in this process.

    One record per instance id. Terminal records stay queryable for a
    retention window and are then evicted. Every mutation pushes a full
    snapshot to the notifier. Callers only ever receive copies.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        notifier: ProgressNotifier | None = None,
        event_publisher: EventPublisher | None = None,
        timeout_seconds: float = PROVISIONING_TIMEOUT_SECONDS,
        completed_retention_seconds: float = COMPLETED_RETENTION_SECONDS,
        failed_retention_seconds: float = FAILED_RETENTION_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._scheduler = scheduler
        self._notifier = notifier
        self._event_publisher = event_publisher
        self._timeout_seconds = timeout_seconds
        self._completed_retention = completed_retention_seconds
        self._failed_retention = failed_retention_seconds
        self._clock = clock
        self._progress: dict[str, ProvisioningProgress] = {}
        self._timeouts: dict[str, TimerHandle] = {}
        self._evictions: dict[str, TimerHandle] = {}

    def set_notifier(self, notifier: ProgressNotifier) -> None:
        self._notifier = notifier

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_progress(self, instance_id: str) -> ProvisioningProgress | None:
        progress = self._progress.get(instance_id)
        if progress is None:
            return None
        return progress.model_copy(deep=True)

    def active_instance_ids(self) -> list[str]:
        return [
            instance_id for instance_id, progress in self._progress.items()
            if not progress.is_terminal
        ]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def start_provisioning(self, instance_id: str, backend_kind: str) -> ProvisioningProgress:
        """Open a fresh run with every catalog step pending."""
        step_ids = steps_for(backend_kind)
        steps = [ProvisioningStep(id=s, name=step_name(s)) for s in step_ids]

        # A restarted run replaces whatever the previous one left behind
        self._cancel_timers(instance_id)
        if self._notifier is not None:
            self._notifier.clear_logs(instance_id)

        progress = ProvisioningProgress(
            instance_id=instance_id,
            current_step=step_ids[0],
            steps=steps,
            started_at=self._clock(),
        )
        self._progress[instance_id] = progress

        async def _on_timeout() -> None:
            await self._handle_timeout(instance_id)

        self._timeouts[instance_id] = self._scheduler.call_later(self._timeout_seconds, _on_timeout)

        logger.info(
            "provisioning_started",
            instance_id=instance_id,
            backend_kind=backend_kind,
            step_count=len(steps),
        )
        await self._publish(progress)
        await self._publish_event(ProvisioningStarted(
            instance_id=instance_id,
            backend_kind=backend_kind,
            step_count=len(steps),
        ))
        return progress.model_copy(deep=True)

    async def update_step(
        self,
        instance_id: str,
        step_id: str,
        status: StepStatus,
        message: str | None = None,
    ) -> None:
        """Record a step transition.

        Unknown instances and steps are ignored, as are updates to a finished
        run, to a finished step, and backward transitions.
        """
        progress = self._progress.get(instance_id)
        if progress is None or progress.is_terminal:
            return
        step = progress.find_step(step_id)
        if step is None:
            return
        if step.is_terminal or _STEP_RANK[status] < _STEP_RANK[step.status]:
            logger.debug(
                "provisioning_step_update_ignored",
                instance_id=instance_id,
                step_id=step_id,
                current=step.status.value,
                requested=status.value,
            )
            return

        now = self._clock()
        step.status = status
        if message is not None:
            step.message = message

        if status == StepStatus.IN_PROGRESS:
            if step.started_at is None:
                step.started_at = now
            progress.current_step = step_id

        if status in TERMINAL_STEP_STATUSES:
            step.completed_at = now

        if status == StepStatus.ERROR:
            step.error = message

        if status == StepStatus.COMPLETED:
            next_pending = progress.first_with_status(StepStatus.PENDING)
            if next_pending is not None:
                progress.current_step = next_pending.id

        logger.debug(
            "provisioning_step_updated",
            instance_id=instance_id,
            step_id=step_id,
            status=status.value,
        )
        await self._publish(progress)

    async def complete_provisioning(self, instance_id: str) -> None:
        """Mark the run completed. Steps never reached become skipped."""
        progress = self._progress.get(instance_id)
        if progress is None or progress.is_terminal:
            return

        now = self._clock()
        progress.status = ProvisioningStatus.COMPLETED
        progress.completed_at = now
        for step in progress.steps:
            if step.status == StepStatus.PENDING:
                step.status = StepStatus.SKIPPED
                step.completed_at = now

        self._cancel_timeout(instance_id)
        self._schedule_eviction(instance_id, self._completed_retention)

        logger.info(
            "provisioning_completed",
            instance_id=instance_id,
            completed_steps=progress.completed_count,
        )
        await self._publish(progress)
        await self._publish_event(ProvisioningCompleted(instance_id=instance_id))

    async def fail_provisioning(self, instance_id: str, error: str) -> None:
        """Mark the run failed. The step that was running carries the error."""
        progress = self._progress.get(instance_id)
        if progress is None or progress.is_terminal:
            return

        now = self._clock()
        progress.status = ProvisioningStatus.ERROR
        progress.completed_at = now
        progress.error = error
        failed_step: str | None = None
        for step in progress.steps:
            if step.status == StepStatus.IN_PROGRESS:
                step.status = StepStatus.ERROR
                step.error = error
                step.completed_at = now
                failed_step = failed_step or step.id

        self._cancel_timeout(instance_id)
        self._schedule_eviction(instance_id, self._failed_retention)

        logger.warning(
            "provisioning_failed",
            instance_id=instance_id,
            failed_step=failed_step,
            error=error,
        )
        await self._publish(progress)
        await self._publish_event(ProvisioningFailed(
            instance_id=instance_id,
            error_message=error,
            failed_step=failed_step,
        ))

    async def append_log(self, instance_id: str, line: str) -> None:
        """Push a provisioning log line to the instance's subscribers."""
        if self._notifier is None:
            return
        await self._notifier.publish_log(instance_id, line)

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    async def _handle_timeout(self, instance_id: str) -> None:
        self._timeouts.pop(instance_id, None)
        progress = self._progress.get(instance_id)
        if progress is None or progress.status != ProvisioningStatus.IN_PROGRESS:
            return

        # Step statuses are left as they are; only the run is closed
        progress.status = ProvisioningStatus.TIMEOUT
        progress.completed_at = self._clock()
        progress.error = "Provisioning timed out"
        self._schedule_eviction(instance_id, self._failed_retention)

        logger.warning(
            "provisioning_timed_out",
            instance_id=instance_id,
            current_step=progress.current_step,
        )
        await self._publish(progress)
        await self._publish_event(ProvisioningTimedOut(
            instance_id=instance_id,
            current_step=progress.current_step,
        ))

    def _schedule_eviction(self, instance_id: str, delay_seconds: float) -> None:
        previous = self._evictions.pop(instance_id, None)
        if previous is not None:
            previous.cancel()

        async def _evict() -> None:
            self._evictions.pop(instance_id, None)
            self._progress.pop(instance_id, None)
            if self._notifier is not None:
                self._notifier.clear_logs(instance_id)
            logger.debug("provisioning_record_evicted", instance_id=instance_id)

        self._evictions[instance_id] = self._scheduler.call_later(delay_seconds, _evict)

    def _cancel_timeout(self, instance_id: str) -> None:
        handle = self._timeouts.pop(instance_id, None)
        if handle is not None:
            handle.cancel()

    def _cancel_timers(self, instance_id: str) -> None:
        self._cancel_timeout(instance_id)
        handle = self._evictions.pop(instance_id, None)
        if handle is not None:
            handle.cancel()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _publish(self, progress: ProvisioningProgress) -> None:
        if self._notifier is None:
            return
        await self._notifier.publish_progress(progress.model_copy(deep=True))

    async def _publish_event(self, event: DomainEvent) -> None:
        if self._event_publisher is None:
            return
        await self._event_publisher.publish(event.event_type, event.model_dump(mode="json"))
