"""Provisioning worker agent."""

from __future__ import annotations

from typing import Any

import structlog

from botfleet.domain.models.instance import BotInstance
from botfleet.domain.models.provisioning import ProvisioningOutcome, ProvisioningProgress
from botfleet.domain.services.lifecycle_service import LifecycleService
from botfleet.domain.services.provisioning_tracker import ProvisioningTracker
from botfleet.infrastructure.observability.logging import (
    bind_instance_context,
    clear_instance_context,
)
from botfleet.infrastructure.observability.metrics import (
    ACTIVE_PROVISIONING_RUNS,
    PROVISIONING_DURATION,
    PROVISIONING_RUNS_TOTAL,
    PROVISIONING_STEP_DURATION,
    WORKER_INSTANCES_IN_PROGRESS,
)
from botfleet.workers.base import HealthCheckMixin, WorkerAgent


logger = structlog.get_logger(__name__)


class ProvisioningWorkerAgent(WorkerAgent, HealthCheckMixin):
    """Worker agent that provisions instances on their targets.

    Each run is delegated to the lifecycle service; the worker adds the
    log context and records run and step metrics from the final progress.
    """

    def __init__(
        self,
        lifecycle: LifecycleService,
        tracker: ProvisioningTracker,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._lifecycle = lifecycle
        self._tracker = tracker

    async def execute(self, instance: BotInstance) -> ProvisioningOutcome:
        kind = instance.backend_kind.value
        bind_instance_context(instance.id, kind)
        ACTIVE_PROVISIONING_RUNS.inc()
        WORKER_INSTANCES_IN_PROGRESS.labels(worker_id=self.worker_id).inc()
        try:
            outcome = await self._lifecycle.provision(instance)
        finally:
            ACTIVE_PROVISIONING_RUNS.dec()
            WORKER_INSTANCES_IN_PROGRESS.labels(worker_id=self.worker_id).dec()
            clear_instance_context()

        progress = self._tracker.get_progress(instance.id)
        if progress is not None:
            record_run_metrics(kind, progress)

        logger.info(
            "provisioning_run_finished",
            instance_id=instance.id,
            worker_id=self.worker_id,
            success=outcome.success,
        )
        return outcome


def record_run_metrics(backend_kind: str, progress: ProvisioningProgress) -> None:
    """Record outcome, duration and per-step timings of a finished run."""
    if not progress.is_terminal:
        return
    status = progress.status.value
    PROVISIONING_RUNS_TOTAL.labels(backend_kind=backend_kind, status=status).inc()
    if progress.completed_at is not None:
        PROVISIONING_DURATION.labels(backend_kind=backend_kind, status=status).observe(
            (progress.completed_at - progress.started_at).total_seconds()
        )
    for step in progress.steps:
        if step.started_at is not None and step.completed_at is not None:
            PROVISIONING_STEP_DURATION.labels(step_id=step.id, status=step.status.value).observe(
                (step.completed_at - step.started_at).total_seconds()
            )
