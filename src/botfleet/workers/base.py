"""Base worker agent implementation."""

from __future__ import annotations

import asyncio
import uuid
from abc import ABC, abstractmethod
from typing import Any

import structlog

from botfleet.domain.models.instance import BotInstance
from botfleet.domain.ports.repositories import InstanceRepository


logger = structlog.get_logger(__name__)


class WorkerAgent(ABC):
    """Base class for worker agents that drive pending gateway instances.

    Implements the Template Method pattern for the acquire, execute and
    record lifecycle; subclasses supply ``execute``.
    """

    def __init__(
        self,
        worker_id: str | None = None,
        instance_repo: InstanceRepository | None = None,
        poll_interval: float = 2.0,
        max_concurrent: int = 5,
        timeout_seconds: float = 15 * 60,
    ) -> None:
        self._worker_id = worker_id or f"worker-{uuid.uuid4().hex[:8]}"
        self._instance_repo = instance_repo
        self._poll_interval = poll_interval
        self._max_concurrent = max_concurrent
        self._timeout_seconds = timeout_seconds
        self._running = False
        self._active_instances: set[str] = set()
        self._background_tasks: set[asyncio.Task[None]] = set()
        self._semaphore = asyncio.Semaphore(max_concurrent)

    @property
    def worker_id(self) -> str:
        return self._worker_id

    @property
    def active_instance_count(self) -> int:
        return len(self._active_instances)

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the worker agent polling loop."""
        self._running = True
        logger.info("worker_started", worker_id=self._worker_id)

        while self._running:
            try:
                await self.poll_once()
            except Exception as e:
                logger.exception("worker_poll_error", worker_id=self._worker_id, error=str(e))
            await asyncio.sleep(self._poll_interval)

    async def stop(self) -> None:
        """Gracefully stop the worker agent."""
        self._running = False
        logger.info(
            "worker_stopping",
            worker_id=self._worker_id,
            active_instances=self.active_instance_count,
        )

        while self._active_instances:
            await asyncio.sleep(0.5)

        logger.info("worker_stopped", worker_id=self._worker_id)

    async def poll_once(self) -> BotInstance | None:
        """Acquire at most one pending instance and run it in the background."""
        if self._instance_repo is None:
            return None

        if self.active_instance_count >= self._max_concurrent:
            return None

        instance = await self._instance_repo.acquire_next_pending()
        if instance is not None:
            background_task = asyncio.create_task(self.run(instance))
            self._background_tasks.add(background_task)
            background_task.add_done_callback(self._background_tasks.discard)
        return instance

    async def drain(self) -> None:
        """Wait for every background run started by this worker."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    async def run(self, instance: BotInstance) -> Any:
        """Execute one instance under the concurrency limit.

        The run is never cancelled. The provisioning tracker records the
        timeout on its own timer; a run still going after ``timeout_seconds``
        is only reported.
        """
        self._active_instances.add(instance.id)
        overrun = asyncio.get_running_loop().call_later(
            self._timeout_seconds, self._report_overrun, instance.id
        )

        try:
            async with self._semaphore:
                logger.info(
                    "instance_execution_started",
                    instance_id=instance.id,
                    worker_id=self._worker_id,
                    backend_kind=instance.backend_kind.value,
                )
                return await self.execute(instance)
        finally:
            overrun.cancel()
            self._active_instances.discard(instance.id)

    def _report_overrun(self, instance_id: str) -> None:
        logger.warning(
            "instance_execution_overran",
            instance_id=instance_id,
            worker_id=self._worker_id,
            timeout_seconds=self._timeout_seconds,
        )

    @abstractmethod
    async def execute(self, instance: BotInstance) -> Any:
        """Execute the instance. Subclasses implement specific logic."""


class HealthCheckMixin:
    """Mixin for worker health checking capability.

    Intended to be used alongside :class:`WorkerAgent` in a cooperative
    multiple-inheritance class hierarchy.
    """

    def get_health(self: WorkerAgent) -> dict[str, Any]:  # type: ignore[misc]
        """Return a health snapshot of the worker."""
        return {
            "worker_id": self.worker_id,
            "active_instances": self.active_instance_count,
            "running": self._running,
            "max_concurrent": self._max_concurrent,
        }
