"""Live provisioning progress fan-out.

Each subscriber owns an ``asyncio.Queue``. Log lines are kept in a bounded
per-instance buffer so a late subscriber first receives what it missed.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any

import structlog

from botfleet.domain.models.provisioning import ProvisioningProgress
from botfleet.domain.ports.services import ProgressNotifier
from botfleet.infrastructure.observability.metrics import PROGRESS_SUBSCRIBERS


logger = structlog.get_logger(__name__)

DEFAULT_LOG_BUFFER_SIZE = 100

EVENT_PROGRESS = "progress"
EVENT_LOG = "log"
EVENT_LOGS_BUFFER = "logs-buffer"


class ProgressSubscription:
    """One consumer's view of an instance's progress stream."""

    def __init__(self, hub: ProvisioningEventHub, instance_id: str) -> None:
        self.instance_id = instance_id
        self._hub = hub
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.closed = False

    def put(self, message: dict[str, Any]) -> None:
        if not self.closed:
            self._queue.put_nowait(message)

    async def get(self) -> dict[str, Any]:
        return await self._queue.get()

    def get_nowait(self) -> dict[str, Any]:
        return self._queue.get_nowait()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self._hub.unsubscribe(self)

    def __aiter__(self) -> ProgressSubscription:
        return self

    async def __anext__(self) -> dict[str, Any]:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        return await self._queue.get()


class ProvisioningEventHub(ProgressNotifier):
    """Fans progress snapshots and log lines out to per-instance subscribers."""

    def __init__(self, log_buffer_size: int = DEFAULT_LOG_BUFFER_SIZE) -> None:
        self._log_buffer_size = log_buffer_size
        self._subscribers: dict[str, list[ProgressSubscription]] = {}
        self._log_buffers: dict[str, deque[str]] = {}

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, instance_id: str) -> ProgressSubscription:
        """Register a subscriber, replaying buffered log lines first."""
        subscription = ProgressSubscription(self, instance_id)
        buffered = self._log_buffers.get(instance_id)
        if buffered:
            subscription.put({
                "type": EVENT_LOGS_BUFFER,
                "instance_id": instance_id,
                "lines": list(buffered),
            })
        self._subscribers.setdefault(instance_id, []).append(subscription)
        PROGRESS_SUBSCRIBERS.inc()
        logger.debug("progress_subscribed", instance_id=instance_id)
        return subscription

    def unsubscribe(self, subscription: ProgressSubscription) -> None:
        if subscription.closed:
            return
        subscription.closed = True
        subscribers = self._subscribers.get(subscription.instance_id, [])
        if subscription in subscribers:
            subscribers.remove(subscription)
            PROGRESS_SUBSCRIBERS.dec()
        if not subscribers:
            self._subscribers.pop(subscription.instance_id, None)
        logger.debug("progress_unsubscribed", instance_id=subscription.instance_id)

    def subscriber_count(self, instance_id: str) -> int:
        return len(self._subscribers.get(instance_id, []))

    def buffered_logs(self, instance_id: str) -> list[str]:
        return list(self._log_buffers.get(instance_id, ()))

    def clear_logs(self, instance_id: str) -> None:
        self._log_buffers.pop(instance_id, None)

    # ------------------------------------------------------------------
    # ProgressNotifier
    # ------------------------------------------------------------------

    async def publish_progress(self, progress: ProvisioningProgress) -> None:
        self._broadcast(progress.instance_id, {
            "type": EVENT_PROGRESS,
            "instance_id": progress.instance_id,
            "progress": progress.model_dump(mode="json"),
        })

    async def publish_log(self, instance_id: str, line: str) -> None:
        buffer = self._log_buffers.get(instance_id)
        if buffer is None:
            buffer = deque(maxlen=self._log_buffer_size)
            self._log_buffers[instance_id] = buffer
        buffer.append(line)
        self._broadcast(instance_id, {
            "type": EVENT_LOG,
            "instance_id": instance_id,
            "line": line,
        })

    def _broadcast(self, instance_id: str, message: dict[str, Any]) -> None:
        for subscription in list(self._subscribers.get(instance_id, [])):
            subscription.put(message)
