"""Service port interfaces (hexagonal architecture)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from botfleet.domain.models.provisioning import ProvisioningProgress


class EventPublisher(ABC):
    """Port for publishing domain events."""

    @abstractmethod
    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        """Publish an event."""

    @abstractmethod
    async def publish_batch(self, events: list[tuple[str, dict[str, Any]]]) -> None:
        """Publish a batch of events."""


class ProgressNotifier(ABC):
    """Port for the live provisioning push channel."""

    @abstractmethod
    async def publish_progress(self, progress: ProvisioningProgress) -> None:
        """Push a full progress snapshot to the instance's subscribers."""

    @abstractmethod
    async def publish_log(self, instance_id: str, line: str) -> None:
        """Buffer a log line and push it to the instance's subscribers."""

    @abstractmethod
    def clear_logs(self, instance_id: str) -> None:
        """Drop the buffered log lines of an instance."""


class TimerHandle(ABC):
    """A scheduled callback that can be cancelled before it fires."""

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the callback. Cancelling twice is harmless."""


class Scheduler(ABC):
    """Port for delayed callbacks, so timers can run on a simulated clock."""

    @abstractmethod
    def call_later(
        self, delay_seconds: float, callback: Callable[[], Awaitable[None]]
    ) -> TimerHandle:
        """Run ``callback`` once after ``delay_seconds``."""
