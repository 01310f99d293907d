"""Repository port interfaces (hexagonal architecture)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from botfleet.domain.models.instance import BotInstance, InstanceStatus


class InstanceRepository(ABC):
    """Port for gateway instance persistence."""

    @abstractmethod
    async def save(self, instance: BotInstance) -> BotInstance:
        """Persist an instance."""

    @abstractmethod
    async def get_by_id(self, instance_id: str) -> BotInstance | None:
        """Retrieve an instance by ID."""

    @abstractmethod
    async def list_by_status(
        self, status: InstanceStatus, limit: int = 50, offset: int = 0
    ) -> list[BotInstance]:
        """List instances by status."""

    @abstractmethod
    async def list_all(self, limit: int = 100, offset: int = 0) -> list[BotInstance]:
        """List all instances, newest first."""

    @abstractmethod
    async def update(self, instance: BotInstance) -> BotInstance:
        """Update an existing instance."""

    @abstractmethod
    async def acquire_next_pending(self) -> BotInstance | None:
        """Atomically move the oldest PENDING instance to CREATING and return it."""
