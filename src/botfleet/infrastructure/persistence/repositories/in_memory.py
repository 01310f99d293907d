"""In-memory repository implementations for development and testing."""

from __future__ import annotations

from botfleet.domain.models.instance import BotInstance, InstanceStatus
from botfleet.domain.ports.repositories import InstanceRepository


# Module-level shared store so the API and the worker see the same fleet,
# with a single clear point for test isolation.
_instance_store: dict[str, BotInstance] = {}


class InMemoryInstanceRepository(InstanceRepository):
    """In-memory gateway instance repository."""

    def __init__(self) -> None:
        self._store = _instance_store

    async def save(self, instance: BotInstance) -> BotInstance:
        self._store[instance.id] = instance
        return instance

    async def get_by_id(self, instance_id: str) -> BotInstance | None:
        return self._store.get(instance_id)

    async def list_by_status(
        self, status: InstanceStatus, limit: int = 50, offset: int = 0
    ) -> list[BotInstance]:
        items = [i for i in self._store.values() if i.status == status]
        return sorted(items, key=lambda i: i.created_at, reverse=True)[offset:offset + limit]

    async def list_all(self, limit: int = 100, offset: int = 0) -> list[BotInstance]:
        items = sorted(self._store.values(), key=lambda i: i.created_at, reverse=True)
        return items[offset:offset + limit]

    async def update(self, instance: BotInstance) -> BotInstance:
        self._store[instance.id] = instance
        return instance

    async def acquire_next_pending(self) -> BotInstance | None:
        for instance in sorted(self._store.values(), key=lambda i: i.created_at):
            if instance.status == InstanceStatus.PENDING:
                instance.begin_provisioning()
                return instance
        return None

    @classmethod
    def clear(cls) -> None:
        """Clear the shared store. Used by test fixtures for isolation."""
        _instance_store.clear()
