"""Event publisher implementations."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from botfleet.domain.ports.services import EventPublisher


logger = structlog.get_logger(__name__)

EventHandler = Callable[[dict[str, Any]], Awaitable[None]]


class InMemoryEventPublisher(EventPublisher):
    """In-process event publisher with optional per-type handlers."""

    def __init__(self) -> None:
        self._events: list[tuple[str, dict[str, Any]]] = []
        self._handlers: dict[str, list[EventHandler]] = {}

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        self._events.append((event_type, payload))
        logger.info(
            "event_published",
            event_type=event_type,
            instance_id=payload.get("instance_id"),
        )

        for handler in self._handlers.get(event_type, []):
            try:
                await handler(payload)
            except Exception as e:
                logger.error("event_handler_failed", event_type=event_type, error=str(e))

    async def publish_batch(self, events: list[tuple[str, dict[str, Any]]]) -> None:
        for event_type, payload in events:
            await self.publish(event_type, payload)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    @property
    def published_events(self) -> list[tuple[str, dict[str, Any]]]:
        return list(self._events)

    def events_of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [payload for kind, payload in self._events if kind == event_type]

    def clear(self) -> None:
        self._events.clear()
