"""Unit tests for the in-memory event publisher."""

from __future__ import annotations

from typing import Any

import pytest

from botfleet.infrastructure.messaging.event_publisher import InMemoryEventPublisher


class TestInMemoryEventPublisher:
    @pytest.mark.asyncio
    async def test_records_events(self, event_publisher: InMemoryEventPublisher) -> None:
        await event_publisher.publish("provisioning.started", {"instance_id": "i-1"})
        await event_publisher.publish_batch([
            ("provisioning.completed", {"instance_id": "i-1"}),
            ("provisioning.started", {"instance_id": "i-2"}),
        ])

        assert [e for e, _ in event_publisher.published_events] == [
            "provisioning.started", "provisioning.completed", "provisioning.started",
        ]
        assert event_publisher.events_of_type("provisioning.started") == [
            {"instance_id": "i-1"}, {"instance_id": "i-2"},
        ]

    @pytest.mark.asyncio
    async def test_handlers_receive_matching_events(
        self, event_publisher: InMemoryEventPublisher
    ) -> None:
        received: list[dict[str, Any]] = []

        async def _handler(payload: dict[str, Any]) -> None:
            received.append(payload)

        event_publisher.subscribe("instance.destroyed", _handler)
        await event_publisher.publish("instance.provisioned", {"instance_id": "i-1"})
        await event_publisher.publish("instance.destroyed", {"instance_id": "i-2"})

        assert received == [{"instance_id": "i-2"}]

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(
        self, event_publisher: InMemoryEventPublisher
    ) -> None:
        received: list[dict[str, Any]] = []

        async def _broken(payload: dict[str, Any]) -> None:
            raise RuntimeError("boom")

        async def _handler(payload: dict[str, Any]) -> None:
            received.append(payload)

        event_publisher.subscribe("instance.destroyed", _broken)
        event_publisher.subscribe("instance.destroyed", _handler)

        await event_publisher.publish("instance.destroyed", {"instance_id": "i-1"})

        assert received == [{"instance_id": "i-1"}]
        assert len(event_publisher.published_events) == 1

    @pytest.mark.asyncio
    async def test_clear(self, event_publisher: InMemoryEventPublisher) -> None:
        await event_publisher.publish("provisioning.started", {})
        event_publisher.clear()
        assert event_publisher.published_events == []
