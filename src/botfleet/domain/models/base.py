"""Base domain model classes."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr


def generate_id() -> str:
    """Generate a unique identifier."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


class DomainEntity(BaseModel):
    """Base class for persisted domain entities."""

    id: str = Field(default_factory=generate_id)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def touch(self) -> None:
        """Refresh the modification timestamp."""
        self.updated_at = utc_now()

    model_config = {"frozen": False, "validate_assignment": True}


class ValueObject(BaseModel):
    """Base class for value objects (immutable)."""

    model_config = {"frozen": True}


class DomainEvent(BaseModel):
    """Base class for domain events."""

    event_id: str = Field(default_factory=generate_id)
    event_type: str = ""
    instance_id: str = ""
    occurred_at: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class AggregateRoot(DomainEntity):
    """Entity that records domain events until they are collected."""

    _domain_events: list[DomainEvent] = PrivateAttr(default_factory=list)

    def add_event(self, event: DomainEvent) -> None:
        self._domain_events.append(event)

    def collect_events(self) -> list[DomainEvent]:
        """Collect and clear all pending domain events."""
        events = list(self._domain_events)
        self._domain_events.clear()
        return events

    @property
    def pending_events(self) -> list[DomainEvent]:
        return list(self._domain_events)
