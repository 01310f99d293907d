"""Provisioning domain events."""

from __future__ import annotations

from botfleet.domain.models.base import DomainEvent


class ProvisioningStarted(DomainEvent):
    """Emitted when a provisioning run starts."""

    backend_kind: str
    step_count: int
    event_type: str = "provisioning.started"


class ProvisioningCompleted(DomainEvent):
    """Emitted when a provisioning run completes successfully."""

    event_type: str = "provisioning.completed"


class ProvisioningFailed(DomainEvent):
    """Emitted when a provisioning run fails."""

    error_message: str
    failed_step: str | None = None
    event_type: str = "provisioning.failed"


class ProvisioningTimedOut(DomainEvent):
    """Emitted when a provisioning run does not finish in time."""

    current_step: str
    event_type: str = "provisioning.timed_out"


class InstanceProvisioned(DomainEvent):
    """Emitted when an instance reaches RUNNING."""

    backend_kind: str
    endpoint: str
    event_type: str = "instance.provisioned"


class InstanceProvisioningFailed(DomainEvent):
    """Emitted when an instance transitions to ERROR."""

    error_message: str
    event_type: str = "instance.provisioning_failed"


class InstanceDestroyed(DomainEvent):
    """Emitted when an instance is torn down."""

    event_type: str = "instance.destroyed"
