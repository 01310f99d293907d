"""Bot gateway instance aggregate."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from botfleet.domain.events.provisioning_events import (
    InstanceDestroyed,
    InstanceProvisioned,
    InstanceProvisioningFailed,
)
from botfleet.domain.models.backend import BackendKind, DEFAULT_GATEWAY_PORT
from botfleet.domain.models.base import AggregateRoot, utc_now
from botfleet.domain.models.cloud_provider import ContainerHealth
from botfleet.domain.models.targets import TargetConfig


class InstanceStatus(str, Enum):
    """Persisted lifecycle status of a gateway instance."""

    PENDING = "pending"
    CREATING = "creating"
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"
    DELETED = "deleted"


INSTANCE_VALID_TRANSITIONS: dict[InstanceStatus, set[InstanceStatus]] = {
    InstanceStatus.PENDING: {InstanceStatus.CREATING, InstanceStatus.DELETED},
    InstanceStatus.CREATING: {InstanceStatus.RUNNING, InstanceStatus.ERROR},
    InstanceStatus.RUNNING: {
        InstanceStatus.STOPPED, InstanceStatus.ERROR, InstanceStatus.CREATING,
        InstanceStatus.DELETED,
    },
    InstanceStatus.STOPPED: {
        InstanceStatus.RUNNING, InstanceStatus.CREATING, InstanceStatus.DELETED,
    },
    InstanceStatus.ERROR: {
        InstanceStatus.CREATING, InstanceStatus.PENDING, InstanceStatus.DELETED,
    },
    InstanceStatus.DELETED: set(),
}


class BotInstance(AggregateRoot):
    """A messaging-bot gateway instance bound to one deployment target."""

    name: str
    profile_name: str
    target: TargetConfig
    gateway_port: int = DEFAULT_GATEWAY_PORT
    version_tag: str | None = None
    status: InstanceStatus = InstanceStatus.PENDING
    health: ContainerHealth = ContainerHealth.UNKNOWN
    config: dict[str, Any] = Field(default_factory=dict)
    environment: dict[str, str] = Field(default_factory=dict)
    gateway_host: str | None = None
    last_error: str | None = None
    error_count: int = 0
    running_since: datetime | None = None

    @property
    def backend_kind(self) -> BackendKind:
        return self.target.kind

    def _transition_to(self, new_status: InstanceStatus) -> None:
        valid = INSTANCE_VALID_TRANSITIONS.get(self.status, set())
        if new_status not in valid:
            raise InvalidInstanceTransitionError(
                f"Instance cannot transition from {self.status.value} to {new_status.value}"
            )
        self.status = new_status
        self.touch()

    def begin_provisioning(self) -> None:
        self._transition_to(InstanceStatus.CREATING)

    def mark_running(self, gateway_host: str, gateway_port: int) -> None:
        self._transition_to(InstanceStatus.RUNNING)
        self.gateway_host = gateway_host
        self.gateway_port = gateway_port
        self.health = ContainerHealth.HEALTHY
        self.running_since = utc_now()
        self.last_error = None
        self.error_count = 0
        self.add_event(InstanceProvisioned(
            instance_id=self.id,
            backend_kind=self.backend_kind.value,
            endpoint=f"{gateway_host}:{gateway_port}",
        ))

    def mark_failed(self, error_message: str) -> None:
        self._transition_to(InstanceStatus.ERROR)
        self.health = ContainerHealth.UNKNOWN
        self.running_since = None
        self.last_error = error_message
        self.error_count += 1
        self.add_event(InstanceProvisioningFailed(
            instance_id=self.id,
            error_message=error_message,
        ))

    def mark_stopped(self) -> None:
        self._transition_to(InstanceStatus.STOPPED)
        self.running_since = None

    def mark_deleted(self) -> None:
        self._transition_to(InstanceStatus.DELETED)
        self.add_event(InstanceDestroyed(instance_id=self.id))

    def requeue(self) -> None:
        """Put a failed instance back in line for the provisioning worker."""
        self._transition_to(InstanceStatus.PENDING)


class InvalidInstanceTransitionError(Exception):
    """Raised when an invalid instance state transition is attempted."""
