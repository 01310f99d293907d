"""Domain events package."""

from botfleet.domain.events.provisioning_events import (
    InstanceDestroyed,
    InstanceProvisioned,
    InstanceProvisioningFailed,
    ProvisioningCompleted,
    ProvisioningFailed,
    ProvisioningStarted,
    ProvisioningTimedOut,
)


__all__ = [
    "InstanceDestroyed",
    "InstanceProvisioned",
    "InstanceProvisioningFailed",
    "ProvisioningCompleted",
    "ProvisioningFailed",
    "ProvisioningStarted",
    "ProvisioningTimedOut",
]
