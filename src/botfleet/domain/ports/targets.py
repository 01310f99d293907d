"""Deployment target port: the contract every execution backend satisfies."""

from __future__ import annotations

from abc import ABC, abstractmethod

from botfleet.domain.models.backend import (
    BackendKind,
    ConfigureResult,
    GatewayConfigPayload,
    GatewayEndpoint,
    InstallOptions,
    InstallResult,
    LogQuery,
    TargetStatus,
)


class DeploymentTarget(ABC):
    """Port for one execution backend of a gateway instance.

    Resource identifiers are derived from the profile name, so a freshly
    constructed target can re-attach to an existing deployment.
    """

    kind: BackendKind

    @abstractmethod
    async def install(self, options: InstallOptions) -> InstallResult:
        """Create the instance's resources. Safe to call again for the same profile."""

    @abstractmethod
    async def configure(self, payload: GatewayConfigPayload) -> ConfigureResult:
        """Create or update the gateway configuration. Never restarts the workload."""

    @abstractmethod
    async def start(self) -> None:
        """Start the workload."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop the workload without removing it."""

    @abstractmethod
    async def restart(self) -> None:
        """Force a fresh deployment so new configuration or image is picked up."""

    @abstractmethod
    async def get_status(self) -> TargetStatus:
        """Report the workload state. Missing resources map to not-installed."""

    @abstractmethod
    async def get_logs(self, query: LogQuery | None = None) -> list[str]:
        """Read recent gateway log lines. Returns [] when logs cannot be read."""

    @abstractmethod
    async def get_endpoint(self) -> GatewayEndpoint:
        """Resolve the externally reachable gateway address."""

    @abstractmethod
    async def destroy(self) -> None:
        """Remove every resource the target created. Absent resources are ignored."""


class EndpointResolutionError(Exception):
    """Raised when a gateway endpoint cannot be resolved."""


class TargetConfigurationError(Exception):
    """Raised when a target is constructed from incomplete configuration."""
