"""Provider selection by platform type."""

from __future__ import annotations

from collections.abc import Callable

from botfleet.domain.models.cloud_provider import CloudProviderType
from botfleet.domain.ports.providers import CloudProvider
from botfleet.infrastructure.providers.azure_aci import AzureContainerInstancesProvider
from botfleet.infrastructure.providers.simulated import SimulatedProvider
from botfleet.infrastructure.providers.unimplemented import UnimplementedProvider


PROVIDER_BUILDERS: dict[CloudProviderType, Callable[[], CloudProvider]] = {
    CloudProviderType.AZURE: AzureContainerInstancesProvider,
    CloudProviderType.SIMULATED: SimulatedProvider,
    CloudProviderType.AWS: lambda: UnimplementedProvider(CloudProviderType.AWS),
    CloudProviderType.GCP: lambda: UnimplementedProvider(CloudProviderType.GCP),
    CloudProviderType.DIGITALOCEAN: lambda: UnimplementedProvider(CloudProviderType.DIGITALOCEAN),
}


def create_provider(provider_type: CloudProviderType) -> CloudProvider:
    """Build an uninitialized provider for ``provider_type``."""
    builder = PROVIDER_BUILDERS.get(provider_type)
    if builder is None:
        raise UnsupportedProviderError(f"No provider registered for {provider_type.value}")
    return builder()


class UnsupportedProviderError(Exception):
    """Raised when no provider is registered for a platform type."""
