"""
kubefleet.providers

Registry of provider adapters. Workflows look a provider up here before doing
anything else, so an unregistered provider is rejected without constructing a
client.
"""

import asyncio
from typing import Dict, Mapping, Optional

from kubefleet.errors import UnsupportedProvider
from kubefleet.models.cluster import CloudAccount
from kubefleet.models.providers import ProviderName
from kubefleet.providers.aws import AWSProvider
from kubefleet.providers.base import (
    TAG_CLUSTER_ID,
    TAG_CLUSTER_NAME,
    TAG_NODE_NAME,
    TAG_ROLE,
    CloudProvider,
    ProviderFactory,
)

PROVIDER_FACTORIES: Dict[ProviderName, ProviderFactory] = {
    ProviderName.aws: AWSProvider.from_account,
}


def get_provider_factory(
    provider: ProviderName,
    factories: Optional[Mapping[ProviderName, ProviderFactory]] = None,
) -> ProviderFactory:
    """Return the factory registered for `provider`.

    Args:
        provider: The provider enum (aws, azure, gcp).
        factories: Registry to consult; defaults to PROVIDER_FACTORIES.

    Raises:
        UnsupportedProvider: If nothing is registered for `provider`.
    """
    registry = PROVIDER_FACTORIES if factories is None else factories
    factory = registry.get(provider)
    if factory is None:
        raise UnsupportedProvider(f"Unsupported provider: {ProviderName(provider).value}")
    return factory


async def build_provider(
    provider: ProviderName,
    account: CloudAccount,
    region: str,
    factories: Optional[Mapping[ProviderName, ProviderFactory]] = None,
) -> CloudProvider:
    """
    Look up the factory for `provider` and build a client for `region`.

    Factories are synchronous and may load SDK data from disk (botocore
    service models), so they run in a worker thread. The registry lookup
    happens first, on the caller's thread.

    Raises:
        UnsupportedProvider: If nothing is registered for `provider`.
        ClientConstructionFailed: If the factory cannot build a client.
    """
    factory = get_provider_factory(provider, factories)
    return await asyncio.to_thread(factory, account, region)


__all__ = [
    "build_provider",
    "CloudProvider",
    "ProviderFactory",
    "PROVIDER_FACTORIES",
    "get_provider_factory",
    "AWSProvider",
    "TAG_CLUSTER_ID",
    "TAG_CLUSTER_NAME",
    "TAG_NODE_NAME",
    "TAG_ROLE",
]
