"""
kubefleet/providers/base.py

Defines the CloudProvider interface: the instance inventory, spot market and
pricing surface that the reconciler, the spot workflow and the pricing lookup
are written against. Adapters raise ProviderError for every remote failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, List, Optional

from kubefleet.models.cluster import CloudAccount
from kubefleet.models.inventory import InstanceRecord
from kubefleet.models.providers import ProviderName
from kubefleet.models.spot import SpotFulfillment, SpotPricePoint, SpotSubmission

# Tag keys that make an instance discoverable by the reconciler.
TAG_NODE_NAME = "Name"
TAG_CLUSTER_ID = "ClusterID"
TAG_CLUSTER_NAME = "KubernetesCluster"
TAG_ROLE = "Role"


class CloudProvider(ABC):
    """Provider adapter used by the fleet workflows.

    Subclasses own everything provider-specific: SDK clients, request shapes,
    state codes and error translation.
    """

    name: ProviderName

    @abstractmethod
    def is_running(self, state_code: Optional[int]) -> bool:
        """Whether a provider lifecycle state code means 'running'."""

    @abstractmethod
    async def describe_instances(self, cluster_id: str) -> List[InstanceRecord]:
        """List instances carrying the cluster identity tag `cluster_id`."""

    @abstractmethod
    async def submit_spot_request(self, submission: SpotSubmission) -> List[str]:
        """Submit a spot request and return the ids of the created requests."""

    @abstractmethod
    async def wait_until_fulfilled(self, request_ids: List[str]) -> None:
        """Block until every request is fulfilled, or the adapter gives up."""

    @abstractmethod
    async def describe_spot_requests(
        self, request_ids: List[str]
    ) -> List[SpotFulfillment]:
        """Describe spot requests, including the instance fulfilling each one."""

    @abstractmethod
    async def tag_resources(
        self, resource_ids: List[str], tags: Dict[str, str]
    ) -> None:
        """Apply `tags` to every resource in `resource_ids`."""

    @abstractmethod
    async def describe_price_history(
        self,
        availability_zone: str,
        instance_type: str,
        start: datetime,
        end: datetime,
    ) -> List[SpotPricePoint]:
        """Spot price history for one instance type, in provider order."""


ProviderFactory = Callable[[CloudAccount, str], CloudProvider]
"""Builds a provider client for an account and a region.

Factories raise ClientConstructionFailed when the client cannot be built.
"""


__all__ = [
    "CloudProvider",
    "ProviderFactory",
    "TAG_NODE_NAME",
    "TAG_CLUSTER_ID",
    "TAG_CLUSTER_NAME",
    "TAG_ROLE",
]
