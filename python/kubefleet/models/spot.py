"""
kubefleet/models/spot.py

Pydantic models used by the spot provisioning workflow and the pricing lookup:
 - SpotRequest (capacity intent, never persisted)
 - AWSProvisioningSettings / ProvisioningConfig / ProvisioningProfile
 - SpotLaunchSpec / SpotSubmission (provider-neutral request description)
 - SpotFulfillment / SpotPricePoint (provider responses)
 - TaggedNode / SpotCompletion (outcome of the detached completion task)
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from kubefleet.models.cluster import CloudAccount, Cluster
from kubefleet.models.providers import ProviderName


class SpotRequest(BaseModel):
    """Desired spot capacity for one provisioning call.

    Attributes:
        machine_type: Instance type, e.g. 'm5.large'.
        spot_price: Maximum bid, in the provider's textual price format.
        availability_zone: Zone used to pick the subnet.
        machine_count: Number of instances requested.
    """

    model_config = ConfigDict(frozen=True)

    machine_type: str
    spot_price: str
    availability_zone: str
    machine_count: int = Field(default=1, ge=1)


class AWSProvisioningSettings(BaseModel):
    """AWS network, image and storage identifiers used to launch nodes."""

    region: str
    availability_zone: str = ""
    subnets: Dict[str, str] = Field(
        default_factory=dict, description="Availability zone -> subnet id."
    )
    nodes_security_group_id: str = ""
    image_id: str = ""
    nodes_instance_profile: str = ""
    key_pair_name: str = ""
    volume_size: str = "80"
    volume_type: str = "gp2"
    root_device_name: str = "/dev/sda1"


class ProvisioningConfig(BaseModel):
    """
    Configuration aggregate threaded through a single provisioning operation.
    Built once by the caller and treated as read-only by kubefleet.
    """

    provider: ProviderName
    account: CloudAccount
    cluster: Cluster
    is_master: bool = False
    dry_run: bool = False
    user_data: str = ""
    aws: AWSProvisioningSettings


class ProvisioningProfile(BaseModel):
    """
    The on-disk (YAML) form of a ProvisioningConfig. The cluster and account
    are referenced by id/name and resolved from the cluster-state store.
    """

    cluster_id: str
    is_master: bool = False
    dry_run: bool = False
    user_data: str = ""
    aws: AWSProvisioningSettings

    def to_config(self, cluster: Cluster, account: CloudAccount) -> ProvisioningConfig:
        """Resolve this profile against a loaded cluster and its account."""
        return ProvisioningConfig(
            provider=account.provider,
            account=account,
            cluster=cluster,
            is_master=self.is_master,
            dry_run=self.dry_run,
            user_data=self.user_data,
            aws=self.aws,
        )


class SpotLaunchSpec(BaseModel):
    """What each fulfilled instance is launched with."""

    model_config = ConfigDict(frozen=True)

    instance_profile: str
    subnet_id: str
    security_group_id: str
    image_id: str
    instance_type: str
    key_name: str
    root_device_name: str
    root_volume_size: int
    root_volume_type: str
    delete_on_termination: bool = False
    user_data: str = Field(..., description="Base64 encoded bootstrap script.")


class SpotSubmission(BaseModel):
    """A fully built spot instance request, ready for submission."""

    model_config = ConfigDict(frozen=True)

    request_type: Literal["persistent", "one-time"] = "persistent"
    launch_spec: SpotLaunchSpec
    spot_price: str
    client_token: str
    instance_count: int
    dry_run: bool = False
    valid_from: datetime
    valid_until: datetime


class SpotFulfillment(BaseModel):
    """A described spot request and the instance fulfilling it, if any."""

    request_id: str
    instance_id: Optional[str] = None
    state: str = ""


class SpotPricePoint(BaseModel):
    """One entry of a provider's spot price history."""

    product_description: str
    price: str
    availability_zone: str = ""
    timestamp: Optional[datetime] = None


class TaggedNode(BaseModel):
    """A spot request/instance pair that received the cluster identity tags."""

    request_id: str
    instance_id: str
    node_name: str


class SpotCompletion(BaseModel):
    """
    Outcome of a detached completion task. Only ever delivered to an optional
    callback and to the logs; the original caller has already returned.
    """

    cluster_id: str
    request_ids: List[str] = Field(default_factory=list)
    fulfilled: bool = False
    tagged: List[TaggedNode] = Field(default_factory=list)
    untagged_request_ids: List[str] = Field(default_factory=list)


__all__ = [
    "SpotRequest",
    "AWSProvisioningSettings",
    "ProvisioningConfig",
    "ProvisioningProfile",
    "SpotLaunchSpec",
    "SpotSubmission",
    "SpotFulfillment",
    "SpotPricePoint",
    "TaggedNode",
    "SpotCompletion",
]
