"""
kubefleet/models/cluster.py

Pydantic models for the cluster aggregate:
 - Machine (one compute instance bound to a cluster)
 - ClusterAuth
 - Cluster (owns the master and worker node maps)
 - CloudAccount
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from kubefleet.models.providers import ProviderName


class MachineRole(str, Enum):
    master = "master"
    worker = "worker"


class MachineState(str, Enum):
    planned = "planned"
    provisioning = "provisioning"
    active = "active"
    deleting = "deleting"
    deleted = "deleted"
    error = "error"


class Machine(BaseModel):
    """
    Represents one compute instance bound (or being bound) to a cluster.

    Attributes:
        name: Node name, assigned by kubefleet through the instance's name tag.
        role: master or worker.
        state: Lifecycle state.
        size: Instance size/type (e.g. 'm5.large').
        region: Cloud region of the instance.
        private_ip: Private address; the identity used for deduplication.
        public_ip: Public address, absent for instances without external addressing.
    """

    name: str
    role: MachineRole = MachineRole.worker
    state: MachineState = MachineState.planned
    size: str = ""
    region: str = ""
    private_ip: str = ""
    public_ip: Optional[str] = None


class ClusterAuth(BaseModel):
    """PEM material needed to talk to the cluster API as an administrator."""

    ca_cert: str = ""
    admin_cert: str = ""
    admin_key: str = ""


class Cluster(BaseModel):
    """
    The cluster aggregate. It is the single owner of its Machine entries.

    A node name present in `masters` must never be merged into `nodes`; the
    reconciler enforces this, not the map type.
    """

    id: str
    name: str
    region: str = ""
    account_name: str = ""
    external_dns_name: str = ""
    auth: ClusterAuth = Field(default_factory=ClusterAuth)
    k8s_version: str = ""
    helm_version: str = ""
    masters: Dict[str, Machine] = Field(default_factory=dict)
    nodes: Dict[str, Machine] = Field(default_factory=dict)


class CloudAccount(BaseModel):
    """
    Opaque credential bundle for a specific provider. The credentials mapping
    is only interpreted by the provider adapter when it builds a client.
    """

    name: str
    provider: ProviderName
    credentials: Dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "MachineRole",
    "MachineState",
    "Machine",
    "ClusterAuth",
    "Cluster",
    "CloudAccount",
]
