"""
kubefleet/models/inventory.py

Defines Pydantic models for the instance inventory returned by a provider and
for the summary of one reconciliation pass.
"""

from __future__ import annotations

from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class InstanceRecord(BaseModel):
    """
    Provider-neutral view of one compute instance.

    Attributes:
        instance_id: Provider instance id.
        instance_type: Instance size/type.
        state_code: Provider lifecycle state code; interpreted only by the adapter.
        public_ip: Public address, if any.
        private_ip: Private address, if any.
        tags: Instance tags as a flat mapping.
    """

    instance_id: str = ""
    instance_type: str = ""
    state_code: Optional[int] = None
    public_ip: Optional[str] = None
    private_ip: Optional[str] = None
    tags: Dict[str, str] = Field(default_factory=dict)


class ReconcileReport(BaseModel):
    """What a reconciliation pass observed and merged."""

    cluster_id: str
    observed: int = 0
    added: List[str] = Field(default_factory=list)
