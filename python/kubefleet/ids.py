"""
kubefleet/ids.py

Injectable sources of identifiers and time, plus the node naming helpers used
when tagging freshly fulfilled spot instances.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable

from typing_extensions import Protocol

from kubefleet.models.cluster import MachineRole

Clock = Callable[[], datetime]


class IdSource(Protocol):
    """Produces idempotency tokens and short random name suffixes."""

    def client_token(self) -> str:
        ...

    def short_suffix(self) -> str:
        ...


class UUIDSource:
    """Default IdSource backed by uuid4."""

    def client_token(self) -> str:
        return str(uuid.uuid4())

    def short_suffix(self) -> str:
        return uuid.uuid4().hex[:4]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def make_role(is_master: bool) -> MachineRole:
    return MachineRole.master if is_master else MachineRole.worker


def make_node_name(cluster_name: str, suffix: str, is_master: bool) -> str:
    """
    Build a node name of the form '<cluster>-<suffix>-<role>',
    e.g. 'demo-1a2b-worker'.
    """
    return f"{cluster_name}-{suffix}-{make_role(is_master).value}"
