"""
kubefleet/store/cluster_store.py

Cluster-state store: get/put access to Cluster aggregates keyed by cluster id,
and to CloudAccounts keyed by name.

Each store also hands out one asyncio.Lock per cluster id. Anything that
mutates a cluster's node maps (the reconciler in particular) holds that lock
for the whole load/modify/save cycle, giving a single writer per cluster
within one process. Separate processes (the daemon and a CLI run) are not
serialised against each other; each file write is still atomic, so the last
save wins and a reader never sees a partial document.

Two implementations:
 - InMemoryClusterStore: dictionaries of deep copies, for tests and embedding.
 - FileClusterStore: one YAML document per record under a state directory.
"""

from __future__ import annotations

import asyncio
import os
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Type, TypeVar

import aiofiles
import aiofiles.os
import aiofiles.tempfile
import yaml
from pydantic import BaseModel

from kubefleet.errors import ClusterNotFound, InvalidConfig
from kubefleet.models.cluster import CloudAccount, Cluster
from kubefleet.models.validator import validate_type

M = TypeVar("M", bound=BaseModel)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def _check_key(kind: str, key: str) -> str:
    if not _KEY_PATTERN.match(key):
        raise InvalidConfig(f"Invalid {kind} key: {key!r}")
    return key


class ClusterStore(ABC):
    """Interface of the cluster-state store."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock(self, cluster_id: str) -> asyncio.Lock:
        """Return the lock serialising writers of `cluster_id`."""
        return self._locks.setdefault(cluster_id, asyncio.Lock())

    @abstractmethod
    async def get(self, cluster_id: str) -> Cluster:
        """Load a cluster. Raises ClusterNotFound if missing."""

    @abstractmethod
    async def put(self, cluster: Cluster) -> None:
        """Create or replace a cluster record."""

    @abstractmethod
    async def delete(self, cluster_id: str) -> None:
        """Delete a cluster record. Raises ClusterNotFound if missing."""

    @abstractmethod
    async def list_ids(self) -> List[str]:
        """Ids of all stored clusters, sorted."""

    @abstractmethod
    async def get_account(self, name: str) -> CloudAccount:
        """Load a cloud account. Raises ClusterNotFound if missing."""

    @abstractmethod
    async def put_account(self, account: CloudAccount) -> None:
        """Create or replace a cloud account."""


class InMemoryClusterStore(ClusterStore):
    """Keeps deep copies so callers never share mutable state with the store."""

    def __init__(self) -> None:
        super().__init__()
        self._clusters: Dict[str, Cluster] = {}
        self._accounts: Dict[str, CloudAccount] = {}

    async def get(self, cluster_id: str) -> Cluster:
        if cluster_id not in self._clusters:
            raise ClusterNotFound(f"cluster {cluster_id} not found")
        return self._clusters[cluster_id].model_copy(deep=True)

    async def put(self, cluster: Cluster) -> None:
        self._clusters[cluster.id] = cluster.model_copy(deep=True)

    async def delete(self, cluster_id: str) -> None:
        if self._clusters.pop(cluster_id, None) is None:
            raise ClusterNotFound(f"cluster {cluster_id} not found")

    async def list_ids(self) -> List[str]:
        return sorted(self._clusters)

    async def get_account(self, name: str) -> CloudAccount:
        if name not in self._accounts:
            raise ClusterNotFound(f"cloud account {name} not found")
        return self._accounts[name].model_copy(deep=True)

    async def put_account(self, account: CloudAccount) -> None:
        self._accounts[account.name] = account.model_copy(deep=True)


class FileClusterStore(ClusterStore):
    """
    Stores records as YAML under `state_dir`:

        <state_dir>/clusters/<cluster id>.yaml
        <state_dir>/accounts/<account name>.yaml

    Writes go to a uniquely named temporary file in the same directory that
    is then renamed over the target, so concurrent writers never share a
    temporary file and a reader never sees a half-written document.
    """

    def __init__(self, state_dir: str) -> None:
        super().__init__()
        self.state_dir = state_dir

    def _path(self, kind: str, key: str) -> str:
        return os.path.join(self.state_dir, kind, f"{_check_key(kind, key)}.yaml")

    async def _read(self, kind: str, key: str, model: Type[M]) -> M:
        path = self._path(kind, key)
        if not await aiofiles.os.path.isfile(path):
            raise ClusterNotFound(f"{kind[:-1]} {key} not found")
        async with aiofiles.open(path, mode="r", encoding="utf-8") as handle:
            text = await handle.read()
        try:
            raw: Any = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise InvalidConfig(f"Unreadable YAML in {path}: {exc}") from exc
        return validate_type(raw, model, source=path)

    async def _write(self, kind: str, key: str, record: BaseModel) -> None:
        path = self._path(kind, key)
        await aiofiles.os.makedirs(os.path.dirname(path), exist_ok=True)
        body = yaml.safe_dump(record.model_dump(mode="json"), sort_keys=False)
        async with aiofiles.tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=os.path.dirname(path),
            prefix=f".{key}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            tmp_path = handle.name
            await handle.write(body)
        try:
            await aiofiles.os.replace(tmp_path, path)
        except OSError:
            await aiofiles.os.remove(tmp_path)
            raise

    async def get(self, cluster_id: str) -> Cluster:
        return await self._read("clusters", cluster_id, Cluster)

    async def put(self, cluster: Cluster) -> None:
        await self._write("clusters", cluster.id, cluster)

    async def delete(self, cluster_id: str) -> None:
        path = self._path("clusters", cluster_id)
        if not await aiofiles.os.path.isfile(path):
            raise ClusterNotFound(f"cluster {cluster_id} not found")
        await aiofiles.os.remove(path)

    async def list_ids(self) -> List[str]:
        directory = os.path.join(self.state_dir, "clusters")
        if not await aiofiles.os.path.isdir(directory):
            return []
        names = await aiofiles.os.listdir(directory)
        return sorted(name[: -len(".yaml")] for name in names if name.endswith(".yaml"))

    async def get_account(self, name: str) -> CloudAccount:
        return await self._read("accounts", name, CloudAccount)

    async def put_account(self, account: CloudAccount) -> None:
        await self._write("accounts", account.name, account)


__all__ = ["ClusterStore", "InMemoryClusterStore", "FileClusterStore"]
