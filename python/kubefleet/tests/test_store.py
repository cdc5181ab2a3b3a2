"""Tests for the cluster-state stores."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from kubefleet.errors import ClusterNotFound, InvalidConfig
from kubefleet.models.cluster import CloudAccount, Cluster, Machine, MachineRole, MachineState
from kubefleet.store.cluster_store import FileClusterStore, InMemoryClusterStore


def _with_worker(cluster: Cluster) -> Cluster:
    cluster.nodes["worker-a"] = Machine(
        name="worker-a",
        role=MachineRole.worker,
        state=MachineState.active,
        size="m5.large",
        region="us-west-2",
        private_ip="10.0.1.5",
    )
    return cluster


class TestFileClusterStore:
    async def test_cluster_round_trip(self, tmp_path: Path, cluster: Cluster) -> None:
        store = FileClusterStore(str(tmp_path))
        await store.put(_with_worker(cluster))

        loaded = await store.get("c-123")

        assert loaded == cluster
        assert (tmp_path / "clusters" / "c-123.yaml").is_file()
        assert sorted(p.name for p in (tmp_path / "clusters").iterdir()) == ["c-123.yaml"]

    async def test_independent_writers_do_not_collide(
        self, tmp_path: Path, cluster: Cluster
    ) -> None:
        """Two stores over one directory, as with the daemon and a CLI run."""
        first = FileClusterStore(str(tmp_path))
        second = FileClusterStore(str(tmp_path))
        versions = [
            cluster.model_copy(update={"k8s_version": f"1.{minor}.0"})
            for minor in range(20)
        ]

        await asyncio.gather(
            *(
                (first if index % 2 else second).put(version)
                for index, version in enumerate(versions)
            )
        )

        loaded = await first.get("c-123")
        assert loaded.k8s_version in {version.k8s_version for version in versions}
        assert sorted(p.name for p in (tmp_path / "clusters").iterdir()) == ["c-123.yaml"]

    async def test_account_round_trip(self, tmp_path: Path, account: CloudAccount) -> None:
        store = FileClusterStore(str(tmp_path))
        await store.put_account(account)

        assert await store.get_account("demo-aws") == account

    async def test_missing_records(self, tmp_path: Path) -> None:
        store = FileClusterStore(str(tmp_path))

        with pytest.raises(ClusterNotFound):
            await store.get("c-404")
        with pytest.raises(ClusterNotFound):
            await store.get_account("nobody")
        with pytest.raises(ClusterNotFound):
            await store.delete("c-404")

    async def test_list_and_delete(self, tmp_path: Path, cluster: Cluster) -> None:
        store = FileClusterStore(str(tmp_path))
        assert await store.list_ids() == []

        await store.put(cluster)
        await store.put(cluster.model_copy(update={"id": "a-001"}))
        assert await store.list_ids() == ["a-001", "c-123"]

        await store.delete("a-001")
        assert await store.list_ids() == ["c-123"]

    @pytest.mark.parametrize("key", ["../escape", "", "a/b", ".hidden"])
    async def test_rejects_unsafe_keys(self, tmp_path: Path, key: str) -> None:
        with pytest.raises(InvalidConfig):
            await FileClusterStore(str(tmp_path)).get(key)

    async def test_corrupt_document_is_invalid_config(self, tmp_path: Path) -> None:
        (tmp_path / "clusters").mkdir()
        (tmp_path / "clusters" / "c-1.yaml").write_text("name: [unterminated\n")

        with pytest.raises(InvalidConfig):
            await FileClusterStore(str(tmp_path)).get("c-1")

    async def test_schema_mismatch_is_invalid_config(self, tmp_path: Path) -> None:
        (tmp_path / "clusters").mkdir()
        (tmp_path / "clusters" / "c-1.yaml").write_text("name: demo\n")

        with pytest.raises(InvalidConfig):
            await FileClusterStore(str(tmp_path)).get("c-1")


class TestInMemoryClusterStore:
    async def test_returns_copies(self, cluster: Cluster) -> None:
        store = InMemoryClusterStore()
        await store.put(cluster)

        loaded = await store.get("c-123")
        loaded.nodes["ghost"] = Machine(name="ghost")
        cluster.name = "renamed"

        again = await store.get("c-123")
        assert again.nodes == {}
        assert again.name == "demo"

    async def test_delete(self, cluster: Cluster) -> None:
        store = InMemoryClusterStore()
        await store.put(cluster)
        await store.delete("c-123")

        assert await store.list_ids() == []
        with pytest.raises(ClusterNotFound):
            await store.delete("c-123")

    def test_lock_is_per_cluster(self) -> None:
        store = InMemoryClusterStore()

        assert store.lock("c-1") is store.lock("c-1")
        assert store.lock("c-1") is not store.lock("c-2")

    def test_not_found_is_a_key_error(self) -> None:
        assert issubclass(ClusterNotFound, KeyError)
