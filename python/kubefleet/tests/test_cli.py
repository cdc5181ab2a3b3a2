"""Tests for the command-line handlers, run the way `main` runs them."""

from __future__ import annotations

import argparse
import asyncio
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest
import yaml

from kubefleet.cli import fleetctl, nodes, spot
from kubefleet.errors import FleetError
from kubefleet.models.cluster import CloudAccount, Cluster
from kubefleet.models.spot import ProvisioningConfig, ProvisioningProfile
from kubefleet.store.cluster_store import FileClusterStore


def _common_args(tmp_path: Path) -> Dict[str, Any]:
    settings = tmp_path / "settings.yaml"
    settings.write_text("log_level: INFO\n")
    return {
        "settings": str(settings),
        "state_dir": str(tmp_path / "state"),
        "log_level": None,
    }


def _seed_store(tmp_path: Path, account: CloudAccount, *clusters: Cluster) -> FileClusterStore:
    store = FileClusterStore(str(tmp_path / "state"))

    async def _seed() -> None:
        await store.put_account(account)
        for cluster in clusters:
            await store.put(cluster)

    asyncio.run(_seed())
    return store


class TestSpotRequest:
    def _args(self, tmp_path: Path, provisioning_config: ProvisioningConfig) -> argparse.Namespace:
        profile = ProvisioningProfile(
            cluster_id="c-123",
            user_data=provisioning_config.user_data,
            aws=provisioning_config.aws,
        )
        profile_path = tmp_path / "spot.yaml"
        profile_path.write_text(yaml.safe_dump(profile.model_dump(mode="json")))
        return argparse.Namespace(
            profile=str(profile_path),
            machine_type="m5.large",
            price="0.05",
            zone="us-west-2a",
            count=1,
            timeout=None,
            **_common_args(tmp_path),
        )

    def test_tags_capacity_before_the_process_exits(
        self,
        tmp_path: Path,
        cluster: Cluster,
        account: CloudAccount,
        provisioning_config: ProvisioningConfig,
        fake_provider: Any,
        providers: Dict,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Fulfillment that outlasts submission still gets tagged."""
        _seed_store(tmp_path, account, cluster)
        original_wait = fake_provider.wait_until_fulfilled

        async def _slow_wait(request_ids: List[str]) -> None:
            await asyncio.sleep(0.05)
            await original_wait(request_ids)

        fake_provider.wait_until_fulfilled = _slow_wait

        asyncio.run(spot._request(self._args(tmp_path, provisioning_config), providers))

        assert len(fake_provider.submitted) == 1
        assert len(fake_provider.tag_calls) == 1
        resources, tags = fake_provider.tag_calls[0]
        assert resources == ["i-1", "sir-1"]
        assert tags["ClusterID"] == "c-123"
        assert "instance i-1 (sir-1)" in capsys.readouterr().out

    def test_exit_without_waiting_is_not_offered(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(
            sys,
            "argv",
            [
                "kubefleet.cli.spot",
                "request",
                "--profile",
                "spot.yaml",
                "--machine-type",
                "m5.large",
                "--price",
                "0.05",
                "--zone",
                "us-west-2a",
                "--no-wait",
            ],
        )

        with pytest.raises(SystemExit) as exc_info:
            spot.main()

        assert exc_info.value.code == 2


class TestNodesSync:
    async def test_all_continues_past_a_failing_cluster(
        self,
        tmp_path: Path,
        cluster: Cluster,
        account: CloudAccount,
        fake_provider: Any,
        providers: Dict,
        make_instance: Any,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        store = FileClusterStore(str(tmp_path / "state"))
        await store.put_account(account)
        await store.put(Cluster(id="a-000", name="orphan", account_name="missing-account"))
        await store.put(cluster)
        fake_provider.instances = [make_instance("10.0.1.5", "worker-a")]
        args = argparse.Namespace(cluster_id=None, all=True, **_common_args(tmp_path))

        with pytest.raises(FleetError) as exc_info:
            await nodes._sync(args, providers)

        assert "a-000" in str(exc_info.value)
        assert list((await store.get("c-123")).nodes) == ["worker-a"]
        captured = capsys.readouterr()
        assert "[c-123] observed 1 instance(s), added: worker-a" in captured.out
        assert "[a-000]" in captured.err

    async def test_single_cluster_failure_propagates(
        self, tmp_path: Path, providers: Dict
    ) -> None:
        args = argparse.Namespace(cluster_id="c-404", all=False, **_common_args(tmp_path))

        with pytest.raises(FleetError):
            await nodes._sync(args, providers)


class TestFleetctl:
    def test_dispatches_to_module(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: List[List[str]] = []
        monkeypatch.setattr(sys, "argv", ["fleetctl", "nodes", "sync", "--all"])
        monkeypatch.setattr(subprocess, "call", lambda cmd: calls.append(cmd) or 0)

        with pytest.raises(SystemExit) as exc_info:
            fleetctl.main()

        assert exc_info.value.code == 0
        assert calls == [[sys.executable, "-m", "kubefleet.cli.nodes", "sync", "--all"]]

    @pytest.mark.parametrize("argv", [["fleetctl"], ["fleetctl", "secrets"]])
    def test_unknown_or_missing_subcommand(
        self,
        argv: List[str],
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setattr(sys, "argv", argv)
        monkeypatch.setattr(subprocess, "call", lambda cmd: pytest.fail("must not dispatch"))

        with pytest.raises(SystemExit) as exc_info:
            fleetctl.main()

        assert exc_info.value.code == 1
        assert "nodes, spot, accounts, clusters" in capsys.readouterr().out
