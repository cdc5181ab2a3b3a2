"""
kubefleet/daemon.py

A daemon that keeps every stored cluster reconciled:
  1) Loads settings and opens the file-backed cluster-state store.
  2) Each loop iteration:
       - Lists stored clusters.
       - Reconciles each one under its store lock. A failing cluster is
         logged and does not stop the others.
       - Sleeps for the configured interval.
  3) On cancellation, logs and stops.

Spot requests are not submitted from here; `kubefleet.cli.spot request`
stays alive until its own completion task has tagged the instances.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Mapping, Optional

from kubefleet.cli.common import add_common_arguments, build_store, setup
from kubefleet.errors import FleetError
from kubefleet.fleet.reconciler import reconcile_cluster
from kubefleet.models.providers import ProviderName
from kubefleet.providers import ProviderFactory
from kubefleet.store.cluster_store import ClusterStore

logger = logging.getLogger(__name__)


async def reconcile_all(
    store: ClusterStore,
    *,
    providers: Optional[Mapping[ProviderName, ProviderFactory]] = None,
) -> None:
    """Run one reconciliation pass over every stored cluster."""
    for cluster_id in await store.list_ids():
        try:
            report = await reconcile_cluster(cluster_id, store, providers=providers)
        except FleetError as exc:
            logger.error("Reconcile cluster %s failed: %s", cluster_id, exc)
            continue
        if report.added:
            logger.info("Cluster %s: added %s", cluster_id, ", ".join(report.added))


async def main(
    args: argparse.Namespace,
    providers: Optional[Mapping[ProviderName, ProviderFactory]] = None,
) -> None:
    """Main daemon loop."""
    settings = setup(args)
    store = build_store(settings)
    logger.info(
        "Daemon starting (state dir %s, interval %.0fs)",
        settings.resolved_state_dir(),
        settings.reconcile_interval_seconds,
    )

    try:
        while True:
            await reconcile_all(store, providers=providers)
            await asyncio.sleep(settings.reconcile_interval_seconds)
    except asyncio.CancelledError:
        logger.info("Daemon shutting down (cancelled).")
        raise


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        prog="kubefleet.daemon", description="Periodic cluster reconciliation."
    )
    add_common_arguments(parser)
    try:
        asyncio.run(main(parser.parse_args()))
    except KeyboardInterrupt:
        pass
