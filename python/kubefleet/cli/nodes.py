#!/usr/bin/env python3
"""
kubefleet/cli/nodes.py

Reconcile stored clusters with the provider's live inventory.

Usage example:
  python -m kubefleet.cli.nodes sync --cluster-id c-123
  python -m kubefleet.cli.nodes sync --all --state-dir /var/lib/kubefleet
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Mapping, NoReturn, Optional

from kubefleet.cli.common import add_common_arguments, build_store, setup
from kubefleet.errors import FleetError
from kubefleet.fleet.reconciler import reconcile_cluster
from kubefleet.models.providers import ProviderName
from kubefleet.providers import ProviderFactory


def main() -> NoReturn:
    """
    Entry point for the 'nodes' subcommands.
    """
    parser = argparse.ArgumentParser(
        prog="kubefleet.cli.nodes",
        description="Reconcile cluster node maps with cloud inventory.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser(
        "sync", help="Merge newly observed running instances into the cluster."
    )
    target = sync_parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--cluster-id", help="Reconcile a single cluster.")
    target.add_argument(
        "--all", action="store_true", help="Reconcile every stored cluster."
    )
    add_common_arguments(sync_parser)
    sync_parser.set_defaults(func=_sync)

    args = parser.parse_args()

    try:
        asyncio.run(args.func(args))
    except Exception as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
    else:
        sys.exit(0)


async def _sync(
    args: argparse.Namespace,
    providers: Optional[Mapping[ProviderName, ProviderFactory]] = None,
) -> None:
    """
    Reconcile one cluster, or each stored cluster in turn.

    With --all, a failing cluster is reported and the rest are still
    reconciled; the command fails at the end if any cluster failed.
    """
    settings = setup(args)
    store = build_store(settings)
    cluster_ids: List[str] = (
        await store.list_ids() if args.all else [args.cluster_id]
    )

    failed: List[str] = []
    for cluster_id in cluster_ids:
        try:
            report = await reconcile_cluster(cluster_id, store, providers=providers)
        except FleetError as exc:
            if not args.all:
                raise
            print(f"[{cluster_id}] ERROR: {exc}", file=sys.stderr)
            failed.append(cluster_id)
            continue
        added = ", ".join(report.added) if report.added else "none"
        print(
            f"[{cluster_id}] observed {report.observed} instance(s), added: {added}"
        )

    if failed:
        raise FleetError(f"reconcile failed for cluster(s): {', '.join(failed)}")


if __name__ == "__main__":
    main()
