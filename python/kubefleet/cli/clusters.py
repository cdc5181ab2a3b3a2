#!/usr/bin/env python3
"""
kubefleet/cli/clusters.py

Create and inspect cluster records.

Usage example:
  python -m kubefleet.cli.clusters import-kubeconfig --kubeconfig admin.conf \
      --cluster-id c-123 --region us-west-2 --account demo-aws
  python -m kubefleet.cli.clusters discover --cluster-id c-123 --kubeconfig admin.conf
  python -m kubefleet.cli.clusters show --cluster-id c-123
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import NoReturn

import aiofiles
import yaml

from kubefleet.cli.common import add_common_arguments, build_store, setup
from kubefleet.utils.kube import (
    cluster_from_kubeconfig,
    discover_helm_version,
    discover_k8s_version,
    load_kubeconfig,
)


def main() -> NoReturn:
    """
    Entry point for the 'clusters' subcommands.
    """
    parser = argparse.ArgumentParser(
        prog="kubefleet.cli.clusters",
        description="Create and inspect cluster records.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser(
        "import-kubeconfig", help="Create a cluster record from a kubeconfig."
    )
    import_parser.add_argument("--kubeconfig", required=True)
    import_parser.add_argument("--cluster-id", required=True)
    import_parser.add_argument("--region", default=None, help="Defaults to settings.")
    import_parser.add_argument("--account", required=True, help="Cloud account name.")
    add_common_arguments(import_parser)
    import_parser.set_defaults(func=_import_kubeconfig)

    discover_parser = subparsers.add_parser(
        "discover", help="Record the cluster's Kubernetes and Helm versions."
    )
    discover_parser.add_argument("--cluster-id", required=True)
    discover_parser.add_argument("--kubeconfig", required=True)
    add_common_arguments(discover_parser)
    discover_parser.set_defaults(func=_discover)

    show_parser = subparsers.add_parser("show", help="Print a cluster record as YAML.")
    show_parser.add_argument("--cluster-id", required=True)
    add_common_arguments(show_parser)
    show_parser.set_defaults(func=_show)

    args = parser.parse_args()

    try:
        asyncio.run(args.func(args))
    except Exception as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
    else:
        sys.exit(0)


async def _import_kubeconfig(args: argparse.Namespace) -> None:
    settings = setup(args)
    async with aiofiles.open(args.kubeconfig, mode="r", encoding="utf-8") as handle:
        kubeconfig = load_kubeconfig(await handle.read())

    cluster = cluster_from_kubeconfig(
        kubeconfig,
        cluster_id=args.cluster_id,
        region=args.region or settings.default_region,
        account_name=args.account,
    )
    await build_store(settings).put(cluster)
    print(f"Imported cluster '{cluster.name}' as {cluster.id} ({cluster.external_dns_name}).")


async def _discover(args: argparse.Namespace) -> None:
    settings = setup(args)
    store = build_store(settings)
    k8s_version, helm_version = await asyncio.gather(
        discover_k8s_version(args.kubeconfig),
        discover_helm_version(args.kubeconfig),
    )
    async with store.lock(args.cluster_id):
        cluster = await store.get(args.cluster_id)
        cluster.k8s_version = k8s_version
        cluster.helm_version = helm_version
        await store.put(cluster)
    print(f"[{cluster.id}] kubernetes {k8s_version or '-'}, helm {helm_version or '-'}")


async def _show(args: argparse.Namespace) -> None:
    settings = setup(args)
    cluster = await build_store(settings).get(args.cluster_id)
    data = cluster.model_dump(mode="json", exclude={"auth"})
    print(yaml.safe_dump(data, sort_keys=False), end="")


if __name__ == "__main__":
    main()
