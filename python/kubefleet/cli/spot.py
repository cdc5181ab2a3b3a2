#!/usr/bin/env python3
"""
kubefleet/cli/spot.py

Request spot capacity for a stored cluster and look up spot prices.

The --profile file is a YAML ProvisioningProfile, e.g.:

  cluster_id: c-123
  is_master: false
  user_data: |
    curl -sfL https://example.invalid/bootstrap.sh | sh -
  aws:
    region: us-west-2
    availability_zone: us-west-2a
    subnets: {us-west-2a: subnet-0abc}
    nodes_security_group_id: sg-0abc
    image_id: ami-0abc
    nodes_instance_profile: demo-nodes
    key_pair_name: demo
    volume_size: "80"

Usage example:
  python -m kubefleet.cli.spot request --profile spot.yaml \
      --machine-type m5.large --price 0.05 --zone us-west-2a --count 2
  python -m kubefleet.cli.spot prices --profile spot.yaml --machine-type m5.large
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Mapping, NoReturn, Optional

from kubefleet.cli.common import add_common_arguments, build_store, read_yaml_file, setup
from kubefleet.fleet.pricing import get_spot_prices
from kubefleet.fleet.spot import request_spot_capacity, wait_for_pending_completions
from kubefleet.models.providers import ProviderName
from kubefleet.models.spot import ProvisioningConfig, ProvisioningProfile, SpotRequest
from kubefleet.models.validator import validate_type
from kubefleet.providers import ProviderFactory


def main() -> NoReturn:
    """
    Entry point for the 'spot' subcommands.
    """
    parser = argparse.ArgumentParser(
        prog="kubefleet.cli.spot",
        description="Spot capacity requests and spot price lookup.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    request_parser = subparsers.add_parser(
        "request", help="Submit a persistent spot request for a cluster."
    )
    request_parser.add_argument("--profile", required=True, help="Provisioning profile YAML.")
    request_parser.add_argument("--machine-type", required=True)
    request_parser.add_argument("--price", required=True, help="Maximum spot price, e.g. 0.05.")
    request_parser.add_argument("--zone", required=True, help="Availability zone.")
    request_parser.add_argument("--count", type=int, default=1)
    request_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up if the request cannot be submitted within this many seconds.",
    )
    add_common_arguments(request_parser)
    request_parser.set_defaults(func=_request)

    prices_parser = subparsers.add_parser(
        "prices", help="Show the last week of Linux/UNIX spot prices."
    )
    prices_parser.add_argument("--profile", required=True, help="Provisioning profile YAML.")
    prices_parser.add_argument("--machine-type", required=True)
    add_common_arguments(prices_parser)
    prices_parser.set_defaults(func=_prices)

    args = parser.parse_args()

    try:
        asyncio.run(args.func(args))
    except Exception as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
    else:
        sys.exit(0)


async def _load_config(args: argparse.Namespace) -> ProvisioningConfig:
    """
    Read the profile and resolve its cluster and account from the store.
    """
    settings = setup(args)
    store = build_store(settings)
    profile = validate_type(
        read_yaml_file(args.profile), ProvisioningProfile, source=args.profile
    )
    cluster = await store.get(profile.cluster_id)
    account = await store.get_account(cluster.account_name)
    return profile.to_config(cluster, account)


async def _request(
    args: argparse.Namespace,
    providers: Optional[Mapping[ProviderName, ProviderFactory]] = None,
) -> None:
    """
    Submit the request, then stay until the completion task has tagged the
    fulfilled instances. Leaving earlier would cancel it and leave untagged
    capacity that reconciliation never picks up.
    """
    config = await _load_config(args)
    intent = SpotRequest(
        machine_type=args.machine_type,
        spot_price=args.price,
        availability_zone=args.zone,
        machine_count=args.count,
    )
    await request_spot_capacity(
        intent, config, providers=providers, timeout=args.timeout
    )
    print(f"[{config.cluster.id}] spot request accepted.")

    print("Waiting for fulfillment...")
    for completion in await wait_for_pending_completions():
        for tagged in completion.tagged:
            print(f"  {tagged.node_name}: instance {tagged.instance_id} ({tagged.request_id})")
        for request_id in completion.untagged_request_ids:
            print(f"  {request_id}: not tagged, see logs", file=sys.stderr)


async def _prices(
    args: argparse.Namespace,
    providers: Optional[Mapping[ProviderName, ProviderFactory]] = None,
) -> None:
    config = await _load_config(args)
    prices = await get_spot_prices(args.machine_type, config, providers=providers)
    if not prices:
        print(f"No Linux/UNIX spot prices for {args.machine_type}.")
        return
    for price in prices:
        print(price)


if __name__ == "__main__":
    main()
