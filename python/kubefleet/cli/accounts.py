#!/usr/bin/env python3
"""
kubefleet/cli/accounts.py

Adds a 'store-key-from-csv' subcommand for turning AWS credentials (the CSV
file downloaded via the AWS console) into a stored CloudAccount, with Pydantic
validation using AWSApiKey.

Usage example:
  python -m kubefleet.cli.accounts store-key-from-csv \
      --csv-file my_aws_creds.csv \
      --name demo-aws

We enforce a strict 2×2 CSV shape:
  - Row 0: The column headers ("Access key ID", "Secret access key")
  - Row 1: The credential values
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from typing import NoReturn

import pandas as pd

from kubefleet.cli.common import add_common_arguments, build_store, setup
from kubefleet.errors import InvalidConfig
from kubefleet.models.cluster import CloudAccount
from kubefleet.models.providers import AWSApiKey, ProviderName


def main() -> NoReturn:
    """
    Entry point for 'store-key-from-csv' subcommand usage.
    """
    parser = argparse.ArgumentParser(
        prog="kubefleet.cli.accounts",
        description="Manage cloud accounts used to reach provider APIs.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    store_csv_parser = subparsers.add_parser(
        "store-key-from-csv",
        help="Parse an AWS credentials CSV file and store it as a cloud account.",
    )
    store_csv_parser.add_argument(
        "--csv-file",
        required=True,
        help="Path to the AWS credentials CSV (with 'Access key ID' and 'Secret access key').",
    )
    store_csv_parser.add_argument(
        "--name", required=True, help="Cloud account name clusters refer to."
    )
    add_common_arguments(store_csv_parser)
    store_csv_parser.set_defaults(func=_store_key_from_csv)

    args = parser.parse_args()

    try:
        asyncio.run(args.func(args))
    except Exception as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
    else:
        sys.exit(0)


async def _store_key_from_csv(args: argparse.Namespace) -> None:
    """
    Parse a CSV file of AWS credentials into an AWSApiKey and store it as the
    credentials of an 'aws' CloudAccount.
    """
    settings = setup(args)
    aws_api_key = parse_aws_csv(csv_file_path=args.csv_file)
    account = CloudAccount(
        name=args.name,
        provider=ProviderName.aws,
        credentials=aws_api_key.model_dump(exclude_none=True),
    )
    await build_store(settings).put_account(account)
    print(f"Stored cloud account '{account.name}'.")


def parse_aws_csv(csv_file_path: str) -> AWSApiKey:
    """
    Reads the CSV with pandas (header=None) and enforces a strict 2×2 shape:
      - Row 0: Headers ("Access key ID", "Secret access key")
      - Row 1: Values (the actual credentials)

    Raises InvalidConfig if:
      - The file isn't found
      - The DataFrame isn't exactly 2×2
      - Required headers are missing
    """
    if not os.path.isfile(csv_file_path):
        raise InvalidConfig(f"CSV file not found: {csv_file_path}")

    df = pd.read_csv(csv_file_path, header=None, dtype=str)

    if df.shape != (2, 2):
        raise InvalidConfig(f"Expected CSV to be 2×2, but got shape {df.shape}.")

    # Row 0 becomes the index, row 1 the values
    series = df.iloc[1].copy()
    series.index = pd.Index([str(header).strip() for header in df.iloc[0].to_list()])

    missing = {"Access key ID", "Secret access key"} - set(series.index)
    if missing:
        raise InvalidConfig(f"CSV is missing column(s): {', '.join(sorted(missing))}")

    return AWSApiKey(
        access_key_id=str(series["Access key ID"]).strip(),
        secret_access_key=str(series["Secret access key"]).strip(),
    )


if __name__ == "__main__":
    main()
