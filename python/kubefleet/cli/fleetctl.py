"""
kubefleet/cli/fleetctl.py

Single entry point for the kubefleet CLI modules. Runs
`python -m kubefleet.cli.<subcommand>` with the remaining arguments and exits
with its status.

Usage example:
  fleetctl nodes sync --all
  fleetctl spot prices --profile spot.yaml --machine-type m5.large
  fleetctl accounts store-key-from-csv --csv-file creds.csv --name demo-aws
  fleetctl clusters show --cluster-id c-123
"""

import sys
import subprocess

SUBCOMMANDS = ("nodes", "spot", "accounts", "clusters")


def _usage() -> None:
    print("Usage: fleetctl <subcommand> [args...]")
    print(f"Subcommands: {', '.join(SUBCOMMANDS)}")


def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1] not in SUBCOMMANDS:
        _usage()
        sys.exit(1)

    subcommand = sys.argv[1]
    subcommand_args = sys.argv[2:]

    cmd = [sys.executable, "-m", f"kubefleet.cli.{subcommand}"] + subcommand_args
    sys.exit(subprocess.call(cmd))
