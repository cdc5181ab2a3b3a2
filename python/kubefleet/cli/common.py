"""
kubefleet/cli/common.py

Arguments and setup shared by every kubefleet CLI module: settings file,
state directory override and logging configuration.
"""

from __future__ import annotations

import argparse
import logging
from typing import Any

import yaml

from kubefleet.models.settings import FleetSettings, load_settings
from kubefleet.store.cluster_store import FileClusterStore


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Add --settings, --state-dir and --log-level to a (sub)parser."""
    parser.add_argument(
        "--settings",
        default=None,
        help="Path to a settings YAML file (default: ~/.kubefleet/settings.yaml).",
    )
    parser.add_argument(
        "--state-dir",
        default=None,
        help="Directory holding cluster and account records (overrides settings).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (overrides settings).",
    )


def setup(args: argparse.Namespace) -> FleetSettings:
    """
    Load settings, apply CLI overrides and configure logging.
    """
    settings = load_settings(args.settings)
    overrides = {
        key: value
        for key, value in (
            ("state_dir", args.state_dir),
            ("log_level", args.log_level),
        )
        if value is not None
    }
    if overrides:
        settings = FleetSettings.with_overrides(
            {**settings.model_dump(), **overrides}, source="command line"
        )

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return settings


def build_store(settings: FleetSettings) -> FileClusterStore:
    return FileClusterStore(settings.resolved_state_dir())


def read_yaml_file(path: str) -> Any:
    """Read and parse one YAML document from `path`."""
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)
