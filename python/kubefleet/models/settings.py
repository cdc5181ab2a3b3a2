# kubefleet/models/settings.py

from __future__ import annotations

import os
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kubefleet.errors import InvalidConfig

DEFAULT_SETTINGS_PATH = "~/.kubefleet/settings.yaml"


class FleetSettings(BaseSettings):
    """
    Settings shared by the CLI and the daemon.
    Fields map to environment variables prefixed with `KUBEFLEET_`, e.g.
    `KUBEFLEET_STATE_DIR`. Values read from a settings file take precedence.
    """

    model_config = SettingsConfigDict(env_prefix="KUBEFLEET_")

    state_dir: str = "~/.kubefleet/state"
    log_level: str = "INFO"
    default_region: str = "us-west-2"
    reconcile_interval_seconds: float = Field(default=60.0, gt=0)

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level

    def resolved_state_dir(self) -> str:
        return os.path.expanduser(self.state_dir)

    def to_yaml(self, *, sort_keys: bool = False) -> str:
        """
        Serialize these settings to a YAML string using PyYAML.
        """
        return yaml.safe_dump(self.model_dump(), sort_keys=sort_keys)

    @classmethod
    def from_yaml(cls, yaml_str: str, source: str = "settings") -> FleetSettings:
        """
        Build settings from a YAML string, falling back to the environment and
        defaults for anything it leaves out. An empty document is allowed.

        Raises:
            InvalidConfig: If the document is not a mapping or fails validation.
        """
        data: Any = yaml.safe_load(yaml_str) or {}
        if not isinstance(data, dict):
            raise InvalidConfig(f"Invalid FleetSettings in {source}: not a mapping")
        return cls.with_overrides(data, source=source)

    @classmethod
    def with_overrides(
        cls, values: Dict[str, Any], source: str = "overrides"
    ) -> FleetSettings:
        try:
            return cls(**values)
        except ValidationError as e:
            raise InvalidConfig(f"Invalid FleetSettings in {source}: {e}") from e


def load_settings(path: Optional[str] = None) -> FleetSettings:
    """
    Read settings from `path` (or the default location). A missing file at the
    default location yields environment/default settings; a missing explicit
    path is an error.
    """
    target = os.path.expanduser(path or DEFAULT_SETTINGS_PATH)
    if not os.path.isfile(target):
        if path is not None:
            raise FileNotFoundError(f"Settings file not found: {target}")
        return FleetSettings.with_overrides({}, source="environment")
    with open(target, "r", encoding="utf-8") as handle:
        return FleetSettings.from_yaml(handle.read(), source=target)
