"""Tests for settings loading and credential import."""

from __future__ import annotations

from pathlib import Path

import pytest

from kubefleet.cli.accounts import parse_aws_csv
from kubefleet.errors import InvalidConfig
from kubefleet.models.providers import ProviderName, parse_account_credentials
from kubefleet.models.providers.api_keys import AWSApiKey
from kubefleet.models.settings import FleetSettings, load_settings


class TestFleetSettings:
    def test_empty_document_gives_defaults(self) -> None:
        assert FleetSettings.from_yaml("") == FleetSettings()

    def test_yaml_round_trip(self) -> None:
        settings = FleetSettings(state_dir="/srv/fleet", log_level="debug")

        loaded = FleetSettings.from_yaml(settings.to_yaml())

        assert loaded.state_dir == "/srv/fleet"
        assert loaded.log_level == "DEBUG"

    @pytest.mark.parametrize(
        "body", ["log_level: chatty\n", "reconcile_interval_seconds: 0\n"]
    )
    def test_invalid_values(self, body: str) -> None:
        with pytest.raises(InvalidConfig):
            FleetSettings.from_yaml(body)

    def test_environment_fills_unset_fields(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBEFLEET_DEFAULT_REGION", "ap-south-1")
        monkeypatch.setenv("KUBEFLEET_LOG_LEVEL", "error")

        settings = FleetSettings.from_yaml("log_level: warning\n")

        assert settings.default_region == "ap-south-1"
        assert settings.log_level == "WARNING"

    def test_non_mapping_document(self) -> None:
        with pytest.raises(InvalidConfig):
            FleetSettings.from_yaml("- a\n- b\n")

    def test_load_explicit_path(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("default_region: eu-central-1\n")

        assert load_settings(str(path)).default_region == "eu-central-1"

    def test_missing_explicit_path(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "absent.yaml"))


class TestAccountCredentials:
    def test_parse_aws(self) -> None:
        key = parse_account_credentials(
            ProviderName.aws,
            {"access_key_id": "AKIA", "secret_access_key": "secret"},
        )

        assert isinstance(key, AWSApiKey)
        assert key.to_session_kwargs() == {
            "aws_access_key_id": "AKIA",
            "aws_secret_access_key": "secret",
        }

    def test_missing_secret(self) -> None:
        with pytest.raises(InvalidConfig):
            parse_account_credentials(ProviderName.aws, {"access_key_id": "AKIA"})


class TestParseAwsCsv:
    def test_reads_console_export(self, tmp_path: Path) -> None:
        path = tmp_path / "creds.csv"
        path.write_text("Access key ID,Secret access key\nAKIAEXAMPLE, s3cr3t \n")

        key = parse_aws_csv(str(path))

        assert key.access_key_id == "AKIAEXAMPLE"
        assert key.secret_access_key == "s3cr3t"

    def test_wrong_shape(self, tmp_path: Path) -> None:
        path = tmp_path / "creds.csv"
        path.write_text("User name,Access key ID,Secret access key\nme,AKIA,s\n")

        with pytest.raises(InvalidConfig):
            parse_aws_csv(str(path))

    def test_missing_header(self, tmp_path: Path) -> None:
        path = tmp_path / "creds.csv"
        path.write_text("Key,Secret\nAKIA,s\n")

        with pytest.raises(InvalidConfig):
            parse_aws_csv(str(path))

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(InvalidConfig):
            parse_aws_csv(str(tmp_path / "nope.csv"))
