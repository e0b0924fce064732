"""Tests for storage configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from blockscan.config import (
    DEFAULT_GCS_ENDPOINT,
    CliOverrides,
    StorageSettings,
    apply_file,
    apply_overrides,
    default_settings,
    load_settings,
    read_config_file,
)
from blockscan.exceptions import ConfigurationError

FULL_CONFIG = """
server:
  http_listen_port: 3200
storage:
  trace:
    backend: s3
    local:
      path: /var/tempo/traces
    s3:
      bucket: traces
      endpoint: minio:9000
      access_key: file-user
      secret_key: file-pass
      insecure: true
      read_timeout: 5
    gcs:
      bucket_name: gcs-traces
"""


@pytest.fixture
def config_file(tmp_path: Path):
    def _write(content: str) -> Path:
        path = tmp_path / "tempo.yaml"
        path.write_text(content)
        return path

    return _write


class TestDefaults:
    """Tests for stage one."""

    def test_defaults(self) -> None:
        settings = default_settings()

        assert settings == StorageSettings()
        assert settings.backend == ""
        assert settings.s3.bucket == ""
        assert settings.gcs.endpoint == DEFAULT_GCS_ENDPOINT

    def test_load_without_file_or_overrides(self) -> None:
        assert load_settings() == default_settings()


class TestConfigFile:
    """Tests for stage two."""

    def test_full_file(self, config_file) -> None:
        settings = load_settings(config_file(FULL_CONFIG))

        assert settings.backend == "s3"
        assert settings.local.path == "/var/tempo/traces"
        assert settings.s3.bucket == "traces"
        assert settings.s3.endpoint == "minio:9000"
        assert settings.s3.insecure is True
        assert settings.s3.read_timeout == 5.0
        assert isinstance(settings.s3.read_timeout, float)
        assert settings.gcs.bucket_name == "gcs-traces"

    def test_missing_trace_section(self, config_file) -> None:
        settings = load_settings(config_file("server:\n  http_listen_port: 3200\n"))
        assert settings == default_settings()

    def test_empty_file(self, config_file) -> None:
        assert load_settings(config_file("")) == default_settings()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            read_config_file(tmp_path / "absent.yaml")

        assert "failed to read configFile" in exc_info.value.message

    def test_invalid_yaml(self, config_file) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(config_file("storage: [unclosed"))

        assert "failed to parse configFile" in exc_info.value.message

    def test_top_level_must_be_mapping(self, config_file) -> None:
        with pytest.raises(ConfigurationError):
            read_config_file(config_file("- just\n- a list\n"))

    def test_unknown_backend_key(self) -> None:
        data = {"storage": {"trace": {"s3": {"bucket": "b", "buckt": "typo"}}}}

        with pytest.raises(ConfigurationError) as exc_info:
            apply_file(default_settings(), data, "inline")

        assert "buckt" in exc_info.value.message

    def test_wrong_value_type(self) -> None:
        data = {"storage": {"trace": {"s3": {"insecure": "yes"}}}}

        with pytest.raises(ConfigurationError):
            apply_file(default_settings(), data)

    def test_section_must_be_mapping(self) -> None:
        with pytest.raises(ConfigurationError):
            apply_file(default_settings(), {"storage": {"trace": "s3"}})

    def test_unrelated_trace_keys_ignored(self) -> None:
        data = {"storage": {"trace": {"backend": "local", "wal": {"path": "/wal"}}}}

        assert apply_file(default_settings(), data).backend == "local"


class TestOverrides:
    """Tests for stage three."""

    def test_overrides_win_over_file(self, config_file) -> None:
        overrides = CliOverrides(
            backend="gcs",
            s3_endpoint="localhost:9000",
            s3_user="cli-user",
            s3_pass="cli-pass",
        )

        settings = load_settings(config_file(FULL_CONFIG), overrides)

        assert settings.backend == "gcs"
        assert settings.s3.endpoint == "localhost:9000"
        assert settings.s3.access_key == "cli-user"
        assert settings.s3.secret_key == "cli-pass"
        # Untouched file values survive.
        assert settings.s3.bucket == "traces"
        assert settings.local.path == "/var/tempo/traces"

    def test_bucket_applies_to_every_backend(self) -> None:
        settings = apply_overrides(default_settings(), CliOverrides(bucket="shared"))

        assert settings.local.path == "shared"
        assert settings.s3.bucket == "shared"
        assert settings.gcs.bucket_name == "shared"

    def test_empty_overrides_change_nothing(self, config_file) -> None:
        from_file = load_settings(config_file(FULL_CONFIG))

        assert apply_overrides(from_file, CliOverrides()) == from_file

    def test_stages_do_not_mutate(self) -> None:
        base = default_settings()

        apply_overrides(base, CliOverrides(backend="local", bucket="/tmp/x"))

        assert base == default_settings()
