"""
Storage configuration.

Settings are resolved in three explicit stages, each producing a new
immutable value:

1. defaults (:func:`default_settings`)
2. the ``storage.trace`` section of a YAML config file
3. per-invocation command line overrides (:class:`CliOverrides`)

Config file layout (other top-level sections are ignored, so the tracing
server's own config file can be passed as-is)::

    storage:
      trace:
        backend: s3
        local:
          path: /var/tempo/traces
        s3:
          bucket: traces
          endpoint: s3.dualstack.us-east-2.amazonaws.com
          access_key: ...
          secret_key: ...
        gcs:
          bucket_name: traces
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

BACKENDS = ("local", "s3", "gcs")

DEFAULT_GCS_ENDPOINT = "https://storage.googleapis.com"


@dataclass(frozen=True)
class LocalConfig:
    """Local filesystem backend: blocks live under ``path``."""

    path: str = ""


@dataclass(frozen=True)
class S3Config:
    """S3-compatible object store backend.

    Attributes:
        bucket: Bucket holding the tenants
        endpoint: Host (or URL) of the S3 API; empty means AWS default
        region: Region name, passed to the client when set
        access_key: Access key id; empty falls back to the boto3 credential chain
        secret_key: Secret access key
        insecure: Use plain http when the endpoint has no scheme
        connect_timeout: Seconds to wait for a connection
        read_timeout: Seconds to wait for a response
        max_attempts: Retry attempts per request
    """

    bucket: str = ""
    endpoint: str = ""
    region: str = ""
    access_key: str = ""
    secret_key: str = ""
    insecure: bool = False
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    max_attempts: int = 3


@dataclass(frozen=True)
class GCSConfig:
    """GCS bucket read through the S3-interoperable XML API with HMAC keys."""

    bucket_name: str = ""
    endpoint: str = DEFAULT_GCS_ENDPOINT
    access_key: str = ""
    secret_key: str = ""
    insecure: bool = False
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    max_attempts: int = 3


@dataclass(frozen=True)
class StorageSettings:
    """Fully resolved storage configuration."""

    backend: str = ""
    local: LocalConfig = field(default_factory=LocalConfig)
    s3: S3Config = field(default_factory=S3Config)
    gcs: GCSConfig = field(default_factory=GCSConfig)


@dataclass(frozen=True)
class CliOverrides:
    """Per-invocation values that win over the config file.

    Empty strings mean "not given".
    """

    backend: str = ""
    bucket: str = ""
    s3_endpoint: str = ""
    s3_user: str = ""
    s3_pass: str = ""


def default_settings() -> StorageSettings:
    """Stage 1: built-in defaults."""
    return StorageSettings()


def read_config_file(path: str | Path) -> dict[str, Any]:
    """Load a YAML config file.

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    config_path = Path(path)
    try:
        content = config_path.read_text()
    except OSError as e:
        raise ConfigurationError(
            f"failed to read configFile {config_path}", str(config_path), e
        ) from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"failed to parse configFile {config_path}", str(config_path), e
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"failed to parse configFile {config_path}: top level must be a mapping",
            str(config_path),
        )
    return data


def _section(data: dict[str, Any], key: str, source: str) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{key} must be a mapping", source)
    return value


def _coerce(cls: type, values: dict[str, Any], section: str, source: str) -> dict[str, Any]:
    """Check keys and value types of one backend section against its dataclass."""
    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(values) - set(known))
    if unknown:
        raise ConfigurationError(
            f"unknown keys in storage.trace.{section}: {', '.join(unknown)}", source
        )

    coerced: dict[str, Any] = {}
    for key, value in values.items():
        if value is None:
            continue
        default = getattr(cls(), key)
        if isinstance(default, bool):
            if not isinstance(value, bool):
                raise ConfigurationError(
                    f"storage.trace.{section}.{key} must be a boolean", source
                )
            coerced[key] = value
        elif isinstance(default, (int, float)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(
                    f"storage.trace.{section}.{key} must be a number", source
                )
            coerced[key] = type(default)(value)
        else:
            if isinstance(value, (dict, list)):
                raise ConfigurationError(
                    f"storage.trace.{section}.{key} must be a string", source
                )
            coerced[key] = str(value)
    return coerced


def apply_file(settings: StorageSettings, data: dict[str, Any], source: str = "") -> StorageSettings:
    """Stage 2: values from the ``storage.trace`` section of a config file."""
    trace = _section(_section(data, "storage", source), "trace", source)
    if not trace:
        logger.debug("No storage.trace section in config", extra={"config_file": source})
        return settings

    backend = trace.get("backend")
    if backend is not None and not isinstance(backend, str):
        raise ConfigurationError("storage.trace.backend must be a string", source)

    return replace(
        settings,
        backend=backend if backend is not None else settings.backend,
        local=replace(
            settings.local,
            **_coerce(LocalConfig, _section(trace, "local", source), "local", source),
        ),
        s3=replace(
            settings.s3,
            **_coerce(S3Config, _section(trace, "s3", source), "s3", source),
        ),
        gcs=replace(
            settings.gcs,
            **_coerce(GCSConfig, _section(trace, "gcs", source), "gcs", source),
        ),
    )


def apply_overrides(settings: StorageSettings, overrides: CliOverrides) -> StorageSettings:
    """Stage 3: command line overrides.

    ``bucket`` applies to every backend, since which one is in use may
    itself have been overridden.
    """
    local, s3, gcs = settings.local, settings.s3, settings.gcs

    if overrides.bucket:
        local = replace(local, path=overrides.bucket)
        s3 = replace(s3, bucket=overrides.bucket)
        gcs = replace(gcs, bucket_name=overrides.bucket)
    if overrides.s3_endpoint:
        s3 = replace(s3, endpoint=overrides.s3_endpoint)
    if overrides.s3_user:
        s3 = replace(s3, access_key=overrides.s3_user)
    if overrides.s3_pass:
        s3 = replace(s3, secret_key=overrides.s3_pass)

    return replace(
        settings,
        backend=overrides.backend or settings.backend,
        local=local,
        s3=s3,
        gcs=gcs,
    )


def load_settings(
    config_file: str | Path | None = None,
    overrides: CliOverrides | None = None,
) -> StorageSettings:
    """Resolve storage settings: defaults, then config file, then overrides.

    Args:
        config_file: Optional path to a YAML config file
        overrides: Optional command line overrides

    Returns:
        The resolved, immutable settings

    Raises:
        ConfigurationError: If the config file is unreadable or invalid
    """
    settings = default_settings()

    if config_file:
        settings = apply_file(settings, read_config_file(config_file), str(config_file))

    if overrides is not None:
        settings = apply_overrides(settings, overrides)

    logger.debug(
        "Resolved storage settings",
        extra={"backend": settings.backend, "config_file": str(config_file or "")},
    )
    return settings
