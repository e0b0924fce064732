"""
GCS block reader.

Talks to Cloud Storage through its S3-interoperable XML API, so the
S3 reader does all the work; only the client construction differs.
Authenticate with an HMAC key pair created for a service account.
"""

from __future__ import annotations

from typing import Any

from ..config import GCSConfig, S3Config
from ..exceptions import ConfigurationError
from .s3 import S3Backend


def as_s3_config(config: GCSConfig) -> S3Config:
    """Map GCS settings onto the S3 client settings."""
    return S3Config(
        bucket=config.bucket_name,
        endpoint=config.endpoint,
        # The XML API ignores the region, but signing needs one.
        region="auto",
        access_key=config.access_key,
        secret_key=config.secret_key,
        insecure=config.insecure,
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
        max_attempts=config.max_attempts,
    )


class GCSBackend(S3Backend):
    """Block reader for a GCS bucket."""

    name = "gcs"

    @classmethod
    async def create(cls, config: GCSConfig, client: Any = None) -> GCSBackend:  # type: ignore[override]
        """Build a reader and verify the bucket is reachable.

        Raises:
            ConfigurationError: If no bucket is configured
            StorageConnectionError: If the bucket cannot be accessed
        """
        if not config.bucket_name:
            raise ConfigurationError("gcs backend requires storage.trace.gcs.bucket_name")
        backend = await super().create(as_s3_config(config), client)
        return backend  # type: ignore[return-value]
