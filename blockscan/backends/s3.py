"""
S3-compatible object store block reader.

Uses boto3, which is synchronous; every request runs in a worker thread
via ``asyncio.to_thread`` so many blocks can be read concurrently.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import UTC, datetime
from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..blocks.types import BlockMeta, CompactedBlockMeta
from ..config import S3Config
from ..exceptions import ConfigurationError, StorageConnectionError, StorageIOError
from .base import COMPACTED_META_NAME, META_NAME, BlockReader, meta_key, parse_block_ids

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}


def endpoint_url(endpoint: str, insecure: bool) -> str | None:
    """Turn a bare host into a URL; full URLs pass through unchanged."""
    if not endpoint:
        return None
    if "://" in endpoint:
        return endpoint
    scheme = "http" if insecure else "https"
    return f"{scheme}://{endpoint}"


def _is_not_found(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return code in _NOT_FOUND_CODES or status == 404


class S3Backend(BlockReader):
    """Block reader for an S3-compatible bucket.

    Tenants and blocks are discovered with delimiter listings, so only
    the ``{tenant}/`` and ``{tenant}/{block_id}/`` prefixes are enumerated,
    never the block data objects.
    """

    name = "s3"

    def __init__(self, bucket: str, client: Any, endpoint: str = "") -> None:
        """Initialize with an existing boto3 S3 client.

        Most callers should use :meth:`create`.

        Args:
            bucket: Bucket holding the tenants
            client: boto3 S3 client (or a compatible stub)
            endpoint: Endpoint description used in error messages
        """
        self.bucket = bucket
        self.endpoint = endpoint or "s3"
        self._client = client

    @staticmethod
    def build_client(config: S3Config) -> Any:
        """Build a boto3 client from configuration.

        Credentials left empty fall back to the boto3 credential chain
        (environment, shared config, instance profile).
        """
        session = boto3.Session(
            aws_access_key_id=config.access_key or None,
            aws_secret_access_key=config.secret_key or None,
            region_name=config.region or None,
        )
        return session.client(
            "s3",
            endpoint_url=endpoint_url(config.endpoint, config.insecure),
            config=BotoConfig(
                connect_timeout=config.connect_timeout,
                read_timeout=config.read_timeout,
                retries={"max_attempts": config.max_attempts, "mode": "standard"},
            ),
        )

    @classmethod
    async def create(cls, config: S3Config, client: Any = None) -> S3Backend:
        """Build a reader and verify the bucket is reachable.

        Args:
            config: S3 backend configuration
            client: Optional pre-built client (tests inject stubs here)

        Raises:
            ConfigurationError: If no bucket is configured
            StorageConnectionError: If the client cannot be built or the
                bucket cannot be accessed
        """
        if not config.bucket:
            raise ConfigurationError("s3 backend requires storage.trace.s3.bucket")

        endpoint = config.endpoint or "s3.amazonaws.com"
        if client is None:
            try:
                client = cls.build_client(config)
            except (BotoCoreError, ValueError) as e:
                raise StorageConnectionError(endpoint, e) from e

        backend = cls(config.bucket, client, endpoint)
        await backend._check_bucket()
        return backend

    async def _check_bucket(self) -> None:
        try:
            await asyncio.to_thread(self._client.head_bucket, Bucket=self.bucket)
        except (ClientError, BotoCoreError) as e:
            raise StorageConnectionError(f"{self.endpoint}/{self.bucket}", e) from e
        logger.debug(
            "Connected to bucket",
            extra={"backend": self.name, "bucket": self.bucket, "endpoint": self.endpoint},
        )

    async def tenants(self) -> list[str]:
        """List top-level prefixes of the bucket."""
        prefixes = await self._list_prefixes("", "list tenants")
        return sorted(p.rstrip("/") for p in prefixes)

    async def blocks(self, tenant_id: str) -> list[uuid.UUID]:
        """List the block prefixes under a tenant."""
        prefix = f"{tenant_id}/"
        prefixes = await self._list_prefixes(prefix, "list blocks")
        return parse_block_ids((p[len(prefix):] for p in prefixes), tenant_id)

    async def block_meta(self, tenant_id: str, block_id: uuid.UUID) -> BlockMeta | None:
        """Read ``meta.json`` of a block."""
        key = meta_key(tenant_id, block_id, META_NAME)
        found = await self._get(key)
        if found is None:
            return None
        body, _ = found
        return BlockMeta.from_json(body, self._describe(key))

    async def compacted_block_meta(
        self, tenant_id: str, block_id: uuid.UUID
    ) -> CompactedBlockMeta | None:
        """Read ``meta.compacted.json`` of a block."""
        key = meta_key(tenant_id, block_id, COMPACTED_META_NAME)
        found = await self._get(key)
        if found is None:
            return None
        body, modified = found
        return CompactedBlockMeta.from_json(body, self._describe(key), modified)

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        close = getattr(self._client, "close", None)
        if close is not None:
            await asyncio.to_thread(close)

    def _describe(self, key: str) -> str:
        return f"{self.bucket}/{key}"

    async def _list_prefixes(self, prefix: str, operation: str) -> list[str]:
        def _list() -> list[str]:
            paginator = self._client.get_paginator("list_objects_v2")
            prefixes: list[str] = []
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix, Delimiter="/"):
                for entry in page.get("CommonPrefixes", []):
                    prefixes.append(entry["Prefix"])
            return prefixes

        try:
            return await asyncio.to_thread(_list)
        except (ClientError, BotoCoreError) as e:
            raise StorageIOError(operation, self._describe(prefix), e) from e

    async def _get(self, key: str) -> tuple[bytes, datetime | None] | None:
        """Fetch an object body and its modification time, or None if missing."""

        def _fetch() -> tuple[bytes, datetime | None]:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"].read()
            modified = response.get("LastModified")
            if isinstance(modified, datetime) and modified.tzinfo is None:
                modified = modified.replace(tzinfo=UTC)
            return body, modified

        try:
            return await asyncio.to_thread(_fetch)
        except ClientError as e:
            if _is_not_found(e):
                return None
            raise StorageIOError("read meta", self._describe(key), e) from e
        except BotoCoreError as e:
            raise StorageIOError("read meta", self._describe(key), e) from e
