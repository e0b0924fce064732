"""
Storage backends.

Read-only block readers for the places a tracing server can keep its
blocks, behind one interface:

- ``local``: a directory on disk
- ``s3``: an S3-compatible object store
- ``gcs``: a Google Cloud Storage bucket

Example:
    >>> from blockscan.backends import create_backend
    >>> from blockscan.config import load_settings
    >>> settings = load_settings("tempo.yaml")
    >>> async with await create_backend(settings) as reader:
    ...     block_ids = await reader.blocks("single-tenant")
"""

from __future__ import annotations

import logging

from ..config import StorageSettings
from ..exceptions import BackendSelectionError
from .base import COMPACTED_META_NAME, META_NAME, BlockReader, meta_key, parse_block_ids
from .gcs import GCSBackend
from .local import LocalBackend
from .s3 import S3Backend

logger = logging.getLogger(__name__)


async def create_backend(settings: StorageSettings) -> BlockReader:
    """Construct the reader selected by ``settings.backend``.

    Raises:
        BackendSelectionError: If the backend name is unknown or empty
        ConfigurationError: If the selected backend is missing settings
        StorageConnectionError: If the backend cannot be reached
    """
    match settings.backend:
        case "local":
            reader: BlockReader = LocalBackend(settings.local)
        case "s3":
            reader = await S3Backend.create(settings.s3)
        case "gcs":
            reader = await GCSBackend.create(settings.gcs)
        case _:
            raise BackendSelectionError(settings.backend)

    logger.info("Using %s backend", reader.name, extra={"backend": reader.name})
    return reader


__all__ = [
    # Interface
    "BlockReader",
    "META_NAME",
    "COMPACTED_META_NAME",
    "meta_key",
    "parse_block_ids",
    # Implementations
    "LocalBackend",
    "S3Backend",
    "GCSBackend",
    # Factory
    "create_backend",
]
