"""
blockscan

Read-only inspection of the blocks a tracing server keeps in its storage
backend.

Provides:
- Block readers for local disk, S3-compatible stores and GCS
- A bounded-concurrency scanner that reads the active and compacted
  metadata of every block and unifies them into one record
- Table and JSON rendering of the results
- A client for the trace-by-id HTTP API

Usage:

    >>> from datetime import timedelta
    >>> from blockscan import BlockScanner, create_backend, load_settings
    >>> settings = load_settings("tempo.yaml")
    >>> async with await create_backend(settings) as reader:
    ...     scanner = BlockScanner(reader, window_duration=timedelta(hours=1))
    ...     result = await scanner.scan("single-tenant")
    ...     for block in result.blocks:
    ...         print(block.block_id, block.compaction_level, block.window)
"""

__version__ = "0.1.0"

from .backends import BlockReader, GCSBackend, LocalBackend, S3Backend, create_backend
from .blocks import (
    BlockMeta,
    CompactedBlockMeta,
    MetaState,
    UnifiedBlockMeta,
    compute_window,
    unify,
)
from .config import CliOverrides, StorageSettings, load_settings
from .exceptions import (
    BackendSelectionError,
    BlockMetaFormatError,
    BlockNotFoundError,
    BlockScanError,
    ConfigurationError,
    EnumerationError,
    QueryError,
    StorageConnectionError,
    StorageIOError,
    TraceNotFoundError,
    ValidationError,
)
from .query import TraceQueryClient
from .scan import BlockScanFailure, BlockScanner, BoundedWaitGroup, ScanResult

__all__ = [
    # Block model
    "BlockMeta",
    "CompactedBlockMeta",
    "UnifiedBlockMeta",
    "MetaState",
    "compute_window",
    "unify",
    # Backends
    "BlockReader",
    "LocalBackend",
    "S3Backend",
    "GCSBackend",
    "create_backend",
    # Configuration
    "StorageSettings",
    "CliOverrides",
    "load_settings",
    # Scanning
    "BoundedWaitGroup",
    "BlockScanner",
    "BlockScanFailure",
    "ScanResult",
    # Query
    "TraceQueryClient",
    # Exceptions
    "BlockScanError",
    "ConfigurationError",
    "BackendSelectionError",
    "StorageConnectionError",
    "EnumerationError",
    "StorageIOError",
    "BlockMetaFormatError",
    "BlockNotFoundError",
    "ValidationError",
    "QueryError",
    "TraceNotFoundError",
]
