"""
Bounded-concurrency block scanning.
"""

from .bounded import BoundedWaitGroup
from .scanner import (
    DEFAULT_CONCURRENCY,
    DEFAULT_WINDOW,
    BlockScanFailure,
    BlockScanner,
    BlockScanOutcome,
    ScanResult,
)

__all__ = [
    "BoundedWaitGroup",
    "BlockScanner",
    "BlockScanOutcome",
    "BlockScanFailure",
    "ScanResult",
    "DEFAULT_CONCURRENCY",
    "DEFAULT_WINDOW",
]
