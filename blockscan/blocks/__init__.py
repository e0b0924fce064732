"""
Block metadata model.

Provides the two stored metadata shapes (active and compacted), the
unified record the scanner reports, and the pure function joining them.
"""

from .types import (
    EPOCH,
    ZERO_BLOCK_ID,
    BlockMeta,
    CompactedBlockMeta,
    MetaState,
    UnifiedBlockMeta,
    format_timestamp,
    parse_timestamp,
)
from .unify import classify, compute_window, unify, window_seconds

__all__ = [
    # Types
    "BlockMeta",
    "CompactedBlockMeta",
    "UnifiedBlockMeta",
    "MetaState",
    "EPOCH",
    "ZERO_BLOCK_ID",
    # Timestamps
    "parse_timestamp",
    "format_timestamp",
    # Unification
    "classify",
    "compute_window",
    "unify",
    "window_seconds",
]
