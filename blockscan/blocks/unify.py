"""
Merge active and compacted block metadata into one record.

Pure functions: no I/O, same inputs always give the same record.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from .types import BlockMeta, CompactedBlockMeta, MetaState, UnifiedBlockMeta


def window_seconds(window_duration: timedelta) -> int:
    """Whole seconds of a window duration.

    Raises ValueError when the duration is shorter than one second.
    """
    seconds = int(window_duration.total_seconds())
    if seconds <= 0:
        raise ValueError(f"window duration must be at least 1s, got {window_duration}")
    return seconds


def compute_window(end_time: datetime, window_duration: timedelta) -> int:
    """Bucket index of a block: floor(end_unix_seconds / window_seconds).

    Seconds are floored before dividing, so times before 1970 land in
    negative windows.
    """
    return math.floor(end_time.timestamp()) // window_seconds(window_duration)


def classify(
    active: BlockMeta | None,
    compacted: CompactedBlockMeta | None,
) -> tuple[MetaState, BlockMeta | None]:
    """Pick the document a block is described by.

    Active metadata wins; a block caught mid-compaction can briefly have both.
    """
    if active is not None:
        return MetaState.ACTIVE, active
    if compacted is not None:
        return MetaState.COMPACTED, compacted
    return MetaState.UNKNOWN, None


def unify(
    active: BlockMeta | None,
    compacted: CompactedBlockMeta | None,
    window_duration: timedelta,
) -> UnifiedBlockMeta:
    """Build the unified record for one block.

    Args:
        active: Contents of ``meta.json``, or None if absent
        compacted: Contents of ``meta.compacted.json``, or None if absent
        window_duration: Width of the window buckets (at least one second)

    Returns:
        The record built from ``active`` (``compacted=False``), else from
        ``compacted`` (``compacted=True``), else the unknown sentinel.
    """
    window_seconds(window_duration)

    match classify(active, compacted):
        case (MetaState.ACTIVE | MetaState.COMPACTED as state, BlockMeta() as meta):
            return UnifiedBlockMeta(
                block_id=meta.block_id,
                compaction_level=meta.compaction_level,
                total_objects=meta.total_objects,
                start_time=meta.start_time,
                end_time=meta.end_time,
                compacted=state is MetaState.COMPACTED,
                window=compute_window(meta.end_time, window_duration),
                tenant_id=meta.tenant_id,
                version=meta.version,
                encoding=meta.encoding,
                size=meta.size,
                compacted_time=getattr(meta, "compacted_time", None),
            )
        case _:
            return UnifiedBlockMeta.unknown()