"""
Render scan results for the terminal or as JSON.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from .blocks.types import UnifiedBlockMeta, format_timestamp
from .scan.scanner import ScanResult

BLOCK_COLUMNS = (
    "id", "lvl", "objects", "size", "encoding", "vers",
    "window", "start", "end", "duration", "age", "cmp",
)

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_size(size: int) -> str:
    """Human readable byte count, e.g. ``5.0 MiB``."""
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in ("KiB", "MiB", "GiB"):
        value /= 1024
        if value < 1024:
            return f"{value:.1f} {unit}"
    return f"{value / 1024:.1f} TiB"


def format_duration(duration: timedelta) -> str:
    """Compact duration, e.g. ``1h2m3s``; negative durations get a ``-``."""
    seconds = int(duration.total_seconds())
    sign = "-" if seconds < 0 else ""
    seconds = abs(seconds)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"


def render_table(header: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    """Left-aligned fixed-width table."""
    widths = [len(h) for h in header]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    def line(cells: Sequence[str]) -> str:
        return "  ".join(c.ljust(w) for c, w in zip(cells, widths)).rstrip()

    lines = [line(header), line(["-" * w for w in widths])]
    lines.extend(line(row) for row in rows)
    return "\n".join(lines)


def block_row(meta: UnifiedBlockMeta, now: datetime) -> list[str]:
    return [
        str(meta.block_id),
        str(meta.compaction_level),
        str(meta.total_objects),
        format_size(meta.size),
        meta.encoding or "-",
        meta.version or "-",
        str(meta.window),
        meta.start_time.astimezone(UTC).strftime(_TIME_FORMAT),
        meta.end_time.astimezone(UTC).strftime(_TIME_FORMAT),
        format_duration(meta.duration),
        format_duration(now - meta.end_time),
        "yes" if meta.compacted else "",
    ]


def format_blocks_table(
    result: ScanResult,
    include_compacted: bool = False,
    now: datetime | None = None,
) -> str:
    """Table of the scanned blocks, then totals, unknown and failed blocks."""
    now = now or datetime.now(UTC)
    shown = result.blocks if include_compacted else result.active
    sections = [render_table(BLOCK_COLUMNS, [block_row(b, now) for b in shown])]

    total_size = sum(b.size for b in result.active)
    sections.append(
        f"total blocks: {result.total}  active: {len(result.active)}  "
        f"compacted: {len(result.compacted)}  unknown: {len(result.unknown)}  "
        f"failed: {len(result.failures)}\n"
        f"total objects: {result.total_objects}  total size: {format_size(total_size)}"
    )

    if result.unknown:
        sections.append(
            "blocks without metadata:\n"
            + "\n".join(f"  {block_id}" for block_id in result.unknown_ids)
        )

    if result.failures:
        sections.append(
            "blocks that could not be read:\n"
            + "\n".join(f"  {f.block_id}: {f.reason}" for f in result.failures)
        )

    return "\n\n".join(sections)


def format_window_summary(result: ScanResult, include_compacted: bool = False) -> str:
    """Block counts per window and compaction level."""
    by_window = result.by_window(include_compacted)
    levels = sorted({lvl for counts in by_window.values() for lvl in counts})
    seconds = int(result.window_duration.total_seconds())

    header = ["window", "start", *(f"lvl {lvl}" for lvl in levels), "blocks"]
    rows = []
    for window, counts in by_window.items():
        start = datetime.fromtimestamp(window * seconds, tz=UTC).strftime(_TIME_FORMAT)
        rows.append(
            [
                str(window),
                start,
                *(str(counts.get(lvl, 0)) for lvl in levels),
                str(sum(counts.values())),
            ]
        )
    return render_table(header, rows)


def format_block(meta: UnifiedBlockMeta, now: datetime | None = None) -> str:
    """Key/value listing of a single block."""
    now = now or datetime.now(UTC)
    fields = [
        ("id", str(meta.block_id)),
        ("tenant", meta.tenant_id or "-"),
        ("version", meta.version or "-"),
        ("encoding", meta.encoding or "-"),
        ("level", str(meta.compaction_level)),
        ("objects", str(meta.total_objects)),
        ("size", format_size(meta.size)),
        ("window", str(meta.window)),
        ("start", format_timestamp(meta.start_time)),
        ("end", format_timestamp(meta.end_time)),
        ("duration", format_duration(meta.duration)),
        ("age", format_duration(now - meta.end_time)),
        ("compacted", "true" if meta.compacted else "false"),
    ]
    if meta.compacted_time is not None:
        fields.append(("compacted at", format_timestamp(meta.compacted_time)))

    width = max(len(name) for name, _ in fields)
    return "\n".join(f"{name.ljust(width)} : {value}" for name, value in fields)


def meta_to_dict(meta: UnifiedBlockMeta) -> dict[str, Any]:
    """JSON-ready view of a unified record."""
    return {
        "id": str(meta.block_id),
        "tenant_id": meta.tenant_id,
        "version": meta.version,
        "encoding": meta.encoding,
        "compaction_level": meta.compaction_level,
        "total_objects": meta.total_objects,
        "size": meta.size,
        "window": meta.window,
        "start": format_timestamp(meta.start_time),
        "end": format_timestamp(meta.end_time),
        "compacted": meta.compacted,
        "compacted_time": (
            format_timestamp(meta.compacted_time) if meta.compacted_time else None
        ),
        "state": meta.state.value,
    }


def result_to_dict(result: ScanResult, include_compacted: bool = False) -> dict[str, Any]:
    """JSON-ready view of a scan result."""
    shown = result.blocks if include_compacted else result.active
    return {
        "tenant_id": result.tenant_id,
        "window_seconds": int(result.window_duration.total_seconds()),
        "summary": {
            "total": result.total,
            "active": len(result.active),
            "compacted": len(result.compacted),
            "unknown": len(result.unknown),
            "failed": len(result.failures),
            "total_objects": result.total_objects,
            "by_level": {str(k): v for k, v in result.by_level(include_compacted).items()},
        },
        "blocks": [meta_to_dict(b) for b in shown],
        "unknown": [
            {"id": str(o.block_id), "record": meta_to_dict(o.meta or UnifiedBlockMeta.unknown())}
            for o in result.unknown
        ],
        "failures": [
            {"id": str(f.block_id), "error": f.reason, "details": f.error.details}
            for f in result.failures
        ],
    }
