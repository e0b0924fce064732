"""
Block metadata types.

A block is an immutable unit of stored trace data. Its metadata lives
next to it in the bucket, in one of two shapes:

- ``meta.json`` while the block is active (queryable as-is)
- ``meta.compacted.json`` once compaction has merged it into a higher
  level block; the document is kept for bookkeeping

Both documents share the same camelCase JSON schema::

    {
        "format": "v0",
        "blockID": "4a1f3c2e-...",
        "tenantID": "single-tenant",
        "startTime": "2020-10-20T14:02:11.123456789Z",
        "endTime": "2020-10-20T14:07:48.987654321Z",
        "totalObjects": 1204,
        "compactionLevel": 1,
        "encoding": "zstd",
        "size": 5242880
    }
"""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from ..exceptions import BlockMetaFormatError

# RFC 3339 with optional fraction of any length; Python only keeps microseconds.
_TIMESTAMP_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<tz>Z|z|[+-]\d{2}:\d{2})$"
)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
ZERO_BLOCK_ID = uuid.UUID(int=0)


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Fractional seconds beyond microseconds are truncated.

    Raises ValueError on malformed input.
    """
    match = _TIMESTAMP_RE.match(value.strip())
    if match is None:
        raise ValueError(f"Malformed timestamp: {value!r}")

    text = match.group("base").replace(" ", "T")
    fraction = match.group("fraction")
    if fraction:
        text += "." + fraction[:6].ljust(6, "0")
    tz = match.group("tz")
    text += "+00:00" if tz in ("Z", "z") else tz

    return datetime.fromisoformat(text).astimezone(UTC)


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime as RFC 3339 in UTC."""
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


class MetaState(Enum):
    """Which metadata document a block was resolved from."""

    ACTIVE = "active"
    COMPACTED = "compacted"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class BlockMeta:
    """Metadata of a block that is currently queryable.

    Attributes:
        block_id: Unique identifier of the block
        compaction_level: Number of compaction passes (0 = never compacted)
        total_objects: Number of objects (traces) stored in the block
        start_time: Earliest object timestamp
        end_time: Latest object timestamp
        tenant_id: Owning tenant
        version: Block format version
        encoding: Compression used for the block data
        size: Size of the block data in bytes (0 when not recorded)
    """

    block_id: uuid.UUID
    compaction_level: int
    total_objects: int
    start_time: datetime
    end_time: datetime
    tenant_id: str = ""
    version: str = ""
    encoding: str = ""
    size: int = 0

    @classmethod
    def _parse_fields(cls, data: dict[str, Any], path: str) -> dict[str, Any]:
        """Validate the shared JSON fields and convert them to Python types."""
        if not isinstance(data, dict):
            raise BlockMetaFormatError(path, "metadata document is not a JSON object")

        missing = [
            key
            for key in ("blockID", "startTime", "endTime", "totalObjects", "compactionLevel")
            if key not in data
        ]
        if missing:
            raise BlockMetaFormatError(path, f"missing keys: {', '.join(missing)}")

        try:
            block_id = uuid.UUID(str(data["blockID"]))
            start_time = parse_timestamp(str(data["startTime"]))
            end_time = parse_timestamp(str(data["endTime"]))
            total_objects = int(data["totalObjects"])
            compaction_level = int(data["compactionLevel"])
            size = int(data.get("size") or 0)
        except (TypeError, ValueError, OverflowError) as e:
            raise BlockMetaFormatError(path, str(e)) from e

        if total_objects < 0:
            raise BlockMetaFormatError(path, f"negative totalObjects: {total_objects}")
        if compaction_level < 0:
            raise BlockMetaFormatError(path, f"negative compactionLevel: {compaction_level}")
        if end_time < start_time:
            raise BlockMetaFormatError(path, "endTime is before startTime")

        return {
            "block_id": block_id,
            "compaction_level": compaction_level,
            "total_objects": total_objects,
            "start_time": start_time,
            "end_time": end_time,
            "tenant_id": str(data.get("tenantID") or ""),
            "version": str(data.get("format") or ""),
            "encoding": str(data.get("encoding") or ""),
            "size": size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "meta.json") -> BlockMeta:
        """Deserialize from a decoded ``meta.json`` document.

        Raises:
            BlockMetaFormatError: If required keys are missing or invalid
        """
        return cls(**cls._parse_fields(data, path))

    @classmethod
    def from_json(cls, raw: str | bytes, path: str = "meta.json") -> BlockMeta:
        """Deserialize from raw ``meta.json`` content."""
        return cls.from_dict(_decode(raw, path), path)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the on-disk JSON schema."""
        return {
            "format": self.version,
            "blockID": str(self.block_id),
            "tenantID": self.tenant_id,
            "startTime": format_timestamp(self.start_time),
            "endTime": format_timestamp(self.end_time),
            "totalObjects": self.total_objects,
            "compactionLevel": self.compaction_level,
            "encoding": self.encoding,
            "size": self.size,
        }


@dataclass(frozen=True)
class CompactedBlockMeta(BlockMeta):
    """Metadata of a block that has been merged into a higher level block.

    ``compacted_time`` comes from the ``compactedTime`` key when the writer
    recorded one, otherwise from the modification time of the
    ``meta.compacted.json`` object.
    """

    compacted_time: datetime | None = None

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        path: str = "meta.compacted.json",
        modified: datetime | None = None,
    ) -> CompactedBlockMeta:
        """Deserialize from a decoded ``meta.compacted.json`` document."""
        fields = cls._parse_fields(data, path)

        compacted_time = modified
        if data.get("compactedTime"):
            try:
                compacted_time = parse_timestamp(str(data["compactedTime"]))
            except (ValueError, OverflowError) as e:
                raise BlockMetaFormatError(path, str(e)) from e

        return cls(**fields, compacted_time=compacted_time)

    @classmethod
    def from_json(
        cls,
        raw: str | bytes,
        path: str = "meta.compacted.json",
        modified: datetime | None = None,
    ) -> CompactedBlockMeta:
        """Deserialize from raw ``meta.compacted.json`` content."""
        return cls.from_dict(_decode(raw, path), path, modified)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.compacted_time is not None:
            data["compactedTime"] = format_timestamp(self.compacted_time)
        return data


@dataclass(frozen=True)
class UnifiedBlockMeta:
    """One comparable record per block, whichever document it came from.

    Built by :func:`blockscan.blocks.unify.unify`. The ``window`` field is
    derived from ``end_time`` and the window duration of the scan.

    The unknown sentinel (see :meth:`unknown`) stands in for blocks whose
    metadata could not be resolved: ``total_objects`` and ``window`` are -1
    and the identifier is the zero UUID.
    """

    block_id: uuid.UUID
    compaction_level: int
    total_objects: int
    start_time: datetime
    end_time: datetime
    compacted: bool
    window: int
    tenant_id: str = ""
    version: str = ""
    encoding: str = ""
    size: int = 0
    compacted_time: datetime | None = None

    @classmethod
    def unknown(cls) -> UnifiedBlockMeta:
        """The sentinel record for a block with no resolvable metadata."""
        return cls(
            block_id=ZERO_BLOCK_ID,
            compaction_level=0,
            total_objects=-1,
            start_time=EPOCH,
            end_time=EPOCH,
            compacted=False,
            window=-1,
        )

    @property
    def state(self) -> MetaState:
        if self.total_objects < 0:
            return MetaState.UNKNOWN
        return MetaState.COMPACTED if self.compacted else MetaState.ACTIVE

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time


def _decode(raw: str | bytes, path: str) -> Any:
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BlockMetaFormatError(path, f"invalid JSON: {e}") from e
    except RecursionError as e:
        raise BlockMetaFormatError(path, "invalid JSON: nested too deeply") from e
