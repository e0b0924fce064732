"""
Shared test configuration and fixtures.

Provides an in-memory block reader for scanner tests, factories for
block metadata, and a fixture that lays blocks out on disk the way a
tracing server's local backend does.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from blockscan.backends.base import COMPACTED_META_NAME, META_NAME, BlockReader
from blockscan.blocks.types import BlockMeta, CompactedBlockMeta

TENANT = "single-tenant"
BASE_TIME = datetime(2020, 10, 20, 14, 0, 0, tzinfo=UTC)


def make_meta(
    block_id: uuid.UUID | None = None,
    level: int = 0,
    objects: int = 100,
    start: datetime = BASE_TIME,
    length: timedelta = timedelta(minutes=5),
    tenant_id: str = TENANT,
) -> BlockMeta:
    """Active metadata with sensible defaults."""
    return BlockMeta(
        block_id=block_id or uuid.uuid4(),
        compaction_level=level,
        total_objects=objects,
        start_time=start,
        end_time=start + length,
        tenant_id=tenant_id,
        version="v0",
        encoding="zstd",
        size=objects * 1024,
    )


def make_compacted_meta(
    block_id: uuid.UUID | None = None,
    level: int = 1,
    objects: int = 100,
    start: datetime = BASE_TIME,
    length: timedelta = timedelta(minutes=5),
    compacted_time: datetime | None = None,
    tenant_id: str = TENANT,
) -> CompactedBlockMeta:
    """Compacted metadata with sensible defaults."""
    meta = make_meta(block_id, level, objects, start, length, tenant_id)
    return CompactedBlockMeta(
        block_id=meta.block_id,
        compaction_level=meta.compaction_level,
        total_objects=meta.total_objects,
        start_time=meta.start_time,
        end_time=meta.end_time,
        tenant_id=meta.tenant_id,
        version=meta.version,
        encoding=meta.encoding,
        size=meta.size,
        compacted_time=compacted_time,
    )


class InMemoryReader(BlockReader):
    """
    Block reader backed by dictionaries.

    Tracks how many metadata reads are in flight so tests can check the
    concurrency bound, and can be told to fail listing or specific reads.
    """

    name = "memory"

    def __init__(self, read_delay: float = 0.0):
        self.block_ids: dict[str, list[uuid.UUID]] = {}
        self.active: dict[uuid.UUID, BlockMeta] = {}
        self.compacted: dict[uuid.UUID, CompactedBlockMeta] = {}
        self.read_errors: dict[uuid.UUID, Exception] = {}
        self.list_error: Exception | None = None
        self.read_delay = read_delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.reads: list[tuple[str, uuid.UUID]] = []
        self.closed = False

    def add(
        self,
        active: BlockMeta | None = None,
        compacted: CompactedBlockMeta | None = None,
        block_id: uuid.UUID | None = None,
        tenant_id: str = TENANT,
    ) -> uuid.UUID:
        """Register a block under a tenant; either document may be omitted."""
        block_id = block_id or (active or compacted).block_id  # type: ignore[union-attr]
        self.block_ids.setdefault(tenant_id, []).append(block_id)
        if active is not None:
            self.active[block_id] = active
        if compacted is not None:
            self.compacted[block_id] = compacted
        return block_id

    async def tenants(self) -> list[str]:
        return sorted(self.block_ids)

    async def blocks(self, tenant_id: str) -> list[uuid.UUID]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.block_ids.get(tenant_id, []))

    async def _enter(self, kind: str, block_id: uuid.UUID) -> None:
        self.reads.append((kind, block_id))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.read_delay:
                await asyncio.sleep(self.read_delay)
            if block_id in self.read_errors:
                raise self.read_errors[block_id]
        finally:
            self.in_flight -= 1

    async def block_meta(self, tenant_id: str, block_id: uuid.UUID) -> BlockMeta | None:
        await self._enter("active", block_id)
        return self.active.get(block_id)

    async def compacted_block_meta(
        self, tenant_id: str, block_id: uuid.UUID
    ) -> CompactedBlockMeta | None:
        await self._enter("compacted", block_id)
        return self.compacted.get(block_id)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def reader() -> InMemoryReader:
    """Fresh in-memory reader."""
    return InMemoryReader()


@pytest.fixture
def write_block(tmp_path: Path) -> Callable[..., Path]:
    """
    Fixture returning a helper that writes metadata documents under tmp_path.

    Usage: write_block(meta) writes meta.json; write_block(meta, compacted=True)
    writes meta.compacted.json; write_block(raw="{...}", block_id=...) writes raw text.
    """

    def _write(
        meta: BlockMeta | None = None,
        compacted: bool = False,
        raw: str | None = None,
        block_id: uuid.UUID | None = None,
        tenant_id: str = TENANT,
    ) -> Path:
        block_id = block_id or meta.block_id  # type: ignore[union-attr]
        block_dir = tmp_path / tenant_id / str(block_id)
        block_dir.mkdir(parents=True, exist_ok=True)
        name = COMPACTED_META_NAME if compacted else META_NAME
        content = raw if raw is not None else json.dumps(meta.to_dict())  # type: ignore[union-attr]
        path = block_dir / name
        path.write_text(content)
        return path

    return _write
