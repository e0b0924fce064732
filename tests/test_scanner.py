"""Tests for the block scanner."""

from __future__ import annotations

import uuid
from datetime import timedelta

import pytest
from conftest import TENANT, BASE_TIME, InMemoryReader, make_compacted_meta, make_meta

from blockscan.blocks.types import ZERO_BLOCK_ID, MetaState
from blockscan.exceptions import (
    BlockMetaFormatError,
    BlockNotFoundError,
    EnumerationError,
    StorageIOError,
)
from blockscan.scan.scanner import BlockScanner, ScanResult

HOUR = timedelta(hours=1)


class TestBlockScannerInit:
    """Tests for scanner argument validation."""

    def test_rejects_zero_concurrency(self, reader: InMemoryReader) -> None:
        with pytest.raises(ValueError):
            BlockScanner(reader, concurrency=0)

    def test_rejects_sub_second_window(self, reader: InMemoryReader) -> None:
        with pytest.raises(ValueError):
            BlockScanner(reader, window_duration=timedelta(0))


class TestScan:
    """Tests for BlockScanner.scan."""

    async def test_active_compacted_and_missing(self, reader: InMemoryReader) -> None:
        """A has only active meta, B only compacted, C neither."""
        a = make_meta(level=0, objects=10)
        b = make_compacted_meta(level=1, objects=20)
        c = uuid.uuid4()
        reader.add(active=a)
        reader.add(compacted=b)
        reader.add(block_id=c)

        result = await BlockScanner(reader, window_duration=HOUR).scan(TENANT)

        assert result.total == 3
        assert result.ok
        assert len(result.blocks) == 2
        by_id = {m.block_id: m for m in result.blocks}

        record_a = by_id[a.block_id]
        assert record_a.compacted is False
        assert record_a.compaction_level == 0
        assert record_a.total_objects == 10
        assert record_a.start_time == a.start_time
        assert record_a.end_time == a.end_time

        record_b = by_id[b.block_id]
        assert record_b.compacted is True
        assert record_b.compaction_level == 1
        assert record_b.total_objects == 20

        assert result.unknown_ids == [c]
        sentinel = result.unknown[0].meta
        assert sentinel is not None
        assert sentinel.total_objects == -1
        assert sentinel.window == -1
        assert sentinel.block_id == ZERO_BLOCK_ID
        assert sentinel.compacted is False
        assert sentinel.state is MetaState.UNKNOWN

    async def test_both_lookups_attempted(self, reader: InMemoryReader) -> None:
        block_id = reader.add(active=make_meta())

        await BlockScanner(reader).scan(TENANT)

        assert ("active", block_id) in reader.reads
        assert ("compacted", block_id) in reader.reads

    async def test_empty_tenant(self, reader: InMemoryReader) -> None:
        result = await BlockScanner(reader).scan("nobody")

        assert result.total == 0
        assert result.blocks == []
        assert result.unknown == []
        assert result.ok

    async def test_enumeration_failure_is_fatal(self, reader: InMemoryReader) -> None:
        reader.add(active=make_meta())
        reader.list_error = StorageIOError("list blocks", "bucket/single-tenant/")

        with pytest.raises(EnumerationError) as exc_info:
            await BlockScanner(reader).scan(TENANT)

        assert exc_info.value.tenant_id == TENANT
        assert isinstance(exc_info.value.cause, StorageIOError)
        assert reader.reads == []

    async def test_unexpected_enumeration_error_wrapped(self, reader: InMemoryReader) -> None:
        reader.list_error = ConnectionResetError("peer reset")

        with pytest.raises(EnumerationError):
            await BlockScanner(reader).scan(TENANT)

    async def test_read_failures_collected(self, reader: InMemoryReader) -> None:
        good = reader.add(active=make_meta())
        broken = reader.add(active=make_meta())
        garbled = reader.add(active=make_meta())
        reader.read_errors[broken] = StorageIOError("read meta", "x/meta.json", TimeoutError())
        reader.read_errors[garbled] = BlockMetaFormatError("y/meta.json", "invalid JSON")

        result = await BlockScanner(reader).scan(TENANT)

        assert result.total == 3
        assert [m.block_id for m in result.blocks] == [good]
        assert not result.ok
        assert {f.block_id for f in result.failures} == {broken, garbled}
        assert all(f.reason for f in result.failures)

    async def test_unexpected_task_error_propagates(self, reader: InMemoryReader) -> None:
        block_id = reader.add(active=make_meta())
        reader.read_errors[block_id] = KeyError("bug")

        with pytest.raises(KeyError):
            await BlockScanner(reader).scan(TENANT)

    async def test_concurrency_is_bounded(self) -> None:
        reader = InMemoryReader(read_delay=0.005)
        for _ in range(30):
            reader.add(active=make_meta())

        result = await BlockScanner(reader, concurrency=4).scan(TENANT)

        assert len(result.blocks) == 30
        assert reader.max_in_flight <= 4
        assert reader.max_in_flight > 1

    async def test_sorted_by_end_time(self, reader: InMemoryReader) -> None:
        late = make_meta(start=BASE_TIME + timedelta(hours=5))
        early = make_meta(start=BASE_TIME)
        middle = make_compacted_meta(start=BASE_TIME + timedelta(hours=2))
        reader.add(active=late)
        reader.add(active=early)
        reader.add(compacted=middle)

        result = await BlockScanner(reader).scan(TENANT)

        assert [m.block_id for m in result.blocks] == [
            early.block_id,
            middle.block_id,
            late.block_id,
        ]

    async def test_windows_follow_duration(self, reader: InMemoryReader) -> None:
        meta = make_meta()
        reader.add(active=meta)

        result = await BlockScanner(reader, window_duration=timedelta(minutes=30)).scan(TENANT)

        assert result.blocks[0].window == int(meta.end_time.timestamp()) // 1800
        assert result.window_duration == timedelta(minutes=30)


class TestScanResult:
    """Tests for ScanResult summaries."""

    @pytest.fixture
    async def result(self, reader: InMemoryReader) -> ScanResult:
        reader.add(active=make_meta(level=0, objects=5))
        reader.add(active=make_meta(level=0, objects=7, start=BASE_TIME + HOUR))
        reader.add(active=make_meta(level=1, objects=11))
        reader.add(compacted=make_compacted_meta(level=0, objects=100))
        return await BlockScanner(reader, window_duration=HOUR).scan(TENANT)

    async def test_partitions(self, result: ScanResult) -> None:
        assert len(result.active) == 3
        assert len(result.compacted) == 1
        assert all(m.state is MetaState.ACTIVE for m in result.active)

    async def test_total_objects_counts_active_only(self, result: ScanResult) -> None:
        assert result.total_objects == 23

    async def test_by_level(self, result: ScanResult) -> None:
        assert result.by_level() == {0: 2, 1: 1}
        assert result.by_level(include_compacted=True) == {0: 3, 1: 1}

    async def test_by_window(self, result: ScanResult) -> None:
        first = int((BASE_TIME + timedelta(minutes=5)).timestamp()) // 3600

        assert result.by_window() == {first: {0: 1, 1: 1}, first + 1: {0: 1}}


class TestInspect:
    """Tests for single-block lookup."""

    async def test_active_block(self, reader: InMemoryReader) -> None:
        meta = make_meta(level=2)
        reader.add(active=meta)

        record = await BlockScanner(reader).inspect(TENANT, meta.block_id)

        assert record.block_id == meta.block_id
        assert record.compaction_level == 2
        assert record.compacted is False

    async def test_compacted_block(self, reader: InMemoryReader) -> None:
        meta = make_compacted_meta()
        reader.add(compacted=meta)

        record = await BlockScanner(reader).inspect(TENANT, meta.block_id)

        assert record.compacted is True

    async def test_missing_block(self, reader: InMemoryReader) -> None:
        with pytest.raises(BlockNotFoundError):
            await BlockScanner(reader).inspect(TENANT, uuid.uuid4())

    async def test_read_error_propagates(self, reader: InMemoryReader) -> None:
        block_id = reader.add(active=make_meta())
        reader.read_errors[block_id] = StorageIOError("read meta")

        with pytest.raises(StorageIOError):
            await BlockScanner(reader).inspect(TENANT, block_id)
