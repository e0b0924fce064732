"""
Block scanner.

Enumerates the blocks of a tenant, reads both metadata documents of every
block with bounded concurrency, and unifies them into one report.

Per-block read failures are collected in the result; only a failure to
enumerate the blocks aborts the scan.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import timedelta

from ..backends.base import BlockReader
from ..blocks.types import MetaState, UnifiedBlockMeta
from ..blocks.unify import unify, window_seconds
from ..exceptions import BlockNotFoundError, EnumerationError, StorageIOError
from .bounded import BoundedWaitGroup

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(hours=1)
DEFAULT_CONCURRENCY = 10


@dataclass(frozen=True)
class BlockScanFailure:
    """A block whose metadata could not be read."""

    block_id: uuid.UUID
    error: StorageIOError

    @property
    def reason(self) -> str:
        return self.error.message


@dataclass(frozen=True)
class BlockScanOutcome:
    """What one fetch task produced: a record or an error, never both."""

    block_id: uuid.UUID
    meta: UnifiedBlockMeta | None = None
    error: StorageIOError | None = None


@dataclass
class ScanResult:
    """Everything one scan pass found for a tenant.

    Attributes:
        tenant_id: The scanned tenant
        window_duration: Window width used to compute ``window``
        total: Number of block ids enumerated
        blocks: Resolved records, sorted by end time then id
        unknown: Blocks whose active and compacted lookups both found
            nothing, each paired with the unknown sentinel record
        failures: Blocks whose reads failed
    """

    tenant_id: str
    window_duration: timedelta
    total: int = 0
    blocks: list[UnifiedBlockMeta] = field(default_factory=list)
    unknown: list[BlockScanOutcome] = field(default_factory=list)
    failures: list[BlockScanFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when every block could be read."""
        return not self.failures

    @property
    def unknown_ids(self) -> list[uuid.UUID]:
        return [o.block_id for o in self.unknown]

    @property
    def active(self) -> list[UnifiedBlockMeta]:
        return [b for b in self.blocks if b.state is MetaState.ACTIVE]

    @property
    def compacted(self) -> list[UnifiedBlockMeta]:
        return [b for b in self.blocks if b.state is MetaState.COMPACTED]

    @property
    def total_objects(self) -> int:
        """Objects across active blocks; compacted blocks hold copies of them."""
        return sum(b.total_objects for b in self.active)

    def by_level(self, include_compacted: bool = False) -> dict[int, int]:
        """Block count per compaction level."""
        blocks = self.blocks if include_compacted else self.active
        return dict(sorted(Counter(b.compaction_level for b in blocks).items()))

    def by_window(self, include_compacted: bool = False) -> dict[int, dict[int, int]]:
        """Block count per window, then per compaction level."""
        blocks = self.blocks if include_compacted else self.active
        windows: dict[int, Counter[int]] = {}
        for b in blocks:
            windows.setdefault(b.window, Counter())[b.compaction_level] += 1
        return {w: dict(sorted(levels.items())) for w, levels in sorted(windows.items())}


class BlockScanner:
    """Scans the blocks of a tenant through a :class:`BlockReader`.

    Each block gets its own task; a :class:`BoundedWaitGroup` keeps at
    most ``concurrency`` of them reading at once. Tasks return their
    outcome instead of writing to shared state, and the outcomes are
    merged once after all tasks finish.
    """

    def __init__(
        self,
        reader: BlockReader,
        window_duration: timedelta = DEFAULT_WINDOW,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        """Initialize the scanner.

        Args:
            reader: Backend to read from
            window_duration: Window width, at least one second
            concurrency: Maximum concurrent block reads, at least one

        Raises:
            ValueError: If the window or concurrency is out of range
        """
        window_seconds(window_duration)
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")

        self.reader = reader
        self.window_duration = window_duration
        self.concurrency = concurrency

    async def scan(self, tenant_id: str) -> ScanResult:
        """Scan every block of a tenant.

        Raises:
            EnumerationError: If the block ids cannot be listed
        """
        started = time.monotonic()
        try:
            block_ids = await self.reader.blocks(tenant_id)
        except Exception as e:
            logger.error(
                "Failed to list blocks",
                extra={"tenant_id": tenant_id, "error": str(e)},
            )
            raise EnumerationError(tenant_id, e) from e

        logger.info(
            "Scanning %d blocks",
            len(block_ids),
            extra={"tenant_id": tenant_id, "concurrency": self.concurrency},
        )

        group = BoundedWaitGroup(self.concurrency)
        tasks: list[asyncio.Task[BlockScanOutcome]] = []
        for block_id in block_ids:
            await group.admit(1)
            tasks.append(asyncio.create_task(self._fetch(tenant_id, block_id, group)))
        await group.join()

        result = ScanResult(
            tenant_id=tenant_id,
            window_duration=self.window_duration,
            total=len(block_ids),
        )
        for task in tasks:
            outcome = task.result()
            if outcome.error is not None:
                result.failures.append(BlockScanFailure(outcome.block_id, outcome.error))
            elif outcome.meta is None or outcome.meta.state is MetaState.UNKNOWN:
                result.unknown.append(
                    BlockScanOutcome(outcome.block_id, meta=UnifiedBlockMeta.unknown())
                )
            else:
                result.blocks.append(outcome.meta)

        result.blocks.sort(key=lambda b: (b.end_time, b.block_id))
        result.unknown.sort(key=lambda o: o.block_id)
        result.failures.sort(key=lambda f: f.block_id)

        logger.info(
            "Scan finished",
            extra={
                "tenant_id": tenant_id,
                "blocks": result.total,
                "active": len(result.active),
                "compacted": len(result.compacted),
                "unknown": len(result.unknown),
                "failures": len(result.failures),
                "elapsed_s": round(time.monotonic() - started, 3),
            },
        )
        return result

    async def inspect(self, tenant_id: str, block_id: uuid.UUID) -> UnifiedBlockMeta:
        """Look up a single block.

        Raises:
            BlockNotFoundError: If neither metadata document exists
            StorageIOError: If a read fails
        """
        meta = await self._read(tenant_id, block_id)
        if meta.state is MetaState.UNKNOWN:
            raise BlockNotFoundError(str(block_id), tenant_id)
        return meta

    async def _read(self, tenant_id: str, block_id: uuid.UUID) -> UnifiedBlockMeta:
        active = await self.reader.block_meta(tenant_id, block_id)
        compacted = await self.reader.compacted_block_meta(tenant_id, block_id)
        return unify(active, compacted, self.window_duration)

    async def _fetch(
        self,
        tenant_id: str,
        block_id: uuid.UUID,
        group: BoundedWaitGroup,
    ) -> BlockScanOutcome:
        try:
            return BlockScanOutcome(block_id, meta=await self._read(tenant_id, block_id))
        except StorageIOError as e:
            logger.warning(
                "Failed to read block metadata",
                extra={"tenant_id": tenant_id, "block_id": str(block_id), "error": e.message},
            )
            return BlockScanOutcome(block_id, error=e)
        finally:
            group.release()
