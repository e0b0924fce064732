"""
Abstract block reader interface.

Defines the read-only contract every storage backend implements, and the
object layout they share::

    {root}/
      {tenant_id}/
        {block_id}/
          meta.json             (active block)
          meta.compacted.json   (block merged away by compaction)
          data, index, ...      (never read here)
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable
from types import TracebackType

from ..blocks.types import BlockMeta, CompactedBlockMeta

logger = logging.getLogger(__name__)

META_NAME = "meta.json"
COMPACTED_META_NAME = "meta.compacted.json"


def meta_key(tenant_id: str, block_id: uuid.UUID, name: str = META_NAME) -> str:
    """Object key of a metadata document, relative to the bucket root."""
    return f"{tenant_id}/{block_id}/{name}"


def parse_block_ids(names: Iterable[str], tenant_id: str = "") -> list[uuid.UUID]:
    """Turn directory or prefix names into block ids, skipping anything else."""
    block_ids: list[uuid.UUID] = []
    for name in names:
        try:
            block_ids.append(uuid.UUID(name.strip("/")))
        except ValueError:
            logger.debug(
                "Skipping non-block entry",
                extra={"tenant_id": tenant_id, "entry": name},
            )
    return block_ids


class BlockReader(ABC):
    """Read-only access to the blocks stored in one bucket.

    A metadata lookup that finds nothing returns None; only genuine
    failures raise.
    """

    name: str = ""

    @abstractmethod
    async def tenants(self) -> list[str]:
        """List the tenants with data in the bucket.

        Raises:
            StorageIOError: If listing fails
        """
        ...

    @abstractmethod
    async def blocks(self, tenant_id: str) -> list[uuid.UUID]:
        """List the block ids of a tenant.

        Returns an empty list when the tenant has no blocks.

        Raises:
            StorageIOError: If listing fails
        """
        ...

    @abstractmethod
    async def block_meta(self, tenant_id: str, block_id: uuid.UUID) -> BlockMeta | None:
        """Read ``meta.json`` of a block.

        Returns:
            The metadata, or None if the block has no active metadata

        Raises:
            StorageIOError: If the read fails
            BlockMetaFormatError: If the document cannot be parsed
        """
        ...

    @abstractmethod
    async def compacted_block_meta(
        self, tenant_id: str, block_id: uuid.UUID
    ) -> CompactedBlockMeta | None:
        """Read ``meta.compacted.json`` of a block.

        Returns:
            The metadata, or None if the block has not been compacted

        Raises:
            StorageIOError: If the read fails
            BlockMetaFormatError: If the document cannot be parsed
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release client resources."""
        ...

    async def __aenter__(self) -> BlockReader:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
