"""
Local filesystem block reader.

Reads the bucket layout from a directory on disk, as written by a
tracing server configured with the ``local`` backend.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from pathlib import Path

import aiofiles
import aiofiles.os

from ..blocks.types import BlockMeta, CompactedBlockMeta
from ..config import LocalConfig
from ..exceptions import ConfigurationError, StorageConnectionError, StorageIOError
from .base import COMPACTED_META_NAME, META_NAME, BlockReader, parse_block_ids


class LocalBackend(BlockReader):
    """Block reader for a local directory.

    Directory structure:
    {path}/
      {tenant_id}/
        {block_id}/
          meta.json
          meta.compacted.json
    """

    name = "local"

    def __init__(self, config: LocalConfig) -> None:
        """Initialize the local reader.

        Args:
            config: Local backend configuration

        Raises:
            ConfigurationError: If no path is configured
            StorageConnectionError: If the path is not an existing directory
        """
        if not config.path:
            raise ConfigurationError("local backend requires storage.trace.local.path")

        self.config = config
        self.base_path = Path(config.path).expanduser()

        if not self.base_path.is_dir():
            raise StorageConnectionError(
                str(self.base_path), FileNotFoundError(f"not a directory: {self.base_path}")
            )

    def _tenant_dir(self, tenant_id: str) -> Path:
        return self.base_path / tenant_id

    def _meta_file(self, tenant_id: str, block_id: uuid.UUID, name: str) -> Path:
        return self._tenant_dir(tenant_id) / str(block_id) / name

    async def tenants(self) -> list[str]:
        """List tenant directories."""
        try:
            entries = await aiofiles.os.listdir(self.base_path)
        except OSError as e:
            raise StorageIOError("list tenants", str(self.base_path), e) from e

        return sorted(await self._subdirs(self.base_path, entries))

    async def blocks(self, tenant_id: str) -> list[uuid.UUID]:
        """List block directories of a tenant."""
        tenant_dir = self._tenant_dir(tenant_id)
        if not await aiofiles.os.path.isdir(tenant_dir):
            return []

        try:
            entries = await aiofiles.os.listdir(tenant_dir)
        except OSError as e:
            raise StorageIOError("list blocks", str(tenant_dir), e) from e

        return parse_block_ids(await self._subdirs(tenant_dir, entries), tenant_id)

    async def block_meta(self, tenant_id: str, block_id: uuid.UUID) -> BlockMeta | None:
        """Read ``meta.json`` of a block."""
        meta_file = self._meta_file(tenant_id, block_id, META_NAME)
        content = await self._read(meta_file)
        if content is None:
            return None
        return BlockMeta.from_json(content, str(meta_file))

    async def compacted_block_meta(
        self, tenant_id: str, block_id: uuid.UUID
    ) -> CompactedBlockMeta | None:
        """Read ``meta.compacted.json`` of a block, falling back to its mtime."""
        meta_file = self._meta_file(tenant_id, block_id, COMPACTED_META_NAME)
        content = await self._read(meta_file)
        if content is None:
            return None

        try:
            stat = await aiofiles.os.stat(meta_file)
            modified = datetime.fromtimestamp(stat.st_mtime, tz=UTC)
        except OSError:
            modified = None

        return CompactedBlockMeta.from_json(content, str(meta_file), modified)

    async def close(self) -> None:
        """Close storage (no-op for local storage)."""
        pass

    async def _subdirs(self, parent: Path, names: list[str]) -> list[str]:
        """Names under parent that are directories, in listing order."""
        return [name for name in names if await aiofiles.os.path.isdir(parent / name)]

    async def _read(self, path: Path) -> bytes | None:
        """Read a file, returning None if it does not exist."""
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageIOError("read meta", str(path), e) from e
