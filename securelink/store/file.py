"""
File-backed keyed record store.

Layout under the configured root directory, one JSON object per namespace:

    root/
      links.json
      binds.json
      logs.json

New content is staged in a temp file in the same directory and fsynced, then
``replace`` swaps it in atomically, so a failed or abandoned write leaves the
previous content intact.
"""

import asyncio
import logging
import os
import secrets
from pathlib import Path
from typing import Optional, Union

import aiofiles
import aiofiles.os
from aiofiles.ospath import wrap

from .locking import LockingRecordStore


logger = logging.getLogger(__name__)

_fsync = wrap(os.fsync)


class FileRecordStore(LockingRecordStore):
    """JSON file per namespace, serialized by per-namespace locks."""

    backend_name = "file"

    def __init__(self, root_dir: Union[str, Path] = "./data",
                 io_timeout: float = 5.0, lock_timeout: float = 2.0):
        super().__init__(io_timeout=io_timeout, lock_timeout=lock_timeout)
        self.root_dir = Path(root_dir)

    def path_for(self, namespace: str) -> Path:
        return self.root_dir / f"{namespace}.json"

    async def _read_text(self, namespace: str) -> Optional[str]:
        try:
            async with aiofiles.open(self.path_for(namespace), "r", encoding="utf-8") as f:
                return await f.read()
        except FileNotFoundError:
            return None

    async def _stage_text(self, namespace: str, text: str) -> Path:
        await aiofiles.os.makedirs(self.root_dir, exist_ok=True)
        tmp_path = self.root_dir / f".{namespace}.{secrets.token_hex(6)}.tmp"
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(text)
                await f.flush()
                await _fsync(f.fileno())
        except (OSError, ValueError, asyncio.CancelledError):
            await self._discard(tmp_path)
            raise
        return tmp_path

    async def _commit_text(self, namespace: str, staged: Path) -> None:
        try:
            await aiofiles.os.replace(staged, self.path_for(namespace))
        except OSError:
            await self._discard(staged)
            raise

    async def _discard(self, tmp_path: Path) -> None:
        try:
            await aiofiles.os.remove(tmp_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove temp file {tmp_path}: {e}")

    def __repr__(self) -> str:
        return f"FileRecordStore(root_dir={str(self.root_dir)!r})"
