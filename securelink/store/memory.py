"""
In-memory keyed record store.

Holds each namespace as its serialized JSON text, so every load hands out an
independent copy and the change detection matches the file backend exactly.
Suitable for tests and throwaway instances.
"""

import logging
from typing import Dict, Optional

from .locking import LockingRecordStore


logger = logging.getLogger(__name__)


class MemoryRecordStore(LockingRecordStore):
    """Process-local store with the same locking discipline as the file store."""

    backend_name = "memory"

    def __init__(self, io_timeout: float = 5.0, lock_timeout: float = 2.0):
        super().__init__(io_timeout=io_timeout, lock_timeout=lock_timeout)
        self._data: Dict[str, str] = {}
        self.write_count = 0

    async def _read_text(self, namespace: str) -> Optional[str]:
        return self._data.get(namespace)

    async def _stage_text(self, namespace: str, text: str) -> str:
        return text

    async def _commit_text(self, namespace: str, staged: str) -> None:
        self._data[namespace] = staged
        self.write_count += 1
