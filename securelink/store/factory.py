"""
Factory for creating record store backends from configuration.
"""

import logging
from typing import Dict, Type

from ..core.config import StoreConfig
from .types import RecordStore
from .file import FileRecordStore
from .memory import MemoryRecordStore
from .redis_store import RedisRecordStore


logger = logging.getLogger(__name__)


_STORE_IMPLEMENTATIONS: Dict[str, Type[RecordStore]] = {
    'file': FileRecordStore,
    'memory': MemoryRecordStore,
    'redis': RedisRecordStore,
}


def create_store(config: StoreConfig) -> RecordStore:
    """
    Create a record store for the configured backend.

    Raises:
        ValueError: If the backend is not supported
    """
    backend = config.backend.lower()
    if backend not in _STORE_IMPLEMENTATIONS:
        raise ValueError(f"Unsupported store backend: {config.backend}")

    if backend == 'file':
        store = FileRecordStore(
            root_dir=config.root_dir,
            io_timeout=config.io_timeout,
            lock_timeout=config.lock_timeout,
        )
    elif backend == 'redis':
        store = RedisRecordStore(
            redis_url=config.redis_url,
            key_prefix=config.key_prefix,
            io_timeout=config.io_timeout,
            lock_timeout=config.lock_timeout,
            max_retries=config.max_retries,
        )
    else:
        store = MemoryRecordStore(
            io_timeout=config.io_timeout,
            lock_timeout=config.lock_timeout,
        )

    logger.info(f"Created {backend} record store")
    return store
