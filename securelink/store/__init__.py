"""
Keyed record store package for securelink.

Durable string-keyed namespaces of JSON records with serialized
read-modify-write cycles. Backends: JSON files, process memory, Redis.
"""

from .types import (
    LINKS,
    BINDINGS,
    LOGS,
    NAMESPACES,
    RecordStore,
    encode_records,
    decode_records,
)
from .locking import NamespaceLocks, LockingRecordStore
from .file import FileRecordStore
from .memory import MemoryRecordStore
from .redis_store import RedisRecordStore
from .factory import create_store

__all__ = [
    "LINKS",
    "BINDINGS",
    "LOGS",
    "NAMESPACES",
    "RecordStore",
    "encode_records",
    "decode_records",
    "NamespaceLocks",
    "LockingRecordStore",
    "FileRecordStore",
    "MemoryRecordStore",
    "RedisRecordStore",
    "create_store",
]
