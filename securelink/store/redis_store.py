"""
Redis-backed keyed record store.

Each namespace is one Redis string holding the namespace's JSON object.
Mutations use optimistic compare-and-swap: WATCH the key, read, apply the
mutation, then MULTI/SET/EXEC. A concurrent writer aborts the EXEC and the
cycle is retried from a fresh read, with the mutation re-evaluated, up to
``max_retries`` times. Several server processes may share one Redis.
"""

import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from ..errors import BusyError, StorageFailureError
from .locking import NamespaceLocks
from .types import RecordStore, Records, MutateAll, encode_records, decode_records


logger = logging.getLogger(__name__)


class RedisRecordStore(RecordStore):
    """
    Redis-based record store implementation.

    Within one process an asyncio lock per namespace keeps local callers from
    burning CAS retries against each other; across processes WATCH/EXEC
    provides the serialization.
    """

    backend_name = "redis"

    def __init__(self,
                 redis_url: str = "redis://localhost:6379/0",
                 key_prefix: str = "securelink:",
                 io_timeout: float = 5.0,
                 lock_timeout: float = 2.0,
                 max_retries: int = 10,
                 client: Optional[redis.Redis] = None):
        """
        Initialize Redis record store.

        Args:
            redis_url: Redis connection URL
            key_prefix: Prefix for namespace keys
            io_timeout: Socket timeout in seconds
            lock_timeout: Local lock acquisition timeout in seconds
            max_retries: Compare-and-swap attempts before reporting Busy
            client: Pre-built client (tests, shared pools)
        """
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.io_timeout = io_timeout
        self.max_retries = max_retries
        self.locks = NamespaceLocks(lock_timeout)
        self._redis = client

    def _client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_timeout=self.io_timeout,
                socket_connect_timeout=self.io_timeout,
            )
            logger.info(f"Using Redis record store at {self.redis_url}")
        return self._redis

    def _key(self, namespace: str) -> str:
        return f"{self.key_prefix}{namespace}"

    async def load(self, namespace: str) -> Records:
        try:
            raw = await self._client().get(self._key(namespace))
        except RedisError as e:
            logger.warning(f"Could not read namespace '{namespace}' from Redis, treating as empty: {e}")
            return {}
        return decode_records(namespace, raw)

    async def update_all(self, namespace: str, fn: MutateAll,
                         timeout: Optional[float] = None) -> Any:
        key = self._key(namespace)
        client = self._client()
        lock = await self.locks.acquire(namespace, timeout)
        try:
            for attempt in range(1, self.max_retries + 1):
                try:
                    async with client.pipeline(transaction=True) as pipe:
                        await pipe.watch(key)
                        raw = await pipe.get(key)
                        records = decode_records(namespace, raw)
                        before = encode_records(records)

                        result = fn(records)

                        try:
                            after = encode_records(records)
                        except (TypeError, ValueError) as e:
                            raise StorageFailureError(
                                f"Records are not JSON-serializable: {e}",
                                namespace=namespace,
                                cause=e,
                            ) from e

                        if after == before:
                            return result

                        pipe.multi()
                        pipe.set(key, after)
                        await pipe.execute()
                        return result
                except WatchError:
                    logger.warning(
                        f"Concurrent write to '{namespace}', retrying "
                        f"(attempt {attempt}/{self.max_retries})"
                    )
                except RedisError as e:
                    raise StorageFailureError(
                        f"Redis operation failed: {e}",
                        namespace=namespace,
                        cause=e,
                    ) from e
        finally:
            lock.release()

        raise BusyError(
            f"Store namespace '{namespace}' is busy after {self.max_retries} attempts"
        )

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Disconnected from Redis")
