"""
Tests for the Redis record store.

Run against a disposable database:

    SECURELINK_TEST_REDIS_URL=redis://localhost:6379/15 pytest tests/test_redis_store.py
"""

import asyncio
import json
import os
import uuid

import pytest
import redis

from securelink.errors import BusyError, LinkExhaustedError
from securelink.links import LinkEngine, Redemption
from securelink.store import LINKS, RedisRecordStore


REDIS_URL = os.environ.get("SECURELINK_TEST_REDIS_URL")

pytestmark = pytest.mark.skipif(not REDIS_URL, reason="SECURELINK_TEST_REDIS_URL not set")


@pytest.fixture
async def redis_store():
    store = RedisRecordStore(redis_url=REDIS_URL, key_prefix=f"securelink-test:{uuid.uuid4().hex}:")
    yield store
    client = store._client()
    for namespace in ("links", "binds", "logs"):
        await client.delete(store._key(namespace))
    await store.close()


class TestRedisRecordStore:
    """Tests for RedisRecordStore."""

    @pytest.mark.asyncio
    async def test_put_get_and_load(self, redis_store):
        assert await redis_store.load(LINKS) == {}

        await redis_store.put(LINKS, "k", {"n": 1})

        assert await redis_store.get(LINKS, "k") == {"n": 1}

    @pytest.mark.asyncio
    async def test_concurrent_updates_across_clients(self, redis_store):
        # a second store instance stands in for a second server process
        other = RedisRecordStore(redis_url=REDIS_URL, key_prefix=redis_store.key_prefix)
        await redis_store.put(LINKS, "counter", 0)

        async def bump(store):
            await store.update(LINKS, "counter", lambda n: (n + 1, None))

        try:
            await asyncio.gather(*(bump(s) for s in [redis_store, other] * 10))
        finally:
            await other.close()

        assert await redis_store.get(LINKS, "counter") == 20

    @pytest.mark.asyncio
    async def test_use_count_bound(self, redis_store):
        engine = LinkEngine(redis_store)
        created = await engine.create("https://files.example.com/a.zip", "prog", 10, 3, "acct")

        results = await asyncio.gather(
            *(engine.redeem(created.token_id) for _ in range(10)),
            return_exceptions=True,
        )

        assert sum(isinstance(r, Redemption) for r in results) == 3
        assert sum(isinstance(r, LinkExhaustedError) for r in results) == 7


    @pytest.mark.asyncio
    async def test_persistent_conflicts_report_busy(self, redis_store):
        redis_store.max_retries = 3
        await redis_store.put(LINKS, "k", 0)
        key = redis_store._key(LINKS)
        intruder = redis.Redis.from_url(REDIS_URL, decode_responses=True)
        attempts = []

        def mutate(records):
            # another writer commits between WATCH and EXEC on every attempt
            attempts.append(1)
            intruder.set(key, json.dumps({"k": -len(attempts)}))
            records["k"] = "mine"

        try:
            with pytest.raises(BusyError):
                await redis_store.update_all(LINKS, mutate)
        finally:
            intruder.close()

        assert len(attempts) == 3
        assert await redis_store.get(LINKS, "k") == -3
