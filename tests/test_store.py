"""
Tests for the keyed record store backends.
"""

import asyncio
import json

import pytest

from securelink.core.config import StoreConfig
from securelink.errors import BusyError, StorageFailureError
from securelink.store import (
    LINKS,
    BINDINGS,
    LOGS,
    FileRecordStore,
    MemoryRecordStore,
    RedisRecordStore,
    create_store,
    decode_records,
)


class TestRecordStore:
    """Behaviour shared by every locking backend."""

    @pytest.mark.asyncio
    async def test_missing_namespace_loads_empty(self, store):
        assert await store.load(LINKS) == {}
        assert await store.get(LINKS, "nope") is None

    @pytest.mark.asyncio
    async def test_put_get_roundtrip(self, store):
        await store.put(BINDINGS, "p-a", {"bindDate": 1, "expiryDate": 2, "isDemo": False})

        assert await store.get(BINDINGS, "p-a") == {"bindDate": 1, "expiryDate": 2, "isDemo": False}
        assert await store.load(LINKS) == {}

    @pytest.mark.asyncio
    async def test_save_replaces_whole_namespace(self, store):
        await store.put(LINKS, "old", 1)

        await store.save(LINKS, {"a": 1, "b": [1, 2]})

        assert await store.load(LINKS) == {"a": 1, "b": [1, 2]}

    @pytest.mark.asyncio
    async def test_update_returns_callback_result_and_deletes_on_none(self, store):
        await store.put(LINKS, "k", {"n": 1})

        result = await store.update(LINKS, "k", lambda current: (None, current["n"]))

        assert result == 1
        assert await store.get(LINKS, "k") is None

    @pytest.mark.asyncio
    async def test_loaded_mapping_is_a_private_copy(self, store):
        await store.put(LINKS, "k", {"n": 1})

        records = await store.load(LINKS)
        records["k"]["n"] = 99
        records["other"] = {}

        assert await store.load(LINKS) == {"k": {"n": 1}}

    @pytest.mark.asyncio
    async def test_append_creates_and_extends_list(self, store):
        assert await store.append(LOGS, "p-a-t", {"i": 1}) == 1
        assert await store.append(LOGS, "p-a-t", {"i": 2}) == 2

        assert await store.get(LOGS, "p-a-t") == [{"i": 1}, {"i": 2}]

    @pytest.mark.asyncio
    async def test_concurrent_updates_are_not_lost(self, store):
        await store.put(LINKS, "counter", 0)

        async def bump():
            await store.update(LINKS, "counter", lambda n: (n + 1, None))

        await asyncio.gather(*(bump() for _ in range(25)))

        assert await store.get(LINKS, "counter") == 25

    @pytest.mark.asyncio
    async def test_unserializable_records_fail_without_writing(self, store):
        await store.put(LINKS, "k", {"n": 1})

        with pytest.raises(StorageFailureError):
            await store.put(LINKS, "bad", {"value": object()})

        assert await store.load(LINKS) == {"k": {"n": 1}}

    @pytest.mark.asyncio
    async def test_lock_contention_raises_busy(self, store):
        lock = await store.locks.acquire(LINKS)
        try:
            with pytest.raises(BusyError) as exc_info:
                await store.put(LINKS, "k", 1, timeout=0.05)
        finally:
            lock.release()

        assert exc_info.value.http_status == 503
        assert exc_info.value.is_retryable()
        # other namespaces are unaffected
        await store.put(BINDINGS, "k", 1, timeout=0.05)


class TestMemoryRecordStore:
    """Tests for the in-memory backend."""

    @pytest.mark.asyncio
    async def test_unchanged_cycle_does_not_write(self, memory_store):
        await memory_store.put(LINKS, "k", {"n": 1})
        writes = memory_store.write_count

        await memory_store.update_all(LINKS, lambda records: len(records))
        await memory_store.put(LINKS, "k", {"n": 1})

        assert memory_store.write_count == writes


class TestFileRecordStore:
    """Tests for the JSON file backend."""

    @pytest.mark.asyncio
    async def test_writes_one_json_file_per_namespace(self, file_store):
        await file_store.put(LINKS, "abc", {"originalLink": "http://x"})

        path = file_store.root_dir / "links.json"
        assert path.exists()
        assert json.loads(path.read_text()) == {"abc": {"originalLink": "http://x"}}
        assert not (file_store.root_dir / "binds.json").exists()

    @pytest.mark.asyncio
    async def test_reads_existing_data_files(self, tmp_path):
        (tmp_path / "binds.json").write_text(json.dumps({
            "prog-acct": {"bindDate": 1, "expiryDate": 2, "isDemo": True}
        }, indent=2))
        store = FileRecordStore(root_dir=tmp_path)

        assert await store.get(BINDINGS, "prog-acct") == {"bindDate": 1, "expiryDate": 2, "isDemo": True}

    @pytest.mark.asyncio
    async def test_corrupt_file_loads_empty(self, tmp_path):
        (tmp_path / "links.json").write_text("{not json")
        store = FileRecordStore(root_dir=tmp_path)

        assert await store.load(LINKS) == {}

    @pytest.mark.asyncio
    async def test_failed_replace_keeps_previous_content(self, file_store, monkeypatch):
        await file_store.put(LINKS, "keep", {"n": 1})

        async def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("aiofiles.os.replace", broken_replace)

        with pytest.raises(StorageFailureError) as exc_info:
            await file_store.put(LINKS, "new", {"n": 2})

        assert exc_info.value.http_status == 500
        monkeypatch.undo()
        assert await file_store.load(LINKS) == {"keep": {"n": 1}}
        leftovers = [p.name for p in file_store.root_dir.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    @pytest.mark.asyncio
    async def test_unwritable_root_raises_storage_failure(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        store = FileRecordStore(root_dir=blocker / "data")

        with pytest.raises(StorageFailureError):
            await store.put(LINKS, "k", 1)

    @pytest.mark.asyncio
    async def test_timed_out_write_keeps_previous_content(self, tmp_path, monkeypatch):
        store = FileRecordStore(tmp_path, io_timeout=0.05)
        await store.put(LINKS, "first", 1)

        async def slow_fsync(fd):
            await asyncio.sleep(0.3)

        monkeypatch.setattr("securelink.store.file._fsync", slow_fsync)

        with pytest.raises(StorageFailureError) as exc_info:
            await store.put(LINKS, "second", 2)

        assert "timed out" in exc_info.value.message
        assert await store.load(LINKS) == {"first": 1}
        assert [p.name for p in tmp_path.iterdir()] == ["links.json"]

        # the lock was released and the next cycle commits normally
        monkeypatch.undo()
        await store.put(LINKS, "second", 2)
        assert await store.load(LINKS) == {"first": 1, "second": 2}


class TestDecodeRecords:
    """Tests for namespace parsing."""

    def test_non_object_content_is_empty(self):
        assert decode_records(LINKS, "[1, 2]") == {}
        assert decode_records(LINKS, "") == {}
        assert decode_records(LINKS, None) == {}

    def test_object_content_is_returned(self):
        assert decode_records(LINKS, '{"a": 1}') == {"a": 1}


class TestStoreFactory:
    """Tests for create_store."""

    def test_creates_configured_backends(self, tmp_path):
        assert isinstance(create_store(StoreConfig(backend="memory")), MemoryRecordStore)

        file_store = create_store(StoreConfig(backend="file", root_dir=str(tmp_path)))
        assert isinstance(file_store, FileRecordStore)
        assert file_store.root_dir == tmp_path

        redis_store = create_store(StoreConfig(backend="redis", redis_url="redis://localhost:6379/9"))
        assert isinstance(redis_store, RedisRecordStore)
        assert redis_store.redis_url == "redis://localhost:6379/9"

    def test_rejects_unknown_backend(self):
        with pytest.raises(ValueError):
            create_store(StoreConfig(backend="sqlite"))
