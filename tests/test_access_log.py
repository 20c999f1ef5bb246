"""
Tests for the access logger.
"""

import json

import pytest

from securelink.audit import AccessLogger, log_key
from securelink.errors import StorageFailureError
from securelink.store import FileRecordStore, LOGS


@pytest.fixture
def access_log(store, clock):
    return AccessLogger(store, clock=clock)


class TestAccessLogger:
    """Tests for AccessLogger."""

    @pytest.mark.asyncio
    async def test_unknown_link_has_no_entries(self, access_log):
        assert await access_log.entries("prog", "acct", "tok") == []

    @pytest.mark.asyncio
    async def test_append_adds_server_timestamp(self, access_log, clock):
        await access_log.append("prog", "acct", "tok", {"ip": "10.0.0.1", "timestamp": 1})

        assert await access_log.entries("prog", "acct", "tok") == [
            {"ip": "10.0.0.1", "timestamp": clock()}
        ]

    @pytest.mark.asyncio
    async def test_entries_accumulate_in_order(self, access_log, clock):
        await access_log.append("prog", "acct", "tok", {"n": 1})
        clock.advance(5)
        await access_log.append("prog", "acct", "tok", {"n": 2})

        entries = await access_log.entries("prog", "acct", "tok")
        assert [e["n"] for e in entries] == [1, 2]
        assert entries[0]["timestamp"] < entries[1]["timestamp"]

    @pytest.mark.asyncio
    async def test_links_are_logged_independently(self, access_log, clock):
        await access_log.append("prog", "acct", "tok-1", {"ip": "a"})
        clock.advance(1)
        await access_log.append("prog", "acct", "tok-2", {"ip": "b"})

        first = await access_log.entries("prog", "acct", "tok-1")
        second = await access_log.entries("prog", "acct", "tok-2")
        assert len(first) == 1 and first[0]["ip"] == "a"
        assert len(second) == 1 and second[0]["ip"] == "b"
        assert first[0]["timestamp"] < second[0]["timestamp"]

    @pytest.mark.asyncio
    async def test_file_layout(self, tmp_path, clock):
        access_log = AccessLogger(FileRecordStore(root_dir=tmp_path), clock=clock)

        await access_log.append("prog", "acct", "tok", {"userAgent": "curl"})

        data = json.loads((tmp_path / "logs.json").read_text())
        assert data == {"prog-acct-tok": [{"userAgent": "curl", "timestamp": clock()}]}
        assert log_key("prog", "acct", "tok") == "prog-acct-tok"

    @pytest.mark.asyncio
    async def test_store_failures_propagate(self, tmp_path, clock):
        blocker = tmp_path / "file"
        blocker.write_text("")
        access_log = AccessLogger(FileRecordStore(root_dir=blocker / "data"), clock=clock)

        with pytest.raises(StorageFailureError):
            await access_log.append("prog", "acct", "tok", {})

    @pytest.mark.asyncio
    async def test_non_list_value_reads_as_empty(self, store, access_log):
        await store.put(LOGS, "prog-acct-tok", {"oops": True})

        assert await access_log.entries("prog", "acct", "tok") == []
