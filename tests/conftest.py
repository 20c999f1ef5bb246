"""
Shared fixtures for securelink tests.
"""

import pytest

from securelink.links.engine import LinkEngine
from securelink.metrics.collector import create_metrics_collector
from securelink.store.file import FileRecordStore
from securelink.store.memory import MemoryRecordStore


START_MILLIS = 1_700_000_000_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = START_MILLIS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: float) -> None:
        self.now += int(millis)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    return MemoryRecordStore()


@pytest.fixture
def file_store(tmp_path):
    return FileRecordStore(root_dir=tmp_path / "data")


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    """Each locking backend in turn."""
    if request.param == "memory":
        return MemoryRecordStore()
    return FileRecordStore(root_dir=tmp_path / "data")


@pytest.fixture
def metrics():
    return create_metrics_collector()


@pytest.fixture
def engine(store, clock, metrics):
    return LinkEngine(store, base_url="http://links.test", clock=clock, metrics=metrics)
