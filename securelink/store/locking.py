"""
Lock-serialized record store base for single-process backends.

Each namespace has one asyncio lock held across the whole
load-modify-save cycle. A save is split in two steps: staging the new text
(bounded by ``io_timeout`` and cancelled when it overruns, so nothing is
committed) and committing it, which is a single atomic step that always runs
to completion. The lock is released only after a started commit finishes, so
the next cycle always reads committed state and a reported failure always
means the previous content is still in place.
"""

import asyncio
import logging
from abc import abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

from ..errors import BusyError, StorageFailureError
from .types import RecordStore, Records, MutateAll, encode_records, decode_records


logger = logging.getLogger(__name__)


class NamespaceLocks:
    """Per-namespace asyncio locks with bounded acquisition."""

    def __init__(self, lock_timeout: float = 2.0):
        self.lock_timeout = lock_timeout
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, namespace: str) -> asyncio.Lock:
        lock = self._locks.get(namespace)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[namespace] = lock
        return lock

    async def acquire(self, namespace: str, timeout: Optional[float] = None) -> asyncio.Lock:
        """
        Acquire the namespace lock or raise BusyError.

        Returns:
            The acquired lock; the caller must release it
        """
        timeout = self.lock_timeout if timeout is None else timeout
        lock = self.lock_for(namespace)
        try:
            await asyncio.wait_for(lock.acquire(), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Timed out after {timeout}s waiting for namespace '{namespace}'")
            raise BusyError(
                f"Store namespace '{namespace}' is busy",
                retry_after=max(timeout, 1.0),
            )
        return lock


def _log_orphaned_failure(namespace: str) -> Callable[[asyncio.Future], None]:
    def callback(task: asyncio.Future) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Commit for namespace '{namespace}' failed after its caller went away: {exc}")
    return callback


class LockingRecordStore(RecordStore):
    """
    Base class implementing ``update_all`` over async text hooks.

    Subclasses provide ``_read_text`` (None when the namespace does not
    exist), ``_stage_text`` (prepare new content without making it visible;
    must clean up after itself when cancelled) and ``_commit_text`` (make the
    staged content the namespace's content in one atomic step).
    """

    def __init__(self, io_timeout: float = 5.0, lock_timeout: float = 2.0):
        self.io_timeout = io_timeout
        self.locks = NamespaceLocks(lock_timeout)

    @abstractmethod
    async def _read_text(self, namespace: str) -> Optional[str]:
        pass

    @abstractmethod
    async def _stage_text(self, namespace: str, text: str) -> Any:
        pass

    @abstractmethod
    async def _commit_text(self, namespace: str, staged: Any) -> None:
        pass

    async def _bounded(self, namespace: str, operation: Awaitable) -> Any:
        try:
            return await asyncio.wait_for(operation, self.io_timeout)
        except asyncio.TimeoutError as e:
            raise StorageFailureError(
                f"Storage I/O timed out after {self.io_timeout}s",
                namespace=namespace,
                cause=e,
            ) from e
        except (OSError, ValueError) as e:
            raise StorageFailureError(
                f"Storage I/O failed: {e}",
                namespace=namespace,
                cause=e,
            ) from e

    async def load(self, namespace: str) -> Records:
        try:
            text = await self._bounded(namespace, self._read_text(namespace))
        except StorageFailureError as e:
            logger.warning(f"Could not read namespace '{namespace}', treating as empty: {e}")
            return {}
        return decode_records(namespace, text)

    async def update_all(self, namespace: str, fn: MutateAll,
                         timeout: Optional[float] = None) -> Any:
        lock = await self.locks.acquire(namespace, timeout)
        commit = None
        try:
            # read errors abort the cycle; only load() degrades to an empty mapping
            text = await self._bounded(namespace, self._read_text(namespace))
            records = decode_records(namespace, text)
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

            if after != before:
                staged = await self._bounded(namespace, self._stage_text(namespace, after))
                commit = asyncio.ensure_future(self._commit_text(namespace, staged))
                try:
                    await asyncio.shield(commit)
                except OSError as e:
                    raise StorageFailureError(
                        f"Storage commit failed: {e}",
                        namespace=namespace,
                        cause=e,
                    ) from e
                logger.debug(f"Saved namespace '{namespace}' ({len(records)} records)")

            return result
        finally:
            if commit is not None and not commit.done():
                commit.add_done_callback(_log_orphaned_failure(namespace))
                commit.add_done_callback(lambda _task: lock.release())
            else:
                lock.release()
