"""
Append-only access log for delivery links.

Entries are kept in the ``logs`` namespace as one list per
``programID-accountLogin-tokenID`` key. There is no update or delete path.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from ..common.utils import current_millis, short_id
from ..store.types import RecordStore, LOGS


logger = logging.getLogger(__name__)


def log_key(program_id: str, account_login: str, token_id: str) -> str:
    return f"{program_id}-{account_login}-{token_id}"


class AccessLogger:
    """Records accesses to delivery links in the record store."""

    def __init__(self, store: RecordStore,
                 clock: Callable[[], int] = current_millis,
                 lock_timeout: Optional[float] = None):
        self.store = store
        self.clock = clock
        self.lock_timeout = lock_timeout

    async def append(self, program_id: str, account_login: str, token_id: str,
                     fields: Optional[Dict[str, Any]] = None) -> None:
        """
        Append ``{**fields, "timestamp": now}`` to the link's log.

        The server-assigned timestamp replaces any caller-supplied one.

        Raises:
            BusyError: If the logs namespace stayed locked too long
            StorageFailureError: If the entry could not be persisted
        """
        entry = dict(fields or {})
        entry["timestamp"] = self.clock()

        count = await self.store.append(LOGS, log_key(program_id, account_login, token_id), entry,
                                        timeout=self.lock_timeout)
        logger.debug(f"Logged access to {short_id(token_id)} (entry {count})")

    async def entries(self, program_id: str, account_login: str, token_id: str) -> List[Dict[str, Any]]:
        """All entries for a link, oldest first; empty if none."""
        entries = await self.store.get(LOGS, log_key(program_id, account_login, token_id))
        if not isinstance(entries, list):
            return []
        return entries
