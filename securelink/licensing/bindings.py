"""
Program/account license bindings.

A binding says that an account may run a program until ``expiryDate``.
Binding again overwrites the previous record unconditionally; expired
bindings are kept and simply verify as invalid.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..common.utils import MILLIS_PER_DAY, current_millis
from ..errors import ErrorCollection
from ..metrics.collector import MetricsCollector
from ..store.types import RecordStore, BINDINGS
from ..util.validation import fits_millis, is_identifier, is_positive_number


logger = logging.getLogger(__name__)


def binding_key(program_id: str, account_login: str) -> str:
    return f"{program_id}-{account_login}"


@dataclass
class BindingStatus:
    """Result of verifying a binding."""

    valid: bool
    is_demo: Optional[bool] = None
    expires_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.expires_at is None:
            return {"valid": self.valid}
        return {
            "valid": self.valid,
            "isDemo": self.is_demo,
            "expiryDate": self.expires_at,
        }


class BindingManager:
    """Creates and verifies license bindings in the ``binds`` namespace."""

    def __init__(self, store: RecordStore,
                 clock: Callable[[], int] = current_millis,
                 metrics: Optional[MetricsCollector] = None,
                 lock_timeout: Optional[float] = None):
        self.store = store
        self.clock = clock
        self.metrics = metrics
        self.lock_timeout = lock_timeout

    async def bind(self, program_id: str, account_login: str, days: float,
                   is_demo: bool = False) -> bool:
        """
        Bind an account to a program for ``days`` days from now.

        Raises:
            InvalidArgumentError: If an identifier is empty or days <= 0
        """
        errors = ErrorCollection()
        if not is_identifier(program_id):
            errors.add_validation_error("programID is required", field="programID")
        if not is_identifier(account_login):
            errors.add_validation_error("accountLogin is required", field="accountLogin")
        if not is_positive_number(days):
            errors.add_validation_error("days must be greater than 0", field="days")
        elif not fits_millis(days, MILLIS_PER_DAY):
            errors.add_validation_error("days is too large", field="days")
        errors.raise_if_errors()

        now = self.clock()
        record = {
            "bindDate": now,
            "expiryDate": now + int(round(days * MILLIS_PER_DAY)),
            "isDemo": bool(is_demo),
        }
        await self.store.put(BINDINGS, binding_key(program_id, account_login), record,
                             timeout=self.lock_timeout)

        if self.metrics:
            await self.metrics.record_binding_operation("bind", "success")
        logger.info(f"Bound {program_id}/{account_login} until {record['expiryDate']} (demo={record['isDemo']})")
        return True

    async def verify(self, program_id: str, account_login: str) -> BindingStatus:
        """Check a binding without modifying anything."""
        record = await self.store.get(BINDINGS, binding_key(program_id, account_login))

        if not isinstance(record, dict) or "expiryDate" not in record:
            status = BindingStatus(valid=False)
        else:
            try:
                expires_at = int(record["expiryDate"])
            except (TypeError, ValueError):
                logger.warning(f"Unreadable binding for {program_id}/{account_login}")
                status = BindingStatus(valid=False)
            else:
                status = BindingStatus(
                    valid=self.clock() < expires_at,
                    is_demo=bool(record.get("isDemo", False)),
                    expires_at=expires_at,
                )

        if self.metrics:
            await self.metrics.record_binding_operation("verify", "valid" if status.valid else "invalid")
        return status
