"""
Delivery link lifecycle engine.

Creates links, redeems them against their expiry and use-count limits, and
reclaims records that can no longer be redeemed. Every check-and-modify of a
link record runs inside one serialized store cycle, so concurrent
redemptions of a link with ``max_uses = M`` can never produce more than M
successes.
"""

import logging
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional, Tuple

from ..common.utils import MILLIS_PER_MINUTE, current_millis, short_id
from ..errors import (
    NotFoundError,
    LinkExpiredError,
    LinkExhaustedError,
    ErrorCollection,
)
from ..metrics.collector import MetricsCollector
from ..store.types import RecordStore, Records, LINKS
from ..util.validation import (
    validate_url, fits_millis, is_positive_number, is_positive_integer, is_identifier
)
from .identity import new_token_id
from .types import (
    TokenState,
    DeliveryToken,
    CreatedLink,
    Redemption,
    Transition,
    advance,
    new_token,
    build_secure_link,
)


logger = logging.getLogger(__name__)


Clock = Callable[[], int]


class LinkEngine:
    """
    Token lifecycle engine.

    Recently reclaimed token IDs are remembered (bounded, in memory) with the
    state they were reclaimed in, so a caller retrying a used-up or expired
    link keeps getting the terminal reason instead of "not found".
    """

    def __init__(self,
                 store: RecordStore,
                 base_url: str = "http://127.0.0.1:3000",
                 clock: Clock = current_millis,
                 metrics: Optional[MetricsCollector] = None,
                 lock_timeout: Optional[float] = None,
                 reclaimed_memory: int = 10000):
        """
        Initialize the engine.

        Args:
            store: Record store holding the ``links`` namespace
            base_url: Public base URL used to build secure links
            clock: Returns the current time in epoch milliseconds
            metrics: Optional metrics collector
            lock_timeout: Override for the store's contention timeout
            reclaimed_memory: How many reclaimed token IDs to remember
        """
        self.store = store
        self.base_url = base_url
        self.clock = clock
        self.metrics = metrics
        self.lock_timeout = lock_timeout
        self._reclaimed: "OrderedDict[str, Tuple[TokenState, DeliveryToken]]" = OrderedDict()
        self._reclaimed_limit = reclaimed_memory

    # -- creation ---------------------------------------------------------

    async def create(self, target: str, program_id: str, expiry_minutes: float,
                     max_uses: int, account_login: str) -> CreatedLink:
        """
        Create and persist a new delivery link.

        Raises:
            InvalidArgumentError: If any argument is missing or out of range
            BusyError: If the links namespace stayed locked too long
            StorageFailureError: If the record could not be persisted
        """
        errors = ErrorCollection()
        if not validate_url(target):
            errors.add_validation_error("target must be an http(s) URL", field="target")
        if not is_identifier(program_id):
            errors.add_validation_error("programID is required", field="programID")
        if not is_identifier(account_login):
            errors.add_validation_error("accountLogin is required", field="accountLogin")
        if not is_positive_number(expiry_minutes):
            errors.add_validation_error("expiryTimeInMins must be greater than 0", field="expiryTimeInMins")
        elif not fits_millis(expiry_minutes, MILLIS_PER_MINUTE):
            errors.add_validation_error("expiryTimeInMins is too large", field="expiryTimeInMins")
        if not is_positive_integer(max_uses):
            errors.add_validation_error("maxLinkUse must be a positive integer", field="maxLinkUse")
        errors.raise_if_errors()

        token_id = new_token_id(program_id, account_login)
        token = new_token(target, program_id, account_login,
                          expiry_minutes, int(max_uses), self.clock())

        await self.store.put(LINKS, token_id, token.to_dict(), timeout=self.lock_timeout)

        if self.metrics:
            await self.metrics.record_link_created()
        logger.info(
            f"Created link {short_id(token_id)} for {program_id}/{account_login} "
            f"(max_uses={token.max_uses}, expires_at={token.expires_at})"
        )

        return CreatedLink(
            token_id=token_id,
            secure_link=build_secure_link(self.base_url, program_id, account_login, token_id),
            token=token,
        )

    # -- redemption -------------------------------------------------------

    async def redeem(self, token_id: str,
                     program_id: Optional[str] = None,
                     account_login: Optional[str] = None) -> Redemption:
        """
        Redeem one use of a link.

        The use is committed to the store before this returns. When
        ``program_id``/``account_login`` are given they must match the
        link's owner, otherwise the link is reported as not found and left
        untouched.

        Raises:
            NotFoundError: Unknown token, or owner mismatch
            LinkExpiredError: Past expiry or deactivated; the record is deleted
            LinkExhaustedError: No uses left; the record is deleted
            BusyError: If the links namespace stayed locked too long
            StorageFailureError: If the increment could not be persisted
        """
        now = self.clock()

        def transition(current: Optional[Any]) -> Tuple[Optional[Dict[str, Any]], Optional[Transition]]:
            if current is None:
                return None, None

            step = advance(current, now)
            token = step.token

            if token is not None and not _owned_by(token, program_id, account_login):
                return current, None

            if step.state is TokenState.ACTIVE:
                token.used_count += 1
                return token.to_dict(), step

            # terminal: reclaim
            return None, step

        step = await self.store.update(LINKS, token_id, transition, timeout=self.lock_timeout)

        if step is None:
            remembered = self._reclaimed.get(token_id)
            if remembered is not None and _owned_by(remembered[1], program_id, account_login):
                await self._record(remembered[0])
                self._raise_terminal(token_id, remembered[0])
            await self._record(None)
            raise NotFoundError(token_id=token_id)

        if step.state is not TokenState.ACTIVE:
            self._remember(token_id, step)
            if self.metrics:
                await self.metrics.record_reclaimed(step.state.value)
            await self._record(step.state)
            logger.info(f"Reclaimed link {short_id(token_id)} on redemption: {step.state.value}")
            self._raise_terminal(token_id, step.state)

        token = step.token
        await self._record(TokenState.ACTIVE)
        logger.debug(
            f"Redeemed link {short_id(token_id)} "
            f"({token.used_count}/{token.max_uses} uses)"
        )
        return Redemption(
            token_id=token_id,
            target=token.target,
            program_id=token.program_id,
            account_login=token.account_login,
            used_count=token.used_count,
            max_uses=token.max_uses,
        )

    # -- administration ---------------------------------------------------

    async def inspect(self, token_id: str) -> Optional[DeliveryToken]:
        """Read-only view of a stored link; None if absent or unreadable."""
        record = await self.store.get(LINKS, token_id)
        if record is None:
            return None
        return advance(record, self.clock()).token

    async def deactivate(self, token_id: str) -> bool:
        """
        Mark a link inactive; the next redemption or sweep reclaims it.

        Returns:
            True if the link existed
        """
        def switch_off(current: Optional[Any]) -> Tuple[Optional[Any], bool]:
            if current is None:
                return None, False
            if isinstance(current, dict):
                current = dict(current, active=False)
            return current, True

        found = await self.store.update(LINKS, token_id, switch_off, timeout=self.lock_timeout)
        if found:
            logger.info(f"Deactivated link {short_id(token_id)}")
        return found

    # -- reclamation ------------------------------------------------------

    async def reclaim(self) -> Tuple[int, int]:
        """
        Delete every link record that is no longer redeemable.

        Runs as one serialized cycle over the links namespace; the namespace
        is written only if something was removed.

        Returns:
            (number removed, number remaining)
        """
        now = self.clock()

        def sweep(records: Records) -> Tuple[Dict[str, Transition], int]:
            removed: Dict[str, Transition] = {}
            for token_id, record in list(records.items()):
                step = advance(record, now)
                if step.state.reclaimable:
                    del records[token_id]
                    removed[token_id] = step
            return removed, len(records)

        # not on a request path: use the store's own contention timeout
        removed, remaining = await self.store.update_all(LINKS, sweep)

        by_reason: Dict[str, int] = {}
        for token_id, step in removed.items():
            self._remember(token_id, step)
            by_reason[step.state.value] = by_reason.get(step.state.value, 0) + 1

        if self.metrics:
            for reason, count in by_reason.items():
                await self.metrics.record_reclaimed(reason, count)

        return len(removed), remaining

    # -- helpers ----------------------------------------------------------

    def _remember(self, token_id: str, step: Transition) -> None:
        # corrupt records have no owner to check against; forget them
        if step.token is None:
            return
        self._reclaimed[token_id] = (step.state, step.token)
        self._reclaimed.move_to_end(token_id)
        while len(self._reclaimed) > self._reclaimed_limit:
            self._reclaimed.popitem(last=False)

    @staticmethod
    def _raise_terminal(token_id: str, state: TokenState) -> None:
        if state is TokenState.EXHAUSTED:
            raise LinkExhaustedError(token_id=token_id)
        if state is TokenState.DEACTIVATED:
            raise LinkExpiredError("Link deactivated", token_id=token_id)
        if state is TokenState.CORRUPT:
            raise NotFoundError(token_id=token_id)
        raise LinkExpiredError(token_id=token_id)

    async def _record(self, state: Optional[TokenState]) -> None:
        if not self.metrics:
            return
        if state is None:
            outcome = "not_found"
        elif state is TokenState.ACTIVE:
            outcome = "success"
        else:
            outcome = state.value
        await self.metrics.record_redemption(outcome)


def _owned_by(token: DeliveryToken, program_id: Optional[str], account_login: Optional[str]) -> bool:
    if program_id is not None and token.program_id != program_id:
        return False
    if account_login is not None and token.account_login != account_login:
        return False
    return True
