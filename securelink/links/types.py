"""
Delivery link data structures and the link state machine.

A link moves ACTIVE -> EXPIRED | EXHAUSTED | DEACTIVATED and is then
reclaimed (deleted from the store). ``advance`` is the single place that
decides which state a stored record is in; redemption and the reclamation
sweep both use it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import quote, unquote, urlsplit

from ..common.utils import MILLIS_PER_MINUTE


logger = logging.getLogger(__name__)


class TokenState(Enum):
    """Token state enumeration."""

    ACTIVE = "active"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    DEACTIVATED = "deactivated"
    CORRUPT = "corrupt"

    @property
    def reclaimable(self) -> bool:
        return self is not TokenState.ACTIVE


@dataclass
class DeliveryToken:
    """
    A delivery link record.

    Timestamps are epoch milliseconds. Serialized with the field names of the
    existing ``links.json`` data files.
    """

    target: str
    program_id: str
    account_login: str
    created_at: int
    expires_at: int
    max_uses: int
    used_count: int = 0
    active: bool = True

    def state(self, now: int) -> TokenState:
        """Current state at ``now`` (epoch ms)."""
        if not self.active:
            return TokenState.DEACTIVATED
        if now >= self.expires_at:
            return TokenState.EXPIRED
        if self.used_count >= self.max_uses:
            return TokenState.EXHAUSTED
        return TokenState.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalLink": self.target,
            "programID": self.program_id,
            "accountLogin": self.account_login,
            "created": self.created_at,
            "expiry": self.expires_at,
            "maxUses": self.max_uses,
            "currentUses": self.used_count,
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeliveryToken":
        """
        Build a token from its stored form.

        Raises:
            ValueError: If required fields are missing or malformed
        """
        if not isinstance(data, dict):
            raise ValueError("link record must be an object")
        try:
            return cls(
                target=str(data["originalLink"]),
                program_id=str(data["programID"]),
                account_login=str(data["accountLogin"]),
                created_at=int(data["created"]),
                expires_at=int(data["expiry"]),
                max_uses=int(data["maxUses"]),
                used_count=int(data.get("currentUses", 0)),
                active=bool(data.get("active", True)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"malformed link record: {e}") from e


def new_token(target: str, program_id: str, account_login: str,
              expiry_minutes: float, max_uses: int, now: int) -> DeliveryToken:
    """Construct a fresh ACTIVE token."""
    return DeliveryToken(
        target=target,
        program_id=program_id,
        account_login=account_login,
        created_at=now,
        expires_at=now + int(round(expiry_minutes * MILLIS_PER_MINUTE)),
        max_uses=int(max_uses),
        used_count=0,
        active=True,
    )


@dataclass
class Transition:
    """Outcome of evaluating one record."""

    token: Optional[DeliveryToken]
    state: TokenState


def advance(record: Optional[Dict[str, Any]], now: int) -> Transition:
    """
    Decide the state of a stored record at ``now``.

    Returns:
        Transition with the parsed token (None when unparseable) and its state
    """
    try:
        token = DeliveryToken.from_dict(record)
    except ValueError as e:
        logger.warning(f"Reclaiming unreadable link record: {e}")
        return Transition(token=None, state=TokenState.CORRUPT)
    return Transition(token=token, state=token.state(now))


@dataclass
class CreatedLink:
    """Result of creating a link."""

    token_id: str
    secure_link: str
    token: DeliveryToken


@dataclass
class Redemption:
    """Result of a successful redemption."""

    token_id: str
    target: str
    program_id: str
    account_login: str
    used_count: int
    max_uses: int

    @property
    def remaining_uses(self) -> int:
        return max(self.max_uses - self.used_count, 0)


def build_secure_link(base_url: str, program_id: str, account_login: str, token_id: str) -> str:
    """Public locator: ``{base_url}/{programID}/{accountLogin}/{tokenID}``."""
    return "/".join([
        base_url.rstrip("/"),
        quote(program_id, safe=""),
        quote(account_login, safe=""),
        quote(token_id, safe=""),
    ])


def parse_secure_link(secure_link: str) -> Dict[str, str]:
    """
    Split a locator back into its parts.

    Raises:
        ValueError: If the path does not end in three segments
    """
    path = urlsplit(secure_link).path
    segments = [segment for segment in path.split("/") if segment]
    if len(segments) < 3:
        raise ValueError(f"Not a secure link: {secure_link}")
    program_id, account_login, token_id = (unquote(s) for s in segments[-3:])
    return {
        "programID": program_id,
        "accountLogin": account_login,
        "tokenID": token_id,
    }
