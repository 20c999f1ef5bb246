"""
Delivery links: identity, lifecycle state machine, engine and sweeper.
"""

from .identity import new_token_id
from .types import (
    TokenState,
    DeliveryToken,
    Transition,
    CreatedLink,
    Redemption,
    advance,
    new_token,
    build_secure_link,
    parse_secure_link,
)
from .engine import LinkEngine
from .sweeper import ReclamationSweeper

__all__ = [
    "new_token_id",
    "TokenState",
    "DeliveryToken",
    "Transition",
    "CreatedLink",
    "Redemption",
    "advance",
    "new_token",
    "build_secure_link",
    "parse_secure_link",
    "LinkEngine",
    "ReclamationSweeper",
]
