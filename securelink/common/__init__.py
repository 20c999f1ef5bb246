"""
Common helpers shared across securelink packages.
"""

from .utils import (
    MILLIS_PER_MINUTE,
    MILLIS_PER_DAY,
    get_current_time,
    current_millis,
    generate_request_id,
    hash_string,
    short_id,
    validate_required_fields,
)
from .log import configure_logging

__all__ = [
    "MILLIS_PER_MINUTE",
    "MILLIS_PER_DAY",
    "get_current_time",
    "current_millis",
    "generate_request_id",
    "hash_string",
    "short_id",
    "validate_required_fields",
    "configure_logging",
]
