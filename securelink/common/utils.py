"""
Common utilities and helper functions for securelink.
"""

import hashlib
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict, List


MILLIS_PER_MINUTE = 60 * 1000
MILLIS_PER_DAY = 24 * 60 * 60 * 1000


def get_current_time() -> datetime:
    """Get the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def current_millis() -> int:
    """Get current time in milliseconds since epoch."""
    return int(time.time() * 1000)


def generate_request_id() -> str:
    """Generate a request ID for tracing."""
    return f"req_{int(time.time())}_{secrets.token_hex(8)}"


def hash_string(data: str, algorithm: str = "sha256") -> str:
    """
    Hash a string using the specified algorithm.

    Args:
        data: String to hash
        algorithm: Hash algorithm (sha256, sha512)

    Returns:
        Hexadecimal hash string
    """
    if algorithm == "sha256":
        return hashlib.sha256(data.encode('utf-8')).hexdigest()
    elif algorithm == "sha512":
        return hashlib.sha512(data.encode('utf-8')).hexdigest()
    else:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")


def short_id(token_id: str, visible_chars: int = 8) -> str:
    """Shorten an identifier for log output."""
    if not token_id:
        return "<none>"
    return token_id[:visible_chars]


def validate_required_fields(data: Dict[str, Any], required_fields: List[str]) -> List[str]:
    """
    Validate that required fields are present in data.

    Args:
        data: Data dictionary to validate
        required_fields: List of required field names

    Returns:
        List of missing field names
    """
    missing_fields = []
    for field in required_fields:
        if field not in data or data[field] is None or data[field] == "":
            missing_fields.append(field)
    return missing_fields
