"""
Validation utilities for securelink request fields.
"""

import math
from typing import Any
from urllib.parse import urlparse


def validate_url(url: str, schemes=("http", "https")) -> bool:
    """Validate URL format and scheme."""
    if not url or not isinstance(url, str):
        return False

    try:
        result = urlparse(url)
    except ValueError:
        return False
    return result.scheme.lower() in schemes and bool(result.netloc)


def is_positive_number(value: Any) -> bool:
    """True for int/float values greater than zero (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return value > 0


def fits_millis(value: Any, unit_millis: int) -> bool:
    """True when ``value`` units convert to a finite millisecond count."""
    try:
        return math.isfinite(float(value) * unit_millis)
    except (OverflowError, TypeError, ValueError):
        return False


def is_positive_integer(value: Any) -> bool:
    """True for integral values greater than zero, including 3.0."""
    if not is_positive_number(value):
        return False
    return float(value).is_integer()


def is_identifier(value: Any, max_length: int = 255) -> bool:
    """Non-empty string without path separators or control characters."""
    if not isinstance(value, str) or not value or len(value) > max_length:
        return False
    if "/" in value or "\\" in value:
        return False
    return all(ch.isprintable() for ch in value)
