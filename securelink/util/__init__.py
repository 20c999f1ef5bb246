"""
Utility package providing configuration and validation helpers for securelink.
"""

from .config import (
    ENV_PREFIX, env_value, parse_duration_string,
    to_seconds, merge_configs, load_config_file
)
from .validation import (
    validate_url, fits_millis, is_positive_number, is_positive_integer, is_identifier
)

__all__ = [
    # Configuration utilities
    'ENV_PREFIX', 'env_value', 'parse_duration_string',
    'to_seconds', 'merge_configs', 'load_config_file',

    # Validation utilities
    'validate_url', 'fits_millis', 'is_positive_number', 'is_positive_integer', 'is_identifier',
]
