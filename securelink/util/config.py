"""
Configuration utilities for securelink.
Provides configuration loading and environment lookup helpers.
"""

import json
import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List

import yaml


ENV_PREFIX = "SECURELINK_"


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"expected a boolean, got {raw!r}")


def _parse_list(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


_CASTERS: Dict[type, Callable[[str], Any]] = {
    bool: _parse_bool,
    list: _parse_list,
    int: int,
    str: str,
}


def env_value(key: str, cast: type = str, prefix: str = ENV_PREFIX) -> Any:
    """
    Read ``{prefix}{key}`` from the environment.

    Returns None when the variable is unset or empty.

    Raises:
        ValueError: If the value cannot be parsed as ``cast``
    """
    env_key = f"{prefix}{key.upper()}"
    raw = os.environ.get(env_key)
    if not raw:
        return None
    try:
        return _CASTERS[cast](raw)
    except ValueError as e:
        raise ValueError(f"Invalid value for {env_key}: {e}") from e


_DURATION = re.compile(r"^(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)$")
_DURATION_UNITS = {
    "ms": "milliseconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}


def parse_duration_string(duration_str: str) -> timedelta:
    """Parse '250ms', '30s', '5m', '1.5h' or '1d' into a timedelta."""
    if not isinstance(duration_str, str):
        raise ValueError("Duration must be a string")

    match = _DURATION.match(duration_str.strip().lower())
    if not match:
        raise ValueError(f"Invalid duration format: {duration_str}")

    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: float(amount)})


def to_seconds(value: Any) -> float:
    """Accept a number of seconds or a duration string and return seconds."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return parse_duration_string(value).total_seconds()
    raise ValueError(f"Invalid duration: {value!r}")


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge configuration dictionaries, nested sections included.
    Later configs override earlier ones.
    """
    result: Dict[str, Any] = {}

    for config in configs:
        if not isinstance(config, dict):
            continue
        for key, value in config.items():
            if isinstance(value, dict) and isinstance(result.get(key), dict):
                result[key] = merge_configs(result[key], value)
            else:
                result[key] = value

    return result


def load_config_file(file_path: str) -> Dict[str, Any]:
    """Load configuration from a file (JSON or YAML)."""
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    file_ext = Path(file_path).suffix.lower()

    with open(file_path, 'r', encoding='utf-8') as f:
        if file_ext == '.json':
            data = json.load(f)
        elif file_ext in ('.yaml', '.yml'):
            data = yaml.safe_load(f)
        else:
            raise ValueError(f"Unsupported configuration file format: {file_ext}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {file_path}")
    return data

