"""
Configuration module for securelink.

Settings come from three layers, later ones winning: dataclass defaults,
an optional JSON/YAML file, and ``SECURELINK_*`` environment variables.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional
import os

from ..util.config import (
    env_value, load_config_file, merge_configs, to_seconds
)


STORE_BACKENDS = ("file", "memory", "redis")


@dataclass
class StoreConfig:
    """Keyed record store settings"""
    backend: str = "file"
    root_dir: str = "./data"
    io_timeout: float = 5.0
    lock_timeout: float = 2.0
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "securelink:"
    max_retries: int = 10


@dataclass
class SweepConfig:
    """Reclamation sweeper settings"""
    enabled: bool = True
    interval: float = 60.0


@dataclass
class ServerConfig:
    """HTTP server and upstream proxy settings"""
    host: str = "0.0.0.0"
    port: int = 3000
    base_url: str = "http://127.0.0.1:3000"
    trust_proxy: bool = False
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    upstream_connect_timeout: float = 10.0
    upstream_read_timeout: float = 60.0
    chunk_size: int = 64 * 1024


@dataclass
class MetricsConfig:
    """Prometheus metrics settings"""
    enabled: bool = True


@dataclass
class Config:
    """Top-level securelink configuration"""
    store: StoreConfig = field(default_factory=StoreConfig)
    sweep: SweepConfig = field(default_factory=SweepConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Build a configuration from a (possibly partial) nested mapping."""
        data = data or {}
        store = dict(data.get("store") or {})
        sweep = dict(data.get("sweep") or {})
        server = dict(data.get("server") or {})
        metrics = dict(data.get("metrics") or {})

        for key in ("io_timeout", "lock_timeout"):
            if key in store:
                store[key] = to_seconds(store[key])
        if "interval" in sweep:
            sweep["interval"] = to_seconds(sweep["interval"])
        for key in ("upstream_connect_timeout", "upstream_read_timeout"):
            if key in server:
                server[key] = to_seconds(server[key])
        if isinstance(server.get("cors_origins"), str):
            server["cors_origins"] = [
                origin.strip() for origin in server["cors_origins"].split(",") if origin.strip()
            ]

        try:
            return cls(
                store=StoreConfig(**store),
                sweep=SweepConfig(**sweep),
                server=ServerConfig(**server),
                metrics=MetricsConfig(**metrics),
                log_level=data.get("log_level", "INFO"),
                log_json=bool(data.get("log_json", False)),
            )
        except TypeError as e:
            raise ValueError(f"Unknown configuration key: {e}") from e

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables"""
        return cls.from_dict(env_overrides())

    @classmethod
    def from_file(cls, file_path: str) -> "Config":
        """Create configuration from a JSON or YAML file"""
        return cls.from_dict(load_config_file(file_path))

    @classmethod
    def load(cls, file_path: Optional[str] = None) -> "Config":
        """Defaults, then the optional file, then the environment."""
        file_data = load_config_file(file_path) if file_path else {}
        return cls.from_dict(merge_configs(file_data, env_overrides()))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def validate(self) -> bool:
        """Validate the configuration"""
        if self.store.backend not in STORE_BACKENDS:
            raise ValueError(f"store.backend must be one of {STORE_BACKENDS}")
        if self.store.backend == "file" and not self.store.root_dir:
            raise ValueError("store.root_dir is required for the file backend")
        if self.store.backend == "redis" and not self.store.redis_url:
            raise ValueError("store.redis_url is required for the redis backend")
        if self.store.io_timeout <= 0:
            raise ValueError("store.io_timeout must be positive")
        if self.store.lock_timeout <= 0:
            raise ValueError("store.lock_timeout must be positive")
        if self.store.max_retries < 1:
            raise ValueError("store.max_retries must be at least 1")
        if self.sweep.interval <= 0:
            raise ValueError("sweep.interval must be positive")
        if not (0 < self.server.port < 65536):
            raise ValueError("server.port must be between 1 and 65535")
        if not self.server.base_url:
            raise ValueError("server.base_url is required")
        if self.server.chunk_size <= 0:
            raise ValueError("server.chunk_size must be positive")
        return True


# (section, field, env key, cast)
_ENV_KEYS = [
    ("store", "backend", "STORE_BACKEND", str),
    ("store", "root_dir", "DATA_DIR", str),
    ("store", "io_timeout", "IO_TIMEOUT", str),
    ("store", "lock_timeout", "LOCK_TIMEOUT", str),
    ("store", "redis_url", "REDIS_URL", str),
    ("store", "key_prefix", "REDIS_KEY_PREFIX", str),
    ("store", "max_retries", "MAX_RETRIES", int),
    ("sweep", "enabled", "SWEEP_ENABLED", bool),
    ("sweep", "interval", "SWEEP_INTERVAL", str),
    ("server", "host", "HOST", str),
    ("server", "port", "PORT", int),
    ("server", "base_url", "BASE_URL", str),
    ("server", "trust_proxy", "TRUST_PROXY", bool),
    ("server", "cors_origins", "CORS_ORIGINS", list),
    ("server", "upstream_connect_timeout", "UPSTREAM_CONNECT_TIMEOUT", str),
    ("server", "upstream_read_timeout", "UPSTREAM_READ_TIMEOUT", str),
    ("server", "chunk_size", "CHUNK_SIZE", int),
    ("metrics", "enabled", "METRICS_ENABLED", bool),
    (None, "log_level", "LOG_LEVEL", str),
    (None, "log_json", "LOG_JSON", bool),
]


def env_overrides() -> Dict[str, Any]:
    """Collect the SECURELINK_* variables that are actually set."""
    overrides: Dict[str, Any] = {}

    # bare PORT is what most process managers export
    if os.getenv("PORT"):
        overrides.setdefault("server", {})["port"] = int(os.environ["PORT"])

    for section, name, env_key, cast in _ENV_KEYS:
        value = env_value(env_key, cast)
        if value is None:
            continue
        if section is None:
            overrides[name] = value
        else:
            overrides.setdefault(section, {})[name] = value

    return overrides
