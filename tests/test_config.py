"""
Tests for configuration loading.
"""

import json
import logging
from datetime import timedelta

import pytest

from securelink.common.log import JsonFormatter, configure_logging
from securelink.core import Config
from securelink.util.config import env_value, merge_configs, parse_duration_string, to_seconds


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("PORT", "SECURELINK_PORT", "SECURELINK_STORE_BACKEND", "SECURELINK_SWEEP_INTERVAL",
                "SECURELINK_CORS_ORIGINS", "SECURELINK_TRUST_PROXY", "SECURELINK_DATA_DIR"):
        monkeypatch.delenv(key, raising=False)


class TestConfig:
    """Tests for the Config dataclasses."""

    def test_defaults(self):
        config = Config()

        assert config.store.backend == "file"
        assert config.store.root_dir == "./data"
        assert config.sweep.interval == 60.0
        assert config.server.port == 3000
        assert config.server.base_url == "http://127.0.0.1:3000"
        assert config.validate()

    def test_from_dict_parses_durations_and_lists(self):
        config = Config.from_dict({
            "store": {"lock_timeout": "500ms", "io_timeout": 3},
            "sweep": {"interval": "2m"},
            "server": {"cors_origins": "https://a.test, https://b.test"},
        })

        assert config.store.lock_timeout == 0.5
        assert config.store.io_timeout == 3.0
        assert config.sweep.interval == 120.0
        assert config.server.cors_origins == ["https://a.test", "https://b.test"]

    def test_unknown_keys_are_rejected(self):
        with pytest.raises(ValueError):
            Config.from_dict({"store": {"bogus": 1}})

    @pytest.mark.parametrize("data", [
        {"store": {"backend": "sqlite"}},
        {"server": {"port": 0}},
        {"sweep": {"interval": 0}},
        {"store": {"lock_timeout": -1}},
        {"store": {"max_retries": 0}},
    ])
    def test_validate_rejects_bad_values(self, data):
        with pytest.raises(ValueError):
            Config.from_dict(data).validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("SECURELINK_STORE_BACKEND", "memory")
        monkeypatch.setenv("SECURELINK_SWEEP_INTERVAL", "30s")
        monkeypatch.setenv("SECURELINK_TRUST_PROXY", "yes")

        config = Config.from_env()

        assert config.server.port == 8080
        assert config.store.backend == "memory"
        assert config.sweep.interval == 30.0
        assert config.server.trust_proxy is True

    def test_malformed_env_value_is_rejected(self, monkeypatch):
        monkeypatch.setenv("SECURELINK_TRUST_PROXY", "maybe")

        with pytest.raises(ValueError) as exc_info:
            Config.from_env()

        assert "SECURELINK_TRUST_PROXY" in str(exc_info.value)

    def test_prefixed_port_wins_over_bare_port(self, monkeypatch):
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("SECURELINK_PORT", "9090")

        assert Config.from_env().server.port == 9090

    def test_load_layers_file_then_env(self, tmp_path, monkeypatch):
        path = tmp_path / "securelink.yaml"
        path.write_text(
            "store:\n"
            "  backend: memory\n"
            "  root_dir: /srv/links\n"
            "server:\n"
            "  port: 4000\n"
            "log_level: DEBUG\n"
        )
        monkeypatch.setenv("SECURELINK_PORT", "5000")

        config = Config.load(str(path))

        assert config.store.backend == "memory"
        assert config.store.root_dir == "/srv/links"
        assert config.server.port == 5000
        assert config.log_level == "DEBUG"

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "securelink.json"
        path.write_text(json.dumps({"metrics": {"enabled": False}}))

        assert Config.from_file(str(path)).metrics.enabled is False

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config.from_file(str(tmp_path / "absent.yaml"))


class TestConfigUtils:
    """Tests for the configuration helpers."""

    def test_parse_duration_string(self):
        assert parse_duration_string("250ms") == timedelta(milliseconds=250)
        assert parse_duration_string("1.5h") == timedelta(hours=1.5)
        with pytest.raises(ValueError):
            parse_duration_string("soon")

    def test_env_value_casts(self, monkeypatch):
        monkeypatch.setenv("SECURELINK_CORS_ORIGINS", "https://a.test, ,https://b.test")
        monkeypatch.setenv("SECURELINK_PORT", "8081")
        monkeypatch.setenv("SECURELINK_TRUST_PROXY", "off")

        assert env_value("CORS_ORIGINS", list) == ["https://a.test", "https://b.test"]
        assert env_value("PORT", int) == 8081
        assert env_value("TRUST_PROXY", bool) is False
        assert env_value("STORE_BACKEND") is None
        monkeypatch.setenv("SECURELINK_PORT", "eighty")
        with pytest.raises(ValueError):
            env_value("PORT", int)

    def test_to_seconds(self):
        assert to_seconds(2) == 2.0
        assert to_seconds("2.5") == 2.5
        assert to_seconds("1d") == 86400.0
        with pytest.raises(ValueError):
            to_seconds(True)

    def test_merge_configs_is_deep(self):
        merged = merge_configs({"store": {"backend": "file", "root_dir": "a"}},
                               {"store": {"root_dir": "b"}})
        assert merged == {"store": {"backend": "file", "root_dir": "b"}}


class TestLogging:
    """Tests for logging setup."""

    def test_configure_logging_replaces_own_handler(self):
        logger = configure_logging("DEBUG", logger_name="securelink.test")
        configure_logging("INFO", json_format=True, logger_name="securelink.test")

        handlers = [h for h in logger.handlers if getattr(h, "_securelink", False)]
        assert len(handlers) == 1
        assert isinstance(handlers[0].formatter, JsonFormatter)
        assert logger.level == logging.INFO
        logger.removeHandler(handlers[0])

    def test_json_formatter_emits_one_object(self):
        record = logging.LogRecord("securelink.x", logging.WARNING, __file__, 1, "hello %s", ("world",), None)

        payload = json.loads(JsonFormatter().format(record))

        assert payload["msg"] == "hello world"
        assert payload["level"] == "WARNING"
        assert payload["ts"].endswith("Z")
