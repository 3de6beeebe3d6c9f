"""Tests for warble.config — durations, settings, and YAML loading."""

from pathlib import Path

import pytest

from warble.config import (
    HealthCheckSettings,
    LoggingSettings,
    ServerSettings,
    TimeoutSettings,
    health_check_settings,
    load_config,
    parse_duration,
    profiling_settings,
    server_settings,
)
from warble.errors import ConfigurationError


class TestParseDuration:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (5, 5.0),
            (0.5, 0.5),
            ("500ms", 0.5),
            ("60s", 60.0),
            ("1m30s", 90.0),
            ("2h", 7200.0),
            ("15", 15.0),
        ],
    )
    def test_valid(self, value, expected) -> None:
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["", "soon", "5x", "1m 3", -1, True, None])
    def test_invalid(self, value) -> None:
        with pytest.raises(ConfigurationError):
            parse_duration(value)


class TestDefaults:
    def test_server(self) -> None:
        settings = ServerSettings()
        assert settings.port == 8080
        assert settings.timeout == TimeoutSettings(read=60.0, write=60.0, idle=60.0, drain=0.0, shutdown=60.0)
        assert settings.logging == LoggingSettings(request_body=False, request_body_base64=False)

    def test_health_check(self) -> None:
        settings = HealthCheckSettings()
        assert settings.path == "/health"
        assert settings.port == 8090
        assert settings.timeout.shutdown == 5.0


class TestFromConfig:
    def test_server_settings(self) -> None:
        config = {
            "httpserver": {
                "default": {
                    "port": 9000,
                    "timeout": {"drain": "5s", "shutdown": "1m"},
                    "logging": {"request-body": True},
                }
            }
        }
        settings = server_settings(config, "default")
        assert settings.port == 9000
        assert settings.timeout.drain == 5.0
        assert settings.timeout.shutdown == 60.0
        assert settings.timeout.read == 60.0
        assert settings.logging.request_body is True

    def test_missing_server_uses_defaults(self) -> None:
        assert server_settings({}, "admin") == ServerSettings()
        assert server_settings(None, "admin") == ServerSettings()

    def test_health_check_keeps_default_shutdown(self) -> None:
        config = {"httpserver": {"health-check": {"port": 7000, "timeout": {"read": "1s"}}}}
        settings = health_check_settings(config)
        assert settings.port == 7000
        assert settings.timeout.read == 1.0
        assert settings.timeout.shutdown == 5.0

    def test_profiling(self) -> None:
        settings = profiling_settings({"profiling": {"enabled": "true"}})
        assert settings.enabled is True
        assert settings.port == 8091

    def test_unknown_key(self) -> None:
        with pytest.raises(ConfigurationError, match="unknown ServerSettings key 'prot'"):
            server_settings({"httpserver": {"default": {"prot": 1}}}, "default")

    def test_invalid_port(self) -> None:
        with pytest.raises(ConfigurationError, match="out of range"):
            server_settings({"httpserver": {"default": {"port": 70000}}}, "default")


class TestLoadConfig:
    def test_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yml"
        path.write_text("httpserver:\n  default:\n    port: 8081\n")
        assert server_settings(load_config(path), "default").port == 8081

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yml"
        path.write_text("")
        assert load_config(path) == {}

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="can not read config file"):
            load_config(tmp_path / "nope.yml")

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_config(path)
