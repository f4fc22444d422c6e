from __future__ import annotations

import json

import pytest

import settings
from settings import ConfigError, build_settings, load_settings, masked_settings, parse_address, uses_default_token


def test_defaults_without_config_or_env() -> None:
    result = build_settings({}, environ={})
    assert result.server.host == "0.0.0.0"
    assert result.server.port == 8080
    assert result.server.shutdown_timeout == 5.0
    assert result.auth.token == "default-secret-token"
    assert result.log.level == "INFO"
    assert result.log.format == "json"
    assert result.log.file_path == ""
    assert result.log.console is True
    assert uses_default_token(result)


def test_config_values_are_used() -> None:
    config = {
        "server": {"address": "127.0.0.1:9000", "shutdown_timeout": 2},
        "auth": {"token": "abc"},
        "log": {"level": "debug", "format": "text", "filePath": "logs/out.log", "backup_count": 2},
    }
    result = build_settings(config, environ={})
    assert result.server.address == "127.0.0.1:9000"
    assert result.server.shutdown_timeout == 2.0
    assert result.auth.token == "abc"
    assert result.log.level == "DEBUG"
    assert result.log.format == "text"
    assert result.log.file_path == "logs/out.log"
    assert result.log.backup_count == 2
    assert not uses_default_token(result)


def test_environment_overrides_config() -> None:
    config = {"server": {"address": ":9000"}, "auth": {"token": "abc"}, "log": {"file_path": "a.log"}}
    environ = {
        "FOCALBOARD_MONITOR_SERVER_ADDRESS": "localhost:7000",
        "FOCALBOARD_MONITOR_AUTH_TOKEN": "from-env",
        "FOCALBOARD_MONITOR_LOG_LEVEL": "WARN",
        "FOCALBOARD_MONITOR_LOG_FILEPATH": "",
    }
    result = build_settings(config, environ=environ)
    assert result.server.host == "localhost"
    assert result.server.port == 7000
    assert result.auth.token == "from-env"
    assert result.log.level == "WARNING"
    assert result.log.file_path == ""


def test_unknown_log_level_falls_back_to_info() -> None:
    result = build_settings({"log": {"level": "chatty"}}, environ={})
    assert result.log.level == "INFO"


@pytest.mark.parametrize(
    "address, expected",
    [
        (":8080", ("0.0.0.0", 8080)),
        ("127.0.0.1:80", ("127.0.0.1", 80)),
        ("[::1]:8443", ("::1", 8443)),
    ],
)
def test_parse_address(address, expected) -> None:
    assert parse_address(address) == expected


@pytest.mark.parametrize("address", ["8080", "host:", "host:http", ":70000"])
def test_parse_address_rejects_invalid(address) -> None:
    with pytest.raises(ConfigError):
        parse_address(address)


def test_invalid_values_raise_config_error() -> None:
    with pytest.raises(ConfigError):
        build_settings({"log": {"format": "xml"}}, environ={})
    with pytest.raises(ConfigError):
        build_settings({"log": {"max_bytes": "lots"}}, environ={})
    with pytest.raises(ConfigError):
        build_settings({"server": []}, environ={})


def test_load_settings_reads_json_file(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("FOCALBOARD_MONITOR_AUTH_TOKEN", raising=False)
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"auth": {"token": "file-token"}}), encoding="utf-8")

    result = load_settings(str(path))

    assert result.auth.token == "file-token"


def test_load_settings_missing_file_uses_defaults(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("FOCALBOARD_MONITOR_SERVER_ADDRESS", raising=False)

    result = load_settings(str(tmp_path / "missing.json"))

    assert result.server.port == 8080


def test_load_settings_rejects_broken_json(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "config.json"
    path.write_text("{broken", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_settings(str(path))


def test_masked_settings_hides_token() -> None:
    masked = masked_settings(build_settings({"auth": {"token": "abc"}}, environ={}))
    assert masked["auth"]["token"] == "***"
    assert "abc" not in json.dumps(masked)


def test_default_config_path_is_in_project_root() -> None:
    assert settings.CONFIG_PATH.endswith("config.json")


@pytest.mark.parametrize("key", ["console", "redact"])
@pytest.mark.parametrize("value", ["false", "true", 0, 1, None])
def test_non_boolean_log_switches_are_rejected(key, value) -> None:
    with pytest.raises(ConfigError):
        build_settings({"log": {key: value}}, environ={})


def test_boolean_log_switches_are_used() -> None:
    result = build_settings({"log": {"console": False, "redact": False}}, environ={})
    assert result.log.console is False
    assert result.log.redact is False
