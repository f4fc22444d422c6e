"""Runtime configuration for boardwatch.

Settings come from an optional config.json, then environment variables
(with a .env file loaded through python-dotenv) override the few values that
usually differ per deployment: listen address, auth token and log output.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Optional

from dotenv import load_dotenv

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Default location of the JSON config file.
CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

ENV_PREFIX = "FOCALBOARD_MONITOR_"

DEFAULT_AUTH_TOKEN = "default-secret-token"
# Tokens shipped in sample configs; running with either one is a security risk.
KNOWN_DEFAULT_TOKENS = frozenset({DEFAULT_AUTH_TOKEN, "a-very-secret-token-you-should-change"})

LOG_LEVELS = {
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "WARN": "WARNING",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
}
LOG_FORMATS = ("json", "text")


class ConfigError(RuntimeError):
    """Raised when the configuration cannot be loaded or is invalid."""


@dataclass(frozen=True)
class ServerSettings:
    host: str
    port: int
    shutdown_timeout: float

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class AuthSettings:
    token: str


@dataclass(frozen=True)
class LogSettings:
    level: str
    format: str
    console: bool
    file_path: str
    max_bytes: int
    backup_count: int
    redact: bool


@dataclass(frozen=True)
class Settings:
    server: ServerSettings
    auth: AuthSettings
    log: LogSettings


def _load_json_config(path: str) -> dict:
    """Load the JSON config file; a missing file means "defaults only"."""

    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def _section(config: dict, name: str) -> dict:
    section = config.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"Config section '{name}' must be an object")
    return section


def parse_address(address: str) -> tuple[str, int]:
    """Split a ``host:port`` address. An empty host binds all interfaces."""

    host, sep, port_text = address.strip().rpartition(":")
    if not sep:
        raise ConfigError(f"Invalid server address {address!r}; expected host:port")
    try:
        port = int(port_text)
    except ValueError as exc:
        raise ConfigError(f"Invalid port in server address {address!r}") from exc
    if not 0 <= port <= 65535:
        raise ConfigError(f"Port out of range in server address {address!r}")
    # Bracketed IPv6 literals, e.g. [::1]:8080
    host = host.strip("[]")
    return host or "0.0.0.0", port


def _normalize_level(value: Any) -> str:
    # Unknown levels fall back to INFO rather than failing startup.
    return LOG_LEVELS.get(str(value).upper(), "INFO")


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Config value '{name}' must be an integer") from exc


def _as_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Config value '{name}' must be a number") from exc


def _as_bool(value: Any, name: str) -> bool:
    # "false" in a hand-edited file must not silently become True.
    if not isinstance(value, bool):
        raise ConfigError(f"Config value '{name}' must be true or false")
    return value


def _env(name: str, environ: dict[str, str]) -> Optional[str]:
    return environ.get(f"{ENV_PREFIX}{name}")


def build_settings(config: dict, environ: Optional[dict[str, str]] = None) -> Settings:
    """Merge a parsed config dict with environment overrides."""

    environ = dict(os.environ) if environ is None else environ

    server_cfg = _section(config, "server")
    auth_cfg = _section(config, "auth")
    log_cfg = _section(config, "log")

    address = _env("SERVER_ADDRESS", environ) or server_cfg.get("address", ":8080")
    host, port = parse_address(str(address))

    token = _env("AUTH_TOKEN", environ) or auth_cfg.get("token") or DEFAULT_AUTH_TOKEN

    level = _env("LOG_LEVEL", environ) or log_cfg.get("level", "INFO")
    file_path = _env("LOG_FILEPATH", environ)
    if file_path is None:
        file_path = log_cfg.get("file_path", log_cfg.get("filePath", "")) or ""

    log_format = str(log_cfg.get("format", "json")).lower()
    if log_format not in LOG_FORMATS:
        raise ConfigError(f"Unsupported log format: {log_format}")

    return Settings(
        server=ServerSettings(
            host=host,
            port=port,
            shutdown_timeout=_as_float(server_cfg.get("shutdown_timeout", 5), "server.shutdown_timeout"),
        ),
        auth=AuthSettings(token=str(token)),
        log=LogSettings(
            level=_normalize_level(level),
            format=log_format,
            console=_as_bool(log_cfg.get("console", True), "log.console"),
            file_path=str(file_path),
            max_bytes=_as_int(log_cfg.get("max_bytes", 5 * 1024 * 1024), "log.max_bytes"),
            backup_count=_as_int(log_cfg.get("backup_count", 5), "log.backup_count"),
            redact=_as_bool(log_cfg.get("redact", True), "log.redact"),
        ),
    )


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Load settings from config.json, .env and the process environment."""

    load_dotenv()
    return build_settings(_load_json_config(config_path or CONFIG_PATH))


def uses_default_token(settings: Settings) -> bool:
    return settings.auth.token in KNOWN_DEFAULT_TOKENS


def masked_settings(settings: Settings) -> dict:
    """Return the effective settings as a dict with the auth token masked."""

    return {
        "server": {
            "address": settings.server.address,
            "shutdown_timeout": settings.server.shutdown_timeout,
        },
        "auth": {"token": "***" if settings.auth.token else ""},
        "log": {
            "level": settings.log.level,
            "format": settings.log.format,
            "console": settings.log.console,
            "file_path": settings.log.file_path,
            "max_bytes": settings.log.max_bytes,
            "backup_count": settings.log.backup_count,
            "redact": settings.log.redact,
        },
    }
