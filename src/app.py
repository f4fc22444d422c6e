"""Application entry point for the boardwatch webhook listener."""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import threading
import time
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from art import tprint
from werkzeug.serving import make_server

import settings
from adapters.event_logging import LoggingEventSink
from adapters.http_server import create_app
from core.processor import EventProcessor
from core.store import EventStore

NAME = "BOARDWATCH"
FONT = "tarty-1"

_TEXT_FMT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _StructuredFormatter(logging.Formatter):
    """Render records as JSON lines or text, redacting configured secrets.

    Structured fields are passed with ``extra={"fields": {...}}``. Secrets are
    replaced in the message and field values before serialization.
    """

    def __init__(
        self,
        secrets: list[str],
        json_output: bool,
        fmt: str = _TEXT_FMT,
        datefmt: Optional[str] = _DATEFMT,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)
        self._json_output = json_output

    def _redact_text(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, "***")
        return text

    def _redact(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._redact_text(value)
        if isinstance(value, dict):
            return {key: self._redact(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._redact(item) for item in value]
        if value is None or isinstance(value, (bool, int, float)):
            return value
        return self._redact_text(str(value))

    def _fields(self, record: logging.LogRecord) -> dict[str, Any]:
        fields = getattr(record, "fields", None)
        if not isinstance(fields, dict):
            return {}
        return self._redact(fields)

    def _format_json(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": self._redact_text(record.getMessage()),
        }
        entry.update(self._fields(record))
        if record.exc_info:
            entry["exc_info"] = self._redact_text(self.formatException(record.exc_info))
        return json.dumps(entry, default=str, ensure_ascii=False)

    def _format_text(self, record: logging.LogRecord) -> str:
        message = self._redact_text(super().format(record))
        fields = self._fields(record)
        if fields:
            rendered = " ".join(
                f"{key}={json.dumps(value, default=str, ensure_ascii=False)}" for key, value in fields.items()
            )
            message = f"{message} {rendered}"
        return message

    def format(self, record: logging.LogRecord) -> str:
        if self._json_output:
            return self._format_json(record)
        return self._format_text(record)


def configure_logging(log_settings: settings.LogSettings, secrets: Optional[list[str]] = None) -> None:
    """Install console/file handlers on the root logger.

    Raises OSError when the log file cannot be opened.
    """

    level = getattr(logging, log_settings.level, logging.INFO)
    formatter = _StructuredFormatter(
        secrets if log_settings.redact and secrets else [],
        json_output=log_settings.format == "json",
    )

    handlers: list[logging.Handler] = []

    if log_settings.console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if log_settings.file_path:
        path = log_settings.file_path
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(level=level, handlers=handlers, force=True)


def _load_or_exit(config_path: Optional[str]) -> settings.Settings:
    try:
        return settings.load_settings(config_path)
    except settings.ConfigError:
        logging.getLogger(__name__).exception("Failed to load configuration")
        raise SystemExit(1)


class _InflightRequests:
    """WSGI middleware that counts requests still inside the app."""

    def __init__(self, wsgi_app) -> None:
        self._wsgi_app = wsgi_app
        self._active = 0
        self._idle = threading.Condition()

    def __call__(self, environ, start_response):
        with self._idle:
            self._active += 1
        try:
            return self._wsgi_app(environ, start_response)
        finally:
            with self._idle:
                self._active -= 1
                if not self._active:
                    self._idle.notify_all()

    def wait_idle(self, timeout: float) -> bool:
        """Block until no request is in flight; False if the timeout expires first."""

        with self._idle:
            return self._idle.wait_for(lambda: self._active == 0, timeout=max(timeout, 0))


def _serve(app_settings: settings.Settings, store: EventStore, flask_app) -> None:
    """Serve until SIGINT/SIGTERM, then shut down within the configured timeout.

    Shutdown stops accepting connections and waits for in-flight requests;
    if they are still running at the deadline the process exits with 1.
    """

    logger = logging.getLogger(__name__)
    server_cfg = app_settings.server
    inflight = _InflightRequests(flask_app)

    try:
        server = make_server(server_cfg.host, server_cfg.port, inflight, threaded=True)
    except OSError:
        logger.exception("Server failed to start", extra={"fields": {"address": server_cfg.address}})
        raise SystemExit(1)

    stop = threading.Event()

    def _request_stop(signum, _frame) -> None:
        logger.debug("Received signal %s", signum)
        stop.set()

    previous_handlers = {
        signum: signal.signal(signum, _request_stop) for signum in (signal.SIGINT, signal.SIGTERM)
    }

    try:
        serve_thread = threading.Thread(target=server.serve_forever, name="webhook-server", daemon=True)
        logger.info(
            "Starting server...",
            extra={"fields": {"address": f"{server_cfg.host}:{server.server_port}"}},
        )
        serve_thread.start()

        # Short waits keep the main thread responsive to signals.
        while not stop.wait(0.5):
            if not serve_thread.is_alive():
                logger.error("Server stopped unexpectedly")
                raise SystemExit(1)

        logger.info("Shutting down server...")
        deadline = time.monotonic() + server_cfg.shutdown_timeout
        shutdown_thread = threading.Thread(target=server.shutdown, name="webhook-shutdown", daemon=True)
        shutdown_thread.start()
        shutdown_thread.join(server_cfg.shutdown_timeout)
        drained = not shutdown_thread.is_alive() and inflight.wait_idle(deadline - time.monotonic())
        server.server_close()
        if not drained:
            logger.error(
                "Server forced to shutdown",
                extra={"fields": {"timeout_seconds": server_cfg.shutdown_timeout}},
            )
            raise SystemExit(1)
    finally:
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)

    stats = store.stats()
    logger.info(
        "Server exiting",
        extra={
            "fields": {
                "distinctEvents": stats.distinct_events,
                "totalOccurrences": stats.total_occurrences,
            }
        },
    )


def _run(config_path: Optional[str] = None) -> None:
    _print_banner()
    app_settings = _load_or_exit(config_path)

    try:
        configure_logging(app_settings.log, secrets=[app_settings.auth.token])
    except OSError:
        logging.getLogger(__name__).exception("Failed to initialize logger")
        raise SystemExit(1)
    logger = logging.getLogger(__name__)

    logger.info("Configuration loaded successfully", extra={"fields": {"logLevel": app_settings.log.level}})
    if settings.uses_default_token(app_settings):
        logger.warning(
            "Security warning: You are using the default authentication token. "
            "Please change it in config.json or via environment variables."
        )

    # One store per process, handed to the processor explicitly.
    store = EventStore()
    processor = EventProcessor(store=store, sink=LoggingEventSink())
    flask_app = create_app(processor, app_settings.auth.token)

    _serve(app_settings, store, flask_app)


def _show_config(config_path: Optional[str] = None) -> None:
    app_settings = _load_or_exit(config_path)
    print(json.dumps(settings.masked_settings(app_settings), indent=2))


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="boardwatch")
    parser.add_argument("--config", help="Path to config.json (defaults to the project root)")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the webhook listener")
    subparsers.add_parser("config", help="Print the effective configuration with secrets masked")

    args = parser.parse_args(argv)
    if args.command == "config":
        _show_config(args.config)
        return
    _run(args.config)


if __name__ == "__main__":
    main()
