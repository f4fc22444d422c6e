"""Flask webhook adapter.

Routing, the shared-secret check and body parsing live here; everything after
parsing is handed to the core processor.
"""

from __future__ import annotations

import hmac
import logging

from flask import Flask, Response, request

from adapters.webhook_mapper import WebhookPayloadError, parse_webhook_body
from core.processor import EventProcessor

LOGGER = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def _extract_token(auth_header: str) -> str:
    if auth_header.startswith(BEARER_PREFIX):
        return auth_header[len(BEARER_PREFIX):]
    return auth_header


def _is_authorized(provided: str, expected: str) -> bool:
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def create_app(processor: EventProcessor, auth_token: str) -> Flask:
    """Build the Flask app serving /webhook and /health."""

    app = Flask("boardwatch")

    @app.post("/webhook")
    def webhook() -> Response:
        token = _extract_token(request.headers.get("Authorization", ""))
        if not _is_authorized(token, auth_token):
            LOGGER.warning(
                "Unauthorized webhook attempt",
                extra={"fields": {"remoteAddr": request.remote_addr, "token_provided": token}},
            )
            return Response("Unauthorized", status=401, mimetype="text/plain")

        body = request.get_data(cache=False)
        try:
            event = parse_webhook_body(body)
        except WebhookPayloadError as exc:
            LOGGER.error(
                "Failed to unmarshal JSON payload",
                extra={"fields": {"error": str(exc), "body": body.decode("utf-8", errors="replace")}},
            )
            return Response("Bad Request: Invalid JSON", status=400, mimetype="text/plain")

        processor.handle(event)
        return Response(status=204)

    @app.get("/health")
    def health() -> Response:
        return Response("OK", status=200, mimetype="text/plain")

    return app
