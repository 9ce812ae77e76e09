"""
Structured logging configuration.

- JSON lines in production, readable text in development
- Every request gets an id (taken from ``X-Request-ID`` when the caller sends one)
- One access line per API request, tagged with who made it
"""

from __future__ import annotations

import json
import logging
import time
import uuid

from flask import Flask, g, request
from flask_login import current_user

# probes hit these every few seconds
QUIET_PATHS = frozenset({"/health", "/ready"})

ACCESS_FIELDS = ("request_id", "identity", "method", "path", "status", "duration_ms")

access_logger = logging.getLogger("curriculum.access")


class JSONFormatter(logging.Formatter):
    """Emit log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ACCESS_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def current_identity() -> str:
    """``teacher:<id>``, ``student:<id>`` or ``-`` for anonymous requests."""
    if current_user.is_authenticated:
        return current_user.get_id()
    return "-"


def init_logging(app: Flask) -> None:
    level = getattr(logging, app.config.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

    handler = logging.StreamHandler()
    if app.config.get("LOG_FORMAT", "text") == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    @app.before_request
    def _start_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        g.request_start = time.perf_counter()

    @app.after_request
    def _access_log(response):
        request_id = getattr(g, "request_id", "-")
        response.headers["X-Request-ID"] = request_id
        if request.path in QUIET_PATHS:
            return response

        started = getattr(g, "request_start", None)
        duration_ms = round((time.perf_counter() - started) * 1000) if started else 0
        identity = current_identity()
        access_logger.info(
            "%s %s %s %dms %s",
            request.method, request.path, response.status_code, duration_ms, identity,
            extra={
                "request_id": request_id,
                "identity": identity,
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response
