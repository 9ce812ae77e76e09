"""
Typed API errors and their translation to JSON responses.

Stores and blueprints raise these; the handlers registered here are the
single place they become HTTP status codes. Response envelope:
``{"error": str, "details"?: any}``.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class APIError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details


class ValidationFailed(APIError):
    status_code = 400
    message = "Validation failed"


class Unauthorized(APIError):
    status_code = 401
    message = "Authentication required"


class OwnershipError(Unauthorized):
    """Caller is signed in but does not own the target row."""
    status_code = 403
    message = "Unauthorized access"


class Forbidden(APIError):
    status_code = 403
    message = "You are not allowed to perform this action"


class NotFound(APIError):
    status_code = 404
    message = "Not found"


class Conflict(APIError):
    status_code = 409
    message = "Record already exists"


def error_response(message: str, status: int, details: Any = None):
    body: dict[str, Any] = {"error": message}
    if details is not None:
        body["details"] = details
    return jsonify(body), status


def map_integrity_error(exc: sqlite3.IntegrityError) -> APIError:
    msg = str(exc)
    if "UNIQUE constraint failed" in msg:
        return Conflict(details="Unique constraint violation")
    if "FOREIGN KEY constraint failed" in msg:
        return ValidationFailed("Related record not found", details="Foreign key constraint failed")
    return APIError("Database error", details=msg)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(APIError)
    def _handle_api_error(exc: APIError):
        if exc.status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc.message)
        return error_response(exc.message, exc.status_code, exc.details)

    @app.errorhandler(sqlite3.IntegrityError)
    def _handle_integrity_error(exc: sqlite3.IntegrityError):
        logger.warning("Integrity error: %s", exc)
        mapped = map_integrity_error(exc)
        return error_response(mapped.message, mapped.status_code, mapped.details)

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):
        if exc.code == 429:
            return error_response("Too many requests", 429, f"Rate limit exceeded: {exc.description}")
        return error_response(exc.name, exc.code or 500, exc.description)

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        logger.exception("Unhandled error")
        return error_response("Internal server error", 500, str(exc))
