"""
Double-submit CSRF guard for the JSON API.

The token is issued by Flask-WTF (so it is bound to the session) and handed to
the client both as a cookie and in the response body. Every write under
``/api/`` must echo it in the ``X-CSRF-Token`` header; the header and cookie
must match and the token must still validate against the session.
"""

from __future__ import annotations

import hmac
import logging

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_wtf.csrf import CSRFError, CSRFProtect, generate_csrf, validate_csrf
from wtforms import ValidationError

from errors import error_response

logger = logging.getLogger(__name__)

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
EXEMPT_PATHS = frozenset({"/api/auth/login", "/api/students/auth/login"})
FAILURE_MESSAGE = "CSRF token validation failed"

csrf = CSRFProtect()
bp = Blueprint("csrf", __name__)


@bp.route("/api/csrf-token")
def csrf_token():
    token = generate_csrf()
    resp = jsonify({"csrfToken": token})
    resp.set_cookie(
        current_app.config.get("CSRF_COOKIE_NAME", "csrf-token"),
        token,
        httponly=False,
        samesite="Strict",
        secure=not current_app.debug and not current_app.testing,
        max_age=60 * 60 * 24,
        path="/",
    )
    return resp


def tokens_match(cookie_token: str | None, header_token: str | None) -> bool:
    if not cookie_token or not header_token:
        return False
    return hmac.compare_digest(cookie_token.encode(), header_token.encode())


def check_request():
    """before_request hook; returns a 403 response when the pair is invalid."""
    if not current_app.config.get("CSRF_ENABLED", True):
        return None
    if request.method not in WRITE_METHODS or not request.path.startswith("/api/"):
        return None
    if request.path in EXEMPT_PATHS:
        return None

    cookie_token = request.cookies.get(current_app.config.get("CSRF_COOKIE_NAME", "csrf-token"))
    header_token = request.headers.get(current_app.config.get("CSRF_HEADER_NAME", "X-CSRF-Token"))
    if not tokens_match(cookie_token, header_token):
        logger.warning("CSRF pair missing or mismatched for %s %s", request.method, request.path)
        return error_response(FAILURE_MESSAGE, 403)
    try:
        validate_csrf(header_token)
    except (ValidationError, CSRFError) as e:
        logger.warning("CSRF token rejected for %s %s: %s", request.method, request.path, e)
        return error_response(FAILURE_MESSAGE, 403)
    return None


def init_csrf(app: Flask) -> None:
    # Flask-WTF issues and verifies tokens; enforcement is the double-submit hook
    app.config.setdefault("WTF_CSRF_CHECK_DEFAULT", False)
    csrf.init_app(app)
    app.register_blueprint(bp)
    app.before_request(check_request)
