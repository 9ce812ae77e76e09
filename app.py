"""
Curriculum Tracker: Flask JSON API

Teachers organise lessons, topics and question-bank resources, assign topics
to students with per-resource question targets, follow their progress and
plan the work into weekly schedules. Students sign in to see their own plan.
"""

from __future__ import annotations

import os
from typing import Any

from flask import Flask, Response
from flask_compress import Compress

import database
from auth import auth_bp, login_manager
from blueprints import register_blueprints
from config import config_by_name
from csrf import init_csrf
from errors import register_error_handlers
from extensions import limiter
from logging_config import init_logging


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    if test_config is not None:
        app.config.from_object(config_by_name["testing"])
        app.config.update(test_config)
    else:
        env = os.environ.get("FLASK_ENV", "development")
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    # Structured logging (request id first, so every later hook can log with it)
    init_logging(app)

    # Response compression
    Compress(app)

    # Register database teardown
    database.init_app(app)

    # Double-submit CSRF guard and token endpoint
    init_csrf(app)

    # Rate limiter (RATELIMIT_ENABLED is off in testing)
    limiter.init_app(app)

    # Auth blueprint and login manager
    app.register_blueprint(auth_bp)
    login_manager.init_app(app)

    register_blueprints(app)
    register_error_handlers(app)

    # Security headers
    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        response.headers["Cache-Control"] = "no-store"
        if not app.debug and not app.testing:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5001)
