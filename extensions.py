"""
Rate limiter singleton and limit presets.

Requests are counted per client address and path, so a burst against one
endpoint does not consume the allowance of the others.
"""

from __future__ import annotations

from flask import request
from flask_limiter import Limiter

AUTH = "5 per 15 minutes"
STANDARD = "100 per minute"
STRICT = "30 per minute"
LENIENT = "300 per minute"


def client_ip() -> str:
    """Best-effort client address behind proxies."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    for header in ("X-Real-IP", "CF-Connecting-IP"):
        value = request.headers.get(header)
        if value:
            return value.strip()
    return request.remote_addr or "unknown"


def rate_limit_key() -> str:
    return f"{client_ip()}:{request.path}"


limiter = Limiter(key_func=rate_limit_key, default_limits=[STANDARD], headers_enabled=True)
