"""
Audit logging: records security-relevant events.

Events are written to both the audit_log table and structured logging.
"""

from __future__ import annotations

import logging
import sqlite3

from flask import has_request_context, request

from database import get_db, now_iso

logger = logging.getLogger(__name__)


def log_event(action: str, actor: str | None = None, detail: str = "") -> None:
    """Insert an audit log entry and emit a structured log line.

    ``actor`` is an identity string such as ``teacher:<id>``.
    """
    ip = (request.remote_addr or "") if has_request_context() else ""
    ua = request.headers.get("User-Agent", "") if has_request_context() else ""

    try:
        db = get_db()
        db.execute(
            "INSERT INTO audit_log (actor, action, detail, ip_address, user_agent, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (actor, action, detail, ip, ua, now_iso()),
        )
        db.commit()
    except sqlite3.Error as e:
        logger.warning("audit write failed for %s: %s", action, e)

    logger.info("audit: %s actor=%s detail=%s ip=%s", action, actor, detail, ip)
