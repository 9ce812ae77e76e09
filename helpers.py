"""
Shared helpers used across blueprints.

Identity resolution, role decorators and the pagination envelope.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import current_app, request
from flask_login import current_user

from db_stores import Owner
from errors import Forbidden, Unauthorized


def current_owner() -> Owner:
    """Ownership context of the signed-in teacher."""
    if not current_user.is_authenticated or current_user.kind != "teacher":
        raise Unauthorized()
    return Owner(teacher_id=current_user.id, is_admin=current_user.is_admin)


def current_scope() -> Owner:
    """Ownership context for routes open to teachers and students alike."""
    if not current_user.is_authenticated:
        raise Unauthorized()
    if current_user.kind == "student":
        return Owner(teacher_id=current_user.teacher_id, student_id=current_user.id)
    return current_owner()


def current_student_id() -> str:
    if not current_user.is_authenticated or current_user.kind != "student":
        raise Unauthorized()
    return current_user.id


def is_student() -> bool:
    return current_user.is_authenticated and current_user.kind == "student"


def teacher_required(f: Callable) -> Callable:
    """Decorator that requires a signed-in teacher or super admin."""
    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        if not current_user.is_authenticated:
            raise Unauthorized()
        if current_user.kind != "teacher":
            raise Forbidden("Teacher access required")
        return f(*args, **kwargs)
    return decorated


def admin_required(f: Callable) -> Callable:
    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        if not current_user.is_authenticated:
            raise Unauthorized()
        if current_user.kind != "teacher" or not current_user.is_admin:
            raise Forbidden("Super admin access required")
        return f(*args, **kwargs)
    return decorated


def student_required(f: Callable) -> Callable:
    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        if not current_user.is_authenticated:
            raise Unauthorized()
        if current_user.kind != "student":
            raise Forbidden("Student access required")
        return f(*args, **kwargs)
    return decorated


def signed_in(f: Callable) -> Callable:
    """Teachers and students alike; the route scopes the data."""
    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        if not current_user.is_authenticated:
            raise Unauthorized()
        return f(*args, **kwargs)
    return decorated


def flag_arg(name: str, default: bool = False) -> bool:
    value = request.args.get(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


# ── Pagination ──────────────────────────────────────────────

def paginate_args(default_limit: int | None = None, max_limit: int | None = None) -> tuple[int, int]:
    """Extract page/limit from request.args. Returns (page, limit)."""
    if default_limit is None:
        default_limit = current_app.config.get("DEFAULT_PAGE_LIMIT", 20)
    if max_limit is None:
        max_limit = current_app.config.get("MAX_PAGE_LIMIT", 100)
    try:
        page = max(1, int(request.args.get("page", 1)))
    except (ValueError, TypeError):
        page = 1
    try:
        limit = min(max_limit, max(1, int(request.args.get("limit", default_limit))))
    except (ValueError, TypeError):
        limit = default_limit
    return page, limit


def paginated_response(data: list, total: int, page: int, limit: int) -> dict:
    """Standard pagination envelope."""
    return {
        "data": data,
        "pagination": {
            "page": page,
            "limit": limit,
            "totalCount": total,
            "totalPages": math.ceil(total / limit) if limit else 0,
        },
    }
