"""
Authentication: Flask-Login blueprint for the JSON API.

Two identity kinds share one login manager: teachers (and super admins) from
the users table, and students who were given an email and password. Session
ids are prefixed with the kind (``teacher:<id>`` / ``student:<id>``).
Uses werkzeug.security for password hashing.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta

from flask import Blueprint, jsonify
from flask_login import LoginManager, UserMixin, current_user, login_user, logout_user
from werkzeug.security import check_password_hash

from audit import log_event
from database import get_db
from errors import Forbidden, Unauthorized, error_response
from extensions import AUTH, limiter
from schemas import LoginPayload, parse_body

LOCKOUT_THRESHOLD = 5
LOCKOUT_MINUTES = 15

ROLE_TEACHER = "TEACHER"
ROLE_SUPER_ADMIN = "SUPER_ADMIN"

auth_bp = Blueprint("auth", __name__)
login_manager = LoginManager()


def subscription_active(end_date: str | None) -> bool:
    """No end date means an open-ended subscription."""
    if not end_date:
        return True
    try:
        return date.fromisoformat(end_date[:10]) >= date.today()
    except ValueError:
        return False


class Teacher(UserMixin):
    """Wraps a users row for Flask-Login."""

    kind = "teacher"

    def __init__(self, id: str, name: str, email: str, role: str = ROLE_TEACHER,
                 subscription_end_date: str | None = None):
        self.id = id
        self.name = name
        self.email = email
        self.role = role
        self.subscription_end_date = subscription_end_date

    def get_id(self) -> str:
        return f"teacher:{self.id}"

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_SUPER_ADMIN

    @property
    def is_subscription_active(self) -> bool:
        return self.is_admin or subscription_active(self.subscription_end_date)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "subscriptionEndDate": self.subscription_end_date,
            "isSubscriptionActive": self.is_subscription_active,
        }

    @staticmethod
    def from_row(row) -> "Teacher":
        return Teacher(row["id"], row["name"], row["email"], row["role"], row["subscription_end_date"])

    @staticmethod
    def get(teacher_id: str):
        row = get_db().execute(
            "SELECT id, name, email, role, subscription_end_date FROM users WHERE id = ?",
            (teacher_id,),
        ).fetchone()
        return Teacher.from_row(row) if row else None

    @staticmethod
    def get_by_email(email: str):
        return get_db().execute(
            "SELECT id, name, email, password_hash, role, login_attempts, locked_until, "
            "subscription_end_date FROM users WHERE email = ?", (email,),
        ).fetchone()


class StudentAccount(UserMixin):
    """A student signed in to their own dashboard."""

    kind = "student"

    def __init__(self, id: str, name: str, email: str, teacher_id: str):
        self.id = id
        self.name = name
        self.email = email
        self.teacher_id = teacher_id

    def get_id(self) -> str:
        return f"student:{self.id}"

    def to_dict(self) -> dict:
        return {"id": self.id, "kind": self.kind, "name": self.name, "email": self.email}

    @staticmethod
    def get(student_id: str):
        row = get_db().execute(
            "SELECT id, name, email, teacher_id FROM students WHERE id = ? AND password_hash IS NOT NULL",
            (student_id,),
        ).fetchone()
        if row:
            return StudentAccount(row["id"], row["name"], row["email"], row["teacher_id"])
        return None


@login_manager.user_loader
def load_user(session_id: str):
    kind, _, ident = session_id.partition(":")
    if kind == "teacher":
        return Teacher.get(ident)
    if kind == "student":
        return StudentAccount.get(ident)
    return None


@login_manager.unauthorized_handler
def _unauthorized():
    return error_response(Unauthorized.message, 401)


def _check_lockout(row) -> None:
    locked_until = row["locked_until"]
    if not locked_until:
        return
    try:
        remaining = (datetime.fromisoformat(locked_until) - datetime.now()).total_seconds()
    except ValueError:
        return
    if remaining > 0:
        log_event("login_locked", f"teacher:{row['id']}", f"email={row['email']}")
        raise Forbidden(f"Account temporarily locked. Try again in {math.ceil(remaining / 60)} minute(s).")


def _record_failure(row) -> None:
    db = get_db()
    attempts = row["login_attempts"] + 1
    if attempts >= LOCKOUT_THRESHOLD:
        db.execute(
            "UPDATE users SET login_attempts=?, locked_until=? WHERE id=?",
            (attempts, (datetime.now() + timedelta(minutes=LOCKOUT_MINUTES)).isoformat(), row["id"]),
        )
    else:
        db.execute("UPDATE users SET login_attempts=? WHERE id=?", (attempts, row["id"]))
    db.commit()
    log_event("login_failed", f"teacher:{row['id']}", f"attempts={attempts}")


@auth_bp.route("/api/auth/login", methods=["POST"])
@limiter.limit(AUTH)
def login():
    payload = parse_body(LoginPayload)
    row = Teacher.get_by_email(payload.email)
    if not row:
        log_event("login_failed", None, f"email={payload.email}")
        raise Unauthorized("Invalid email or password")

    _check_lockout(row)

    if not row["password_hash"] or not check_password_hash(row["password_hash"], payload.password):
        _record_failure(row)
        raise Unauthorized("Invalid email or password")

    db = get_db()
    db.execute("UPDATE users SET login_attempts=0, locked_until='' WHERE id=?", (row["id"],))
    db.commit()

    teacher = Teacher.from_row(row)
    if not teacher.is_subscription_active:
        log_event("login_subscription_expired", teacher.get_id())
        raise Forbidden("Subscription has expired")

    login_user(teacher, remember=True)
    log_event("login_success", teacher.get_id())
    return jsonify({"user": teacher.to_dict()})


@auth_bp.route("/api/students/auth/login", methods=["POST"])
@limiter.limit(AUTH)
def student_login():
    payload = parse_body(LoginPayload)
    row = get_db().execute(
        "SELECT id, name, email, teacher_id, password_hash FROM students WHERE email = ?",
        (payload.email,),
    ).fetchone()
    if not row or not row["password_hash"] or not check_password_hash(row["password_hash"], payload.password):
        log_event("student_login_failed", None, f"email={payload.email}")
        raise Unauthorized("Invalid email or password")
    student = StudentAccount(row["id"], row["name"], row["email"], row["teacher_id"])
    login_user(student, remember=True)
    log_event("student_login_success", student.get_id())
    return jsonify({"user": student.to_dict()})


@auth_bp.route("/api/auth/logout", methods=["POST"])
def logout():
    actor = current_user.get_id() if current_user.is_authenticated else None
    log_event("logout", actor)
    logout_user()
    return jsonify({"success": True})


@auth_bp.route("/api/auth/me")
def me():
    if not current_user.is_authenticated:
        raise Unauthorized()
    return jsonify({"user": current_user.to_dict()})
