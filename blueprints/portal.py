"""Student self-service dashboard."""

from __future__ import annotations

from flask import Blueprint, jsonify

from db_stores import StudentStoreDB, WeeklyScheduleStoreDB
from extensions import LENIENT, limiter
from helpers import current_scope, student_required

bp = Blueprint("portal", __name__)


@bp.route("/api/student/dashboard")
@limiter.limit(LENIENT)
@student_required
def dashboard():
    scope = current_scope()
    report = StudentStoreDB(scope).details(scope.student_id)
    report["schedules"] = [
        s for s in WeeklyScheduleStoreDB(scope).list(student_id=scope.student_id) if s["isActive"]
    ]
    return jsonify(report)
