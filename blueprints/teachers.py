"""Teacher account management (super admin) and self-service profile routes."""

from __future__ import annotations

from flask import Blueprint, jsonify

from audit import log_event
from db_stores import TeacherStoreDB
from extensions import LENIENT, STRICT, limiter
from helpers import admin_required, current_owner, teacher_required
from schemas import PasswordChange, ProfileUpdate, TeacherCreate, TeacherUpdate, parse_body

bp = Blueprint("teachers", __name__)


def _actor() -> str:
    return f"teacher:{current_owner().teacher_id}"


@bp.route("/api/teachers")
@limiter.limit(LENIENT)
@admin_required
def list_teachers():
    return jsonify(TeacherStoreDB(current_owner()).list())


@bp.route("/api/teachers", methods=["POST"])
@limiter.limit(STRICT)
@admin_required
def create_teacher():
    teacher = TeacherStoreDB(current_owner()).create(parse_body(TeacherCreate))
    log_event("teacher_created", _actor(), f"teacher={teacher['id']}")
    return jsonify(teacher), 201


@bp.route("/api/teachers/<teacher_id>")
@limiter.limit(LENIENT)
@admin_required
def get_teacher(teacher_id):
    return jsonify(TeacherStoreDB(current_owner()).get(teacher_id))


@bp.route("/api/teachers/<teacher_id>", methods=["PUT"])
@limiter.limit(STRICT)
@admin_required
def update_teacher(teacher_id):
    data = parse_body(TeacherUpdate)
    teacher = TeacherStoreDB(current_owner()).update(teacher_id, data)
    if data.password:
        log_event("teacher_password_reset", _actor(), f"teacher={teacher_id}")
    return jsonify(teacher)


@bp.route("/api/teachers/<teacher_id>", methods=["DELETE"])
@limiter.limit(STRICT)
@admin_required
def delete_teacher(teacher_id):
    TeacherStoreDB(current_owner()).delete(teacher_id)
    log_event("teacher_deleted", _actor(), f"teacher={teacher_id}")
    return jsonify({"message": "Teacher deleted successfully"})


@bp.route("/api/teacher/profile", methods=["PUT"])
@limiter.limit(STRICT)
@teacher_required
def update_profile():
    return jsonify(TeacherStoreDB(current_owner()).update_profile(parse_body(ProfileUpdate)))


@bp.route("/api/teacher/password", methods=["PUT"])
@limiter.limit(STRICT)
@teacher_required
def change_password():
    data = parse_body(PasswordChange)
    TeacherStoreDB(current_owner()).change_password(data.current_password, data.new_password)
    log_event("password_changed", _actor())
    return jsonify({"message": "Password updated successfully"})
