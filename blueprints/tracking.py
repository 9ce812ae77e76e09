"""Student progress routes.

Students may read and add to their own counters; editing or removing a
record is left to teachers.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from db_stores import ProgressStoreDB
from extensions import LENIENT, STRICT, limiter
from helpers import current_scope, signed_in, teacher_required
from schemas import ProgressIncrement, ProgressPatch, ProgressResultUpdate, ProgressUpsert, parse_body

bp = Blueprint("tracking", __name__)


@bp.route("/api/student-progress")
@limiter.limit(LENIENT)
@signed_in
def list_progress():
    return jsonify(ProgressStoreDB(current_scope()).list(
        student_id=request.args.get("studentId"),
        assignment_id=request.args.get("assignmentId"),
        topic_id=request.args.get("topicId"),
        resource_id=request.args.get("resourceId"),
    ))


@bp.route("/api/student-progress", methods=["POST"])
@limiter.limit(STRICT)
@signed_in
def upsert_progress():
    data = parse_body(ProgressUpsert)
    record = ProgressStoreDB(current_scope()).upsert(
        data, solved_count=data.solved_count, total_count=data.total_count,
    )
    return jsonify(record)


@bp.route("/api/student-progress/increment", methods=["POST"])
@limiter.limit(STRICT)
@signed_in
def increment_progress():
    data = parse_body(ProgressIncrement)
    return jsonify(ProgressStoreDB(current_scope()).increment(data, by=data.increment))


@bp.route("/api/student-progress/update", methods=["POST"])
@limiter.limit(STRICT)
@signed_in
def record_result():
    data = parse_body(ProgressResultUpdate)
    result = ProgressStoreDB(current_scope()).record_result(
        data.student_id, data.topic_id, data.correct_count, data.wrong_count, data.empty_count,
    )
    return jsonify({"success": True, "data": result})


@bp.route("/api/student-progress/<progress_id>")
@limiter.limit(LENIENT)
@signed_in
def get_progress(progress_id):
    return jsonify(ProgressStoreDB(current_scope()).get(progress_id))


@bp.route("/api/student-progress/<progress_id>", methods=["PUT"])
@limiter.limit(STRICT)
@teacher_required
def patch_progress(progress_id):
    data = parse_body(ProgressPatch)
    return jsonify(ProgressStoreDB(current_scope()).patch(
        progress_id, solved_count=data.solved_count, total_count=data.total_count,
    ))


@bp.route("/api/student-progress/<progress_id>", methods=["DELETE"])
@limiter.limit(STRICT)
@teacher_required
def delete_progress(progress_id):
    ProgressStoreDB(current_scope()).delete(progress_id)
    return jsonify({"message": "Progress record deleted successfully"})
