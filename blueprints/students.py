"""Student and assignment routes for teachers."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from audit import log_event
from db_stores import AssignmentStoreDB, StudentStoreDB
from extensions import LENIENT, STRICT, limiter
from helpers import current_owner, paginate_args, paginated_response, teacher_required
from schemas import (
    AssignmentCreate, AssignmentUpdate, BulkQuestionCounts, StudentCreate, StudentUpdate, parse_body,
)

bp = Blueprint("students", __name__)


# ── Students ───────────────────────────────────────────────

@bp.route("/api/students")
@limiter.limit(LENIENT)
@teacher_required
def list_students():
    page, limit = paginate_args()
    students, total = StudentStoreDB(current_owner()).list(page, limit, status=request.args.get("status"))
    return jsonify(paginated_response(students, total, page, limit))


@bp.route("/api/students", methods=["POST"])
@limiter.limit(STRICT)
@teacher_required
def create_student():
    owner = current_owner()
    student = StudentStoreDB(owner).create(parse_body(StudentCreate))
    if student["hasAccount"]:
        log_event("student_account_created", f"teacher:{owner.teacher_id}", f"student={student['id']}")
    return jsonify(student), 201


@bp.route("/api/students/<student_id>")
@limiter.limit(LENIENT)
@teacher_required
def student_details(student_id):
    return jsonify(StudentStoreDB(current_owner()).details(student_id))


@bp.route("/api/students/<student_id>", methods=["PUT"])
@limiter.limit(STRICT)
@teacher_required
def update_student(student_id):
    return jsonify(StudentStoreDB(current_owner()).update(student_id, parse_body(StudentUpdate)))


@bp.route("/api/students/<student_id>", methods=["DELETE"])
@limiter.limit(STRICT)
@teacher_required
def delete_student(student_id):
    StudentStoreDB(current_owner()).delete(student_id)
    return jsonify({"message": "Student deleted successfully"})


# ── Assignments ────────────────────────────────────────────

@bp.route("/api/student-assignments")
@limiter.limit(LENIENT)
@teacher_required
def list_assignments():
    return jsonify(AssignmentStoreDB(current_owner()).list(
        student_id=request.args.get("studentId"),
        topic_id=request.args.get("topicId"),
    ))


@bp.route("/api/student-assignments", methods=["POST"])
@limiter.limit(STRICT)
@teacher_required
def create_assignments():
    data = parse_body(AssignmentCreate)
    result = AssignmentStoreDB(current_owner()).assign(data.student_id, data.topic_ids, data.question_counts)
    return jsonify({
        "message": f"{len(result['created'])} topics assigned",
        "assignments": result["created"],
        "skippedTopicIds": result["skipped"],
    }), 201


@bp.route("/api/student-assignments/<assignment_id>", methods=["PUT"])
@limiter.limit(STRICT)
@teacher_required
def update_assignment(assignment_id):
    data = parse_body(AssignmentUpdate)
    return jsonify(AssignmentStoreDB(current_owner()).update(
        assignment_id, completed=data.completed, question_counts=data.question_counts,
    ))


@bp.route("/api/student-assignments/<assignment_id>", methods=["DELETE"])
@limiter.limit(STRICT)
@teacher_required
def delete_assignment(assignment_id):
    AssignmentStoreDB(current_owner()).delete(assignment_id)
    return jsonify({"message": "Assignment deleted successfully"})


@bp.route("/api/student-assignments/bulk-question-counts", methods=["PUT"])
@limiter.limit(STRICT)
@teacher_required
def bulk_question_counts():
    updated = AssignmentStoreDB(current_owner()).bulk_question_counts(parse_body(BulkQuestionCounts))
    return jsonify({"message": f"Updated {len(updated)} topics", "updatedTopicIds": updated})
