"""Weekly schedule, week and week-topic routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from db_stores import WeeklyScheduleStoreDB
from extensions import LENIENT, STRICT, limiter
from helpers import (
    current_owner, current_scope, flag_arg, paginate_args, paginated_response, signed_in, teacher_required,
)
from schemas import (
    ScheduleCreate, ScheduleUpdate, WeekTopicMove, WeekTopicReorder, WeekTopicUpdate, WeekUpdate, parse_body,
)

bp = Blueprint("schedules", __name__)


@bp.route("/api/weekly-schedules")
@limiter.limit(LENIENT)
@signed_in
def list_schedules():
    return jsonify(WeeklyScheduleStoreDB(current_scope()).list(student_id=request.args.get("studentId")))


@bp.route("/api/weekly-schedules", methods=["POST"])
@limiter.limit(STRICT)
@teacher_required
def create_schedule():
    data = parse_body(ScheduleCreate)
    created = WeeklyScheduleStoreDB(current_owner()).create(
        data.student_id, data.title, data.start_date, data.end_date, [a.id for a in data.assignments],
    )
    return jsonify(created), 201


@bp.route("/api/weekly-schedules/<schedule_id>")
@limiter.limit(LENIENT)
@signed_in
def get_schedule(schedule_id):
    return jsonify(WeeklyScheduleStoreDB(current_scope()).get(schedule_id))


@bp.route("/api/weekly-schedules/<schedule_id>", methods=["PUT"])
@limiter.limit(STRICT)
@teacher_required
def update_schedule(schedule_id):
    return jsonify(WeeklyScheduleStoreDB(current_owner()).update(schedule_id, parse_body(ScheduleUpdate)))


@bp.route("/api/weekly-schedules/<schedule_id>", methods=["DELETE"])
@limiter.limit(STRICT)
@teacher_required
def delete_schedule(schedule_id):
    WeeklyScheduleStoreDB(current_owner()).delete(schedule_id)
    return jsonify({"message": "Schedule deleted successfully"})


# ── Weeks ──────────────────────────────────────────────────

@bp.route("/api/weekly-schedules/<schedule_id>/weeks")
@limiter.limit(LENIENT)
@signed_in
def list_weeks(schedule_id):
    page, limit = paginate_args()
    weeks, total = WeeklyScheduleStoreDB(current_scope()).list_weeks(
        schedule_id, page, limit, include_topics=flag_arg("includeTopics", default=True),
    )
    return jsonify(paginated_response(weeks, total, page, limit))


@bp.route("/api/weekly-schedules/<schedule_id>/weeks/<week_id>")
@limiter.limit(LENIENT)
@signed_in
def get_week(schedule_id, week_id):
    return jsonify(WeeklyScheduleStoreDB(current_scope()).get_week(schedule_id, week_id))


@bp.route("/api/weekly-schedules/<schedule_id>/weeks/<week_id>", methods=["PUT"])
@limiter.limit(STRICT)
@teacher_required
def update_week(schedule_id, week_id):
    return jsonify(WeeklyScheduleStoreDB(current_owner()).update_week(
        schedule_id, week_id, parse_body(WeekUpdate),
    ))


@bp.route("/api/weekly-schedules/<schedule_id>/weeks/<week_id>/reorder", methods=["PUT"])
@limiter.limit(STRICT)
@teacher_required
def reorder_week(schedule_id, week_id):
    data = parse_body(WeekTopicReorder)
    return jsonify(WeeklyScheduleStoreDB(current_owner()).reorder_week(schedule_id, week_id, data.week_topic_ids))


# ── Week topics ────────────────────────────────────────────

@bp.route("/api/week-topics/<week_topic_id>", methods=["PUT"])
@limiter.limit(STRICT)
@signed_in
def update_week_topic(week_topic_id):
    data = parse_body(WeekTopicUpdate)
    return jsonify(WeeklyScheduleStoreDB(current_scope()).set_week_topic_completed(week_topic_id, data.is_completed))


@bp.route("/api/week-topics/<week_topic_id>/move", methods=["PUT"])
@limiter.limit(STRICT)
@teacher_required
def move_week_topic(week_topic_id):
    data = parse_body(WeekTopicMove)
    return jsonify(WeeklyScheduleStoreDB(current_owner()).move_week_topic(week_topic_id, data.week_id, data.index))
