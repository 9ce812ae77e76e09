"""Lesson and topic routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from db_stores import LessonStoreDB, TopicStoreDB
from extensions import LENIENT, STRICT, limiter
from helpers import current_owner, paginate_args, paginated_response, teacher_required
from schemas import (
    LessonCreate, LessonUpdate, TopicCreate, TopicMove, TopicReorder, TopicUpdate, parse_body,
)

bp = Blueprint("lessons", __name__)


# ── Lessons ────────────────────────────────────────────────

@bp.route("/api/lessons")
@limiter.limit(LENIENT)
@teacher_required
def list_lessons():
    page, limit = paginate_args()
    lessons, total = LessonStoreDB(current_owner()).list(page, limit, type=request.args.get("type"))
    return jsonify(paginated_response(lessons, total, page, limit))


@bp.route("/api/lessons", methods=["POST"])
@limiter.limit(STRICT)
@teacher_required
def create_lesson():
    lesson = LessonStoreDB(current_owner()).create(parse_body(LessonCreate))
    return jsonify(lesson), 201


@bp.route("/api/lessons/<lesson_id>")
@limiter.limit(LENIENT)
@teacher_required
def get_lesson(lesson_id):
    return jsonify(LessonStoreDB(current_owner()).get(lesson_id))


@bp.route("/api/lessons/<lesson_id>", methods=["PUT"])
@limiter.limit(STRICT)
@teacher_required
def update_lesson(lesson_id):
    return jsonify(LessonStoreDB(current_owner()).update(lesson_id, parse_body(LessonUpdate)))


@bp.route("/api/lessons/<lesson_id>", methods=["DELETE"])
@limiter.limit(STRICT)
@teacher_required
def delete_lesson(lesson_id):
    LessonStoreDB(current_owner()).delete(lesson_id)
    return jsonify({"message": "Lesson deleted successfully"})


@bp.route("/api/lessons/assign-colors", methods=["POST"])
@limiter.limit(STRICT)
@teacher_required
def assign_colors():
    lessons = LessonStoreDB(current_owner()).assign_colors()
    return jsonify({
        "message": f"Successfully assigned colors to {len(lessons)} lessons",
        "lessons": lessons,
    })


# ── Topics ─────────────────────────────────────────────────

@bp.route("/api/topics")
@limiter.limit(LENIENT)
@teacher_required
def list_topics():
    store = TopicStoreDB(current_owner())
    lesson_id = request.args.get("lessonId")
    if lesson_id:
        return jsonify(store.list_for_lesson(lesson_id))
    return jsonify(store.list())


@bp.route("/api/topics", methods=["POST"])
@limiter.limit(STRICT)
@teacher_required
def create_topic():
    data = parse_body(TopicCreate)
    topic = TopicStoreDB(current_owner()).create(
        data.lesson_id, data.name, order=data.order, average_test_count=data.average_test_count,
    )
    return jsonify(topic), 201


@bp.route("/api/topics/<topic_id>")
@limiter.limit(LENIENT)
@teacher_required
def get_topic(topic_id):
    return jsonify(TopicStoreDB(current_owner()).get(topic_id))


@bp.route("/api/topics/<topic_id>", methods=["PUT"])
@limiter.limit(STRICT)
@teacher_required
def update_topic(topic_id):
    return jsonify(TopicStoreDB(current_owner()).update(topic_id, parse_body(TopicUpdate)))


@bp.route("/api/topics/<topic_id>", methods=["DELETE"])
@limiter.limit(STRICT)
@teacher_required
def delete_topic(topic_id):
    TopicStoreDB(current_owner()).delete(topic_id)
    return jsonify({"message": "Topic deleted successfully"})


@bp.route("/api/topics/reorder", methods=["PUT"])
@limiter.limit(STRICT)
@teacher_required
def reorder_topics():
    data = parse_body(TopicReorder)
    topics = TopicStoreDB(current_owner()).reorder(data.lesson_id, data.topic_ids)
    return jsonify({"message": "Topics reordered successfully", "topics": topics})


@bp.route("/api/topics/<topic_id>/move", methods=["PUT"])
@limiter.limit(STRICT)
@teacher_required
def move_topic(topic_id):
    data = parse_body(TopicMove)
    topics = TopicStoreDB(current_owner()).move(topic_id, data.index)
    return jsonify({"message": "Topic moved successfully", "topics": topics})


@bp.route("/api/topics/fix-orders", methods=["POST"])
@limiter.limit(STRICT)
@teacher_required
def fix_topic_orders():
    touched = TopicStoreDB(current_owner()).fix_orders()
    return jsonify({"message": f"Fixed order of {touched} topics", "updated": touched})
