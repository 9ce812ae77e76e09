"""Resource (question bank) routes."""

from __future__ import annotations

from flask import Blueprint, jsonify

from db_stores import ResourceStoreDB
from extensions import LENIENT, STRICT, limiter
from helpers import current_owner, paginate_args, paginated_response, teacher_required
from schemas import ResourcePayload, parse_body

bp = Blueprint("resources", __name__)


@bp.route("/api/resources")
@limiter.limit(LENIENT)
@teacher_required
def list_resources():
    page, limit = paginate_args()
    resources, total = ResourceStoreDB(current_owner()).list(page, limit)
    return jsonify(paginated_response(resources, total, page, limit))


@bp.route("/api/resources", methods=["POST"])
@limiter.limit(STRICT)
@teacher_required
def create_resource():
    return jsonify(ResourceStoreDB(current_owner()).create(parse_body(ResourcePayload))), 201


@bp.route("/api/resources/<resource_id>")
@limiter.limit(LENIENT)
@teacher_required
def get_resource(resource_id):
    return jsonify(ResourceStoreDB(current_owner()).get(resource_id))


@bp.route("/api/resources/<resource_id>", methods=["PUT"])
@limiter.limit(STRICT)
@teacher_required
def update_resource(resource_id):
    return jsonify(ResourceStoreDB(current_owner()).update(resource_id, parse_body(ResourcePayload)))


@bp.route("/api/resources/<resource_id>", methods=["DELETE"])
@limiter.limit(STRICT)
@teacher_required
def delete_resource(resource_id):
    ResourceStoreDB(current_owner()).delete(resource_id)
    return jsonify({"message": "Resource deleted successfully"})


@bp.route("/api/resources/for-topic/<topic_id>")
@limiter.limit(LENIENT)
@teacher_required
def resources_for_topic(topic_id):
    return jsonify(ResourceStoreDB(current_owner()).for_topic(topic_id))
