"""
Topic Blueprint — research topics owned by instructors.

Endpoints:
  GET    /api/v1/topics             — List (?creator_id=&available=true)
  GET    /api/v1/topics/<id>        — Topic + non-cancelled theses
  POST   /api/v1/topics             — Create (instructor)
  PUT    /api/v1/topics/<id>        — Update (creator or secretary)
  DELETE /api/v1/topics/<id>        — Delete (creator or secretary)
"""

from flask import Blueprint, jsonify, request

from thesis_portal.auth import get_current_user, require_auth, require_role
from thesis_portal.models.user import ROLE_INSTRUCTOR
from thesis_portal.services import topic_service
from thesis_portal.utils.helpers import parse_bool

topics_bp = Blueprint("topics_bp", __name__, url_prefix="/api/v1/topics")


@topics_bp.route("", methods=["GET"])
@require_auth
def list_topics():
    creator_id = request.args.get("creator_id", type=int)
    available = parse_bool(request.args.get("available"), default=False)
    rows = topic_service.list_topics(creator_id=creator_id, available=available)
    return jsonify({"topics": [t.to_dict(assignment_count=n) for t, n in rows]}), 200


@topics_bp.route("/<int:topic_id>", methods=["GET"])
@require_auth
def get_topic(topic_id):
    topic, theses = topic_service.get_topic(topic_id)
    d = topic.to_dict()
    d["theses"] = [
        {
            "id": th.id,
            "state": th.state,
            "student_id": th.student_id,
            "student_name": th.student.full_name if th.student else None,
            "assigned_at": th.assigned_at.isoformat() if th.assigned_at else None,
        }
        for th in theses
    ]
    return jsonify({"topic": d}), 200


@topics_bp.route("", methods=["POST"])
@require_role(ROLE_INSTRUCTOR)
def create_topic():
    data = request.get_json(silent=True) or {}
    topic = topic_service.create_topic(get_current_user(), data)
    return jsonify({"message": "Topic created successfully", "topic": topic.to_dict()}), 201


@topics_bp.route("/<int:topic_id>", methods=["PUT"])
@require_auth
def update_topic(topic_id):
    data = request.get_json(silent=True) or {}
    topic = topic_service.update_topic(get_current_user(), topic_id, data)
    return jsonify({"message": "Topic updated successfully", "topic": topic.to_dict()}), 200


@topics_bp.route("/<int:topic_id>", methods=["DELETE"])
@require_auth
def delete_topic(topic_id):
    topic_service.delete_topic(get_current_user(), topic_id)
    return jsonify({"message": "Topic deleted successfully"}), 200
