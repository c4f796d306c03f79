"""
Thesis Blueprint — the lifecycle surface.

Endpoints:
  GET  /api/v1/theses              — Role-filtered list (?status=&student_id=&supervisor_id=)
  GET  /api/v1/theses/stats        — Per-state counts and recent theses (instructor/secretary)
  GET  /api/v1/theses/<id>         — Aggregate with committee, attachments, presentation
  POST /api/v1/theses              — Assign topic + student + supervisor (instructor/secretary)
  PUT  /api/v1/theses/<id>/state   — Request a state transition
"""

from flask import Blueprint, jsonify, request

from thesis_portal.auth import get_current_user, require_auth, require_role
from thesis_portal.core.exceptions import ValidationError
from thesis_portal.models.user import ROLE_INSTRUCTOR, ROLE_SECRETARY
from thesis_portal.services import thesis_lifecycle

theses_bp = Blueprint("theses_bp", __name__, url_prefix="/api/v1/theses")


@theses_bp.route("", methods=["GET"])
@require_auth
def list_theses():
    theses = thesis_lifecycle.list_theses(
        get_current_user(),
        status=request.args.get("status") or None,
        student_id=request.args.get("student_id", type=int),
        supervisor_id=request.args.get("supervisor_id", type=int),
    )
    return jsonify({"theses": [th.to_dict() for th in theses]}), 200


@theses_bp.route("/stats", methods=["GET"])
@require_role(ROLE_INSTRUCTOR, ROLE_SECRETARY)
def thesis_stats():
    return jsonify(thesis_lifecycle.thesis_stats(get_current_user())), 200


@theses_bp.route("/<int:thesis_id>", methods=["GET"])
@require_auth
def get_thesis(thesis_id):
    detail = thesis_lifecycle.get_thesis_detail(get_current_user(), thesis_id)
    return jsonify({"thesis": detail}), 200


@theses_bp.route("", methods=["POST"])
@require_role(ROLE_INSTRUCTOR, ROLE_SECRETARY)
def create_thesis():
    """
    Body: { "topic_id": 1, "student_id": 2, "supervisor_id": 3 }
    """
    data = request.get_json(silent=True) or {}
    thesis = thesis_lifecycle.create_thesis(get_current_user(), data)
    return jsonify({
        "message": "Thesis assignment created successfully",
        "thesis": thesis.to_dict(),
    }), 201


@theses_bp.route("/<int:thesis_id>/state", methods=["PUT"])
@require_auth
def change_state(thesis_id):
    """
    Body: { "state": "CANCELLED", "cancellation_reason": "...", "ap_number": "..." }
    """
    data = request.get_json(silent=True) or {}
    target = data.get("state")
    if not target:
        raise ValidationError("state is required", details={"state": "required"})
    result = thesis_lifecycle.transition_thesis(
        get_current_user(),
        thesis_id,
        target,
        cancellation_reason=data.get("cancellation_reason"),
        ap_number=data.get("ap_number"),
    )
    return jsonify({
        "message": "Thesis state updated successfully",
        "transition": result.to_dict(),
    }), 200
