"""
Invitation Blueprint — committee coordination.

Endpoints:
  GET  /api/v1/invitations                                      — Own invitations (?status=)
  POST /api/v1/invitations/theses/<id>/invite                   — Invite an instructor
  POST /api/v1/invitations/<id>/respond                         — Accept / reject
  GET  /api/v1/invitations/theses/<id>/committee                — Committee + pending invites
  GET  /api/v1/invitations/theses/<id>/available-instructors    — Invitable instructors
"""

from flask import Blueprint, jsonify, request

from thesis_portal.auth import get_current_user, require_auth
from thesis_portal.services import committee_service

invitations_bp = Blueprint("invitations_bp", __name__, url_prefix="/api/v1/invitations")


@invitations_bp.route("", methods=["GET"])
@require_auth
def list_invitations():
    invitations = committee_service.list_invitations(
        get_current_user(), status=request.args.get("status") or None,
    )
    return jsonify({"invitations": [i.to_dict(include_thesis=True) for i in invitations]}), 200


@invitations_bp.route("/theses/<int:thesis_id>/invite", methods=["POST"])
@require_auth
def invite(thesis_id):
    """
    Body: { "instructor_id": 7 }
    """
    data = request.get_json(silent=True) or {}
    invitation = committee_service.invite(get_current_user(), thesis_id, data.get("instructor_id"))
    return jsonify({
        "message": "Invitation sent successfully",
        "invitation": invitation.to_dict(),
    }), 201


@invitations_bp.route("/<int:invitation_id>/respond", methods=["POST"])
@require_auth
def respond(invitation_id):
    """
    Body: { "action": "accept" | "reject" }

    ``activation`` is non-null when this acceptance completed the committee
    and moved the thesis to ACTIVE.
    """
    data = request.get_json(silent=True) or {}
    result = committee_service.respond(get_current_user(), invitation_id, data.get("action"))
    body = result.to_dict()
    body["message"] = f"Invitation {result.invitation.status.lower()}"
    return jsonify(body), 200


@invitations_bp.route("/theses/<int:thesis_id>/committee", methods=["GET"])
@require_auth
def get_committee(thesis_id):
    committee, pending = committee_service.get_committee(get_current_user(), thesis_id)
    return jsonify({
        "committee": [m.to_dict() for m in committee],
        "pending_invitations": [i.to_dict() for i in pending],
    }), 200


@invitations_bp.route("/theses/<int:thesis_id>/available-instructors", methods=["GET"])
@require_auth
def available_instructors(thesis_id):
    instructors = committee_service.list_available_instructors(get_current_user(), thesis_id)
    return jsonify({"instructors": [u.to_dict() for u in instructors]}), 200
