"""
Presentation Blueprint — examination scheduling and announcements.

Endpoints:
  GET    /api/v1/presentations                    — Role-filtered (?from=&to=&thesis_id=&format=json|xml)
  GET    /api/v1/presentations/public             — Public feed, no auth (?from=&to=&format=json|xml)
  GET    /api/v1/presentations/<id>               — Detail + accepted committee
  POST   /api/v1/presentations/theses/<id>        — Schedule
  PUT    /api/v1/presentations/<id>               — Reschedule / change mode
  DELETE /api/v1/presentations/<id>               — Remove
"""

from flask import Blueprint, Response, jsonify, request

from thesis_portal.auth import get_current_user, require_auth
from thesis_portal.core.exceptions import ValidationError
from thesis_portal.services import presentation_service

presentations_bp = Blueprint("presentations_bp", __name__, url_prefix="/api/v1/presentations")

_FORMATS = ("json", "xml")


def _format():
    fmt = (request.args.get("format") or "json").lower()
    if fmt not in _FORMATS:
        raise ValidationError("format must be json or xml", details={"format": "invalid"})
    return fmt


@presentations_bp.route("", methods=["GET"])
@require_auth
def list_presentations():
    fmt = _format()
    items = presentation_service.list_presentations(
        get_current_user(),
        start=request.args.get("from"),
        end=request.args.get("to"),
        thesis_id=request.args.get("thesis_id", type=int),
    )
    rows = [presentation_service.serialize(p) for p in items]
    if fmt == "xml":
        return Response(presentation_service.render_xml(rows), mimetype="application/xml")
    return jsonify({"presentations": rows}), 200


@presentations_bp.route("/public", methods=["GET"])
def public_feed():
    fmt = _format()
    items = presentation_service.list_public(
        start=request.args.get("from"), end=request.args.get("to"),
    )
    rows = [presentation_service.public_dict(p) for p in items]
    if fmt == "xml":
        return Response(presentation_service.render_xml(rows), mimetype="application/xml")
    return jsonify({"presentations": rows}), 200


@presentations_bp.route("/<int:presentation_id>", methods=["GET"])
@require_auth
def get_presentation(presentation_id):
    detail = presentation_service.get_presentation(get_current_user(), presentation_id)
    return jsonify({"presentation": detail}), 200


@presentations_bp.route("/theses/<int:thesis_id>", methods=["POST"])
@require_auth
def schedule(thesis_id):
    """
    Body: { "scheduled_at": ISO-8601, "mode": "IN_PERSON"|"ONLINE", "room"?, "online_link"? }
    """
    data = request.get_json(silent=True) or {}
    presentation = presentation_service.schedule(get_current_user(), thesis_id, data)
    return jsonify({
        "message": "Presentation scheduled successfully",
        "presentation": presentation_service.serialize(presentation),
    }), 201


@presentations_bp.route("/<int:presentation_id>", methods=["PUT"])
@require_auth
def update_presentation(presentation_id):
    data = request.get_json(silent=True) or {}
    presentation = presentation_service.update_presentation(get_current_user(), presentation_id, data)
    return jsonify({
        "message": "Presentation updated successfully",
        "presentation": presentation_service.serialize(presentation),
    }), 200


@presentations_bp.route("/<int:presentation_id>", methods=["DELETE"])
@require_auth
def delete_presentation(presentation_id):
    presentation_service.delete_presentation(get_current_user(), presentation_id)
    return jsonify({"message": "Presentation deleted successfully"}), 200
