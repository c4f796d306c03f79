"""
Attachment Blueprint — thesis files.

Endpoints:
  GET    /api/v1/attachments/theses/<id>     — List (?is_draft=true|false)
  POST   /api/v1/attachments/theses/<id>     — Upload (multipart ``files``, form ``is_draft``)
  GET    /api/v1/attachments/<id>/download   — Stream the file
  PUT    /api/v1/attachments/<id>            — Update ``is_draft``
  DELETE /api/v1/attachments/<id>            — Delete row and blob
"""

from flask import Blueprint, current_app, jsonify, request, send_file

from thesis_portal.auth import get_current_user, require_auth
from thesis_portal.services import attachment_service
from thesis_portal.services.blob_store import get_blob_store
from thesis_portal.utils.helpers import parse_bool

attachments_bp = Blueprint("attachments_bp", __name__, url_prefix="/api/v1/attachments")


@attachments_bp.route("/theses/<int:thesis_id>", methods=["GET"])
@require_auth
def list_attachments(thesis_id):
    raw = request.args.get("is_draft")
    is_draft = parse_bool(raw) if raw not in (None, "") else None
    attachments = attachment_service.list_attachments(get_current_user(), thesis_id, is_draft)
    return jsonify({"attachments": [a.to_dict() for a in attachments]}), 200


@attachments_bp.route("/theses/<int:thesis_id>", methods=["POST"])
@require_auth
def upload(thesis_id):
    files = request.files.getlist("files")
    is_draft = parse_bool(request.form.get("is_draft"), default=True)
    created = attachment_service.upload(
        get_current_user(), thesis_id, files, is_draft,
        store=get_blob_store(current_app),
    )
    return jsonify({
        "message": f"{len(created)} file(s) uploaded successfully",
        "attachments": [a.to_dict() for a in created],
    }), 201


@attachments_bp.route("/<int:attachment_id>/download", methods=["GET"])
@require_auth
def download(attachment_id):
    att, fh = attachment_service.open_blob(
        get_current_user(), attachment_id, store=get_blob_store(current_app),
    )
    return send_file(
        fh,
        mimetype=att.mime_type or "application/octet-stream",
        as_attachment=True,
        download_name=att.filename,
    )


@attachments_bp.route("/<int:attachment_id>", methods=["PUT"])
@require_auth
def update_attachment(attachment_id):
    data = request.get_json(silent=True) or {}
    att = attachment_service.update_attachment(get_current_user(), attachment_id, data)
    return jsonify({"message": "Attachment updated successfully", "attachment": att.to_dict()}), 200


@attachments_bp.route("/<int:attachment_id>", methods=["DELETE"])
@require_auth
def delete_attachment(attachment_id):
    attachment_service.delete_attachment(
        get_current_user(), attachment_id, store=get_blob_store(current_app),
    )
    return jsonify({"message": "Attachment deleted successfully"}), 200
