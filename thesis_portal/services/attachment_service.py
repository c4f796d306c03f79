"""
Attachment store — upload, list, download, flag and delete thesis files.

Uploads are validated as a batch (count, per-file size, MIME type) before
any blob is written. If a write or the metadata commit fails, every blob
already stored for the request is removed and the session rolled back.

Deletion removes the row first; the blob is removed afterwards and a
failure there is only logged, the metadata being authoritative.
"""

import logging
import os

from flask import current_app

from thesis_portal.core.exceptions import (
    AuthorizationError,
    InternalError,
    NotFoundError,
    ThesisClosedError,
    UploadLimitError,
    ValidationError,
)
from thesis_portal.models import db
from thesis_portal.models.attachment import Attachment
from thesis_portal.models.thesis import STATE_COMPLETED
from thesis_portal.services.access import (
    can_delete_attachment,
    can_update_attachment,
    can_upload,
    has_access,
)
from thesis_portal.services.blob_store import BlobNotFound
from thesis_portal.services.thesis_lifecycle import load_accessible_thesis, load_thesis
from thesis_portal.utils.helpers import commit_or_raise, get_or_raise, parse_bool

logger = logging.getLogger(__name__)


def _limits():
    cfg = current_app.config
    return cfg["MAX_FILES_PER_REQUEST"], cfg["MAX_FILE_SIZE"], cfg["ALLOWED_MIME_TYPES"]


def _stream_size(file):
    stream = file.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def _validate_batch(files):
    max_files, max_size, allowed = _limits()
    files = [f for f in files if f and f.filename]
    if not files:
        raise ValidationError("No files uploaded", details={"files": "required"})
    if len(files) > max_files:
        raise UploadLimitError(
            f"Too many files (max {max_files} per request)",
            details={"max_files": max_files, "received": len(files)},
        )
    for f in files:
        if f.mimetype not in allowed:
            raise UploadLimitError(
                f"Invalid file type: {f.mimetype}",
                details={"filename": f.filename, "mime_type": f.mimetype},
            )
        if _stream_size(f) > max_size:
            raise UploadLimitError(
                f"File too large: {f.filename}",
                details={"filename": f.filename, "max_bytes": max_size},
            )
    return files


def list_attachments(user, thesis_id, is_draft=None):
    thesis = load_accessible_thesis(user, thesis_id)
    q = thesis.attachments
    if is_draft is not None:
        q = q.filter(Attachment.is_draft == is_draft)
    return q.order_by(Attachment.uploaded_at.desc(), Attachment.id.desc()).all()


def upload(actor, thesis_id, files, is_draft, *, store):
    """Store ``files`` (werkzeug FileStorage list) against the thesis."""
    thesis = load_thesis(thesis_id)
    if not can_upload(actor, thesis):
        raise AuthorizationError("Access denied")
    if thesis.is_terminal and not actor.is_secretary:
        raise ThesisClosedError(
            "Cannot upload files to completed or cancelled thesis",
            details={"thesis_state": thesis.state},
        )

    files = _validate_batch(files)
    _, max_size, _ = _limits()

    stored_keys = []
    created = []
    try:
        for f in files:
            key, size = store.put(f.stream, f.filename, max_bytes=max_size)
            stored_keys.append(key)
            att = Attachment(
                thesis_id=thesis.id,
                uploaded_by=actor.id,
                filename=f.filename,
                storage_key=key,
                mime_type=f.mimetype,
                size_bytes=size,
                is_draft=is_draft,
            )
            db.session.add(att)
            created.append(att)
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        for key in stored_keys:
            try:
                store.delete(key)
            except OSError:
                logger.warning("Could not remove orphaned blob %s", key, exc_info=True)
        if isinstance(exc, ValueError):
            raise UploadLimitError(str(exc)) from exc
        logger.exception("Upload to thesis %s failed; %d blobs removed", thesis.id, len(stored_keys))
        raise InternalError("Failed to store uploaded files") from exc

    logger.info("User %s uploaded %d file(s) to thesis %s", actor.id, len(created), thesis.id)
    return created


def get_attachment(user, attachment_id):
    att = get_or_raise(Attachment, attachment_id)
    if not has_access(user, att.thesis):
        raise AuthorizationError("Access denied")
    return att


def open_blob(user, attachment_id, *, store):
    """Return ``(attachment, file_object)`` for download."""
    att = get_attachment(user, attachment_id)
    try:
        return att, store.open(att.storage_key)
    except BlobNotFound as exc:
        logger.warning("Blob %s for attachment %s is missing", att.storage_key, att.id)
        raise NotFoundError(resource="File", resource_id=att.id) from exc


def update_attachment(actor, attachment_id, data):
    att = get_or_raise(Attachment, attachment_id)
    if not can_update_attachment(actor, att):
        raise AuthorizationError("Access denied")
    if att.thesis.state == STATE_COMPLETED and not actor.is_secretary:
        raise ThesisClosedError("Cannot modify attachments of a completed thesis")
    if "is_draft" not in data:
        raise ValidationError("No fields to update")
    att.is_draft = parse_bool(data.get("is_draft"))
    commit_or_raise()
    return att


def delete_attachment(actor, attachment_id, *, store):
    att = get_or_raise(Attachment, attachment_id)
    if not can_delete_attachment(actor, att):
        raise AuthorizationError("Access denied")
    if att.thesis.state == STATE_COMPLETED and not actor.is_secretary:
        raise ThesisClosedError("Cannot delete attachments from completed thesis")

    key = att.storage_key
    db.session.delete(att)
    commit_or_raise()

    try:
        store.delete(key)
    except (OSError, BlobNotFound):
        logger.warning("Attachment %s deleted but blob %s could not be removed",
                       attachment_id, key, exc_info=True)
    logger.info("Attachment %s deleted by user %s", attachment_id, actor.id)
