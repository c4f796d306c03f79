"""Standardised API error responses.

Usage
-----
    from thesis_portal.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Thesis not found")
    return api_error(E.VALIDATION_REQUIRED, "topic_id is required")

Service exceptions (``thesis_portal.core.exceptions``) never need manual
translation: ``register_error_handlers`` maps each of them to the same body.
"""

from __future__ import annotations

import logging

from flask import jsonify
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from thesis_portal.core.exceptions import PORTAL_ERRORS

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention: ERR_ prefix for every code. Domain codes match the
    ``code`` attribute of the exception classes.
    """

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    MISSING_REASON = "ERR_MISSING_REASON"
    OUT_OF_RANGE = "ERR_OUT_OF_RANGE"
    ROLE_MISMATCH = "ERR_ROLE_MISMATCH"
    SELF_INVITE = "ERR_SELF_INVITE"
    UPLOAD_LIMIT = "ERR_UPLOAD_LIMIT"

    # Auth – HTTP 401 / 403
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    INVALID_TRANSITION = "ERR_INVALID_TRANSITION"
    INVALID_STATE = "ERR_INVALID_STATE"
    THESIS_CLOSED = "ERR_THESIS_CLOSED"
    ALREADY_MEMBER = "ERR_ALREADY_MEMBER"
    DUPLICATE_INVITE = "ERR_DUPLICATE_INVITE"
    ALREADY_RESPONDED = "ERR_ALREADY_RESPONDED"
    ALREADY_SCHEDULED = "ERR_ALREADY_SCHEDULED"
    DUPLICATE_GRADE = "ERR_DUPLICATE_GRADE"
    ACTIVE_THESIS_EXISTS = "ERR_ACTIVE_THESIS_EXISTS"

    # Transport
    METHOD_NOT_ALLOWED = "ERR_METHOD_NOT_ALLOWED"
    PAYLOAD_TOO_LARGE = "ERR_PAYLOAD_TOO_LARGE"
    RATE_LIMITED = "ERR_RATE_LIMITED"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.MISSING_REASON: 400,
    E.OUT_OF_RANGE: 400,
    E.ROLE_MISMATCH: 400,
    E.SELF_INVITE: 400,
    E.UPLOAD_LIMIT: 400,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.INVALID_TRANSITION: 409,
    E.INVALID_STATE: 409,
    E.THESIS_CLOSED: 409,
    E.ALREADY_MEMBER: 409,
    E.DUPLICATE_INVITE: 409,
    E.ALREADY_RESPONDED: 409,
    E.ALREADY_SCHEDULED: 409,
    E.DUPLICATE_GRADE: 409,
    E.ACTIVE_THESIS_EXISTS: 409,
    E.METHOD_NOT_ALLOWED: 405,
    E.PAYLOAD_TOO_LARGE: 413,
    E.RATE_LIMITED: 429,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (attempted transition, field errors, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


_HTTP_CODES = {
    400: E.VALIDATION_INVALID,
    401: E.UNAUTHENTICATED,
    403: E.FORBIDDEN,
    404: E.NOT_FOUND,
    405: E.METHOD_NOT_ALLOWED,
    413: E.PAYLOAD_TOO_LARGE,
    429: E.RATE_LIMITED,
}


def register_error_handlers(app):
    """Map service exceptions and transport errors to JSON error bodies."""
    from thesis_portal.models import db

    def _portal_error(exc):
        if exc.status >= 500:
            db.session.rollback()
            logger.error("Internal error: %s", exc)
        else:
            logger.info("%s: %s", type(exc).__name__, exc)
        return api_error(exc.code, exc.message, status=exc.status, details=exc.details)

    for exc_class in PORTAL_ERRORS:
        app.register_error_handler(exc_class, _portal_error)

    @app.errorhandler(IntegrityError)
    def _integrity(exc):
        db.session.rollback()
        logger.warning("Integrity error: %s", exc.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")

    @app.errorhandler(SQLAlchemyError)
    def _database(exc):
        db.session.rollback()
        logger.exception("Database error")
        return api_error(E.DATABASE, "Database error")

    @app.errorhandler(HTTPException)
    def _http(exc):
        code = _HTTP_CODES.get(exc.code, E.INTERNAL if (exc.code or 500) >= 500 else E.VALIDATION_INVALID)
        message = exc.description if exc.code != 404 else "Resource not found"
        return api_error(code, message, status=exc.code)

    @app.errorhandler(500)
    def _internal(exc):
        db.session.rollback()
        logger.exception("Unhandled error")
        return api_error(E.INTERNAL, "Internal server error")
