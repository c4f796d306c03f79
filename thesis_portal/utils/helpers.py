"""Shared request-parsing and persistence helpers used by services and blueprints."""
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, OperationalError

from thesis_portal.core.exceptions import ConflictError, InternalError, NotFoundError, ValidationError
from thesis_portal.models import db

logger = logging.getLogger(__name__)


def utcnow():
    return datetime.now(timezone.utc)


def ensure_utc(value):
    """Attach UTC to naive datetimes (SQLite returns them without tzinfo)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_or_raise(model, pk, label=None):
    """Fetch a model instance by primary key or raise NotFoundError."""
    label = label or model.__name__
    obj = db.session.get(model, pk)
    if obj is None:
        raise NotFoundError(resource=label, resource_id=pk)
    return obj


def parse_datetime(value, field="scheduled_at"):
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive input is taken as UTC. A trailing ``Z`` is accepted.
    Raises ValidationError on bad input.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not value or not isinstance(value, str):
        raise ValidationError(f"{field} is required", details={field: "required"})
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(
            f"{field} must be an ISO-8601 timestamp", details={field: "invalid"}
        ) from exc
    return ensure_utc(parsed)


def parse_optional_datetime(value, field):
    if value in (None, ""):
        return None
    return parse_datetime(value, field)


def parse_bool(value, default=False):
    """Parse a form/query flag. Accepts true/false, 1/0, yes/no, on/off."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes", "on"):
        return True
    if text in ("false", "0", "no", "off"):
        return False
    raise ValidationError(f"Invalid boolean value: {value!r}")


def require_int(value, field):
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={field: "invalid"})
    if value is None or value == "":
        raise ValidationError(f"{field} is required", details={field: "required"})
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer", details={field: "invalid"}) from exc


# ── Database commit helper ───────────────────────────────────────────────────

def commit_or_raise():
    """Commit the current session, translating failures into portal errors.

    IntegrityError   → ConflictError (409)
    OperationalError → InternalError (500)

    The session is always rolled back before raising so a failed write never
    leaves partial rows behind.
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        raise ConflictError("Duplicate or constraint violation") from exc
    except OperationalError as exc:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        raise InternalError("Database error") from exc
