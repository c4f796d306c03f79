"""
Presentation scheduler — one examination slot per thesis.

Times are stored in UTC. SQLite hands them back naive, so every read goes
through ``ensure_utc`` before comparing or serializing.
"""

import logging
import xml.etree.ElementTree as ET

from sqlalchemy import or_, select

from thesis_portal.core.exceptions import (
    AlreadyScheduledError,
    AuthorizationError,
    InvalidStateError,
    ValidationError,
)
from thesis_portal.models import db
from thesis_portal.models.presentation import MODE_IN_PERSON, MODE_ONLINE, Presentation
from thesis_portal.models.thesis import (
    STATE_ACTIVE,
    STATE_COMPLETED,
    STATE_UNDER_REVIEW,
    CommitteeMember,
    Thesis,
)
from thesis_portal.services.access import can_manage_presentation, can_schedule, has_access
from thesis_portal.services.thesis_lifecycle import load_thesis
from thesis_portal.utils.helpers import (
    commit_or_raise,
    ensure_utc,
    get_or_raise,
    parse_datetime,
    parse_optional_datetime,
    utcnow,
)

logger = logging.getLogger(__name__)

SCHEDULABLE_STATES = frozenset({STATE_ACTIVE, STATE_UNDER_REVIEW})
PUBLIC_STATES = (STATE_UNDER_REVIEW, STATE_COMPLETED)

_MODE_ALIASES = {
    "IN_PERSON": MODE_IN_PERSON,
    "IN-PERSON": MODE_IN_PERSON,
    "ONLINE": MODE_ONLINE,
}


def normalize_mode(raw):
    mode = _MODE_ALIASES.get(str(raw or "").strip().upper())
    if mode is None:
        raise ValidationError("mode must be IN_PERSON or ONLINE", details={"mode": "invalid"})
    return mode


def _require_future(when):
    if when <= utcnow():
        raise ValidationError(
            "Presentation must be scheduled in the future", details={"scheduled_at": "past"}
        )


def _check_mode_fields(mode, room, online_link):
    if mode == MODE_IN_PERSON and not room:
        raise ValidationError("room is required for in-person presentations",
                              details={"room": "required"})
    if mode == MODE_ONLINE and not online_link:
        raise ValidationError("online_link is required for online presentations",
                              details={"online_link": "required"})


def _clean(value):
    if value is None:
        return None
    return str(value).strip() or None


def serialize(presentation):
    return presentation.to_dict(scheduled_at=ensure_utc(presentation.scheduled_at))


# ── Queries ──────────────────────────────────────────────────────────────────


def list_presentations(user, *, start=None, end=None, thesis_id=None):
    """Role-filtered list in ascending time order."""
    q = Presentation.query.join(Thesis, Presentation.thesis_id == Thesis.id)
    if user.is_student:
        q = q.filter(Thesis.student_id == user.id)
    elif user.is_instructor:
        member_of = select(CommitteeMember.thesis_id).where(
            CommitteeMember.instructor_id == user.id
        )
        q = q.filter(or_(Thesis.supervisor_id == user.id, Thesis.id.in_(member_of)))
    q = _apply_window(q, start, end)
    if thesis_id is not None:
        q = q.filter(Presentation.thesis_id == thesis_id)
    return q.order_by(Presentation.scheduled_at.asc()).all()


def list_public(*, start=None, end=None):
    """Announcements for theses under review or completed."""
    q = (
        Presentation.query
        .join(Thesis, Presentation.thesis_id == Thesis.id)
        .filter(Thesis.state.in_(PUBLIC_STATES))
    )
    q = _apply_window(q, start, end)
    return q.order_by(Presentation.scheduled_at.asc()).all()


def _apply_window(q, start, end):
    start = parse_optional_datetime(start, "from")
    end = parse_optional_datetime(end, "to")
    if start is not None:
        q = q.filter(Presentation.scheduled_at >= start)
    if end is not None:
        q = q.filter(Presentation.scheduled_at <= end)
    return q


def public_dict(presentation):
    th = presentation.thesis
    when = ensure_utc(presentation.scheduled_at)
    return {
        "scheduled_at": when.isoformat() if when else None,
        "mode": presentation.mode,
        "room": presentation.room,
        "topic_title": th.topic.title if th.topic else None,
        "topic_summary": th.topic.summary if th.topic else None,
        "student_name": th.student.full_name if th.student else None,
        "supervisor_name": th.supervisor.full_name if th.supervisor else None,
    }


def render_xml(rows):
    """Render a list of presentation dicts as ``<presentations>`` XML bytes."""
    root = ET.Element("presentations")
    for row in rows:
        item = ET.SubElement(root, "presentation")
        for key, value in row.items():
            child = ET.SubElement(item, key)
            child.text = "" if value is None else str(value)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def get_presentation(user, presentation_id):
    """Presentation plus the accepted committee (supervisor first, then by name)."""
    presentation = get_or_raise(Presentation, presentation_id)
    thesis = presentation.thesis
    if not has_access(user, thesis):
        raise AuthorizationError("Access denied")
    committee = sorted(
        thesis.committee_members.filter(CommitteeMember.accepted_at.isnot(None)).all(),
        key=lambda m: (m.role != "supervisor", m.instructor.full_name if m.instructor else ""),
    )
    d = serialize(presentation)
    d["committee"] = [m.to_dict() for m in committee]
    return d


# ── Mutations ────────────────────────────────────────────────────────────────


def schedule(actor, thesis_id, data):
    thesis = load_thesis(thesis_id)
    if not can_schedule(actor, thesis):
        raise AuthorizationError("Access denied")
    if thesis.state not in SCHEDULABLE_STATES:
        raise InvalidStateError(
            "Presentations can only be scheduled for active or under-review theses",
            details={"thesis_state": thesis.state},
        )

    when = parse_datetime(data.get("scheduled_at"))
    if not data.get("mode"):
        raise ValidationError("mode is required", details={"mode": "required"})
    mode = normalize_mode(data.get("mode"))
    room = _clean(data.get("room"))
    online_link = _clean(data.get("online_link"))
    _check_mode_fields(mode, room, online_link)

    if thesis.presentation is not None:
        raise AlreadyScheduledError("Presentation already scheduled for this thesis")
    _require_future(when)

    presentation = Presentation(
        thesis_id=thesis.id,
        scheduled_at=when,
        mode=mode,
        room=room if mode == MODE_IN_PERSON else None,
        online_link=online_link if mode == MODE_ONLINE else None,
        created_by=actor.id,
    )
    db.session.add(presentation)
    commit_or_raise()
    logger.info("Presentation %s scheduled for thesis %s at %s by user %s",
                presentation.id, thesis.id, when.isoformat(), actor.id)
    return presentation


def _managed(actor, presentation_id):
    presentation = get_or_raise(Presentation, presentation_id)
    if not can_manage_presentation(actor, presentation.thesis):
        raise AuthorizationError("Access denied")
    if not actor.is_secretary and ensure_utc(presentation.scheduled_at) <= utcnow():
        raise InvalidStateError("Cannot modify past presentations")
    return presentation


def update_presentation(actor, presentation_id, data):
    presentation = _managed(actor, presentation_id)

    fields = {k: data[k] for k in ("scheduled_at", "mode", "room", "online_link") if k in data}
    if not fields:
        raise ValidationError("No fields to update")

    if "scheduled_at" in fields:
        when = parse_datetime(fields["scheduled_at"])
        _require_future(when)
        presentation.scheduled_at = when
    mode = normalize_mode(fields["mode"]) if "mode" in fields else presentation.mode
    room = _clean(fields["room"]) if "room" in fields else presentation.room
    online_link = _clean(fields["online_link"]) if "online_link" in fields else presentation.online_link
    _check_mode_fields(mode, room, online_link)

    presentation.mode = mode
    presentation.room = room if mode == MODE_IN_PERSON else None
    presentation.online_link = online_link if mode == MODE_ONLINE else None
    commit_or_raise()
    return presentation


def delete_presentation(actor, presentation_id):
    presentation = _managed(actor, presentation_id)
    db.session.delete(presentation)
    commit_or_raise()
    logger.info("Presentation %s deleted by user %s", presentation_id, actor.id)
