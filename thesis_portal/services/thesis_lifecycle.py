"""
Thesis lifecycle service — the state machine and its side effects.

Every state change goes through ``_apply_transition``, whether a user
requested it (``transition_thesis``) or the committee coordinator
triggered it (``activate_if_committee_complete``). That single path owns
the table check, the timestamp stamping and the transition log line.

Locking: read-modify-write operations load the thesis with
``SELECT … FOR UPDATE`` and commit once. Any failure rolls the unit back.

Operations:
    create_thesis(actor, data)
    transition_thesis(actor, thesis_id, target, *, cancellation_reason, ap_number)
    activate_if_committee_complete(thesis)
    list_theses(user, filters)
    get_thesis_detail(user, thesis_id)
    available_transitions(user, thesis)
    thesis_stats(user)
"""

import logging
from dataclasses import asdict, dataclass

from sqlalchemy import func, or_, select

from thesis_portal.core.exceptions import (
    ActiveThesisExistsError,
    AuthorizationError,
    InvalidTransitionError,
    MissingReasonError,
    NotFoundError,
    ValidationError,
)
from thesis_portal.models import db
from thesis_portal.models.thesis import (
    COMMITTEE_ACTIVATION_SIZE,
    COMMITTEE_ROLE_SUPERVISOR,
    STATE_ACTIVE,
    STATE_CANCELLED,
    STATE_COMPLETED,
    STATE_UNDER_ASSIGNMENT,
    TERMINAL_STATES,
    THESIS_STATES,
    THESIS_TRANSITIONS,
    CommitteeMember,
    Thesis,
    validate_thesis_transition,
)
from thesis_portal.models.topic import Topic
from thesis_portal.models.user import ROLE_INSTRUCTOR, ROLE_STUDENT, User
from thesis_portal.services.access import can_transition, has_access
from thesis_portal.utils.helpers import commit_or_raise, ensure_utc, require_int, utcnow

logger = logging.getLogger(__name__)

TRIGGER_USER = "user"
TRIGGER_SYSTEM = "system"

MAX_AP_NUMBER_LENGTH = 64


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of one applied state change."""

    thesis_id: int
    previous_state: str
    new_state: str
    triggered_by: str

    def to_dict(self):
        return asdict(self)


# ── Loading ──────────────────────────────────────────────────────────────────


def load_thesis(thesis_id, *, for_update=False):
    """Fetch a thesis or raise NotFoundError. ``for_update`` locks the row."""
    stmt = select(Thesis).where(Thesis.id == thesis_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    thesis = db.session.execute(stmt).scalar_one_or_none()
    if thesis is None:
        raise NotFoundError(resource="Thesis", resource_id=thesis_id)
    return thesis


def load_accessible_thesis(user, thesis_id, *, for_update=False):
    thesis = load_thesis(thesis_id, for_update=for_update)
    if not has_access(user, thesis):
        raise AuthorizationError("Access denied")
    return thesis


def _open_thesis_query(**criteria):
    return Thesis.query.filter_by(**criteria).filter(Thesis.state.notin_(TERMINAL_STATES))


def _ensure_no_open_thesis(*, student_id, topic_id, exclude_id=None):
    student_q = _open_thesis_query(student_id=student_id)
    topic_q = _open_thesis_query(topic_id=topic_id)
    if exclude_id is not None:
        student_q = student_q.filter(Thesis.id != exclude_id)
        topic_q = topic_q.filter(Thesis.id != exclude_id)
    if student_q.first() is not None:
        raise ActiveThesisExistsError(
            "Student already has an active thesis assignment",
            details={"student_id": student_id},
        )
    if topic_q.first() is not None:
        raise ActiveThesisExistsError(
            "Topic is already assigned to another student",
            details={"topic_id": topic_id},
        )


# ── Creation ─────────────────────────────────────────────────────────────────


def create_thesis(actor, data):
    """
    Assign a topic to a student under a supervisor.

    The supervisor is inserted as an accepted committee member with role
    ``supervisor`` in the same transaction.
    """
    topic_id = require_int(data.get("topic_id"), "topic_id")
    student_id = require_int(data.get("student_id"), "student_id")
    supervisor_id = require_int(data.get("supervisor_id"), "supervisor_id")

    if db.session.get(Topic, topic_id) is None:
        raise NotFoundError(resource="Topic", resource_id=topic_id)
    student = db.session.get(User, student_id)
    if student is None or student.role != ROLE_STUDENT:
        raise NotFoundError(resource="Student", resource_id=student_id)
    supervisor = db.session.get(User, supervisor_id)
    if supervisor is None or supervisor.role != ROLE_INSTRUCTOR:
        raise NotFoundError(resource="Supervisor", resource_id=supervisor_id)

    _ensure_no_open_thesis(student_id=student_id, topic_id=topic_id)

    now = utcnow()
    thesis = Thesis(
        topic_id=topic_id,
        student_id=student_id,
        supervisor_id=supervisor_id,
        state=STATE_UNDER_ASSIGNMENT,
        assigned_at=now,
    )
    db.session.add(thesis)
    db.session.flush()
    db.session.add(CommitteeMember(
        thesis_id=thesis.id,
        instructor_id=supervisor_id,
        role=COMMITTEE_ROLE_SUPERVISOR,
        invited_at=now,
        accepted_at=now,
    ))
    commit_or_raise()
    logger.info(
        "Thesis %s created by user %s (topic=%s student=%s supervisor=%s)",
        thesis.id, actor.id, topic_id, student_id, supervisor_id,
    )
    return thesis


# ── Transitions ──────────────────────────────────────────────────────────────


def _apply_transition(thesis, target, *, triggered_by, cancellation_reason=None, ap_number=None):
    """Validate against the table, stamp side effects, mutate. No commit."""
    previous = thesis.state
    if not validate_thesis_transition(previous, target):
        raise InvalidTransitionError(previous, target)

    if target == STATE_CANCELLED:
        reason = (cancellation_reason or "").strip()
        if not reason:
            raise MissingReasonError()
        thesis.cancellation_reason = reason

    now = utcnow()
    if previous == STATE_UNDER_ASSIGNMENT and target == STATE_ACTIVE:
        thesis.started_at = now
    elif target == STATE_COMPLETED:
        thesis.finalized_at = now
        if ap_number:
            thesis.ap_number = ap_number
    elif previous == STATE_CANCELLED and target == STATE_UNDER_ASSIGNMENT:
        _ensure_no_open_thesis(
            student_id=thesis.student_id, topic_id=thesis.topic_id, exclude_id=thesis.id,
        )
        thesis.cancellation_reason = None

    thesis.state = target
    logger.info(
        "Thesis %s: %s -> %s (%s)", thesis.id, previous, target, triggered_by,
        extra={"thesis_id": thesis.id, "from_state": previous, "to_state": target,
               "triggered_by": triggered_by},
    )
    return TransitionResult(
        thesis_id=thesis.id,
        previous_state=previous,
        new_state=target,
        triggered_by=triggered_by,
    )


def transition_thesis(actor, thesis_id, target, *, cancellation_reason=None, ap_number=None):
    """
    Apply a user-requested state change.

    Order of checks: role permission (403), transition table (409),
    cancellation reason (400).
    """
    if target not in THESIS_STATES:
        raise ValidationError(
            f"state must be one of: {', '.join(THESIS_STATES)}", details={"state": "invalid"}
        )
    if ap_number is not None:
        ap_number = str(ap_number).strip() or None
        if ap_number and len(ap_number) > MAX_AP_NUMBER_LENGTH:
            raise ValidationError(
                f"ap_number must be {MAX_AP_NUMBER_LENGTH} characters or fewer",
                details={"ap_number": "too_long"},
            )

    thesis = load_thesis(thesis_id, for_update=True)
    try:
        if not can_transition(actor, thesis, target):
            raise AuthorizationError("Access denied")
        result = _apply_transition(
            thesis, target,
            triggered_by=TRIGGER_USER,
            cancellation_reason=cancellation_reason,
            ap_number=ap_number,
        )
    except Exception:
        db.session.rollback()
        raise
    commit_or_raise()
    return result


def activate_if_committee_complete(thesis):
    """
    Auto-activate a thesis once its committee has enough accepted members.

    Caller holds the row lock and owns the commit. Returns the
    TransitionResult, or None when nothing changed (wrong state or too few
    acceptances). Calling it again after activation is a no-op.
    """
    if thesis.state != STATE_UNDER_ASSIGNMENT:
        return None
    db.session.flush()
    if thesis.accepted_member_count() < COMMITTEE_ACTIVATION_SIZE:
        return None
    return _apply_transition(thesis, STATE_ACTIVE, triggered_by=TRIGGER_SYSTEM)


def available_transitions(user, thesis):
    """Targets the caller could request right now."""
    return [
        target for target in THESIS_TRANSITIONS.get(thesis.state, [])
        if can_transition(user, thesis, target)
    ]


# ── Queries ──────────────────────────────────────────────────────────────────


def list_theses(user, *, status=None, student_id=None, supervisor_id=None):
    """Role-filtered listing, newest first."""
    q = Thesis.query
    if user.is_student:
        q = q.filter(Thesis.student_id == user.id)
    elif user.is_instructor:
        member_of = select(CommitteeMember.thesis_id).where(
            CommitteeMember.instructor_id == user.id
        )
        q = q.filter(or_(Thesis.supervisor_id == user.id, Thesis.id.in_(member_of)))

    if status:
        if status not in THESIS_STATES:
            raise ValidationError(f"Unknown status: {status}", details={"status": "invalid"})
        q = q.filter(Thesis.state == status)
    if student_id is not None and not user.is_student:
        q = q.filter(Thesis.student_id == student_id)
    if supervisor_id is not None and (user.is_secretary or user.id == supervisor_id):
        q = q.filter(Thesis.supervisor_id == supervisor_id)

    return q.order_by(Thesis.created_at.desc(), Thesis.id.desc()).all()


def get_thesis_detail(user, thesis_id):
    """Thesis aggregate with committee, attachments and presentation."""
    from thesis_portal.models.attachment import Attachment

    thesis = load_accessible_thesis(user, thesis_id)
    committee = (
        thesis.committee_members
        .order_by(CommitteeMember.invited_at.asc(), CommitteeMember.id.asc())
        .all()
    )
    attachments = thesis.attachments.order_by(Attachment.uploaded_at.desc()).all()

    d = thesis.to_dict()
    d["topic_description_pdf"] = thesis.topic.description_pdf if thesis.topic else None
    d["topic_creator_id"] = thesis.topic_creator_id
    d["student_phone"] = thesis.student.phone if thesis.student else None
    d["committee"] = [m.to_dict() for m in committee]
    d["attachments"] = [a.to_dict() for a in attachments]
    d["presentation"] = thesis.presentation.to_dict() if thesis.presentation else None
    d["available_transitions"] = available_transitions(user, thesis)
    return d


def thesis_stats(user):
    """Per-state counts, average days to completion, ten most recent theses."""
    q = db.session.query(Thesis)
    if user.is_instructor:
        q = q.filter(Thesis.supervisor_id == user.id)
    theses = q.all()

    by_state = {state: 0 for state in THESIS_STATES}
    durations = []
    for th in theses:
        by_state[th.state] += 1
        if th.started_at and th.finalized_at:
            delta = ensure_utc(th.finalized_at) - ensure_utc(th.started_at)
            durations.append(delta.total_seconds() / 86400)

    recent = q.order_by(Thesis.created_at.desc(), Thesis.id.desc()).limit(10).all()
    return {
        "total": len(theses),
        "by_state": by_state,
        "avg_days_to_completion": round(sum(durations) / len(durations), 1) if durations else None,
        "recent": [
            {
                "id": th.id,
                "state": th.state,
                "created_at": th.created_at.isoformat() if th.created_at else None,
                "topic_title": th.topic.title if th.topic else None,
                "student_name": th.student.full_name if th.student else None,
            }
            for th in recent
        ],
    }


def count_by_state():
    rows = db.session.query(Thesis.state, func.count(Thesis.id)).group_by(Thesis.state).all()
    counts = {state: 0 for state in THESIS_STATES}
    counts.update({state: n for state, n in rows})
    return counts
