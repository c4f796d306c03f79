"""
Thesis aggregate — Thesis, CommitteeMember, Invitation.

State machine (THESIS_TRANSITIONS):
    UNDER_ASSIGNMENT -> ACTIVE | CANCELLED
    ACTIVE           -> UNDER_REVIEW | CANCELLED
    UNDER_REVIEW     -> COMPLETED | ACTIVE | CANCELLED
    COMPLETED        -> (terminal)
    CANCELLED        -> UNDER_ASSIGNMENT      (secretary reactivation)

A student holds at most one non-terminal thesis and a topic is assigned to
at most one non-terminal thesis. Both rules are enforced by the lifecycle
service and backed by partial unique indexes.
"""

from datetime import datetime, timezone

from thesis_portal.models import db

# ── States ────────────────────────────────────────────────────────────────────

STATE_UNDER_ASSIGNMENT = "UNDER_ASSIGNMENT"
STATE_ACTIVE = "ACTIVE"
STATE_UNDER_REVIEW = "UNDER_REVIEW"
STATE_COMPLETED = "COMPLETED"
STATE_CANCELLED = "CANCELLED"

THESIS_STATES = (
    STATE_UNDER_ASSIGNMENT,
    STATE_ACTIVE,
    STATE_UNDER_REVIEW,
    STATE_COMPLETED,
    STATE_CANCELLED,
)

TERMINAL_STATES = frozenset({STATE_COMPLETED, STATE_CANCELLED})

THESIS_TRANSITIONS = {
    STATE_UNDER_ASSIGNMENT: [STATE_ACTIVE, STATE_CANCELLED],
    STATE_ACTIVE:           [STATE_UNDER_REVIEW, STATE_CANCELLED],
    STATE_UNDER_REVIEW:     [STATE_COMPLETED, STATE_ACTIVE, STATE_CANCELLED],
    STATE_COMPLETED:        [],
    STATE_CANCELLED:        [STATE_UNDER_ASSIGNMENT],
}

# Supervisor + two accepted members
COMMITTEE_ACTIVATION_SIZE = 3

COMMITTEE_ROLE_SUPERVISOR = "supervisor"
COMMITTEE_ROLE_MEMBER = "member"

INVITATION_PENDING = "PENDING"
INVITATION_ACCEPTED = "ACCEPTED"
INVITATION_REJECTED = "REJECTED"

_NON_TERMINAL_SQL = "state NOT IN ('COMPLETED', 'CANCELLED')"


def validate_thesis_transition(old_state, new_state):
    """Return True if the Thesis state transition is listed in the table."""
    return new_state in THESIS_TRANSITIONS.get(old_state, [])


def is_reactivation(old_state, new_state):
    return old_state == STATE_CANCELLED and new_state == STATE_UNDER_ASSIGNMENT


def _iso(value):
    return value.isoformat() if value else None


class Thesis(db.Model):
    __tablename__ = "theses"

    id = db.Column(db.Integer, primary_key=True)
    topic_id = db.Column(db.Integer, db.ForeignKey("topics.id"), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    supervisor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    state = db.Column(db.String(20), nullable=False, default=STATE_UNDER_ASSIGNMENT)
    assigned_at = db.Column(db.DateTime(timezone=True))
    started_at = db.Column(db.DateTime(timezone=True))
    finalized_at = db.Column(db.DateTime(timezone=True))
    cancellation_reason = db.Column(db.Text)
    ap_number = db.Column(db.String(64), comment="Registry number recorded at finalization")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint(
            "state IN ('UNDER_ASSIGNMENT', 'ACTIVE', 'UNDER_REVIEW', 'COMPLETED', 'CANCELLED')",
            name="ck_theses_state",
        ),
        db.Index(
            "uq_theses_open_student", "student_id", unique=True,
            sqlite_where=db.text(_NON_TERMINAL_SQL),
            postgresql_where=db.text(_NON_TERMINAL_SQL),
        ),
        db.Index(
            "uq_theses_open_topic", "topic_id", unique=True,
            sqlite_where=db.text(_NON_TERMINAL_SQL),
            postgresql_where=db.text(_NON_TERMINAL_SQL),
        ),
    )

    topic = db.relationship("Topic", back_populates="theses")
    student = db.relationship("User", foreign_keys=[student_id])
    supervisor = db.relationship("User", foreign_keys=[supervisor_id])
    committee_members = db.relationship(
        "CommitteeMember", back_populates="thesis", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    invitations = db.relationship(
        "Invitation", back_populates="thesis", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    attachments = db.relationship(
        "Attachment", back_populates="thesis", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    presentation = db.relationship(
        "Presentation", back_populates="thesis", uselist=False,
        cascade="all, delete-orphan",
    )
    grades = db.relationship(
        "Grade", back_populates="thesis", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    @property
    def topic_creator_id(self):
        return self.topic.creator_id if self.topic else None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def accepted_member_count(self) -> int:
        return self.committee_members.filter(CommitteeMember.accepted_at.isnot(None)).count()

    def to_dict(self):
        return {
            "id": self.id,
            "topic_id": self.topic_id,
            "student_id": self.student_id,
            "supervisor_id": self.supervisor_id,
            "state": self.state,
            "assigned_at": _iso(self.assigned_at),
            "started_at": _iso(self.started_at),
            "finalized_at": _iso(self.finalized_at),
            "cancellation_reason": self.cancellation_reason,
            "ap_number": self.ap_number,
            "created_at": _iso(self.created_at),
            "topic_title": self.topic.title if self.topic else None,
            "topic_summary": self.topic.summary if self.topic else None,
            "student_name": self.student.full_name if self.student else None,
            "student_am": self.student.am if self.student else None,
            "student_email": self.student.email if self.student else None,
            "supervisor_name": self.supervisor.full_name if self.supervisor else None,
            "supervisor_email": self.supervisor.email if self.supervisor else None,
        }

    def __repr__(self) -> str:
        return f"<Thesis #{self.id} {self.state}>"


class CommitteeMember(db.Model):
    """
    Accepted committee seat for an instructor on a thesis.

    The supervisor row is written at thesis creation with ``accepted_at`` set;
    every other row comes from an accepted Invitation.
    """

    __tablename__ = "committee_members"

    id = db.Column(db.Integer, primary_key=True)
    thesis_id = db.Column(
        db.Integer, db.ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    instructor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=COMMITTEE_ROLE_MEMBER)
    invited_at = db.Column(db.DateTime(timezone=True), nullable=False)
    accepted_at = db.Column(db.DateTime(timezone=True))
    rejected_at = db.Column(db.DateTime(timezone=True))

    __table_args__ = (
        db.UniqueConstraint("thesis_id", "instructor_id", name="uq_committee_thesis_instructor"),
    )

    thesis = db.relationship("Thesis", back_populates="committee_members")
    instructor = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "thesis_id": self.thesis_id,
            "committee_role": self.role,
            "invited_at": _iso(self.invited_at),
            "accepted_at": _iso(self.accepted_at),
            "rejected_at": _iso(self.rejected_at),
            "instructor_id": self.instructor_id,
            "instructor_name": self.instructor.full_name if self.instructor else None,
            "instructor_email": self.instructor.email if self.instructor else None,
        }


class Invitation(db.Model):
    """Request for an instructor to join a thesis committee."""

    __tablename__ = "invitations"

    id = db.Column(db.Integer, primary_key=True)
    thesis_id = db.Column(
        db.Integer, db.ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    instructor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=INVITATION_PENDING)
    invited_at = db.Column(db.DateTime(timezone=True), nullable=False)
    responded_at = db.Column(db.DateTime(timezone=True))

    thesis = db.relationship("Thesis", back_populates="invitations")
    instructor = db.relationship("User")

    def to_dict(self, include_thesis=False):
        d = {
            "id": self.id,
            "thesis_id": self.thesis_id,
            "status": self.status,
            "invited_at": _iso(self.invited_at),
            "responded_at": _iso(self.responded_at),
            "instructor_id": self.instructor_id,
            "instructor_name": self.instructor.full_name if self.instructor else None,
            "instructor_email": self.instructor.email if self.instructor else None,
        }
        if include_thesis and self.thesis is not None:
            th = self.thesis
            d.update({
                "thesis_state": th.state,
                "topic_title": th.topic.title if th.topic else None,
                "topic_summary": th.topic.summary if th.topic else None,
                "student_name": th.student.full_name if th.student else None,
                "student_am": th.student.am if th.student else None,
                "supervisor_name": th.supervisor.full_name if th.supervisor else None,
            })
        return d
