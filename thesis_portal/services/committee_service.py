"""
Committee coordinator — invitations and committee membership.

Accepting an invitation may activate the thesis. That side effect is
returned explicitly in ``InvitationResponse.activation`` and is applied
inside the same transaction as the acceptance, under the thesis row lock.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import select

from thesis_portal.core.exceptions import (
    AlreadyMemberError,
    AlreadyRespondedError,
    AuthorizationError,
    DuplicateInviteError,
    NotFoundError,
    RoleMismatchError,
    SelfInviteError,
    ThesisClosedError,
    ValidationError,
)
from thesis_portal.models import db
from thesis_portal.models.thesis import (
    COMMITTEE_ROLE_MEMBER,
    INVITATION_ACCEPTED,
    INVITATION_PENDING,
    INVITATION_REJECTED,
    CommitteeMember,
    Invitation,
)
from thesis_portal.models.user import ROLE_INSTRUCTOR, User
from thesis_portal.services.access import can_invite, can_view_pending_invitations
from thesis_portal.services.thesis_lifecycle import (
    TransitionResult,
    activate_if_committee_complete,
    load_accessible_thesis,
    load_thesis,
)
from thesis_portal.utils.helpers import commit_or_raise, require_int, utcnow

logger = logging.getLogger(__name__)

ACTION_ACCEPT = "accept"
ACTION_REJECT = "reject"
INVITATION_STATUSES = (INVITATION_PENDING, INVITATION_ACCEPTED, INVITATION_REJECTED)


@dataclass
class InvitationResponse:
    invitation: Invitation
    member: CommitteeMember | None = None
    activation: TransitionResult | None = None

    def to_dict(self):
        return {
            "invitation": self.invitation.to_dict(),
            "committee_member": self.member.to_dict() if self.member else None,
            "activation": self.activation.to_dict() if self.activation else None,
        }


def _member_of(thesis_id, instructor_id):
    return CommitteeMember.query.filter_by(thesis_id=thesis_id, instructor_id=instructor_id).first()


def invite(actor, thesis_id, instructor_id):
    """Create a PENDING invitation for ``instructor_id`` on the thesis."""
    thesis = load_thesis(thesis_id)
    if not can_invite(actor, thesis):
        raise AuthorizationError("Access denied - insufficient permissions")

    instructor_id = require_int(instructor_id, "instructor_id")
    target = db.session.get(User, instructor_id)
    if target is None:
        raise NotFoundError(resource="Instructor", resource_id=instructor_id)
    if target.role != ROLE_INSTRUCTOR:
        raise RoleMismatchError(
            "Only instructors can be invited to a committee",
            details={"instructor_id": instructor_id, "role": target.role},
        )
    if instructor_id == thesis.supervisor_id:
        raise SelfInviteError("Supervisor is already on the committee")
    if _member_of(thesis.id, instructor_id) is not None:
        raise AlreadyMemberError("Instructor is already on the committee")
    pending = Invitation.query.filter_by(
        thesis_id=thesis.id, instructor_id=instructor_id, status=INVITATION_PENDING,
    ).first()
    if pending is not None:
        raise DuplicateInviteError("Invitation already pending for this instructor")

    invitation = Invitation(
        thesis_id=thesis.id,
        instructor_id=instructor_id,
        status=INVITATION_PENDING,
        invited_at=utcnow(),
    )
    db.session.add(invitation)
    commit_or_raise()
    logger.info("Invitation %s: thesis %s -> instructor %s (by user %s)",
                invitation.id, thesis.id, instructor_id, actor.id)
    return invitation


def respond(actor, invitation_id, action):
    """
    Accept or reject an invitation.

    The thesis row is locked for the whole unit: response, membership
    insert, acceptance count and (maybe) activation commit together.
    """
    action = (action or "").strip().lower()
    if action not in (ACTION_ACCEPT, ACTION_REJECT):
        raise ValidationError("action must be 'accept' or 'reject'", details={"action": "invalid"})

    invitation = db.session.get(Invitation, invitation_id)
    if invitation is None:
        raise NotFoundError(resource="Invitation", resource_id=invitation_id)
    if actor is None or invitation.instructor_id != actor.id:
        raise AuthorizationError("Access denied - not your invitation")

    thesis = load_thesis(invitation.thesis_id, for_update=True)
    try:
        db.session.refresh(invitation)
        if invitation.status != INVITATION_PENDING:
            raise AlreadyRespondedError("Invitation has already been responded to")
        if thesis.is_terminal:
            raise ThesisClosedError(
                "Cannot respond to invitation for completed/cancelled thesis",
                details={"thesis_state": thesis.state},
            )

        now = utcnow()
        invitation.responded_at = now
        result = InvitationResponse(invitation=invitation)

        if action == ACTION_REJECT:
            invitation.status = INVITATION_REJECTED
        else:
            if _member_of(thesis.id, actor.id) is not None:
                raise AlreadyMemberError("Instructor is already on the committee")
            invitation.status = INVITATION_ACCEPTED
            member = CommitteeMember(
                thesis_id=thesis.id,
                instructor_id=actor.id,
                role=COMMITTEE_ROLE_MEMBER,
                invited_at=invitation.invited_at,
                accepted_at=now,
            )
            db.session.add(member)
            result.member = member
            result.activation = activate_if_committee_complete(thesis)
    except Exception:
        db.session.rollback()
        raise

    commit_or_raise()
    logger.info("Invitation %s %sed by instructor %s", invitation.id, action, actor.id)
    if result.activation is not None:
        logger.info("Thesis %s automatically activated - committee complete", thesis.id)
    return result


def list_invitations(user, status=None):
    """The instructor's own invitations, newest first."""
    if not user.is_instructor:
        raise AuthorizationError("Only instructors can view invitations")
    q = Invitation.query.filter_by(instructor_id=user.id)
    if status:
        status = status.upper()
        if status not in INVITATION_STATUSES:
            raise ValidationError(f"Unknown status: {status}", details={"status": "invalid"})
        q = q.filter_by(status=status)
    return q.order_by(Invitation.invited_at.desc(), Invitation.id.desc()).all()


def get_committee(user, thesis_id):
    """Committee (ascending invitation time) plus pending invitations when visible."""
    thesis = load_accessible_thesis(user, thesis_id)
    committee = (
        thesis.committee_members
        .order_by(CommitteeMember.invited_at.asc(), CommitteeMember.id.asc())
        .all()
    )
    pending = []
    if can_view_pending_invitations(user, thesis):
        pending = (
            thesis.invitations
            .filter_by(status=INVITATION_PENDING)
            .order_by(Invitation.invited_at.desc(), Invitation.id.desc())
            .all()
        )
    return committee, pending


def list_available_instructors(user, thesis_id):
    """Instructors who are neither on the committee nor holding a pending invite."""
    thesis = load_thesis(thesis_id)
    if not can_invite(user, thesis):
        raise AuthorizationError("Access denied")

    members = select(CommitteeMember.instructor_id).where(CommitteeMember.thesis_id == thesis.id)
    pending = select(Invitation.instructor_id).where(
        Invitation.thesis_id == thesis.id, Invitation.status == INVITATION_PENDING,
    )
    return (
        User.query
        .filter(User.role == ROLE_INSTRUCTOR)
        .filter(User.id.notin_(members))
        .filter(User.id.notin_(pending))
        .order_by(User.full_name.asc())
        .all()
    )
