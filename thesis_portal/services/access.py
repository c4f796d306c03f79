"""
Access predicates for every thesis-scoped operation.

Each component (lifecycle, committee, attachments, presentations, grades)
asks these functions instead of checking role strings itself. All of them
are pure reads: they return bool and never raise. State gates (closed
thesis, past presentation) are checked by the calling service so a
state problem surfaces as 409 rather than 403.

    has_access(user, thesis)               read access to the aggregate
    can_transition(user, thesis, target)   who may request a state change
    can_invite(user, thesis)               who may invite committee members
    can_view_pending_invitations(...)      who sees the pending invite list
    can_upload(user, thesis)               attachment upload (role only)
    can_update_attachment(user, att)       toggle draft flag
    can_delete_attachment(user, att)       attachment removal
    can_schedule(user, thesis)             create a presentation
    can_manage_presentation(user, thesis)  update / delete a presentation
    is_accepted_member(user, thesis)       accepted committee seat
    can_grade(user, thesis)                submit a grade
"""

from thesis_portal.models.thesis import (
    STATE_ACTIVE,
    STATE_CANCELLED,
    STATE_UNDER_ASSIGNMENT,
    CommitteeMember,
    is_reactivation,
)

# A student may act on their own thesis only before review starts
STUDENT_TRANSITION_STATES = frozenset({STATE_UNDER_ASSIGNMENT, STATE_ACTIVE})
STUDENT_TARGET_STATES = frozenset({STATE_ACTIVE, STATE_CANCELLED})


def _member_row(user, thesis):
    return CommitteeMember.query.filter_by(thesis_id=thesis.id, instructor_id=user.id).first()


def is_student_of(user, thesis) -> bool:
    return user.is_student and thesis.student_id == user.id


def is_supervisor_of(user, thesis) -> bool:
    return thesis.supervisor_id == user.id


def is_topic_creator(user, thesis) -> bool:
    return thesis.topic_creator_id == user.id


def is_committee_member(user, thesis) -> bool:
    """Any committee row, accepted or not."""
    return _member_row(user, thesis) is not None


def is_accepted_member(user, thesis) -> bool:
    row = _member_row(user, thesis)
    return row is not None and row.accepted_at is not None


def has_access(user, thesis) -> bool:
    if user is None or thesis is None:
        return False
    if user.is_secretary:
        return True
    if thesis.student_id == user.id or is_supervisor_of(user, thesis):
        return True
    if is_topic_creator(user, thesis):
        return True
    return is_committee_member(user, thesis)


def can_transition(user, thesis, target_state) -> bool:
    """Role check only; table validity is checked by the lifecycle service."""
    if user is None:
        return False
    if user.is_secretary:
        return True
    if is_reactivation(thesis.state, target_state):
        return False
    if is_supervisor_of(user, thesis):
        return True
    if is_student_of(user, thesis):
        # No self-completion and no move into review
        return thesis.state in STUDENT_TRANSITION_STATES and target_state in STUDENT_TARGET_STATES
    return False


def can_invite(user, thesis) -> bool:
    if user is None:
        return False
    return (
        user.is_secretary
        or is_supervisor_of(user, thesis)
        or is_topic_creator(user, thesis)
        or is_student_of(user, thesis)
    )


def can_view_pending_invitations(user, thesis) -> bool:
    if user is None:
        return False
    return user.is_secretary or is_supervisor_of(user, thesis) or is_topic_creator(user, thesis)


def can_upload(user, thesis) -> bool:
    if user is None:
        return False
    if user.is_secretary:
        return True
    return (
        is_student_of(user, thesis)
        or is_supervisor_of(user, thesis)
        or is_topic_creator(user, thesis)
        or is_accepted_member(user, thesis)
    )


def can_update_attachment(user, attachment) -> bool:
    if user is None:
        return False
    thesis = attachment.thesis
    if user.is_secretary:
        return True
    return attachment.uploaded_by == user.id or is_supervisor_of(user, thesis)


def can_delete_attachment(user, attachment) -> bool:
    if user is None:
        return False
    thesis = attachment.thesis
    if user.is_secretary:
        return True
    if attachment.uploaded_by == user.id:
        return True
    # Supervisor may remove what the student uploaded
    return is_supervisor_of(user, thesis) and attachment.uploaded_by == thesis.student_id


def can_schedule(user, thesis) -> bool:
    if user is None:
        return False
    return (
        user.is_secretary
        or is_supervisor_of(user, thesis)
        or is_topic_creator(user, thesis)
        or is_student_of(user, thesis)
    )


def can_manage_presentation(user, thesis) -> bool:
    """Update/delete; the past-date rule is applied by the scheduler."""
    if user is None:
        return False
    return user.is_secretary or is_supervisor_of(user, thesis) or is_topic_creator(user, thesis)


def can_grade(user, thesis) -> bool:
    return user is not None and user.is_instructor and is_accepted_member(user, thesis)
