"""
Grading engine — numeric grades from accepted committee members.

Grades live in [0, 10] and are stored with two decimals. The range is
checked on the submitted value before rounding, so 10.001 is rejected
rather than silently becoming 10.
"""

import logging
import math

from sqlalchemy import func

from thesis_portal.core.exceptions import (
    AuthorizationError,
    DuplicateGradeError,
    InvalidStateError,
    OutOfRangeError,
    ThesisClosedError,
    ValidationError,
)
from thesis_portal.models import db
from thesis_portal.models.grade import GRADE_MAX, GRADE_MIN, Grade
from thesis_portal.models.thesis import (
    STATE_COMPLETED,
    STATE_UNDER_REVIEW,
    CommitteeMember,
    Thesis,
)
from thesis_portal.models.user import User
from thesis_portal.services.access import can_grade
from thesis_portal.services.thesis_lifecycle import load_accessible_thesis, load_thesis
from thesis_portal.utils.helpers import commit_or_raise, get_or_raise

logger = logging.getLogger(__name__)

GRADABLE_STATES = (STATE_UNDER_REVIEW, STATE_COMPLETED)
MAX_COMMENTS_LENGTH = 5000


def parse_grade(value):
    """Return the grade as a float rounded to 2 decimals, or raise."""
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError("grade_numeric is required", details={"grade_numeric": "required"})
    try:
        grade = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("grade_numeric must be a number",
                              details={"grade_numeric": "invalid"}) from exc
    if math.isnan(grade) or grade < GRADE_MIN or grade > GRADE_MAX:
        raise OutOfRangeError(
            "Grade must be between 0 and 10",
            details={"grade_numeric": value, "min": GRADE_MIN, "max": GRADE_MAX},
        )
    return round(grade, 2)


def _clean_comments(value):
    comments = (value or "").strip() or None
    if comments and len(comments) > MAX_COMMENTS_LENGTH:
        raise ValidationError(f"comments must be {MAX_COMMENTS_LENGTH} characters or fewer",
                              details={"comments": "too_long"})
    return comments


def statistics_for(thesis_id):
    total, avg, lo, hi = db.session.query(
        func.count(Grade.id),
        func.avg(Grade.grade_numeric),
        func.min(Grade.grade_numeric),
        func.max(Grade.grade_numeric),
    ).filter(Grade.thesis_id == thesis_id).one()
    return {
        "total_grades": total,
        "average_grade": round(float(avg), 2) if avg is not None else None,
        "min_grade": float(lo) if lo is not None else None,
        "max_grade": float(hi) if hi is not None else None,
    }


def list_thesis_grades(user, thesis_id):
    """Grades newest first plus aggregate statistics."""
    thesis = load_accessible_thesis(user, thesis_id)
    grades = (
        thesis.grades
        .order_by(Grade.created_at.desc(), Grade.id.desc())
        .all()
    )
    roles = {
        m.instructor_id: m.role
        for m in thesis.committee_members.all()
    }
    rows = []
    for g in grades:
        d = g.to_dict()
        d["committee_role"] = roles.get(g.grader_id)
        rows.append(d)
    return rows, statistics_for(thesis.id)


def submit_grade(actor, thesis_id, data):
    thesis = load_thesis(thesis_id)
    if not can_grade(actor, thesis):
        raise AuthorizationError("Only accepted committee members can grade this thesis")
    if thesis.state not in GRADABLE_STATES:
        raise InvalidStateError(
            "Grades can only be submitted for theses under review or completed",
            details={"thesis_state": thesis.state},
        )
    grade_value = parse_grade(data.get("grade_numeric"))
    comments = _clean_comments(data.get("comments"))

    if Grade.query.filter_by(thesis_id=thesis.id, grader_id=actor.id).first() is not None:
        raise DuplicateGradeError("You have already graded this thesis")

    grade = Grade(
        thesis_id=thesis.id,
        grader_id=actor.id,
        grade_numeric=grade_value,
        comments=comments,
    )
    db.session.add(grade)
    commit_or_raise()
    logger.info("Grade %s (%.2f) submitted for thesis %s by instructor %s",
                grade.id, grade_value, thesis.id, actor.id)
    return grade


def _owned_grade(actor, grade_id):
    grade = get_or_raise(Grade, grade_id)
    if grade.grader_id != actor.id and not actor.is_secretary:
        raise AuthorizationError("You can only modify your own grades")
    if grade.thesis.state == STATE_COMPLETED and not actor.is_secretary:
        raise ThesisClosedError("Cannot modify grades for completed thesis")
    return grade


def update_grade(actor, grade_id, data):
    grade = _owned_grade(actor, grade_id)
    changed = False
    if "grade_numeric" in data:
        grade.grade_numeric = parse_grade(data.get("grade_numeric"))
        changed = True
    if "comments" in data:
        grade.comments = _clean_comments(data.get("comments"))
        changed = True
    if not changed:
        raise ValidationError("No fields to update")
    commit_or_raise()
    return grade


def delete_grade(actor, grade_id):
    grade = _owned_grade(actor, grade_id)
    db.session.delete(grade)
    commit_or_raise()
    logger.info("Grade %s deleted by user %s", grade_id, actor.id)


# ── Summaries ────────────────────────────────────────────────────────────────


def instructor_summary(instructor):
    """Theses awaiting or holding the instructor's grade, own stats, recent grades."""
    rows = (
        db.session.query(Thesis, CommitteeMember.role, Grade)
        .join(CommitteeMember, (CommitteeMember.thesis_id == Thesis.id)
              & (CommitteeMember.instructor_id == instructor.id))
        .outerjoin(Grade, (Grade.thesis_id == Thesis.id) & (Grade.grader_id == instructor.id))
        .filter(Thesis.state.in_(GRADABLE_STATES))
        .filter(CommitteeMember.accepted_at.isnot(None))
        .all()
    )
    theses = []
    for thesis, role, grade in rows:
        d = {
            "thesis_id": thesis.id,
            "state": thesis.state,
            "topic_title": thesis.topic.title if thesis.topic else None,
            "student_name": thesis.student.full_name if thesis.student else None,
            "committee_role": role,
            "grade_id": grade.id if grade else None,
            "grade_numeric": float(grade.grade_numeric) if grade else None,
            "graded": grade is not None,
        }
        theses.append(d)
    theses.sort(key=lambda d: (d["state"], d["topic_title"] or ""))

    total, avg, lo, hi = db.session.query(
        func.count(Grade.id),
        func.avg(Grade.grade_numeric),
        func.min(Grade.grade_numeric),
        func.max(Grade.grade_numeric),
    ).filter(Grade.grader_id == instructor.id).one()

    recent = (
        Grade.query.filter_by(grader_id=instructor.id)
        .order_by(Grade.created_at.desc(), Grade.id.desc())
        .limit(10)
        .all()
    )
    return {
        "theses": theses,
        "pending": [d for d in theses if not d["graded"]],
        "statistics": {
            "total_grades_given": total,
            "average_grade_given": round(float(avg), 2) if avg is not None else None,
            "min_grade_given": float(lo) if lo is not None else None,
            "max_grade_given": float(hi) if hi is not None else None,
        },
        "recent_grades": [g.to_dict() for g in recent],
    }


def grading_statistics():
    """Portal-wide grading overview for the secretary."""
    total, avg, lo, hi, theses, graders = db.session.query(
        func.count(Grade.id),
        func.avg(Grade.grade_numeric),
        func.min(Grade.grade_numeric),
        func.max(Grade.grade_numeric),
        func.count(func.distinct(Grade.thesis_id)),
        func.count(func.distinct(Grade.grader_id)),
    ).one()

    distribution = {}
    for (value,) in db.session.query(Grade.grade_numeric).all():
        bucket = min(int(math.floor(float(value))), int(GRADE_MAX))
        distribution[bucket] = distribution.get(bucket, 0) + 1

    top = (
        db.session.query(
            User.id, User.full_name,
            func.count(Grade.id).label("grades_given"),
            func.avg(Grade.grade_numeric).label("average_grade"),
        )
        .join(Grade, Grade.grader_id == User.id)
        .group_by(User.id, User.full_name)
        .order_by(func.count(Grade.id).desc(), User.full_name.asc())
        .limit(10)
        .all()
    )
    recent = Grade.query.order_by(Grade.created_at.desc(), Grade.id.desc()).limit(20).all()

    return {
        "overall": {
            "total_grades": total,
            "average_grade": round(float(avg), 2) if avg is not None else None,
            "min_grade": float(lo) if lo is not None else None,
            "max_grade": float(hi) if hi is not None else None,
            "graded_theses": theses,
            "active_graders": graders,
        },
        "distribution": [
            {"grade_range": bucket, "count": distribution[bucket]}
            for bucket in sorted(distribution)
        ],
        "top_graders": [
            {
                "grader_id": uid,
                "grader_name": name,
                "grades_given": n,
                "average_grade": round(float(a), 2) if a is not None else None,
            }
            for uid, name, n, a in top
        ],
        "recent_activity": [g.to_dict() for g in recent],
    }
