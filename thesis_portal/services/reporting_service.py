"""
Reporting / export — read-only aggregation for the secretary.

    export_theses(state, supervisor_id)  rows for JSON or CSV export
    theses_csv(rows)                     CSV text of those rows
    comprehensive_report()               state counts, supervisors, grading
    system_health()                      counts per role/state, DB ping
"""

import csv
import io
import logging
import time

from sqlalchemy import case, func

from thesis_portal.core.exceptions import ValidationError
from thesis_portal.models import db
from thesis_portal.models.grade import Grade
from thesis_portal.models.thesis import STATE_COMPLETED, THESIS_STATES, Thesis
from thesis_portal.models.topic import Topic
from thesis_portal.models.user import VALID_ROLES, User
from thesis_portal.services.thesis_lifecycle import count_by_state
from thesis_portal.utils.helpers import utcnow

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = (
    "id", "state", "assigned_at", "started_at", "finalized_at", "ap_number",
    "topic_title", "student_name", "student_email", "student_am",
    "supervisor_name", "supervisor_email",
)


def _iso(value):
    return value.isoformat() if value else None


def export_theses(*, state=None, supervisor_id=None):
    q = Thesis.query
    if state:
        if state not in THESIS_STATES:
            raise ValidationError(f"Unknown state: {state}", details={"state": "invalid"})
        q = q.filter(Thesis.state == state)
    if supervisor_id is not None:
        q = q.filter(Thesis.supervisor_id == supervisor_id)

    rows = []
    for th in q.order_by(Thesis.assigned_at.desc(), Thesis.id.desc()).all():
        rows.append({
            "id": th.id,
            "state": th.state,
            "assigned_at": _iso(th.assigned_at),
            "started_at": _iso(th.started_at),
            "finalized_at": _iso(th.finalized_at),
            "ap_number": th.ap_number,
            "topic_title": th.topic.title,
            "student_name": th.student.full_name,
            "student_email": th.student.email,
            "student_am": th.student.am,
            "supervisor_name": th.supervisor.full_name,
            "supervisor_email": th.supervisor.email,
        })
    return rows


def theses_csv(rows):
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(EXPORT_COLUMNS)
    for row in rows:
        writer.writerow(["" if row[col] is None else row[col] for col in EXPORT_COLUMNS])
    return buf.getvalue()


def comprehensive_report():
    states = count_by_state()

    supervisors = (
        db.session.query(
            User.id, User.full_name, User.email,
            func.count(Thesis.id).label("total"),
            func.sum(case((Thesis.state == STATE_COMPLETED, 1), else_=0)).label("completed"),
        )
        .join(Thesis, Thesis.supervisor_id == User.id)
        .group_by(User.id, User.full_name, User.email)
        .order_by(func.count(Thesis.id).desc(), User.full_name.asc())
        .all()
    )

    graded, total, avg, lo, hi = db.session.query(
        func.count(func.distinct(Grade.thesis_id)),
        func.count(Grade.id),
        func.avg(Grade.grade_numeric),
        func.min(Grade.grade_numeric),
        func.max(Grade.grade_numeric),
    ).one()

    return {
        "report_generated": utcnow().isoformat(),
        "overall_statistics": {"total_theses": sum(states.values()), "by_state": states},
        "supervisor_statistics": [
            {
                "supervisor_id": uid,
                "supervisor_name": name,
                "supervisor_email": email,
                "total_supervised": n,
                "completed_supervised": int(done or 0),
            }
            for uid, name, email, n, done in supervisors
        ],
        "grading_statistics": {
            "graded_theses": graded,
            "total_grades": total,
            "average_grade": round(float(avg), 2) if avg is not None else None,
            "min_grade": float(lo) if lo is not None else None,
            "max_grade": float(hi) if hi is not None else None,
        },
    }


def system_health():
    t0 = time.perf_counter()
    db.session.execute(db.text("SELECT 1"))
    db_ms = (time.perf_counter() - t0) * 1000

    users = {role: 0 for role in sorted(VALID_ROLES)}
    for role, n in db.session.query(User.role, func.count(User.id)).group_by(User.role).all():
        users[role] = n

    return {
        "health_check_time": utcnow().isoformat(),
        "database": {"status": "ok", "latency_ms": round(db_ms, 1)},
        "user_statistics": users,
        "thesis_statistics": count_by_state(),
        "topic_statistics": {"total_topics": Topic.query.count()},
        "system_status": "healthy",
    }
