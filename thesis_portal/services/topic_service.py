"""
Topic registry — instructor-owned research topics.

``assignment_count`` counts theses that are not CANCELLED; a topic is
"available" when that count is zero.
"""

import logging

from sqlalchemy import func

from thesis_portal.core.exceptions import AuthorizationError, ConflictError, ValidationError
from thesis_portal.models import db
from thesis_portal.models.thesis import STATE_CANCELLED, TERMINAL_STATES, Thesis
from thesis_portal.models.topic import Topic
from thesis_portal.utils.helpers import commit_or_raise, get_or_raise

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 300
MAX_PDF_LENGTH = 500


def _assignment_counts():
    return (
        db.session.query(Thesis.topic_id, func.count(Thesis.id).label("n"))
        .filter(Thesis.state != STATE_CANCELLED)
        .group_by(Thesis.topic_id)
        .subquery()
    )


def list_topics(*, creator_id=None, available=False):
    """Return ``[(topic, assignment_count), ...]`` newest first."""
    counts = _assignment_counts()
    n = func.coalesce(counts.c.n, 0)
    q = (
        db.session.query(Topic, n)
        .outerjoin(counts, counts.c.topic_id == Topic.id)
    )
    if creator_id is not None:
        q = q.filter(Topic.creator_id == creator_id)
    if available:
        q = q.filter(n == 0)
    return q.order_by(Topic.created_at.desc(), Topic.id.desc()).all()


def get_topic(topic_id):
    """Topic plus its non-cancelled theses."""
    topic = get_or_raise(Topic, topic_id)
    theses = (
        topic.theses
        .filter(Thesis.state != STATE_CANCELLED)
        .order_by(Thesis.created_at.desc())
        .all()
    )
    return topic, theses


def _clean_fields(data, *, partial):
    fields = {}
    if "title" in data or not partial:
        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError("title is required", details={"title": "required"})
        if len(title) > MAX_TITLE_LENGTH:
            raise ValidationError(
                f"title must be {MAX_TITLE_LENGTH} characters or fewer",
                details={"title": "too_long"},
            )
        fields["title"] = title
    if "summary" in data:
        fields["summary"] = (data.get("summary") or "").strip() or None
    if "description_pdf" in data:
        pdf = (data.get("description_pdf") or "").strip() or None
        if pdf and len(pdf) > MAX_PDF_LENGTH:
            raise ValidationError(
                f"description_pdf must be {MAX_PDF_LENGTH} characters or fewer",
                details={"description_pdf": "too_long"},
            )
        fields["description_pdf"] = pdf
    return fields


def create_topic(actor, data):
    fields = _clean_fields(data, partial=False)
    topic = Topic(creator_id=actor.id, **fields)
    db.session.add(topic)
    commit_or_raise()
    logger.info("Topic %s created by instructor %s", topic.id, actor.id)
    return topic


def _owned_topic(actor, topic_id):
    topic = get_or_raise(Topic, topic_id)
    if topic.creator_id != actor.id and not actor.is_secretary:
        raise AuthorizationError("Access denied - not topic owner")
    return topic


def update_topic(actor, topic_id, data):
    topic = _owned_topic(actor, topic_id)
    fields = _clean_fields(data, partial=True)
    if not fields:
        raise ValidationError("No fields to update")
    for key, value in fields.items():
        setattr(topic, key, value)
    commit_or_raise()
    return topic


def delete_topic(actor, topic_id):
    topic = _owned_topic(actor, topic_id)
    open_count = topic.theses.filter(Thesis.state.notin_(TERMINAL_STATES)).count()
    if open_count:
        raise ConflictError(
            "Cannot delete topic with active thesis assignments",
            details={"active_theses": open_count},
        )
    if topic.theses.count():
        raise ConflictError("Cannot delete topic referenced by finished theses")
    db.session.delete(topic)
    commit_or_raise()
    logger.info("Topic %s deleted by user %s", topic_id, actor.id)
