"""
Presentation model — the examination slot of a thesis (one per thesis).

``room`` is required for IN_PERSON, ``online_link`` for ONLINE.
"""

from datetime import datetime, timezone

from thesis_portal.models import db

MODE_IN_PERSON = "IN_PERSON"
MODE_ONLINE = "ONLINE"
PRESENTATION_MODES = (MODE_IN_PERSON, MODE_ONLINE)


class Presentation(db.Model):
    __tablename__ = "presentations"

    id = db.Column(db.Integer, primary_key=True)
    thesis_id = db.Column(
        db.Integer, db.ForeignKey("theses.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    scheduled_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    mode = db.Column(db.String(20), nullable=False)
    room = db.Column(db.String(200))
    online_link = db.Column(db.String(500))
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint("mode IN ('IN_PERSON', 'ONLINE')", name="ck_presentations_mode"),
    )

    thesis = db.relationship("Thesis", back_populates="presentation")
    creator = db.relationship("User")

    def to_dict(self, scheduled_at=None):
        when = scheduled_at or self.scheduled_at
        th = self.thesis
        return {
            "id": self.id,
            "thesis_id": self.thesis_id,
            "scheduled_at": when.isoformat() if when else None,
            "mode": self.mode,
            "room": self.room,
            "online_link": self.online_link,
            "created_by": self.created_by,
            "creator_name": self.creator.full_name if self.creator else None,
            "thesis_state": th.state if th else None,
            "topic_title": th.topic.title if th and th.topic else None,
            "student_name": th.student.full_name if th and th.student else None,
            "student_am": th.student.am if th and th.student else None,
            "supervisor_name": th.supervisor.full_name if th and th.supervisor else None,
        }
