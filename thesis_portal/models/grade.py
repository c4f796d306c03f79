"""Grade model — one numeric grade (0–10) per committee member per thesis."""

from datetime import datetime, timezone

from thesis_portal.models import db

GRADE_MIN = 0.0
GRADE_MAX = 10.0


class Grade(db.Model):
    __tablename__ = "grades"

    id = db.Column(db.Integer, primary_key=True)
    thesis_id = db.Column(
        db.Integer, db.ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    grader_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    grade_numeric = db.Column(db.Numeric(4, 2, asdecimal=False), nullable=False)
    comments = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("thesis_id", "grader_id", name="uq_grades_thesis_grader"),
        db.CheckConstraint("grade_numeric >= 0 AND grade_numeric <= 10", name="ck_grades_range"),
    )

    thesis = db.relationship("Thesis", back_populates="grades")
    grader = db.relationship("User")

    def to_dict(self):
        th = self.thesis
        return {
            "id": self.id,
            "thesis_id": self.thesis_id,
            "grader_id": self.grader_id,
            "grader_name": self.grader.full_name if self.grader else None,
            "grader_email": self.grader.email if self.grader else None,
            "grade_numeric": float(self.grade_numeric) if self.grade_numeric is not None else None,
            "comments": self.comments,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "thesis_state": th.state if th else None,
            "topic_title": th.topic.title if th and th.topic else None,
            "student_name": th.student.full_name if th and th.student else None,
        }
