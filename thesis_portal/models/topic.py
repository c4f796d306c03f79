"""Topic model — research topics proposed by instructors."""

from datetime import datetime, timezone

from thesis_portal.models import db


class Topic(db.Model):
    __tablename__ = "topics"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(300), nullable=False)
    summary = db.Column(db.Text)
    description_pdf = db.Column(db.String(500))
    creator_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    creator = db.relationship("User", foreign_keys=[creator_id])
    theses = db.relationship("Thesis", back_populates="topic", lazy="dynamic")

    def to_dict(self, assignment_count=None):
        d = {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "description_pdf": self.description_pdf,
            "creator_id": self.creator_id,
            "creator_name": self.creator.full_name if self.creator else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if assignment_count is not None:
            d["assignment_count"] = assignment_count
        return d

    def __repr__(self) -> str:
        return f"<Topic #{self.id} {self.title!r}>"
