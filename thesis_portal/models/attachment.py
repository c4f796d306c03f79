"""Attachment model — files uploaded against a thesis."""

from datetime import datetime, timezone

from thesis_portal.models import db


class Attachment(db.Model):
    __tablename__ = "attachments"

    id = db.Column(db.Integer, primary_key=True)
    thesis_id = db.Column(
        db.Integer, db.ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    uploaded_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    filename = db.Column(db.String(255), nullable=False, comment="Original client filename")
    storage_key = db.Column(db.String(255), nullable=False, unique=True, comment="BlobStore locator")
    mime_type = db.Column(db.String(100))
    size_bytes = db.Column(db.Integer)
    is_draft = db.Column(db.Boolean, nullable=False, default=True)
    uploaded_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    thesis = db.relationship("Thesis", back_populates="attachments")
    uploader = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "thesis_id": self.thesis_id,
            "uploaded_by": self.uploaded_by,
            "uploader_name": self.uploader.full_name if self.uploader else None,
            "uploader_role": self.uploader.role if self.uploader else None,
            "filename": self.filename,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
            "is_draft": self.is_draft,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }

    def __repr__(self) -> str:
        return f"<Attachment #{self.id} {self.filename!r}>"
