"""
User model — students, instructors and the secretary.

Users are registered by the secretary and never deleted. Only ``phone`` and
``address`` are editable by the user themself.
"""

from datetime import datetime, timezone

from thesis_portal.models import db

ROLE_STUDENT = "student"
ROLE_INSTRUCTOR = "instructor"
ROLE_SECRETARY = "secretary"

VALID_ROLES = frozenset({ROLE_STUDENT, ROLE_INSTRUCTOR, ROLE_SECRETARY})


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    role = db.Column(db.String(20), nullable=False, index=True)
    am = db.Column(db.String(32), comment="Academic id, students only")
    full_name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=False, unique=True)
    password_hash = db.Column(db.String(256))
    phone = db.Column(db.String(50))
    address = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_secretary(self) -> bool:
        return self.role == ROLE_SECRETARY

    @property
    def is_instructor(self) -> bool:
        return self.role == ROLE_INSTRUCTOR

    @property
    def is_student(self) -> bool:
        return self.role == ROLE_STUDENT

    def to_dict(self, include_profile=False):
        d = {
            "id": self.id,
            "role": self.role,
            "am": self.am,
            "full_name": self.full_name,
            "email": self.email,
        }
        if include_profile:
            d["phone"] = self.phone
            d["address"] = self.address
            d["created_at"] = self.created_at.isoformat() if self.created_at else None
        return d

    def __repr__(self) -> str:
        return f"<User #{self.id} {self.role} {self.email}>"
