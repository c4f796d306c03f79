"""
Shared pytest fixtures for the Thesis Portal test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test app context with table recreate (autouse)
    - client: Flask test client (function-scoped)
    - secretary / supervisor / member_a / member_b / outsider / student / other_student
    - topic, thesis: a UNDER_ASSIGNMENT thesis supervised by ``supervisor``
    - make_user, make_thesis, auth_headers: factories
"""

import os
import tempfile

# Blob store root must be known before the config module is imported
os.environ.setdefault("UPLOAD_FOLDER", tempfile.mkdtemp(prefix="thesis_portal_uploads_"))

import pytest

from thesis_portal import create_app
from thesis_portal.models import db as _db
from thesis_portal.models.thesis import (
    COMMITTEE_ROLE_MEMBER,
    COMMITTEE_ROLE_SUPERVISOR,
    STATE_UNDER_ASSIGNMENT,
    CommitteeMember,
    Thesis,
)
from thesis_portal.models.topic import Topic
from thesis_portal.models.user import ROLE_INSTRUCTOR, ROLE_SECRETARY, ROLE_STUDENT, User
from thesis_portal.services.jwt_service import generate_access_token
from thesis_portal.utils.crypto import hash_password
from thesis_portal.utils.helpers import utcnow

DEFAULT_PASSWORD = "secret123"
_PASSWORD_HASH = None


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────


def _password_hash():
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = hash_password(DEFAULT_PASSWORD, rounds=4)
    return _PASSWORD_HASH


def create_user(role, name, email, am=None):
    user = User(
        role=role,
        full_name=name,
        email=email,
        am=am,
        password_hash=_password_hash(),
    )
    _db.session.add(user)
    _db.session.commit()
    return user


def create_thesis(topic, student, supervisor, state=STATE_UNDER_ASSIGNMENT, members=()):
    """ORM-level thesis with supervisor seat and optional accepted members."""
    now = utcnow()
    thesis = Thesis(
        topic_id=topic.id,
        student_id=student.id,
        supervisor_id=supervisor.id,
        state=state,
        assigned_at=now,
    )
    _db.session.add(thesis)
    _db.session.flush()
    _db.session.add(CommitteeMember(
        thesis_id=thesis.id, instructor_id=supervisor.id,
        role=COMMITTEE_ROLE_SUPERVISOR, invited_at=now, accepted_at=now,
    ))
    for member in members:
        _db.session.add(CommitteeMember(
            thesis_id=thesis.id, instructor_id=member.id,
            role=COMMITTEE_ROLE_MEMBER, invited_at=now, accepted_at=now,
        ))
    _db.session.commit()
    return thesis


def bearer(user):
    return {"Authorization": f"Bearer {generate_access_token(user.id, user.role)}"}


@pytest.fixture()
def make_user():
    counter = {"n": 0}

    def _make(role=ROLE_INSTRUCTOR, name=None):
        counter["n"] += 1
        n = counter["n"]
        return create_user(
            role,
            name or f"{role.title()} {n}",
            f"{role}{n}@university.gr",
            am=f"10{n:05d}" if role == ROLE_STUDENT else None,
        )

    return _make


@pytest.fixture()
def make_thesis():
    return create_thesis


@pytest.fixture()
def auth_headers():
    return bearer


# ── Role fixtures ────────────────────────────────────────────────────────


@pytest.fixture()
def secretary():
    return create_user(ROLE_SECRETARY, "Maria Secretary", "secretary@university.gr")


@pytest.fixture()
def supervisor():
    return create_user(ROLE_INSTRUCTOR, "Alice Supervisor", "alice@university.gr")


@pytest.fixture()
def member_a():
    return create_user(ROLE_INSTRUCTOR, "Bob Member", "bob@university.gr")


@pytest.fixture()
def member_b():
    return create_user(ROLE_INSTRUCTOR, "Carol Member", "carol@university.gr")


@pytest.fixture()
def outsider():
    return create_user(ROLE_INSTRUCTOR, "Dan Outsider", "dan@university.gr")


@pytest.fixture()
def student():
    return create_user(ROLE_STUDENT, "Eve Student", "eve@university.gr", am="1066001")


@pytest.fixture()
def other_student():
    return create_user(ROLE_STUDENT, "Frank Student", "frank@university.gr", am="1066002")


@pytest.fixture()
def topic(supervisor):
    t = Topic(title="Graph Neural Networks", summary="GNNs for molecules", creator_id=supervisor.id)
    _db.session.add(t)
    _db.session.commit()
    return t


@pytest.fixture()
def thesis(topic, student, supervisor):
    return create_thesis(topic, student, supervisor)
