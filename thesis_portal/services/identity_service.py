"""
Identity service — login, bearer resolution, registration and self profile.

All user persistence belongs here; the auth blueprint only parses input
and serializes the result.
"""

import logging

import jwt
from email_validator import EmailNotValidError, validate_email
from flask import current_app

from thesis_portal.core.exceptions import (
    AuthenticationError,
    ConflictError,
    ValidationError,
)
from thesis_portal.models import db
from thesis_portal.models.user import ROLE_STUDENT, VALID_ROLES, User
from thesis_portal.services.jwt_service import decode_access_token, generate_access_token
from thesis_portal.utils.crypto import hash_password, verify_password
from thesis_portal.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MAX_PHONE_LENGTH = 50


def normalize_email(raw, *, field="email"):
    """Validate syntax and return the normalized (lower-cased) address."""
    if not raw or not isinstance(raw, str):
        raise ValidationError(f"{field} is required", details={field: "required"})
    try:
        info = validate_email(raw.strip(), check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError(f"Invalid email: {exc}", details={field: "invalid"}) from exc
    return info.normalized.lower()


def authenticate(email, password):
    """Return ``(token, user)`` for valid credentials, else AuthenticationError."""
    if not email or not password:
        raise ValidationError("Email and password are required")
    email = normalize_email(email)

    user = User.query.filter_by(email=email).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login attempt for %s", email)
        raise AuthenticationError("Invalid email or password")

    token = generate_access_token(user.id, user.role)
    logger.info("User %s logged in (role=%s)", user.id, user.role)
    return token, user


def current_user(token):
    """Resolve a bearer token to its User.

    Raises AuthenticationError for a missing, expired, malformed or
    wrong-type token and for tokens whose user no longer exists.
    """
    if not token:
        raise AuthenticationError("Access token required")
    try:
        payload = decode_access_token(token)
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("Invalid token") from exc

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError) as exc:
        raise AuthenticationError("Invalid token") from exc

    user = db.session.get(User, user_id)
    if user is None:
        raise AuthenticationError("User not found")
    return user


def register_user(data):
    """Create a user. Only the secretary reaches this (enforced in the blueprint)."""
    role = (data.get("role") or "").strip().lower()
    if role not in VALID_ROLES:
        raise ValidationError(
            f"role must be one of: {', '.join(sorted(VALID_ROLES))}",
            details={"role": "invalid"},
        )

    full_name = (data.get("full_name") or "").strip()
    if not full_name:
        raise ValidationError("full_name is required", details={"full_name": "required"})
    if len(full_name) > 200:
        raise ValidationError("full_name must be 200 characters or fewer")

    email = normalize_email(data.get("email"))

    password = data.get("password") or ""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too_short"},
        )

    am = (data.get("am") or "").strip() or None
    if role == ROLE_STUDENT and not am:
        raise ValidationError("am is required for students", details={"am": "required"})

    phone = _clean_phone(data.get("phone"))
    address = (data.get("address") or "").strip() or None

    if User.query.filter_by(email=email).first() is not None:
        raise ConflictError("Email already registered", details={"email": email})

    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    user = User(
        role=role,
        am=am,
        full_name=full_name,
        email=email,
        password_hash=hash_password(password, rounds=rounds),
        phone=phone,
        address=address,
    )
    db.session.add(user)
    commit_or_raise()
    logger.info("Registered user %s (role=%s)", user.id, role)
    return user


def update_profile(user, data):
    """Update the caller's own phone/address. Other fields are ignored."""
    changed = False
    if "phone" in data:
        user.phone = _clean_phone(data.get("phone"))
        changed = True
    if "address" in data:
        user.address = (data.get("address") or "").strip() or None
        changed = True
    if not changed:
        raise ValidationError("Nothing to update; only phone and address are editable")
    commit_or_raise()
    return user


def _clean_phone(value):
    if value is None:
        return None
    phone = str(value).strip()
    if len(phone) > MAX_PHONE_LENGTH:
        raise ValidationError(
            f"phone must be {MAX_PHONE_LENGTH} characters or fewer",
            details={"phone": "too_long"},
        )
    return phone or None
