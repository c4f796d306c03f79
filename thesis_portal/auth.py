"""
Thesis Portal
Authentication & Authorization decorators.

Provides:
    - require_auth: endpoint needs a resolved bearer token (401 otherwise)
    - require_role: endpoint restricted to the listed roles (403 otherwise)

The bearer token itself is resolved by ``middleware.jwt_auth`` before the
view runs; these decorators only read ``g.current_user``.

Usage:
    @theses_bp.route("/<int:thesis_id>/state", methods=["PUT"])
    @require_auth
    def change_state(thesis_id): ...

    @topics_bp.route("", methods=["POST"])
    @require_role("instructor")
    def create_topic(): ...
"""

import functools
import logging

from flask import g, request

from thesis_portal.core.exceptions import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)


def get_current_user():
    """Return the resolved user for this request, or None."""
    return getattr(g, "current_user", None)


def require_auth(f):
    """Decorator: require a valid bearer token for the endpoint."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if get_current_user() is None:
            raise AuthenticationError(getattr(g, "auth_error", None) or "Access token required")
        return f(*args, **kwargs)

    return decorated


def require_role(*roles: str):
    """
    Decorator: require one of the given roles. Implies ``require_auth``.

    Usage:
        @require_role("instructor", "secretary")
        def create_thesis(): ...
    """
    allowed = frozenset(roles)

    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = get_current_user()
            if user is None:
                raise AuthenticationError(getattr(g, "auth_error", None) or "Access token required")
            if user.role not in allowed:
                logger.warning(
                    "Access denied: role '%s' tried to access %s (allowed: %s)",
                    user.role, request.path, ", ".join(sorted(allowed)),
                )
                raise AuthorizationError("Insufficient permissions")
            return f(*args, **kwargs)
        return decorated
    return decorator
