"""
JWT Auth Middleware — resolves the bearer token into ``g.current_user``.

The hook never rejects a request by itself: it records the user (or the
reason resolution failed) and leaves the decision to ``@require_auth``,
so public endpoints keep working with a stale token in the header.
"""

from flask import g, request

from thesis_portal.core.exceptions import AuthenticationError
from thesis_portal.services.identity_service import current_user


# Paths that skip JWT resolution entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/health",
    "/api/v1/presentations/public",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        # g outlives a single request when tests share one app context
        g.current_user = None
        g.auth_error = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:].strip()
        try:
            g.current_user = current_user(token)
        except AuthenticationError as exc:
            g.auth_error = exc.message
