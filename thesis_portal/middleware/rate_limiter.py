"""
Rate limiting configuration.

The Limiter instance is created in ``thesis_portal/__init__.py`` with no
default limits; this module applies limits per blueprint. The login route
carries its own decorator (10 per 15 minutes per IP).

Usage:
    from thesis_portal.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

LOGIN_LIMIT = "10 per 15 minutes"
WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"

WRITE_METHODS = ["POST", "PUT", "PATCH", "DELETE"]
READ_METHODS = ["GET"]

WORKFLOW_BLUEPRINTS = ("theses_bp", "invitations_bp", "attachments_bp", "presentations_bp",
                       "grades_bp", "topics_bp", "auth_bp")


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Workflow writes (POST/PUT/PATCH/DELETE): 60/minute
        - Workflow reads (GET):                    200/minute
        - Reporting endpoints:                     200/minute
        - Health check:                            exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in WORKFLOW_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT, methods=WRITE_METHODS)(bp)
            limiter.limit(READ_LIMIT, methods=READ_METHODS)(bp)

    bp = app.blueprints.get("secretary_bp")
    if bp:
        limiter.limit(READ_LIMIT)(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured, write: %s, read/reporting: %s, login: %s",
                    WRITE_LIMIT, READ_LIMIT, LOGIN_LIMIT)
