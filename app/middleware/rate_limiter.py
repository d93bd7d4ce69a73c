"""
Rate limiting configuration.

The Limiter instance is created in app/__init__.py with no default limits;
this module applies the login limit and exempts health checks.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

LOGIN_ENDPOINT = "auth_bp.login"


def init_rate_limits(app, limiter):
    """
    Apply rate limits after blueprints are registered.

    Limits (per remote IP):
        - Login:        LOGIN_RATE_LIMIT (default 10 per minute)
        - Health check: exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    rate = app.config.get("LOGIN_RATE_LIMIT", "10 per minute")
    view = app.view_functions.get(LOGIN_ENDPOINT)
    if view is not None:
        app.view_functions[LOGIN_ENDPOINT] = limiter.limit(rate)(view)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — login: %s", rate)
