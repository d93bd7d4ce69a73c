"""
JWT Auth Middleware — builds the AuthorizationContext for every API request.

  no Authorization header   →  g.auth_context = None (anonymous)
  header present, valid     →  g.auth_context = AuthorizationContext
  header present, invalid   →  401 JSON; the request never continues anonymously

Routes that require a caller use ``@require_auth`` (permission_required.py),
which turns an anonymous request into a 401.

Token settings and the probed users-table schema are read from
``app.extensions["access_engine"]``, set once by ``create_app``.
"""

import logging

from flask import current_app, g, request

from app.core.exceptions import Unauthenticated
from app.services.access_service import build_authorization_context
from app.services.jwt_service import extract_bearer
from app.utils.errors import error_from_exception

logger = logging.getLogger(__name__)

EXTENSION_KEY = "access_engine"

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/health",
    "/static/",
)


def engine_state() -> dict:
    return current_app.extensions[EXTENSION_KEY]


def current_token_settings():
    return engine_state()["token_settings"]


def current_user_schema():
    return engine_state()["user_schema"]


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.auth_context = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return None
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return None

        header = request.headers.get("Authorization")
        if not header:
            return None

        try:
            token = extract_bearer(header)
            ctx = build_authorization_context(
                token, current_token_settings(), current_user_schema()
            )
        except Unauthenticated as exc:
            logger.warning("Authentication failed on %s: %s (%s)", path, exc.code, exc)
            return error_from_exception(exc)

        g.auth_context = ctx
        return None
