"""Standardised API error responses.

Usage
-----
    from app.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Task not found")
    return api_error(E.VALIDATION_REQUIRED, "source_id is required")
    return api_error(E.FORBIDDEN, "Access denied", details={"reason": "workspace"})

Typed ``AccessError`` exceptions raised anywhere below a view are turned
into the same body shape by ``register_error_handlers``.
"""

from __future__ import annotations

import logging

from flask import jsonify, request

from app.core.exceptions import AccessError

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Access-engine exceptions carry their own ``code`` (``ERR_FORBIDDEN``,
    ``ERR_TRIAL_EXPIRED``, ``ERR_CYCLIC_DEPENDENCY`` ...); these cover the
    responses views build directly.
    """

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Authentication – HTTP 401
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    INVALID_LOGIN = "ERR_INVALID_LOGIN"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"
    EMAIL_NOT_VERIFIED = "ERR_EMAIL_NOT_VERIFIED"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Method not allowed – HTTP 405
    METHOD_NOT_ALLOWED = "ERR_METHOD_NOT_ALLOWED"

    # Rate limit – HTTP 429
    RATE_LIMITED = "ERR_RATE_LIMITED"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHENTICATED: 401,
    E.INVALID_LOGIN: 401,
    E.FORBIDDEN: 403,
    E.EMAIL_NOT_VERIFIED: 403,
    E.NOT_FOUND: 404,
    E.METHOD_NOT_ALLOWED: 405,
    E.RATE_LIMITED: 429,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (denial reason, trial end date, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def error_from_exception(exc: AccessError):
    """Render a typed access-engine exception as a standard error response."""
    return api_error(exc.code, exc.message, status=exc.status, details=exc.details or None)


def register_error_handlers(app):
    """Map access-engine exceptions and common HTTP errors to JSON bodies."""

    @app.errorhandler(AccessError)
    def _access_error(exc):
        if exc.status >= 403:
            logger.warning(
                "%s %s → %d %s: %s",
                request.method, request.path, exc.status, exc.code, exc,
            )
        return error_from_exception(exc)

    @app.errorhandler(404)
    def _not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def _method_not_allowed(e):
        return api_error(E.METHOD_NOT_ALLOWED, "Method not allowed")

    @app.errorhandler(429)
    def _rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests, please try again later")

    @app.errorhandler(500)
    def _server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")
