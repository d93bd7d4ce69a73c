"""
Permission Decorators — route guards on top of ``g.auth_context``.

Usage:
    @bp.route("/api/v1/clients/<int:client_id>", methods=["PUT"])
    @require_permission(Module.CLIENTS, Action.EDIT)
    def update_client(client_id):
        ...

    @bp.route("/api/v1/reports", methods=["GET"])
    @require_any_permission((Module.REPORTS, Action.VIEW), (Module.DASHBOARD, Action.VIEW))
    def reports():
        ...

    @bp.route("/api/v1/roles/<int:role_id>", methods=["DELETE"])
    @require_roles("admin")
    def delete_role(role_id):
        ...

Permission pairs are checked against the catalogue when the decorator is
built; an unknown module or action raises ``ValidationError`` at import.
Every decorator implies ``require_auth``: an anonymous request gets 401
before any permission is looked at.  Denials are raised as typed
exceptions and rendered by ``register_error_handlers``.
"""

import functools
import logging

from flask import g

from app.core.exceptions import MissingCredential
from app.core.grants import PermissionGrant, checked_grant
from app.services import access_service

logger = logging.getLogger(__name__)


def current_context():
    """The request's AuthorizationContext; raises 401 when anonymous."""
    ctx = getattr(g, "auth_context", None)
    if ctx is None:
        raise MissingCredential()
    return ctx


def require_auth(f):
    """Decorator: reject anonymous requests with 401."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        current_context()
        return f(*args, **kwargs)
    return decorated


def _guard(check):
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            check(current_context()).raise_if_denied()
            return f(*args, **kwargs)
        return decorated
    return decorator


def require_roles(*roles: str):
    """Decorator: the caller's legacy role label must be one of ``roles``."""
    return _guard(lambda ctx: access_service.require_role(ctx, *roles))


def _checked_pairs(pairs):
    checked = []
    for p in pairs:
        if isinstance(p, PermissionGrant):
            p = (p.module, p.action)
        checked.append(checked_grant(*p))
    return checked


def require_permission(module, action):
    """
    Decorator: require a single ``(module, action)`` grant.

    The pair is checked against the catalogue here, once per route.
    Super-admins and holders of the protected all-access role always pass.
    """
    wanted = checked_grant(module, action)
    return _guard(lambda ctx: access_service.require_permission(ctx, wanted.module, wanted.action))


def require_any_permission(*pairs):
    """Decorator: require at least ONE of the listed ``(module, action)`` pairs."""
    wanted = _checked_pairs(pairs)
    return _guard(lambda ctx: access_service.require_any_permission(ctx, wanted))


def require_all_permissions(*pairs):
    """Decorator: require ALL of the listed ``(module, action)`` pairs."""
    wanted = _checked_pairs(pairs)
    return _guard(lambda ctx: access_service.require_all_permissions(ctx, wanted))
