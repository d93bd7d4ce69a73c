"""
Workspace Access Middleware — ``@require_workspace_access`` route decorator.

Checks that the authenticated caller may act on the workspace identified by a
route parameter (or JSON body field).  Whether the request is a mutation is
inferred from the HTTP method: GET / HEAD / OPTIONS are reads and skip the
project-availability and trial checks.

Usage:
    @bp.route("/api/v1/pm/workspaces/<int:workspace_id>/sprints", methods=["POST"])
    @require_workspace_access("workspace_id")
    def create_sprint(workspace_id):
        ...
"""

import functools
import logging

from flask import request

from app.core.exceptions import ValidationError
from app.middleware.permission_required import current_context
from app.services import access_service

logger = logging.getLogger(__name__)

READ_METHODS = ("GET", "HEAD", "OPTIONS")


def is_mutation(method: str) -> bool:
    return method.upper() not in READ_METHODS


def _workspace_id_from_request(param_name: str, kwargs: dict):
    value = kwargs.get(param_name)
    if value is None:
        value = (request.view_args or {}).get(param_name)
    if value is None and request.is_json:
        value = (request.get_json(silent=True) or {}).get(param_name)
    if value is None:
        value = request.args.get(param_name)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{param_name} must be an integer") from None


def require_workspace_access(param_name: str = "workspace_id"):
    """
    Decorator: require access to the workspace named by ``param_name``.

    Args:
        param_name: route parameter (or JSON body / query field) holding the
            workspace id.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            ctx = current_context()
            workspace_id = _workspace_id_from_request(param_name, kwargs)
            if workspace_id is None:
                raise ValidationError(f"{param_name} is required")

            access_service.require_workspace_access(
                ctx, workspace_id, mutation=is_mutation(request.method)
            ).raise_if_denied()
            return f(*args, **kwargs)
        return decorated
    return decorator
