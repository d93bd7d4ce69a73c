"""
Access-engine exception hierarchy.

Every failure of the resolution pipeline and every denied access check ends
up as one of the types below.  Blueprints never build 401/403/404/409/410
bodies by hand: ``app.utils.errors.register_error_handlers`` maps each
``AccessError`` subclass to the standard JSON error body once.

Hierarchy:
    AccessError
    ├── Unauthenticated (401)
    │   ├── MissingCredential
    │   ├── InvalidCredential
    │   ├── CredentialExpired
    │   ├── IdentityNotFound
    │   └── IdentityDeactivated
    ├── Forbidden (403)
    │   └── TrialExpired
    ├── NotFoundError (404)
    ├── ResourceGone (410)
    ├── GraphConflict (409)
    │   ├── InvalidLink
    │   ├── DuplicateLink
    │   └── CyclicDependency
    └── ValidationError (422)

Usage:
    from app.core.exceptions import Forbidden, NotFoundError

    raise Forbidden("permission", "Missing permission pm_tasks.edit")
    raise NotFoundError(resource="Workspace", resource_id=42)
"""

from datetime import datetime


class AccessError(Exception):
    """Base class; carries a machine code and the HTTP status it maps to."""

    code = "ERR_ACCESS"
    status = 400

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


# ═══════════════════════════════════════════════════════════════
# 401: caller could not be authenticated
# ═══════════════════════════════════════════════════════════════
class Unauthenticated(AccessError):
    code = "ERR_UNAUTHENTICATED"
    status = 401


class MissingCredential(Unauthenticated):
    code = "ERR_MISSING_CREDENTIAL"

    def __init__(self, message: str = "Authorization header required") -> None:
        super().__init__(message)


class InvalidCredential(Unauthenticated):
    code = "ERR_INVALID_CREDENTIAL"

    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class CredentialExpired(Unauthenticated):
    code = "ERR_CREDENTIAL_EXPIRED"

    def __init__(self, message: str = "Token has expired") -> None:
        super().__init__(message)


class IdentityNotFound(Unauthenticated):
    code = "ERR_IDENTITY_NOT_FOUND"

    def __init__(self, user_id: int | None = None) -> None:
        self.user_id = user_id
        super().__init__("User not found")


class IdentityDeactivated(Unauthenticated):
    code = "ERR_IDENTITY_DEACTIVATED"

    def __init__(self, user_id: int | None = None) -> None:
        self.user_id = user_id
        super().__init__("Account is deactivated")


# ═══════════════════════════════════════════════════════════════
# 403: authenticated but not allowed
# ═══════════════════════════════════════════════════════════════
FORBIDDEN_REASONS = ("permission", "role", "workspace", "client", "trial_expired")


class Forbidden(AccessError):
    """Denied access.  ``reason`` is one of ``FORBIDDEN_REASONS``."""

    code = "ERR_FORBIDDEN"
    status = 403

    def __init__(self, reason: str, message: str | None = None, details: dict | None = None) -> None:
        self.reason = reason
        merged = {"reason": reason}
        merged.update(details or {})
        super().__init__(message or "Access denied", merged)


class TrialExpired(Forbidden):
    """Workspace trial ended and no subscription is attached.

    The trial end date is always included so the client can tell the user
    *when* access lapsed.
    """

    code = "ERR_TRIAL_EXPIRED"

    def __init__(self, trial_ends_at: datetime | None, workspace_id: int | None = None) -> None:
        self.trial_ends_at = trial_ends_at
        self.workspace_id = workspace_id
        details = {
            "trial_ends_at": trial_ends_at.isoformat() if trial_ends_at else None,
        }
        if workspace_id is not None:
            details["workspace_id"] = workspace_id
        super().__init__(
            "trial_expired",
            "Your trial period has ended. Please upgrade to continue.",
            details,
        )


# ═══════════════════════════════════════════════════════════════
# 404 / 410: resource missing or permanently unavailable
# ═══════════════════════════════════════════════════════════════
class NotFoundError(AccessError):
    """Requested resource does not exist within the caller's scope.

    Used for BOTH genuinely missing records AND resources the caller may not
    know about; a 403 would confirm existence.  ``resource_id`` and
    ``tenant_id`` go to the log message, not the response body.
    """

    code = "ERR_NOT_FOUND"
    status = 404

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        tenant_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.tenant_id = tenant_id
        super().__init__(f"{resource} not found")

    def __str__(self) -> str:
        msg = self.resource
        if self.resource_id is not None:
            msg += f" id={self.resource_id}"
        msg += " not found"
        if self.tenant_id is not None:
            msg += f" (tenant={self.tenant_id})"
        return msg


class ResourceGone(AccessError):
    """The workspace exists but its underlying project was removed."""

    code = "ERR_RESOURCE_GONE"
    status = 410

    def __init__(
        self,
        message: str = "This project is no longer available. Contact the administrator.",
        workspace_id: int | None = None,
    ) -> None:
        self.workspace_id = workspace_id
        super().__init__(message, {"workspace_id": workspace_id} if workspace_id else None)


# ═══════════════════════════════════════════════════════════════
# 409: dependency graph conflicts
# ═══════════════════════════════════════════════════════════════
class GraphConflict(AccessError):
    code = "ERR_GRAPH_CONFLICT"
    status = 409
    reason = "graph_conflict"

    def __init__(self, message: str, details: dict | None = None) -> None:
        merged = {"reason": self.reason}
        merged.update(details or {})
        super().__init__(message, merged)


class InvalidLink(GraphConflict):
    code = "ERR_INVALID_LINK"
    reason = "invalid_link"


class DuplicateLink(GraphConflict):
    code = "ERR_DUPLICATE_LINK"
    reason = "duplicate_link"


class CyclicDependency(GraphConflict):
    code = "ERR_CYCLIC_DEPENDENCY"
    reason = "cyclic_dependency"


# ═══════════════════════════════════════════════════════════════
# 422: well-formed input violating a business rule
# ═══════════════════════════════════════════════════════════════
class ValidationError(AccessError):
    """Input was well-formed but violated a rule (unknown link type, cross-workspace link)."""

    code = "ERR_VALIDATION"
    status = 422


class DataIntegrityWarning(UserWarning):
    """Non-fatal data problem, e.g. a legacy role label with no matching role row."""
