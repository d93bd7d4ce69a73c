"""
Typed permission catalogue.

Permission checks take ``(Module, Action)`` pairs.  Route decorators run every
pair through ``checked_grant`` when the route is defined, so a typo raises
``ValidationError`` at import time.  Values pulled from request input go
through ``parse_grant``, which applies the same check.

The stored ``permissions`` table is free-form text; ``PermissionGrant`` keeps
plain strings so rows the catalogue doesn't know about still resolve.
"""

from dataclasses import dataclass
from enum import Enum

from app.core.exceptions import ValidationError


class Module(str, Enum):
    CLIENTS = "clients"
    PROJECTS = "projects"
    QUOTATIONS = "quotations"
    INVOICES = "invoices"
    FILES = "files"
    CREDENTIALS = "credentials"
    CONVERSATIONS = "conversations"
    USERS = "users"
    ROLES = "roles"
    DASHBOARD = "dashboard"
    REPORTS = "reports"
    PM_WORKSPACES = "pm_workspaces"
    PM_USER_STORIES = "pm_user_stories"
    PM_TASKS = "pm_tasks"
    PM_SPRINTS = "pm_sprints"
    PM_EPICS = "pm_epics"
    PM_COMMENTS = "pm_comments"
    PM_TIME_LOGS = "pm_time_logs"
    PM_ATTACHMENTS = "pm_attachments"
    PM_REPORTS = "pm_reports"
    PM_SETTINGS = "pm_settings"
    PM_ACTIVITY = "pm_activity"
    PM_CHAT = "pm_chat"


class Action(str, Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    UPLOAD = "upload"
    DOWNLOAD = "download"
    RECORD_PAYMENT = "record_payment"


@dataclass(frozen=True, order=True)
class PermissionGrant:
    """A ``(module, action)`` pair; ordering is by module, then action."""

    module: str
    action: str

    @property
    def key(self) -> str:
        return f"{self.module}.{self.action}"

    def __str__(self) -> str:
        return self.key


def grant(module: Module | str, action: Action | str) -> PermissionGrant:
    """Build a grant from enum members or their string values."""
    m = module.value if isinstance(module, Module) else module
    a = action.value if isinstance(action, Action) else action
    return PermissionGrant(m, a)


def checked_grant(module: Module | str, action: Action | str) -> PermissionGrant:
    """Like ``grant`` but both halves must be in the catalogue."""
    try:
        return grant(Module(module), Action(action))
    except ValueError:
        raise ValidationError(
            f"Unknown permission '{module}.{action}'",
            details={"permission": f"{module}.{action}"},
        ) from None


def parse_grant(value: str) -> PermissionGrant:
    """Parse ``"module.action"`` against the catalogue."""
    module, sep, action = (value or "").partition(".")
    if not sep:
        raise ValidationError(
            f"Invalid permission '{value}'", details={"permission": "expected module.action"}
        )
    return checked_grant(module, action)
