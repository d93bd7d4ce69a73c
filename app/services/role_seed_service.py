"""
Role Seed Service — default roles and the permission catalogue.

Idempotent: permissions are created or have their description refreshed;
roles are created and their grants re-synchronised to ``ROLES`` on every
run.  The ``admin`` role always receives every permission.

Call from the ``flask seed-roles`` CLI command or ``scripts/seed_roles.py``.
"""

import logging

from app.core.grants import Action, Module
from app.models import db
from app.models.auth import PROTECTED_ROLE, Permission, Role, RolePermission

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
# PERMISSIONS: (module, action, description)
# ═══════════════════════════════════════════════════════════════════
def _crud(module: Module, noun: str) -> list[tuple[str, str, str]]:
    return [
        (module.value, Action.VIEW.value, f"View {noun}"),
        (module.value, Action.CREATE.value, f"Create {noun}"),
        (module.value, Action.EDIT.value, f"Edit {noun}"),
        (module.value, Action.DELETE.value, f"Delete {noun}"),
    ]


PERMISSIONS = [
    *_crud(Module.CLIENTS, "clients"),
    *_crud(Module.PROJECTS, "projects"),
    *_crud(Module.QUOTATIONS, "quotations"),
    *_crud(Module.INVOICES, "invoices"),
    (Module.INVOICES.value, Action.RECORD_PAYMENT.value, "Record payments against invoices"),
    (Module.FILES.value, Action.VIEW.value, "View files"),
    (Module.FILES.value, Action.UPLOAD.value, "Upload files"),
    (Module.FILES.value, Action.EDIT.value, "Edit file metadata"),
    (Module.FILES.value, Action.DELETE.value, "Delete files"),
    (Module.FILES.value, Action.DOWNLOAD.value, "Download files"),
    *_crud(Module.CREDENTIALS, "credentials"),
    *_crud(Module.CONVERSATIONS, "conversations"),
    *_crud(Module.USERS, "users"),
    (Module.ROLES.value, Action.VIEW.value, "View roles and permissions"),
    (Module.ROLES.value, Action.EDIT.value, "Edit roles and permissions"),
    (Module.DASHBOARD.value, Action.VIEW.value, "View dashboard"),
    (Module.REPORTS.value, Action.VIEW.value, "View reports"),
    *_crud(Module.PM_WORKSPACES, "workspaces"),
    *_crud(Module.PM_USER_STORIES, "user stories"),
    *_crud(Module.PM_TASKS, "tasks"),
    *_crud(Module.PM_SPRINTS, "sprints"),
    *_crud(Module.PM_EPICS, "epics"),
    *_crud(Module.PM_COMMENTS, "comments"),
    *_crud(Module.PM_TIME_LOGS, "time logs"),
    (Module.PM_ATTACHMENTS.value, Action.VIEW.value, "View attachments"),
    (Module.PM_ATTACHMENTS.value, Action.CREATE.value, "Upload attachments"),
    (Module.PM_ATTACHMENTS.value, Action.DELETE.value, "Delete attachments"),
    (Module.PM_REPORTS.value, Action.VIEW.value, "View PM reports"),
    (Module.PM_SETTINGS.value, Action.VIEW.value, "View workspace settings"),
    (Module.PM_SETTINGS.value, Action.EDIT.value, "Edit workspace settings"),
    (Module.PM_ACTIVITY.value, Action.VIEW.value, "View activity feed"),
    *_crud(Module.PM_CHAT, "chat messages"),
]


# ═══════════════════════════════════════════════════════════════
# ROLES: 6 system roles with permission assignments
# ═══════════════════════════════════════════════════════════════
_PM_ALL = [f"{m.value}.*" for m in Module if m.value.startswith("pm_")]
_PM_VIEW = [f"{m.value}.view" for m in Module if m.value.startswith("pm_")]

ROLES = {
    PROTECTED_ROLE: {
        "display_name": "Administrator",
        "description": "Full system access with all permissions",
        "permissions": "*",
    },
    "po": {
        "display_name": "Project Owner",
        "description": "Can manage projects, clients, and related resources",
        "permissions": [
            "clients.*", "projects.*", "quotations.*", "files.*",
            "credentials.*", "conversations.*",
            "dashboard.view", "reports.view", "invoices.view",
            *_PM_ALL,
        ],
    },
    "manager": {
        "display_name": "Manager",
        "description": "Can manage teams, projects, and view reports",
        "permissions": [
            "clients.view", "projects.*", "files.*", "conversations.*",
            "users.view", "dashboard.view", "reports.view",
            *_PM_ALL,
        ],
    },
    "accountant": {
        "display_name": "Accountant",
        "description": "Can manage invoices, payments, and financial data",
        "permissions": [
            "clients.view", "projects.view", "quotations.*", "invoices.*",
            "files.view", "files.download", "dashboard.view", "reports.view",
        ],
    },
    "client": {
        "display_name": "Client",
        "description": "Can view their own projects, invoices, and files",
        "permissions": [
            "projects.view", "quotations.view", "invoices.view",
            "files.view", "files.download", "conversations.view", "conversations.create",
            "dashboard.view",
        ],
    },
    "viewer": {
        "display_name": "Viewer",
        "description": "Read-only access to view data",
        "permissions": [
            "clients.view", "quotations.view", "invoices.view", "files.view",
            "dashboard.view", "reports.view",
            *_PM_VIEW,
        ],
    },
}


def _expand_permissions(perm_spec, all_keys):
    """Expand wildcard permissions like 'projects.*' into actual module.action keys."""
    if perm_spec == "*":
        return set(all_keys)

    result = set()
    for p in perm_spec:
        if p.endswith(".*"):
            module = p[:-2]
            result.update(k for k in all_keys if k.startswith(f"{module}."))
        elif p in all_keys:
            result.add(p)
    return result


def seed_permissions() -> int:
    """Create or update every catalogue permission; returns the number created."""
    created = 0
    for module, action, description in PERMISSIONS:
        existing = Permission.query.filter_by(module=module, action=action).first()
        if not existing:
            db.session.add(Permission(module=module, action=action, description=description))
            created += 1
        else:
            existing.description = description
    db.session.flush()
    return created


def seed_roles() -> dict:
    """Create or update the system roles and sync their permission sets."""
    perms = {f"{p.module}.{p.action}": p for p in Permission.query.all()}
    created_roles = 0
    assigned = 0
    removed = 0

    for role_name, cfg in ROLES.items():
        role = Role.query.filter_by(name=role_name).first()
        if not role:
            role = Role(
                name=role_name,
                display_name=cfg["display_name"],
                description=cfg["description"],
                is_system=True,
            )
            db.session.add(role)
            db.session.flush()
            created_roles += 1
        else:
            role.display_name = cfg["display_name"]
            role.description = cfg["description"]

        target = _expand_permissions(cfg["permissions"], perms.keys())
        current = {
            f"{rp.permission.module}.{rp.permission.action}": rp
            for rp in role.role_permissions.all()
        }

        for key in sorted(target - current.keys()):
            db.session.add(RolePermission(role_id=role.id, permission_id=perms[key].id))
            assigned += 1

        # Remove grants that should no longer be assigned
        for key in current.keys() - target:
            db.session.delete(current[key])
            removed += 1

    db.session.flush()
    return {"roles_created": created_roles, "grants_added": assigned, "grants_removed": removed}


def seed_all() -> dict:
    """Seed permissions then roles and commit."""
    permissions_created = seed_permissions()
    result = seed_roles()
    db.session.commit()
    result["permissions_created"] = permissions_created
    logger.info(
        "Seeded roles: %d permissions, %d roles created, %d grants added",
        permissions_created, result["roles_created"], result["grants_added"],
    )
    return result
