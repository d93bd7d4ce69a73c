"""
Tenant Service — workspace (tenant) resolution, subscription gate, project availability.

Resolution order for a non-super-admin identity:
  1. ``users.workspace_id`` if that workspace is usable
  2. the token's ``workspace_id`` claim if the caller owns or is an active
     member of that usable workspace
  3. the most recently joined active membership of a usable workspace
  4. no tenant (not an error; callers needing one fail visibly themselves)

"Usable" means the row exists, its ``active`` soft-delete flag is set and its
commercial ``status`` is ``active``.  Super-admins resolve to no tenant scope.

The resolved workspace is returned as a frozen ``WorkspaceSnapshot`` so the
request never holds a live ORM row in its authorization context.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import sqlalchemy as sa

from app.models import db
from app.models.workspace import Project, Workspace, WorkspaceMember

logger = logging.getLogger(__name__)

TENANT_SOURCE_SUPER_ADMIN = "super_admin"
TENANT_SOURCE_EXPLICIT = "explicit"
TENANT_SOURCE_TOKEN = "token"
TENANT_SOURCE_MEMBERSHIP = "membership"
TENANT_SOURCE_NONE = "none"

TRIAL_EXPIRED = "trial_expired"


@dataclass(frozen=True)
class WorkspaceSnapshot:
    id: int
    name: str
    owner_id: int
    project_id: int | None
    plan_type: str | None
    status: str | None
    subscription_id: str | None
    trial_ends_at: datetime | None

    @classmethod
    def from_model(cls, ws: Workspace) -> "WorkspaceSnapshot":
        return cls(
            id=ws.id,
            name=ws.name,
            owner_id=ws.owner_id,
            project_id=ws.project_id,
            plan_type=ws.plan_type,
            status=ws.status,
            subscription_id=ws.subscription_id,
            trial_ends_at=_as_utc(ws.trial_ends_at),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "project_id": self.project_id,
            "plan_type": self.plan_type,
            "status": self.status,
            "subscription_id": self.subscription_id,
            "trial_ends_at": self.trial_ends_at.isoformat() if self.trial_ends_at else None,
        }


@dataclass(frozen=True)
class TenantResolution:
    workspace: WorkspaceSnapshot | None
    source: str

    @property
    def workspace_id(self) -> int | None:
        return self.workspace.id if self.workspace else None


@dataclass(frozen=True)
class GateResult:
    allowed: bool
    reason: str | None = None
    trial_ends_at: datetime | None = None


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; stored values are UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def usable_workspace_clause():
    return sa.and_(Workspace.active.is_(True), Workspace.status == "active")


def get_usable_workspace(workspace_id: int) -> Workspace | None:
    """Workspace row if it exists, is not soft-deleted and is commercially active."""
    if workspace_id is None:
        return None
    return db.session.execute(
        sa.select(Workspace).where(Workspace.id == workspace_id, usable_workspace_clause())
    ).scalar_one_or_none()


def is_owner_or_active_member(user_id: int, workspace: Workspace | WorkspaceSnapshot) -> bool:
    if workspace.owner_id == user_id:
        return True
    member = db.session.execute(
        sa.select(WorkspaceMember.id).where(
            WorkspaceMember.workspace_id == workspace.id,
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.status == "active",
        )
    ).first()
    return member is not None


# ═══════════════════════════════════════════════════════════════
# Tenant resolution
# ═══════════════════════════════════════════════════════════════
def resolve_tenant(identity, workspace_hint: int | None = None) -> TenantResolution:
    if identity.is_super_admin:
        return TenantResolution(None, TENANT_SOURCE_SUPER_ADMIN)

    if identity.workspace_id is not None:
        ws = get_usable_workspace(identity.workspace_id)
        if ws is not None:
            return TenantResolution(WorkspaceSnapshot.from_model(ws), TENANT_SOURCE_EXPLICIT)
        logger.info(
            "User %s workspace_id=%s is not usable, falling back",
            identity.user_id, identity.workspace_id,
        )

    if workspace_hint is not None:
        ws = get_usable_workspace(workspace_hint)
        if ws is not None and is_owner_or_active_member(identity.user_id, ws):
            return TenantResolution(WorkspaceSnapshot.from_model(ws), TENANT_SOURCE_TOKEN)

    ws = db.session.execute(
        sa.select(Workspace)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .where(
            WorkspaceMember.user_id == identity.user_id,
            WorkspaceMember.status == "active",
            usable_workspace_clause(),
        )
        .order_by(WorkspaceMember.joined_at.desc(), WorkspaceMember.id.desc())
        .limit(1)
    ).scalar_one_or_none()
    if ws is not None:
        return TenantResolution(WorkspaceSnapshot.from_model(ws), TENANT_SOURCE_MEMBERSHIP)

    return TenantResolution(None, TENANT_SOURCE_NONE)


# ═══════════════════════════════════════════════════════════════
# Subscription gate
# ═══════════════════════════════════════════════════════════════
def evaluate_subscription(workspace, now: datetime | None = None) -> GateResult:
    """
    Decide whether ``workspace`` may be mutated under its plan.

    Allowed when there is no workspace, a subscription reference is attached,
    no trial end is recorded (workspaces created before trials existed), or
    the trial has not ended yet.  ``plan_type`` is informational only.
    """
    if workspace is None:
        return GateResult(True)
    if workspace.subscription_id:
        return GateResult(True)

    trial_ends_at = _as_utc(workspace.trial_ends_at)
    if trial_ends_at is None:
        return GateResult(True)

    now = _as_utc(now) or datetime.now(timezone.utc)
    if now < trial_ends_at:
        return GateResult(True, trial_ends_at=trial_ends_at)
    return GateResult(False, TRIAL_EXPIRED, trial_ends_at)


# ═══════════════════════════════════════════════════════════════
# Project availability
# ═══════════════════════════════════════════════════════════════
def is_project_available(workspace) -> bool:
    """False when the workspace's underlying project is missing or soft-deleted."""
    if workspace.project_id is None:
        return False
    row = db.session.execute(
        sa.select(Project.id).where(
            Project.id == workspace.project_id, Project.available_clause()
        )
    ).first()
    return row is not None


def list_workspace_ids_for_user(user_id: int) -> list[int]:
    """Usable workspaces the user owns or is an active member of."""
    member_ids = sa.select(WorkspaceMember.workspace_id).where(
        WorkspaceMember.user_id == user_id, WorkspaceMember.status == "active"
    )
    rows = db.session.execute(
        sa.select(Workspace.id)
        .where(
            usable_workspace_clause(),
            sa.or_(Workspace.owner_id == user_id, Workspace.id.in_(member_ids)),
        )
        .order_by(Workspace.id)
    ).all()
    return [r.id for r in rows]
