"""
Workspace Models — business projects, workspaces (tenants) and memberships.

A workspace is the unit of multi-tenant scoping.  It is bound to exactly one
underlying business project; once that project is gone (row missing or
soft-deleted) the workspace is functionally dead for every mutation even
though its own row survives.

Workspace soft delete uses the ``active`` flag (0 = deleted) rather than a
timestamp.  ``status`` is the commercial state
(active / suspended / cancelled) and is independent of ``active``.
"""

from datetime import datetime, timezone

from app.models import db
from app.models.soft_delete import SoftDeleteMixin

PLAN_TYPES = ("free", "basic", "premium", "enterprise")
WORKSPACE_STATUSES = ("active", "suspended", "cancelled")
MEMBER_ROLES = ("owner", "admin", "member", "viewer")
MEMBER_STATUSES = ("pending", "active", "inactive")


class Project(SoftDeleteMixin, db.Model):
    """Business project from the CRM side; only its lifecycle matters here."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    client_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))


class Workspace(db.Model):
    __tablename__ = "workspaces"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )
    plan_type = db.Column(db.String(20), default="free")
    status = db.Column(db.String(20), default="active")
    subscription_id = db.Column(db.String(255), nullable=True)
    trial_ends_at = db.Column(db.DateTime, nullable=True)
    active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.Index("ix_workspaces_owner", "owner_id"),
        db.Index("ix_workspaces_status", "status"),
        db.Index("ix_workspaces_active", "active"),
    )

    members = db.relationship(
        "WorkspaceMember", back_populates="workspace", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "owner_id": self.owner_id,
            "project_id": self.project_id,
            "plan_type": self.plan_type,
            "status": self.status,
            "subscription_id": self.subscription_id,
            "trial_ends_at": self.trial_ends_at.isoformat() if self.trial_ends_at else None,
            "active": bool(self.active),
        }


class WorkspaceMember(db.Model):
    __tablename__ = "workspace_members"

    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(
        db.Integer, db.ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role = db.Column(db.String(20), default="member")
    status = db.Column(db.String(20), default="active")
    joined_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("workspace_id", "user_id", name="uq_workspace_member"),
        db.Index("ix_workspace_members_user", "user_id"),
    )

    workspace = db.relationship("Workspace", back_populates="members")
