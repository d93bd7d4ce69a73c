"""
Auth Models — users, roles, permissions and their junction tables.

The ``users`` table grew over several migrations.  ``client_id``,
``workspace_id``, ``is_super_admin`` and ``email_verified`` arrived late and
may be missing on databases that were never fully migrated; the identity
resolver only selects the columns the startup schema probe reports present
(see ``app.services.identity_service.detect_user_schema``).

Role ↔ permission and user ↔ role are plain many-to-many junctions.  When a
user has no ``user_roles`` rows, the legacy ``users.role`` label is treated
as an implicit single-role assignment.
"""

from datetime import datetime, timezone

from app.models import db

# Legacy role labels stored in users.role
LEGACY_ROLES = ("admin", "po", "manager", "accountant", "client", "viewer")

# The one role whose permission set can never be edited or deleted.
PROTECTED_ROLE = "admin"

# Columns added after the first schema version; all nullable / defaulted.
OPTIONAL_USER_COLUMNS = ("client_id", "workspace_id", "is_super_admin", "email_verified")


# ═══════════════════════════════════════════════════════════════
# 1. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False)
    email = db.Column(db.String(100), unique=True, nullable=False)
    password_hash = db.Column(db.String(255))
    full_name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(20), default="viewer")  # legacy label, see LEGACY_ROLES
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # ── Late columns (migrations 001 / client portal) ──
    client_id = db.Column(db.Integer, nullable=True)
    workspace_id = db.Column(db.Integer, nullable=True)
    is_super_admin = db.Column(db.Boolean, default=False)
    email_verified = db.Column(db.Boolean, default=False)

    __table_args__ = (
        db.Index("ix_users_client_id", "client_id"),
        db.Index("ix_users_workspace_id", "workspace_id"),
    )

    user_roles = db.relationship(
        "UserRole", back_populates="user", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "is_active": self.is_active,
            "client_id": self.client_id,
            "workspace_id": self.workspace_id,
            "is_super_admin": bool(self.is_super_admin),
            "email_verified": bool(self.email_verified),
            "last_login_at": self.last_login_at.isoformat() if self.last_login_at else None,
        }


# ═══════════════════════════════════════════════════════════════
# 2. ROLES
# ═══════════════════════════════════════════════════════════════
class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)
    display_name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    is_system = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    role_permissions = db.relationship(
        "RolePermission", back_populates="role", lazy="dynamic", cascade="all, delete-orphan",
    )
    user_roles = db.relationship(
        "UserRole", back_populates="role", lazy="dynamic", cascade="all, delete-orphan",
    )

    @property
    def is_protected(self):
        return self.name == PROTECTED_ROLE

    def to_dict(self, include_permissions=False):
        d = {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "is_system": bool(self.is_system),
            "is_protected": self.is_protected,
        }
        if include_permissions:
            d["permissions"] = sorted(
                f"{rp.permission.module}.{rp.permission.action}"
                for rp in self.role_permissions.all()
            )
        return d


# ═══════════════════════════════════════════════════════════════
# 3. PERMISSIONS
# ═══════════════════════════════════════════════════════════════
class Permission(db.Model):
    __tablename__ = "permissions"

    id = db.Column(db.Integer, primary_key=True)
    module = db.Column(db.String(50), nullable=False)   # e.g. "projects"
    action = db.Column(db.String(50), nullable=False)   # e.g. "edit"
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("module", "action", name="uq_permission_module_action"),
    )

    role_permissions = db.relationship("RolePermission", back_populates="permission", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "module": self.module,
            "action": self.action,
            "description": self.description,
        }


# ═══════════════════════════════════════════════════════════════
# 4. ROLE_PERMISSIONS (Junction table)
# ═══════════════════════════════════════════════════════════════
class RolePermission(db.Model):
    __tablename__ = "role_permissions"

    id = db.Column(db.Integer, primary_key=True)
    role_id = db.Column(
        db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False
    )
    permission_id = db.Column(
        db.Integer, db.ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (
        db.UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
        db.Index("ix_role_permissions_role_id", "role_id"),
    )

    role = db.relationship("Role", back_populates="role_permissions")
    permission = db.relationship("Permission", back_populates="role_permissions")


# ═══════════════════════════════════════════════════════════════
# 5. USER_ROLES (Junction table)
# ═══════════════════════════════════════════════════════════════
class UserRole(db.Model):
    __tablename__ = "user_roles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role_id = db.Column(
        db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("user_id", "role_id", name="uq_user_role"),
        db.Index("ix_user_roles_user_id", "user_id"),
    )

    user = db.relationship("User", back_populates="user_roles")
    role = db.relationship("Role", back_populates="user_roles")
