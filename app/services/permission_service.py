"""
Permission Service — role resolution, permission resolution, role administration.

Resolution is a pure read against the current tables; there is no cache, so a
change to roles, assignments or grants takes effect on the next request.

Role resolution:
  - explicit ``user_roles`` rows win
  - otherwise the legacy ``users.role`` label is looked up by role name and
    treated as an implicit single-role assignment
  - a label with no matching role yields no roles and a logged warning,
    raised as a DataIntegrityWarning only outside request handling

The ``admin`` role is the protected all-access role: holding it, or carrying
the legacy ``admin`` label, passes every permission check, and its grants can be read but never changed or deleted.
"""

import logging
import warnings
from dataclasses import dataclass

import sqlalchemy as sa
from flask import has_request_context

from app.core.exceptions import DataIntegrityWarning, Forbidden, NotFoundError, ValidationError
from app.core.grants import PermissionGrant
from app.models import db
from app.models.auth import PROTECTED_ROLE, Permission, Role, RolePermission, User, UserRole

logger = logging.getLogger(__name__)

ALL_ACCESS_ROLES = {PROTECTED_ROLE}

ROLE_SOURCE_ASSIGNED = "assigned"
ROLE_SOURCE_LEGACY = "legacy"
ROLE_SOURCE_NONE = "none"


@dataclass(frozen=True)
class RoleResolution:
    role_ids: tuple[int, ...]
    role_names: tuple[str, ...]
    source: str
    warning: str | None = None

    @property
    def has_all_access(self) -> bool:
        return any(name in ALL_ACCESS_ROLES for name in self.role_names)


# ═══════════════════════════════════════════════════════════════
# Resolution
# ═══════════════════════════════════════════════════════════════
def resolve_role_ids(identity) -> RoleResolution:
    """Resolve the role set for an ``Identity`` (see module docstring)."""
    rows = db.session.execute(
        sa.select(Role.id, Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .where(UserRole.user_id == identity.user_id)
        .order_by(Role.id)
    ).all()
    if rows:
        return RoleResolution(
            role_ids=tuple(r.id for r in rows),
            role_names=tuple(r.name for r in rows),
            source=ROLE_SOURCE_ASSIGNED,
        )

    label = identity.legacy_role
    if not label:
        return RoleResolution((), (), ROLE_SOURCE_NONE)

    row = db.session.execute(
        sa.select(Role.id, Role.name).where(Role.name == label)
    ).first()
    if row is None:
        message = f"Legacy role '{label}' of user {identity.user_id} matches no role"
        logger.warning(message)
        if not has_request_context():
            warnings.warn(message, DataIntegrityWarning, stacklevel=2)
        return RoleResolution((), (), ROLE_SOURCE_NONE, warning=message)

    return RoleResolution((row.id,), (row.name,), ROLE_SOURCE_LEGACY)


def resolve_permissions(role_ids) -> tuple[PermissionGrant, ...]:
    """Distinct grants held by any of ``role_ids``, ordered by (module, action)."""
    role_ids = list(role_ids)
    if not role_ids:
        return ()
    rows = db.session.execute(
        sa.select(Permission.module, Permission.action)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .where(RolePermission.role_id.in_(role_ids))
        .distinct()
        .order_by(Permission.module, Permission.action)
    ).all()
    return tuple(PermissionGrant(r.module, r.action) for r in rows)


# ═══════════════════════════════════════════════════════════════
# Role administration
# ═══════════════════════════════════════════════════════════════
def _get_role(role_id: int) -> Role:
    role = db.session.get(Role, role_id)
    if role is None:
        raise NotFoundError(resource="Role", resource_id=role_id)
    return role


def _guard_protected(role: Role) -> None:
    if role.is_protected:
        raise Forbidden("role", f"The '{role.name}' role cannot be modified or deleted")


def get_role_permissions(role_id: int) -> list[dict]:
    """Permissions of a role; readable for every role including the protected one."""
    _get_role(role_id)
    rows = (
        db.session.query(Permission)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id == role_id)
        .order_by(Permission.module, Permission.action)
        .all()
    )
    return [p.to_dict() for p in rows]


def set_role_permissions(role_id: int, permission_ids: list[int]) -> Role:
    """Replace a role's grants with ``permission_ids``."""
    role = _get_role(role_id)
    _guard_protected(role)

    wanted = set(permission_ids or [])
    if wanted:
        found = {
            pid for (pid,) in db.session.execute(
                sa.select(Permission.id).where(Permission.id.in_(wanted))
            )
        }
        unknown = sorted(wanted - found)
        if unknown:
            raise ValidationError("Unknown permission ids", details={"permission_ids": unknown})

    RolePermission.query.filter_by(role_id=role.id).delete()
    for pid in sorted(wanted):
        db.session.add(RolePermission(role_id=role.id, permission_id=pid))
    db.session.commit()
    logger.info("Role %s permissions replaced (%d grants)", role.name, len(wanted))
    return role


def delete_role(role_id: int) -> None:
    role = _get_role(role_id)
    _guard_protected(role)
    if role.is_system:
        raise Forbidden("role", "System roles cannot be deleted")
    db.session.delete(role)
    db.session.commit()
    logger.info("Role %s deleted", role.name)


def assign_role(user_id: int, role_id: int) -> UserRole:
    """Give ``user_id`` an explicit role assignment (idempotent)."""
    if db.session.get(User, user_id) is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    role = _get_role(role_id)
    existing = UserRole.query.filter_by(user_id=user_id, role_id=role.id).first()
    if existing:
        return existing
    ur = UserRole(user_id=user_id, role_id=role.id)
    db.session.add(ur)
    db.session.commit()
    logger.info("Role %s assigned to user %s", role.name, user_id)
    return ur


def revoke_role(user_id: int, role_id: int) -> bool:
    deleted = UserRole.query.filter_by(user_id=user_id, role_id=role_id).delete()
    db.session.commit()
    return bool(deleted)
