"""
Identity resolution + role / permission resolution tests.

Covers:
  BLOCK 1: resolve_identity — found, not found, deactivated, degraded schema
  BLOCK 2: resolve_role_ids — assigned beats legacy, legacy fallback,
           unresolvable label (warning), no label
  BLOCK 3: resolve_permissions — union, dedupe, ordering, monotonicity
  BLOCK 4: role administration — protected admin role, unknown permission ids
  BLOCK 5: role seeding is idempotent
"""

import pytest

from app.core.exceptions import (
    DataIntegrityWarning,
    Forbidden,
    IdentityDeactivated,
    IdentityNotFound,
    NotFoundError,
    ValidationError,
)
from app.core.grants import PermissionGrant
from app.models import db
from app.models.auth import Permission, Role, RolePermission
from app.services import permission_service
from app.services.identity_service import UserSchema, detect_user_schema, resolve_identity
from app.services.role_seed_service import seed_all


# ═════════════════════════════════════════════════════════════════════════════
# BLOCK 1: Identity
# ═════════════════════════════════════════════════════════════════════════════


class TestResolveIdentity:
    def test_found(self, make_user):
        u = make_user(role="manager", client_id=9, workspace_id=4)
        ident = resolve_identity(u.id)
        assert ident.user_id == u.id
        assert ident.username == u.username
        assert ident.legacy_role == "manager"
        assert ident.client_id == 9
        assert ident.workspace_id == 4
        assert ident.is_super_admin is False
        assert ident.email_verified is True

    def test_not_found(self):
        with pytest.raises(IdentityNotFound):
            resolve_identity(999999)

    def test_deactivated(self, make_user):
        u = make_user(is_active=False)
        with pytest.raises(IdentityDeactivated):
            resolve_identity(u.id)

    def test_degraded_schema_defaults(self, make_user):
        u = make_user(client_id=3, workspace_id=5, is_super_admin=True)
        legacy = UserSchema(
            has_client_id=False,
            has_workspace_id=False,
            has_is_super_admin=False,
            has_email_verified=False,
        )
        ident = resolve_identity(u.id, legacy)
        assert ident.client_id is None
        assert ident.workspace_id is None
        assert ident.is_super_admin is False
        assert ident.email_verified is False

    def test_partial_schema(self, make_user):
        u = make_user(client_id=3, workspace_id=5)
        ident = resolve_identity(u.id, UserSchema(has_workspace_id=False))
        assert ident.client_id == 3
        assert ident.workspace_id is None

    def test_schema_probe_sees_model_columns(self):
        schema = detect_user_schema(db.engine)
        assert schema.present_columns() == (
            "client_id", "workspace_id", "is_super_admin", "email_verified",
        )


# ═════════════════════════════════════════════════════════════════════════════
# BLOCK 2: Role resolution
# ═════════════════════════════════════════════════════════════════════════════


class TestResolveRoles:
    def test_legacy_label(self, seeded_roles, make_user):
        u = make_user(role="manager")
        res = permission_service.resolve_role_ids(resolve_identity(u.id))
        assert res.source == permission_service.ROLE_SOURCE_LEGACY
        assert res.role_ids == (seeded_roles["manager"].id,)
        assert res.role_names == ("manager",)

    def test_assigned_beats_legacy(self, seeded_roles, make_user):
        u = make_user(role="manager")
        permission_service.assign_role(u.id, seeded_roles["viewer"].id)
        res = permission_service.resolve_role_ids(resolve_identity(u.id))
        assert res.source == permission_service.ROLE_SOURCE_ASSIGNED
        assert res.role_names == ("viewer",)

    def test_multiple_assigned(self, seeded_roles, make_user):
        u = make_user(role="viewer")
        permission_service.assign_role(u.id, seeded_roles["accountant"].id)
        permission_service.assign_role(u.id, seeded_roles["client"].id)
        res = permission_service.resolve_role_ids(resolve_identity(u.id))
        assert set(res.role_names) == {"accountant", "client"}

    def test_unresolvable_label_warns(self, seeded_roles, make_user):
        u = make_user(role="ghost")
        with pytest.warns(DataIntegrityWarning):
            res = permission_service.resolve_role_ids(resolve_identity(u.id))
        assert res.role_ids == ()
        assert res.source == permission_service.ROLE_SOURCE_NONE
        assert "ghost" in res.warning

    def test_no_label(self, seeded_roles, make_user):
        u = make_user(role="")
        res = permission_service.resolve_role_ids(resolve_identity(u.id))
        assert res.role_ids == ()
        assert res.warning is None

    def test_admin_has_all_access(self, seeded_roles, make_user):
        u = make_user(role="admin")
        assert permission_service.resolve_role_ids(resolve_identity(u.id)).has_all_access

    def test_revoke_falls_back_to_legacy(self, seeded_roles, make_user):
        u = make_user(role="manager")
        permission_service.assign_role(u.id, seeded_roles["viewer"].id)
        assert permission_service.revoke_role(u.id, seeded_roles["viewer"].id) is True
        res = permission_service.resolve_role_ids(resolve_identity(u.id))
        assert res.role_names == ("manager",)


# ═════════════════════════════════════════════════════════════════════════════
# BLOCK 3: Permission resolution
# ═════════════════════════════════════════════════════════════════════════════


class TestResolvePermissions:
    def test_empty(self):
        assert permission_service.resolve_permissions([]) == ()

    def test_single_role(self, seeded_roles):
        grants = permission_service.resolve_permissions([seeded_roles["accountant"].id])
        assert PermissionGrant("invoices", "record_payment") in grants
        assert PermissionGrant("projects", "edit") not in grants

    def test_union_is_deduplicated_and_sorted(self, seeded_roles):
        ids = [seeded_roles["accountant"].id, seeded_roles["client"].id]
        grants = permission_service.resolve_permissions(ids)
        assert len(grants) == len(set(grants))
        assert list(grants) == sorted(grants)

    def test_monotonic(self, seeded_roles):
        small = set(permission_service.resolve_permissions([seeded_roles["viewer"].id]))
        big = set(permission_service.resolve_permissions(
            [seeded_roles["viewer"].id, seeded_roles["manager"].id]
        ))
        assert small <= big

    def test_admin_gets_catalogue(self, seeded_roles):
        grants = permission_service.resolve_permissions([seeded_roles["admin"].id])
        assert len(grants) == Permission.query.count()

    def test_change_visible_immediately(self, seeded_roles):
        role = seeded_roles["viewer"]
        perm = Permission.query.filter_by(module="projects", action="view").first()
        assert PermissionGrant("projects", "view") not in permission_service.resolve_permissions([role.id])
        db.session.add(RolePermission(role_id=role.id, permission_id=perm.id))
        db.session.commit()
        assert PermissionGrant("projects", "view") in permission_service.resolve_permissions([role.id])


# ═════════════════════════════════════════════════════════════════════════════
# BLOCK 4: Role administration
# ═════════════════════════════════════════════════════════════════════════════


class TestRoleAdministration:
    def test_admin_permissions_readable(self, seeded_roles):
        perms = permission_service.get_role_permissions(seeded_roles["admin"].id)
        assert len(perms) == Permission.query.count()

    def test_admin_permissions_immutable(self, seeded_roles):
        with pytest.raises(Forbidden) as exc:
            permission_service.set_role_permissions(seeded_roles["admin"].id, [])
        assert exc.value.reason == "role"
        assert seeded_roles["admin"].role_permissions.count() == Permission.query.count()

    def test_admin_not_deletable(self, seeded_roles):
        with pytest.raises(Forbidden):
            permission_service.delete_role(seeded_roles["admin"].id)

    def test_system_role_not_deletable(self, seeded_roles):
        with pytest.raises(Forbidden):
            permission_service.delete_role(seeded_roles["viewer"].id)

    def test_custom_role_deletable(self):
        role = Role(name="auditor", display_name="Auditor")
        db.session.add(role)
        db.session.commit()
        permission_service.delete_role(role.id)
        assert db.session.get(Role, role.id) is None

    def test_set_permissions_replaces(self, seeded_roles):
        role = seeded_roles["viewer"]
        perm = Permission.query.filter_by(module="projects", action="view").first()
        permission_service.set_role_permissions(role.id, [perm.id])
        assert [p["id"] for p in permission_service.get_role_permissions(role.id)] == [perm.id]

    def test_set_permissions_unknown_id(self, seeded_roles):
        with pytest.raises(ValidationError) as exc:
            permission_service.set_role_permissions(seeded_roles["viewer"].id, [999999])
        assert exc.value.details["permission_ids"] == [999999]

    def test_unknown_role(self):
        with pytest.raises(NotFoundError):
            permission_service.get_role_permissions(424242)

    def test_assign_idempotent(self, seeded_roles, make_user):
        u = make_user()
        a = permission_service.assign_role(u.id, seeded_roles["po"].id)
        b = permission_service.assign_role(u.id, seeded_roles["po"].id)
        assert a.id == b.id

    def test_assign_unknown_user(self, seeded_roles):
        with pytest.raises(NotFoundError):
            permission_service.assign_role(999999, seeded_roles["po"].id)


# ═════════════════════════════════════════════════════════════════════════════
# BLOCK 5: Seeding
# ═════════════════════════════════════════════════════════════════════════════


class TestSeed:
    def test_idempotent(self):
        first = seed_all()
        assert first["permissions_created"] > 0
        assert first["roles_created"] == 6
        second = seed_all()
        assert second["permissions_created"] == 0
        assert second["roles_created"] == 0
        assert second["grants_added"] == 0
        assert second["grants_removed"] == 0

    def test_resync_removes_stray_grant(self, seeded_roles):
        role = seeded_roles["viewer"]
        perm = Permission.query.filter_by(module="users", action="delete").first()
        db.session.add(RolePermission(role_id=role.id, permission_id=perm.id))
        db.session.commit()
        assert seed_all()["grants_removed"] == 1
