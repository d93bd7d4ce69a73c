"""
Tenant resolution, subscription gate and project availability tests.

Covers:
  BLOCK 1: resolve_tenant order — super_admin, explicit, token hint,
           latest membership, none; unusable workspaces are skipped
  BLOCK 2: evaluate_subscription — subscription, legacy (no trial end),
           trial running, trial ended (boundary), plan_type ignored
  BLOCK 3: is_project_available / list_workspace_ids_for_user
"""

from datetime import datetime, timedelta, timezone

from app.models import db
from app.models.workspace import Project
from app.services import tenant_service
from app.services.identity_service import resolve_identity


def yesterday():
    return datetime.now(timezone.utc) - timedelta(days=1)


def next_week():
    return datetime.now(timezone.utc) + timedelta(days=7)


# ═════════════════════════════════════════════════════════════════════════════
# BLOCK 1: Tenant resolution
# ═════════════════════════════════════════════════════════════════════════════


class TestResolveTenant:
    def test_super_admin_has_no_scope(self, make_user, make_workspace):
        admin = make_user(is_super_admin=True)
        ws = make_workspace(admin)
        admin.workspace_id = ws.id
        db.session.commit()
        res = tenant_service.resolve_tenant(resolve_identity(admin.id), ws.id)
        assert res.workspace is None
        assert res.source == tenant_service.TENANT_SOURCE_SUPER_ADMIN

    def test_explicit_workspace_wins(self, make_user, make_workspace, add_member):
        u = make_user()
        own = make_workspace(u)
        other = make_workspace(u)
        u.workspace_id = own.id
        db.session.commit()
        res = tenant_service.resolve_tenant(resolve_identity(u.id), other.id)
        assert res.workspace_id == own.id
        assert res.source == tenant_service.TENANT_SOURCE_EXPLICIT

    def test_explicit_unusable_falls_through(self, make_user, make_workspace, add_member):
        u = make_user()
        dead = make_workspace(u, active=False)
        live = make_workspace(u)
        add_member(live, u)
        u.workspace_id = dead.id
        db.session.commit()
        res = tenant_service.resolve_tenant(resolve_identity(u.id))
        assert res.workspace_id == live.id
        assert res.source == tenant_service.TENANT_SOURCE_MEMBERSHIP

    def test_token_hint_owner(self, make_user, make_workspace):
        u = make_user()
        ws = make_workspace(u)
        res = tenant_service.resolve_tenant(resolve_identity(u.id), ws.id)
        assert res.workspace_id == ws.id
        assert res.source == tenant_service.TENANT_SOURCE_TOKEN

    def test_token_hint_member(self, make_user, make_workspace, add_member):
        owner, u = make_user(), make_user()
        ws = make_workspace(owner)
        add_member(ws, u)
        res = tenant_service.resolve_tenant(resolve_identity(u.id), ws.id)
        assert res.source == tenant_service.TENANT_SOURCE_TOKEN

    def test_token_hint_stranger_ignored(self, make_user, make_workspace):
        owner, u = make_user(), make_user()
        ws = make_workspace(owner)
        res = tenant_service.resolve_tenant(resolve_identity(u.id), ws.id)
        assert res.workspace is None
        assert res.source == tenant_service.TENANT_SOURCE_NONE

    def test_token_hint_suspended_member_ignored(self, make_user, make_workspace, add_member):
        owner, u = make_user(), make_user()
        ws = make_workspace(owner)
        add_member(ws, u, status="inactive")
        assert tenant_service.resolve_tenant(resolve_identity(u.id), ws.id).workspace is None

    def test_latest_membership(self, make_user, make_workspace, add_member):
        owner, u = make_user(), make_user()
        older = make_workspace(owner)
        newer = make_workspace(owner)
        now = datetime.now(timezone.utc)
        add_member(older, u, joined_at=now - timedelta(days=10))
        add_member(newer, u, joined_at=now - timedelta(days=1))
        res = tenant_service.resolve_tenant(resolve_identity(u.id))
        assert res.workspace_id == newer.id

    def test_membership_skips_inactive_workspace(self, make_user, make_workspace, add_member):
        owner, u = make_user(), make_user()
        live = make_workspace(owner)
        suspended = make_workspace(owner, status="suspended")
        now = datetime.now(timezone.utc)
        add_member(live, u, joined_at=now - timedelta(days=10))
        add_member(suspended, u, joined_at=now)
        assert tenant_service.resolve_tenant(resolve_identity(u.id)).workspace_id == live.id

    def test_no_tenant_is_not_an_error(self, make_user):
        u = make_user()
        res = tenant_service.resolve_tenant(resolve_identity(u.id))
        assert res.workspace is None
        assert res.workspace_id is None

    def test_snapshot_trial_end_is_utc_aware(self, make_user, make_workspace):
        u = make_user()
        ws = make_workspace(u, trial_ends_at=next_week())
        snap = tenant_service.resolve_tenant(resolve_identity(u.id), ws.id).workspace
        assert snap.trial_ends_at.tzinfo is not None
        assert snap.to_dict()["id"] == ws.id


# ═════════════════════════════════════════════════════════════════════════════
# BLOCK 2: Subscription gate
# ═════════════════════════════════════════════════════════════════════════════


class TestSubscriptionGate:
    def test_no_workspace(self):
        assert tenant_service.evaluate_subscription(None).allowed

    def test_subscription_attached(self, make_user, make_workspace):
        ws = make_workspace(make_user(), subscription_id="sub_123", trial_ends_at=yesterday())
        assert tenant_service.evaluate_subscription(ws).allowed

    def test_legacy_workspace_without_trial(self, make_user, make_workspace):
        ws = make_workspace(make_user(), trial_ends_at=None)
        assert tenant_service.evaluate_subscription(ws).allowed

    def test_trial_running(self, make_user, make_workspace):
        ws = make_workspace(make_user(), trial_ends_at=next_week())
        assert tenant_service.evaluate_subscription(ws).allowed

    def test_trial_ended(self, make_user, make_workspace):
        ws = make_workspace(make_user(), trial_ends_at=yesterday())
        gate = tenant_service.evaluate_subscription(ws)
        assert not gate.allowed
        assert gate.reason == tenant_service.TRIAL_EXPIRED
        assert gate.trial_ends_at is not None

    def test_boundary_is_expired(self, make_user, make_workspace):
        end = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        ws = make_workspace(make_user(), trial_ends_at=end)
        assert not tenant_service.evaluate_subscription(ws, now=end).allowed
        assert tenant_service.evaluate_subscription(ws, now=end - timedelta(seconds=1)).allowed

    def test_paid_plan_without_subscription_still_gated(self, make_user, make_workspace):
        ws = make_workspace(make_user(), plan_type="premium", trial_ends_at=yesterday())
        assert not tenant_service.evaluate_subscription(ws).allowed


# ═════════════════════════════════════════════════════════════════════════════
# BLOCK 3: Project availability + listing
# ═════════════════════════════════════════════════════════════════════════════


class TestProjectAvailability:
    def test_live_project(self, make_user, make_workspace):
        assert tenant_service.is_project_available(make_workspace(make_user()))

    def test_soft_deleted_project(self, make_user, make_workspace):
        ws = make_workspace(make_user())
        db.session.get(Project, ws.project_id).soft_delete()
        db.session.commit()
        assert not tenant_service.is_project_available(ws)

    def test_restored_project(self, make_user, make_workspace):
        ws = make_workspace(make_user())
        project = db.session.get(Project, ws.project_id)
        project.soft_delete()
        db.session.commit()
        project.restore()
        db.session.commit()
        assert tenant_service.is_project_available(ws)

    def test_no_project(self, make_user, make_workspace):
        assert not tenant_service.is_project_available(make_workspace(make_user(), project_id=None))

    def test_query_available_hides_deleted(self, make_project):
        live, dead = make_project(), make_project()
        dead.soft_delete()
        db.session.commit()
        assert dead.is_deleted
        assert not live.is_deleted
        assert [p.id for p in Project.query_available().all()] == [live.id]


class TestListWorkspaces:
    def test_owned_and_member(self, make_user, make_workspace, add_member):
        owner, u = make_user(), make_user()
        mine = make_workspace(u)
        joined = make_workspace(owner)
        make_workspace(owner)
        add_member(joined, u)
        assert tenant_service.list_workspace_ids_for_user(u.id) == sorted([mine.id, joined.id])

    def test_excludes_unusable(self, make_user, make_workspace):
        u = make_user()
        make_workspace(u, active=False)
        assert tenant_service.list_workspace_ids_for_user(u.id) == []
