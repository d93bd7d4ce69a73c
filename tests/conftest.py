"""
Shared pytest fixtures for the Access Engine test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - token_settings: TokenSettings built by create_app
    - seeded_roles: default roles + permission catalogue (role name → Role)
    - make_user / make_project / make_workspace / add_member / make_item / make_link:
      row factories
    - auth_header: build an ``Authorization: Bearer`` header for a user
"""

from datetime import datetime, timezone
from itertools import count

import pytest

from app import create_app
from app.models import db as _db
from app.models.auth import Role, User
from app.models.work_item import WorkItem, WorkItemLink
from app.models.workspace import Project, Workspace, WorkspaceMember
from app.services.jwt_service import generate_token
from app.services.role_seed_service import seed_all
from app.utils.crypto import hash_password

TEST_PASSWORD = "Secret123!"

_seq = count(1)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def token_settings(app):
    return app.extensions["access_engine"]["token_settings"]


@pytest.fixture()
def seeded_roles():
    """Seed the default roles and permissions; return {name: Role}."""
    seed_all()
    return {r.name: r for r in Role.query.all()}


# ── Row factories ────────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    def _make(role="viewer", **kw):
        n = next(_seq)
        defaults = {
            "username": f"user{n}",
            "email": f"user{n}@example.com",
            "full_name": f"User {n}",
            "password_hash": hash_password(TEST_PASSWORD, rounds=4),
            "role": role,
            "is_active": True,
            "email_verified": True,
        }
        defaults.update(kw)
        user = User(**defaults)
        _db.session.add(user)
        _db.session.commit()
        return user
    return _make


@pytest.fixture()
def make_project():
    def _make(**kw):
        defaults = {"name": f"Project {next(_seq)}"}
        defaults.update(kw)
        project = Project(**defaults)
        _db.session.add(project)
        _db.session.commit()
        return project
    return _make


@pytest.fixture()
def make_workspace(make_project):
    """Workspace bound to a fresh live project unless ``project_id`` is given."""
    def _make(owner, **kw):
        n = next(_seq)
        if "project_id" not in kw:
            kw["project_id"] = make_project().id
        defaults = {
            "name": f"Workspace {n}",
            "slug": f"workspace-{n}",
            "owner_id": owner.id,
            "plan_type": "free",
            "status": "active",
            "active": True,
        }
        defaults.update(kw)
        ws = Workspace(**defaults)
        _db.session.add(ws)
        _db.session.commit()
        return ws
    return _make


@pytest.fixture()
def add_member():
    def _add(workspace, user, role="member", status="active", joined_at=None):
        member = WorkspaceMember(
            workspace_id=workspace.id,
            user_id=user.id,
            role=role,
            status=status,
            joined_at=joined_at or datetime.now(timezone.utc),
        )
        _db.session.add(member)
        _db.session.commit()
        return member
    return _add


@pytest.fixture()
def make_item():
    def _make(workspace, title=None):
        item = WorkItem(workspace_id=workspace.id, title=title or f"Task {next(_seq)}")
        _db.session.add(item)
        _db.session.commit()
        return item
    return _make


@pytest.fixture()
def make_link():
    """Insert a link row directly, bypassing validation."""
    def _make(source, target, link_type="blocks"):
        link = WorkItemLink(source_id=source.id, target_id=target.id, link_type=link_type)
        _db.session.add(link)
        _db.session.commit()
        return link
    return _make


@pytest.fixture()
def auth_header(token_settings):
    def _header(user, workspace=None):
        ws_id = workspace.id if workspace is not None else None
        token = generate_token(token_settings, user.id, ws_id)
        return {"Authorization": f"Bearer {token}"}
    return _header

