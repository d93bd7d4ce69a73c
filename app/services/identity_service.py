"""
Identity Service — load the user behind a verified credential.

Older databases may lack the late ``users`` columns (``client_id``,
``workspace_id``, ``is_super_admin``, ``email_verified``).  Instead of
catching "no such column" on every request, ``detect_user_schema`` inspects
the live table once at startup and ``resolve_identity`` only selects what is
there.  Missing optional attributes degrade to ``None`` / ``False``.
"""

import logging
from dataclasses import dataclass

import sqlalchemy as sa

from app.core.exceptions import IdentityDeactivated, IdentityNotFound
from app.models import db
from app.models.auth import OPTIONAL_USER_COLUMNS, User

logger = logging.getLogger(__name__)

_BASE_COLUMNS = ("id", "username", "email", "full_name", "role", "is_active")


@dataclass(frozen=True)
class UserSchema:
    """Which optional ``users`` columns exist in the connected database."""

    has_client_id: bool = True
    has_workspace_id: bool = True
    has_is_super_admin: bool = True
    has_email_verified: bool = True

    def present_columns(self) -> tuple[str, ...]:
        return tuple(c for c in OPTIONAL_USER_COLUMNS if getattr(self, f"has_{c}"))


FULL_SCHEMA = UserSchema()


@dataclass(frozen=True)
class Identity:
    user_id: int
    username: str
    email: str
    full_name: str | None
    legacy_role: str | None
    is_active: bool
    client_id: int | None = None
    workspace_id: int | None = None
    is_super_admin: bool = False
    email_verified: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.user_id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.legacy_role,
            "client_id": self.client_id,
            "workspace_id": self.workspace_id,
            "is_super_admin": self.is_super_admin,
            "email_verified": self.email_verified,
        }


def detect_user_schema(engine) -> UserSchema:
    """Inspect the ``users`` table once and record which late columns exist.

    When the table does not exist yet (fresh database before ``create_all``)
    the full model schema is assumed.
    """
    inspector = sa.inspect(engine)
    if not inspector.has_table(User.__tablename__):
        return FULL_SCHEMA
    existing = {c["name"] for c in inspector.get_columns(User.__tablename__)}
    schema = UserSchema(**{f"has_{c}": c in existing for c in OPTIONAL_USER_COLUMNS})
    missing = [c for c in OPTIONAL_USER_COLUMNS if c not in existing]
    if missing:
        logger.warning("users table is missing optional columns: %s", ", ".join(missing))
    return schema


def resolve_identity(user_id: int, schema: UserSchema = FULL_SCHEMA) -> Identity:
    """
    Load the identity for ``user_id``.

    Raises:
        IdentityNotFound: no such user.
        IdentityDeactivated: user exists but ``is_active`` is false.
    """
    columns = _BASE_COLUMNS + schema.present_columns()
    stmt = sa.select(*(getattr(User, c) for c in columns)).where(User.id == user_id)
    row = db.session.execute(stmt).mappings().first()
    if row is None:
        raise IdentityNotFound(user_id)
    if not row["is_active"]:
        raise IdentityDeactivated(user_id)

    return Identity(
        user_id=row["id"],
        username=row["username"],
        email=row["email"],
        full_name=row["full_name"],
        legacy_role=row["role"] or None,
        is_active=True,
        client_id=row.get("client_id"),
        workspace_id=row.get("workspace_id"),
        is_super_admin=bool(row.get("is_super_admin") or False),
        email_verified=bool(row.get("email_verified") or False),
    )
