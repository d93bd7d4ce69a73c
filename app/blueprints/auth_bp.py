"""
Auth Blueprint — credential issuance and the caller's resolved context.

Endpoints:
  POST /api/v1/auth/login  — username or email + password → bearer token
  GET  /api/v1/auth/me     — current user, roles, permissions and workspace
"""

import logging
from datetime import datetime, timezone

import sqlalchemy as sa
from flask import Blueprint, jsonify, request

from app.middleware.jwt_auth import current_token_settings, current_user_schema
from app.middleware.permission_required import current_context, require_auth
from app.models import db
from app.models.auth import User
from app.services.identity_service import resolve_identity
from app.services.jwt_service import generate_token
from app.services.tenant_service import resolve_tenant
from app.utils.crypto import verify_password
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with username (or email) + password, return a bearer token.

    Body: { "username": "...", "password": "..." }

    The token carries the caller's resolved workspace as a hint so later
    requests land in the same tenant.
    """
    data = request.get_json(silent=True) or {}
    login_name = (data.get("username") or data.get("email") or "").strip()
    password = data.get("password") or ""

    if not login_name or not password:
        return api_error(E.VALIDATION_REQUIRED, "Username and password are required")

    row = db.session.execute(
        sa.select(User.id, User.password_hash).where(
            sa.or_(User.username == login_name, User.email == login_name),
            User.is_active.is_(True),
        )
    ).first()
    if row is None or not verify_password(password, row.password_hash):
        logger.warning("Failed login for %r", login_name)
        return api_error(E.INVALID_LOGIN, "Invalid credentials")

    schema = current_user_schema()
    identity = resolve_identity(row.id, schema)

    if schema.has_email_verified and not identity.is_super_admin and not identity.email_verified:
        return api_error(
            E.EMAIL_NOT_VERIFIED,
            "Please verify your email address before logging in.",
            details={"requires_verification": True},
        )

    db.session.execute(
        sa.update(User).where(User.id == row.id).values(last_login_at=datetime.now(timezone.utc))
    )
    db.session.commit()

    tenant = resolve_tenant(identity)
    settings = current_token_settings()
    token = generate_token(settings, identity.user_id, tenant.workspace_id)
    logger.info("User %s logged in (workspace=%s)", identity.user_id, tenant.workspace_id)

    return jsonify({
        "token": token,
        "token_type": "Bearer",
        "expires_in": settings.expires_in,
        "user": identity.to_dict(),
        "workspace": tenant.workspace.to_dict() if tenant.workspace else None,
    }), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    return jsonify(current_context().to_dict()), 200
