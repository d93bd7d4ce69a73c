"""
Access Service — the per-request AuthorizationContext and the access decision point.

Pipeline (leaf first):
    verify_token → resolve_identity → resolve_role_ids → resolve_permissions
    → resolve_tenant                                   → AuthorizationContext

Every ``require_*`` check is a pure function of the context (plus the
current rows it has to look at) and returns a ``Decision`` instead of
raising, so callers can choose between a 404 and a 403 when they want to
hide existence.  ``decision.raise_if_denied()`` turns a denial into the
matching typed exception from ``app.core.exceptions``.

Order when both apply: ``require_workspace_access`` first, then the
module permission check.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from app.core.exceptions import Forbidden, NotFoundError, ResourceGone, TrialExpired
from app.core.grants import Action, Module, PermissionGrant, grant
from app.services import permission_service, tenant_service
from app.services.identity_service import FULL_SCHEMA, Identity, UserSchema, resolve_identity
from app.services.jwt_service import TokenSettings, verify_token
from app.services.tenant_service import WorkspaceSnapshot

logger = logging.getLogger(__name__)

# Legacy role labels allowed to see every client's records.
STAFF_ROLES = ("admin", "po", "manager", "accountant")
CLIENT_ROLE = "client"

PROJECT_UNAVAILABLE = "project_unavailable"


@dataclass(frozen=True)
class AuthorizationContext:
    identity: Identity
    role_ids: tuple[int, ...]
    role_names: tuple[str, ...]
    grants: frozenset[PermissionGrant]
    workspace: WorkspaceSnapshot | None
    tenant_source: str
    warnings: tuple[str, ...] = ()
    token_id: str | None = None

    @property
    def user_id(self) -> int:
        return self.identity.user_id

    @property
    def is_super_admin(self) -> bool:
        return self.identity.is_super_admin

    @property
    def has_all_access(self) -> bool:
        """Legacy ``admin`` label or a resolved all-access role."""
        if self.identity.legacy_role in permission_service.ALL_ACCESS_ROLES:
            return True
        return any(name in permission_service.ALL_ACCESS_ROLES for name in self.role_names)

    @property
    def workspace_id(self) -> int | None:
        return self.workspace.id if self.workspace else None

    def has_grant(self, module, action) -> bool:
        return grant(module, action) in self.grants

    def to_dict(self) -> dict:
        return {
            "user": self.identity.to_dict(),
            "roles": list(self.role_names),
            "permissions": sorted(g.key for g in self.grants),
            "workspace": self.workspace.to_dict() if self.workspace else None,
            "tenant_source": self.tenant_source,
            "is_super_admin": self.is_super_admin,
        }


def build_authorization_context(
    token: str,
    settings: TokenSettings,
    schema: UserSchema = FULL_SCHEMA,
) -> AuthorizationContext:
    """
    Run the full resolution pipeline for a raw bearer token.

    Raises any ``Unauthenticated`` subclass; never falls back to anonymous.
    """
    credential = verify_token(settings, token)
    identity = resolve_identity(credential.subject, schema)
    roles = permission_service.resolve_role_ids(identity)
    grants = permission_service.resolve_permissions(roles.role_ids)
    tenant = tenant_service.resolve_tenant(identity, credential.workspace_hint)

    return AuthorizationContext(
        identity=identity,
        role_ids=roles.role_ids,
        role_names=roles.role_names,
        grants=frozenset(grants),
        workspace=tenant.workspace,
        tenant_source=tenant.source,
        warnings=(roles.warning,) if roles.warning else (),
        token_id=credential.token_id,
    )


# ═══════════════════════════════════════════════════════════════
# Decisions
# ═══════════════════════════════════════════════════════════════
class Outcome(str, Enum):
    ALLOWED = "allowed"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Decision:
    outcome: Outcome
    reason: str | None = None
    details: dict = field(default_factory=dict)

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOWED

    def __bool__(self) -> bool:
        return self.allowed

    def raise_if_denied(self) -> None:
        if self.outcome is Outcome.ALLOWED:
            return
        if self.outcome is Outcome.NOT_FOUND:
            if self.reason == PROJECT_UNAVAILABLE:
                raise ResourceGone(workspace_id=self.details.get("workspace_id"))
            raise NotFoundError(
                resource=self.details.get("resource", "Resource"),
                resource_id=self.details.get("resource_id"),
            )
        if self.reason == tenant_service.TRIAL_EXPIRED:
            raise TrialExpired(
                self.details.get("trial_ends_at"), self.details.get("workspace_id")
            )
        raise Forbidden(self.reason, self.details.get("message"), _public_details(self.details))


def _public_details(details: dict) -> dict:
    return {k: v for k, v in details.items() if k != "message"}


ALLOW = Decision(Outcome.ALLOWED)


def _forbid(ctx: AuthorizationContext, reason: str, message: str, **details) -> Decision:
    logger.warning(
        "Access denied: user=%s reason=%s %s", ctx.user_id, reason, message,
    )
    return Decision(Outcome.FORBIDDEN, reason, {"message": message, **details})


def _not_found(ctx: AuthorizationContext, reason: str, **details) -> Decision:
    logger.warning(
        "Access denied: user=%s reason=%s details=%s", ctx.user_id, reason, details,
    )
    return Decision(Outcome.NOT_FOUND, reason, details)


def _normalize_pairs(pairs) -> list[PermissionGrant]:
    result = []
    for p in pairs:
        if isinstance(p, PermissionGrant):
            result.append(p)
        else:
            module, action = p
            result.append(grant(module, action))
    return result


# ── Role / permission checks ─────────────────────────────────────────
def require_role(ctx: AuthorizationContext, *roles: str) -> Decision:
    """Allowed iff the legacy role label is one of ``roles``."""
    if ctx.identity.legacy_role in roles:
        return ALLOW
    return _forbid(
        ctx, "role", "Insufficient role",
        required_roles=list(roles), current_role=ctx.identity.legacy_role,
    )


def require_permission(ctx: AuthorizationContext, module: Module | str, action: Action | str) -> Decision:
    if ctx.is_super_admin or ctx.has_all_access:
        return ALLOW
    wanted = grant(module, action)
    if wanted in ctx.grants:
        return ALLOW
    return _forbid(
        ctx, "permission", f"Missing permission {wanted.key}", required=[wanted.key],
    )


def require_all_permissions(ctx: AuthorizationContext, pairs) -> Decision:
    """Allowed iff every pair in ``pairs`` is granted."""
    if ctx.is_super_admin or ctx.has_all_access:
        return ALLOW
    wanted = _normalize_pairs(pairs)
    missing = [g.key for g in wanted if g not in ctx.grants]
    if not missing:
        return ALLOW
    return _forbid(
        ctx, "permission", f"Missing permissions {', '.join(missing)}", required=missing,
    )


def require_any_permission(ctx: AuthorizationContext, pairs) -> Decision:
    """Allowed iff at least one pair in ``pairs`` is granted."""
    if ctx.is_super_admin or ctx.has_all_access:
        return ALLOW
    wanted = _normalize_pairs(pairs)
    if any(g in ctx.grants for g in wanted):
        return ALLOW
    keys = [g.key for g in wanted]
    return _forbid(
        ctx, "permission", f"Requires one of {', '.join(keys)}", required=keys,
    )


# ── Relationship checks ──────────────────────────────────────────────
def require_workspace_access(
    ctx: AuthorizationContext,
    workspace_id: int,
    *,
    mutation: bool = True,
    now: datetime | None = None,
) -> Decision:
    """
    Workspace relationship check.

    Super-admins always pass, even for ids that do not exist.  Otherwise the
    workspace must be usable and the caller must own it or hold an active
    membership.  Mutations additionally require the underlying project to
    still exist and the subscription gate to pass.
    """
    if ctx.is_super_admin:
        return ALLOW

    ws = tenant_service.get_usable_workspace(workspace_id)
    if ws is None:
        return _not_found(ctx, "workspace", resource="Workspace", resource_id=workspace_id)

    if not tenant_service.is_owner_or_active_member(ctx.user_id, ws):
        return _forbid(
            ctx, "workspace", "You do not have access to this workspace",
            workspace_id=workspace_id,
        )

    if not mutation:
        return ALLOW

    if not tenant_service.is_project_available(ws):
        return _not_found(ctx, PROJECT_UNAVAILABLE, workspace_id=workspace_id)

    gate = tenant_service.evaluate_subscription(ws, now)
    if not gate.allowed:
        return _forbid(
            ctx, gate.reason, "Trial expired",
            workspace_id=workspace_id, trial_ends_at=gate.trial_ends_at,
        )
    return ALLOW


def require_client_access(ctx: AuthorizationContext, client_id: int | None) -> Decision:
    """Staff roles see every client; a ``client`` user only their own."""
    if ctx.is_super_admin:
        return ALLOW
    label = ctx.identity.legacy_role
    if label in STAFF_ROLES or ctx.has_all_access:
        return ALLOW
    if label == CLIENT_ROLE and client_id is not None and ctx.identity.client_id == client_id:
        return ALLOW
    return _forbid(ctx, "client", "You do not have access to this client", client_id=client_id)


def list_accessible_workspace_ids(ctx: AuthorizationContext) -> list[int] | None:
    """Workspace ids the caller may see; ``None`` means unrestricted (super-admin)."""
    if ctx.is_super_admin:
        return None
    return tenant_service.list_workspace_ids_for_user(ctx.user_id)
