"""
JWT Service — bearer token issuance and verification.

Token lifetime: 7 days (configurable via JWT_EXPIRES)
Algorithm:      HS256

Token payload:
{
    "sub": "<user_id>",
    "workspace_id": <workspace_id>,     # optional tenant hint
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>,
    "iss": <issuer>                     # only when JWT_ISSUER is set
}

The signing secret and lifetime live in an immutable ``TokenSettings`` built
once by ``create_app`` (``settings_from_config``) and kept in
``app.extensions["access_engine"]``; nothing here reads process globals.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from app.core.exceptions import CredentialExpired, InvalidCredential, MissingCredential

# ─── Defaults ────────────────────────────────────────────────
DEFAULT_EXPIRES = 604800   # 7 days
ALGORITHM = "HS256"
TOKEN_TYPE = "access"


@dataclass(frozen=True)
class TokenSettings:
    secret: str
    algorithm: str = ALGORITHM
    expires_in: int = DEFAULT_EXPIRES
    issuer: str | None = None

    def __repr__(self) -> str:
        return (
            f"TokenSettings(secret=<redacted>, algorithm={self.algorithm!r}, "
            f"expires_in={self.expires_in}, issuer={self.issuer!r})"
        )


@dataclass(frozen=True)
class VerifiedCredential:
    """Claims of a token whose signature and expiry have been checked."""

    subject: int
    workspace_hint: int | None
    token_id: str | None
    issued_at: datetime | None
    expires_at: datetime


def settings_from_config(config) -> TokenSettings:
    """Build ``TokenSettings`` from a Flask config mapping."""
    secret = config.get("JWT_SECRET_KEY") or config.get("SECRET_KEY")
    if not secret:
        raise RuntimeError("JWT_SECRET_KEY or SECRET_KEY must be configured")
    return TokenSettings(
        secret=secret,
        algorithm=config.get("JWT_ALGORITHM", ALGORITHM),
        expires_in=int(config.get("JWT_EXPIRES", DEFAULT_EXPIRES)),
        issuer=config.get("JWT_ISSUER"),
    )


# ═══════════════════════════════════════════════════════════════
# Token Generation
# ═══════════════════════════════════════════════════════════════
def generate_token(
    settings: TokenSettings,
    user_id: int,
    workspace_id: int | None = None,
    now: datetime | None = None,
) -> str:
    """Issue a signed bearer token; every call gets a fresh ``jti``."""
    now = now or datetime.now(timezone.utc)
    payload = {
        # PyJWT 2.10+ rejects non-string "sub"
        "sub": str(user_id),
        "type": TOKEN_TYPE,
        "iat": now,
        "exp": now + timedelta(seconds=settings.expires_in),
        "jti": str(uuid.uuid4()),
    }
    if workspace_id is not None:
        payload["workspace_id"] = workspace_id
    if settings.issuer:
        payload["iss"] = settings.issuer
    return jwt.encode(payload, settings.secret, algorithm=settings.algorithm)


# ═══════════════════════════════════════════════════════════════
# Token Verification
# ═══════════════════════════════════════════════════════════════
def verify_token(settings: TokenSettings, token: str) -> VerifiedCredential:
    """
    Verify signature, expiry and claim shape.

    Raises:
        CredentialExpired: signature valid but ``exp`` has passed.
        InvalidCredential: anything else (malformed, bad signature, wrong
            type or issuer, missing/non-integer subject).
    """
    if not token:
        raise InvalidCredential()

    options = {"require": ["exp", "sub"]}
    try:
        payload = jwt.decode(
            token,
            settings.secret,
            algorithms=[settings.algorithm],
            issuer=settings.issuer,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise CredentialExpired() from None
    except jwt.InvalidTokenError as exc:
        raise InvalidCredential(f"Invalid token: {exc}") from None

    if payload.get("type", TOKEN_TYPE) != TOKEN_TYPE:
        raise InvalidCredential(f"Expected {TOKEN_TYPE} token, got {payload.get('type')}")

    try:
        subject = int(payload["sub"])
    except (TypeError, ValueError):
        raise InvalidCredential("Invalid token subject") from None

    hint = payload.get("workspace_id")
    if hint is not None:
        try:
            hint = int(hint)
        except (TypeError, ValueError):
            raise InvalidCredential("Invalid workspace claim") from None

    iat = payload.get("iat")
    return VerifiedCredential(
        subject=subject,
        workspace_hint=hint,
        token_id=payload.get("jti"),
        issued_at=datetime.fromtimestamp(iat, tz=timezone.utc) if iat is not None else None,
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


# ═══════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════
def extract_bearer(header: str | None) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` header value."""
    if not header:
        raise MissingCredential()
    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise InvalidCredential("Authorization header must be 'Bearer <token>'")
    return token.strip()
