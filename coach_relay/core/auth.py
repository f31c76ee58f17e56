"""Caller identity and admin authentication.

End users arrive with a session token issued by the hosted identity provider
(``Authorization: Bearer <jwt>``). The token is verified locally with the
provider's public key; its subject becomes the caller identity and its
metadata carries the role.

Admins may also sign in with the shared admin password, which yields a
short-lived token signed by this service.

Design principles:
- Pure verification functions, thin FastAPI dependencies on top
- Configuration-driven: keys and secrets come from AUTH_* settings
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any

from fastapi import Depends, Header
from jose import JWTError, jwt
from passlib.context import CryptContext

from coach_relay.core.config import AuthSettings, SettingsDep, settings, split_csv
from coach_relay.core.errors import AuthenticationAppError, AuthorizationAppError
from coach_relay.core.logging import hash_for_log

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
ADMIN_TOKEN_ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class Identity:
    """Authenticated caller.

    Attributes:
        user_id: Stable identifier from the identity provider (token subject).
        role: Role claim, "user" when absent.
        claims: Full verified claim set.
    """

    user_id: str
    role: str = "user"
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @property
    def display_name(self) -> str:
        for claim in ("name", "first_name", "given_name", "username"):
            value = self.claims.get(claim)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return self.user_id

    @property
    def email(self) -> str | None:
        value = self.claims.get("email")
        return value if isinstance(value, str) else None


def resolve_role(claims: dict[str, Any]) -> str:
    """Pick the role from provider metadata, falling back to a top-level claim."""
    for container in ("metadata", "publicMetadata", "public_metadata"):
        nested = claims.get(container)
        if isinstance(nested, dict) and isinstance(nested.get("role"), str):
            return nested["role"]
    role = claims.get("role")
    return role if isinstance(role, str) else "user"


def parse_bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def decode_session_token(token: str, auth_settings: AuthSettings | None = None) -> Identity:
    """Verify an identity-provider session token.

    Raises:
        AuthenticationAppError: If verification is not configured or the token
            is invalid, expired or has no subject.
    """
    cfg = auth_settings or settings.auth
    if not cfg.session_jwt_key:
        raise AuthenticationAppError(
            code="session_verification_not_configured",
            message="Session token verification is not configured",
            details={"hint": "Set AUTH_SESSION_JWT_KEY"},
        )

    options = {"verify_aud": cfg.session_jwt_audience is not None}
    try:
        claims = jwt.decode(
            token,
            cfg.session_jwt_key,
            algorithms=split_csv(cfg.session_jwt_algorithms),
            audience=cfg.session_jwt_audience,
            issuer=cfg.session_jwt_issuer,
            options=options,
        )
    except JWTError as exc:
        raise AuthenticationAppError(
            code="invalid_session_token",
            message="Unauthorized: invalid or expired session",
        ) from exc

    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject:
        raise AuthenticationAppError(
            code="invalid_session_token",
            message="Unauthorized: session has no subject",
        )
    return Identity(user_id=subject, role=resolve_role(claims), claims=claims)


def create_admin_token(auth_settings: AuthSettings | None = None, *, now: datetime | None = None) -> str:
    """Sign a short-lived admin token.

    Raises:
        AuthenticationAppError: If no signing secret is configured.
    """
    cfg = auth_settings or settings.auth
    if not cfg.admin_jwt_secret:
        raise AuthenticationAppError(
            code="admin_auth_not_configured",
            message="Authentication error",
            details={"hint": "Set AUTH_ADMIN_JWT_SECRET"},
        )
    issued_at = now or datetime.now(timezone.utc)
    claims = {
        "sub": ADMIN_ROLE,
        "role": ADMIN_ROLE,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=cfg.admin_token_ttl_minutes),
    }
    return jwt.encode(claims, cfg.admin_jwt_secret, algorithm=ADMIN_TOKEN_ALGORITHM)


def decode_admin_token(token: str, auth_settings: AuthSettings | None = None) -> Identity | None:
    """Return the admin identity for a token this service issued, else None."""
    cfg = auth_settings or settings.auth
    if not cfg.admin_jwt_secret:
        return None
    try:
        claims = jwt.decode(token, cfg.admin_jwt_secret, algorithms=[ADMIN_TOKEN_ALGORITHM])
    except JWTError:
        return None
    if claims.get("role") != ADMIN_ROLE:
        return None
    return Identity(user_id=str(claims.get("sub") or ADMIN_ROLE), role=ADMIN_ROLE, claims=claims)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_admin_password(password: str, auth_settings: AuthSettings | None = None) -> bool:
    """Check a sign-in attempt against the configured admin credential.

    The bcrypt hash wins when present; the plaintext setting is only a
    fallback. With neither configured, every attempt fails.
    """
    cfg = auth_settings or settings.auth
    if cfg.admin_password_hash:
        try:
            return pwd_context.verify(password, cfg.admin_password_hash)
        except ValueError:
            logger.error("auth.admin_hash_malformed")
            return False
    if cfg.admin_password:
        return hmac.compare_digest(password.encode(), cfg.admin_password.encode())
    return False


async def get_current_identity(
    app_settings: SettingsDep,
    authorization: Annotated[str | None, Header()] = None,
) -> Identity:
    """FastAPI dependency resolving the end-user identity.

    Raises:
        AuthenticationAppError: 401 when the token is missing or invalid.
    """
    token = parse_bearer_token(authorization)
    if token is None:
        logger.info("auth.missing_token")
        raise AuthenticationAppError(
            code="missing_session_token",
            message="Unauthorized: not signed in",
        )

    identity = decode_session_token(token, app_settings.auth)
    logger.debug("auth.identified", extra={"user_hash": hash_for_log(identity.user_id)})
    return identity


async def require_admin(
    app_settings: SettingsDep,
    authorization: Annotated[str | None, Header()] = None,
) -> Identity:
    """FastAPI dependency admitting admin session tokens or issued admin tokens.

    Raises:
        AuthenticationAppError: 401 when not signed in.
        AuthorizationAppError: 403 when signed in without the admin role.
    """
    token = parse_bearer_token(authorization)
    if token is None:
        raise AuthenticationAppError(
            code="missing_session_token",
            message="Unauthorized: not signed in",
        )

    admin = decode_admin_token(token, app_settings.auth)
    if admin is not None:
        return admin

    identity = decode_session_token(token, app_settings.auth)
    if not identity.is_admin:
        logger.warning(
            "auth.admin_forbidden",
            extra={"user_hash": hash_for_log(identity.user_id), "role": identity.role},
        )
        raise AuthorizationAppError(
            code="admin_required",
            message="Forbidden: admin access required",
        )
    return identity


CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
AdminIdentity = Annotated[Identity, Depends(require_admin)]
