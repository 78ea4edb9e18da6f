"""Session token codec.

The two identity slots (ordinary session, admin session) arrive as signed JWT
bearer tokens issued by the external session collaborator. This module only
decodes them into ``StoredIdentity`` records; ``create_session_token`` exists
for tooling and tests.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from inquiry_service.config import settings
from inquiry_service.models.domain import RoleName
from inquiry_service.services.identity import StoredIdentity

logger = logging.getLogger("inquiries.security")


def create_session_token(
    identity: StoredIdentity,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.session_token_expire_minutes)
    )
    claims = {
        "sub": str(identity.id),
        "role": identity.role.value,
        "email_verified": bool(identity.email_verified),
        "approved": bool(identity.approved),
        "exp": expire,
    }
    if identity.super_admin:
        claims["super_admin"] = True
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_session_token(token: str) -> Optional[dict]:
    """Decode a session JWT; returns the claims or None if invalid/expired."""

    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None


def stored_identity_from_token(token: Optional[str]) -> Optional[StoredIdentity]:
    if not token:
        return None

    claims = decode_session_token(token)
    if not claims:
        logger.info("session_token_rejected")
        return None

    try:
        identity_id = int(claims["sub"])
        role = RoleName(str(claims["role"]).strip().lower())
    except (KeyError, TypeError, ValueError):
        logger.info("session_token_malformed_claims")
        return None

    return StoredIdentity(
        id=identity_id,
        role=role,
        email_verified=bool(claims.get("email_verified", False)),
        approved=bool(claims.get("approved", False)),
        super_admin=bool(claims.get("super_admin", False)),
    )


def extract_bearer(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    s = str(raw).strip()
    if not s:
        return None
    if s.lower().startswith("bearer "):
        return s.split(" ", 1)[1].strip() or None
    return s
