from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from inquiry_service.models.domain import RoleName


@dataclass(frozen=True)
class StoredIdentity:
    """Content of one session slot as persisted by the session collaborator."""

    id: int
    role: RoleName
    email_verified: bool = False
    approved: bool = False
    super_admin: bool = False


@dataclass(frozen=True)
class Principal:
    id: int
    role: RoleName
    is_super_admin: bool = False
    email_verified: bool = False
    approved: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.admin


def resolve(
    stored_ordinary: Optional[StoredIdentity],
    stored_admin: Optional[StoredIdentity],
    *,
    super_admin_id: int,
) -> Optional[Principal]:
    """Merge the two session slots into the effective principal.

    The admin slot wins when both are present; a client holding a regular
    browsing session and an elevated admin session always acts as admin.
    Returns None for anonymous requests.
    """

    source = stored_admin if stored_admin is not None else stored_ordinary
    if source is None:
        return None

    is_super_admin = source.role == RoleName.admin and (
        source.super_admin or int(source.id) == int(super_admin_id)
    )
    return Principal(
        id=int(source.id),
        role=source.role,
        is_super_admin=is_super_admin,
        email_verified=bool(source.email_verified),
        approved=bool(source.approved),
    )
