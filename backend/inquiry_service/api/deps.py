from typing import Optional

from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from inquiry_service.config import settings
from inquiry_service.core.errors import AuthorizationError
from inquiry_service.core.observability import request_id_for
from inquiry_service.core.security import extract_bearer, stored_identity_from_token
from inquiry_service.database import get_db
from inquiry_service.models import RoleName
from inquiry_service.services.catalog import ProductLookup, default_catalog
from inquiry_service.services.identity import Principal, StoredIdentity, resolve
from inquiry_service.services.inquiry_lifecycle import InquiryLifecycle
from inquiry_service.services.notifications import NotificationDispatcher, default_hooks

_DB_DEP = Depends(get_db)


def _extract_bearer_from_headers(request: Request) -> Optional[str]:
    # Some hosting layers may strip/override the standard Authorization header.
    raw = request.headers.get("authorization") or request.headers.get("x-authorization")
    return extract_bearer(raw)


def get_stored_identities(
    request: Request,
) -> tuple[Optional[StoredIdentity], Optional[StoredIdentity]]:
    """Decode both session slots. Undecodable tokens count as absent."""

    ordinary = stored_identity_from_token(_extract_bearer_from_headers(request))
    admin = stored_identity_from_token(
        extract_bearer(request.headers.get(settings.admin_session_header))
    )
    # The admin slot only ever carries an admin record.
    if admin is not None and admin.role != RoleName.admin:
        admin = None
    return ordinary, admin


_IDENTITIES_DEP = Depends(get_stored_identities)


def get_principal_optional(
    identities: tuple[Optional[StoredIdentity], Optional[StoredIdentity]] = _IDENTITIES_DEP,
) -> Optional[Principal]:
    ordinary, admin = identities
    return resolve(ordinary, admin, super_admin_id=settings.super_admin_id)


_PRINCIPAL_OPT_DEP = Depends(get_principal_optional)


def get_principal(principal: Optional[Principal] = _PRINCIPAL_OPT_DEP) -> Principal:
    if principal is None:
        raise AuthorizationError("not_authenticated")
    return principal


def get_catalog() -> ProductLookup:
    return default_catalog()


def get_dispatcher(background_tasks: BackgroundTasks) -> NotificationDispatcher:
    # Hooks run after the response is sent, strictly after the transition commit.
    return NotificationDispatcher(default_hooks(), schedule=background_tasks.add_task)


_CATALOG_DEP = Depends(get_catalog)
_DISPATCHER_DEP = Depends(get_dispatcher)


def get_lifecycle(
    request: Request,
    db: Session = _DB_DEP,
    catalog: ProductLookup = _CATALOG_DEP,
    dispatcher: NotificationDispatcher = _DISPATCHER_DEP,
) -> InquiryLifecycle:
    return InquiryLifecycle(
        db,
        dispatcher=dispatcher,
        catalog=catalog,
        settings=settings,
        request_id=request_id_for(request),
    )
