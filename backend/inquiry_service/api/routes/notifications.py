from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inquiry_service.api.deps import get_principal
from inquiry_service.database import get_db
from inquiry_service.schemas import NotificationRead, ReadAllResponse, UnreadCountRead
from inquiry_service.services.identity import Principal
from inquiry_service.services.notifications import NotificationInbox

router = APIRouter(prefix="/notifications", tags=["notifications"])

_DB_DEP = Depends(get_db)
_PRINCIPAL_DEP = Depends(get_principal)


def _inbox(db: Session, principal: Principal) -> NotificationInbox:
    return NotificationInbox(db, recipient_id=principal.id, recipient_role=principal.role)


@router.get("", response_model=List[NotificationRead])
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    db: Session = _DB_DEP,
    principal: Principal = _PRINCIPAL_DEP,
):
    return _inbox(db, principal).list(unread_only=unread_only, limit=limit)


@router.get("/unread-count", response_model=UnreadCountRead)
def unread_count(db: Session = _DB_DEP, principal: Principal = _PRINCIPAL_DEP):
    return UnreadCountRead(unread=_inbox(db, principal).unread_count())


@router.post("/read-all", response_model=ReadAllResponse)
def mark_all_read(db: Session = _DB_DEP, principal: Principal = _PRINCIPAL_DEP):
    return ReadAllResponse(updated=_inbox(db, principal).mark_all_read())


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: int,
    db: Session = _DB_DEP,
    principal: Principal = _PRINCIPAL_DEP,
):
    return _inbox(db, principal).mark_read(notification_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: int,
    db: Session = _DB_DEP,
    principal: Principal = _PRINCIPAL_DEP,
):
    _inbox(db, principal).delete(notification_id)
