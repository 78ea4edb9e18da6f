from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from inquiry_service.api.deps import get_lifecycle, get_principal_optional
from inquiry_service.models import InquiryStatus, ModerationStatus
from inquiry_service.schemas import CloseRequest, InquiryRead, InquiryStatsRead, RejectRequest
from inquiry_service.services.identity import Principal
from inquiry_service.services.inquiry_lifecycle import InquiryLifecycle

router = APIRouter(prefix="/admin/inquiries", tags=["admin"])

_LIFECYCLE_DEP = Depends(get_lifecycle)
_PRINCIPAL_DEP = Depends(get_principal_optional)


@router.get("", response_model=List[InquiryRead])
def list_all_inquiries(
    status_filter: Optional[InquiryStatus] = Query(None, alias="status"),
    moderation_status: Optional[ModerationStatus] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    lifecycle: InquiryLifecycle = _LIFECYCLE_DEP,
    principal: Optional[Principal] = _PRINCIPAL_DEP,
):
    return lifecycle.list_all(
        principal, status=status_filter, moderation_status=moderation_status, limit=limit
    )


@router.get("/stats", response_model=InquiryStatsRead)
def inquiry_stats(
    lifecycle: InquiryLifecycle = _LIFECYCLE_DEP,
    principal: Optional[Principal] = _PRINCIPAL_DEP,
):
    return lifecycle.stats(principal)


@router.post("/{inquiry_id}/close", response_model=InquiryRead)
def close_inquiry(
    inquiry_id: int,
    payload: Optional[CloseRequest] = None,
    lifecycle: InquiryLifecycle = _LIFECYCLE_DEP,
    principal: Optional[Principal] = _PRINCIPAL_DEP,
):
    reason = payload.reason if payload is not None else None
    return lifecycle.close(principal, inquiry_id, reason)


@router.post("/{inquiry_id}/approve", response_model=InquiryRead)
def approve_inquiry(
    inquiry_id: int,
    lifecycle: InquiryLifecycle = _LIFECYCLE_DEP,
    principal: Optional[Principal] = _PRINCIPAL_DEP,
):
    return lifecycle.approve(principal, inquiry_id)


@router.post("/{inquiry_id}/reject", response_model=InquiryRead)
def reject_inquiry(
    inquiry_id: int,
    payload: RejectRequest,
    lifecycle: InquiryLifecycle = _LIFECYCLE_DEP,
    principal: Optional[Principal] = _PRINCIPAL_DEP,
):
    return lifecycle.reject(principal, inquiry_id, payload.reason)


@router.delete("/{inquiry_id}", response_model=InquiryRead)
def moderator_delete_inquiry(
    inquiry_id: int,
    lifecycle: InquiryLifecycle = _LIFECYCLE_DEP,
    principal: Optional[Principal] = _PRINCIPAL_DEP,
):
    # Soft delete only; the owning supplier can still recover it.
    return lifecycle.moderator_delete(principal, inquiry_id)
