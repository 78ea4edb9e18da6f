from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from inquiry_service.api.deps import get_lifecycle, get_principal_optional
from inquiry_service.models import InquiryStatus
from inquiry_service.schemas import InquiryCreate, InquiryRead, ReplyRequest
from inquiry_service.services.identity import Principal
from inquiry_service.services.inquiry_lifecycle import InquiryLifecycle

router = APIRouter(prefix="/inquiries", tags=["inquiries"])

_LIFECYCLE_DEP = Depends(get_lifecycle)
_PRINCIPAL_DEP = Depends(get_principal_optional)


@router.post("", response_model=InquiryRead, status_code=status.HTTP_201_CREATED)
def submit_inquiry(
    payload: InquiryCreate,
    lifecycle: InquiryLifecycle = _LIFECYCLE_DEP,
    principal: Optional[Principal] = _PRINCIPAL_DEP,
):
    return lifecycle.submit(
        principal,
        supplier_id=payload.supplier_id,
        product_id=payload.product_id,
        subject=payload.subject,
        message=payload.message,
        quantity=payload.quantity,
    )


@router.get("/buyer", response_model=List[InquiryRead])
def list_buyer_inquiries(
    status_filter: Optional[InquiryStatus] = Query(None, alias="status"),
    buyer_id: Optional[int] = Query(None, description="Admins only: scope to one buyer."),
    lifecycle: InquiryLifecycle = _LIFECYCLE_DEP,
    principal: Optional[Principal] = _PRINCIPAL_DEP,
):
    return lifecycle.list_for_buyer(principal, buyer_id=buyer_id, status=status_filter)


@router.get("/supplier", response_model=List[InquiryRead])
def list_supplier_inquiries(
    status_filter: Optional[InquiryStatus] = Query(None, alias="status"),
    supplier_id: Optional[int] = Query(None, description="Admins only: scope to one supplier."),
    lifecycle: InquiryLifecycle = _LIFECYCLE_DEP,
    principal: Optional[Principal] = _PRINCIPAL_DEP,
):
    return lifecycle.list_for_supplier(principal, supplier_id=supplier_id, status=status_filter)


@router.get("/{inquiry_id}", response_model=InquiryRead)
def get_inquiry(
    inquiry_id: int,
    lifecycle: InquiryLifecycle = _LIFECYCLE_DEP,
    principal: Optional[Principal] = _PRINCIPAL_DEP,
):
    return lifecycle.get_by_id(principal, inquiry_id)


@router.post("/{inquiry_id}/reply", response_model=InquiryRead)
def supplier_reply(
    inquiry_id: int,
    payload: ReplyRequest,
    lifecycle: InquiryLifecycle = _LIFECYCLE_DEP,
    principal: Optional[Principal] = _PRINCIPAL_DEP,
):
    return lifecycle.supplier_reply(principal, inquiry_id, payload.text)


@router.post("/{inquiry_id}/buyer-reply", response_model=InquiryRead)
def buyer_reply(
    inquiry_id: int,
    payload: ReplyRequest,
    lifecycle: InquiryLifecycle = _LIFECYCLE_DEP,
    principal: Optional[Principal] = _PRINCIPAL_DEP,
):
    return lifecycle.buyer_reply(principal, inquiry_id, payload.text)


@router.delete("/{inquiry_id}", response_model=InquiryRead)
def soft_delete_inquiry(
    inquiry_id: int,
    lifecycle: InquiryLifecycle = _LIFECYCLE_DEP,
    principal: Optional[Principal] = _PRINCIPAL_DEP,
):
    """Supplier soft delete; the inquiry stays recoverable."""
    return lifecycle.soft_delete(principal, inquiry_id)


@router.post("/{inquiry_id}/recover", response_model=InquiryRead)
def recover_inquiry(
    inquiry_id: int,
    lifecycle: InquiryLifecycle = _LIFECYCLE_DEP,
    principal: Optional[Principal] = _PRINCIPAL_DEP,
):
    return lifecycle.recover(principal, inquiry_id)
