from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from inquiry_service.models.domain import InquiryStatus, ModerationStatus


def _clean_text(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    vv = v.strip()
    return vv or None


class InquiryCreate(BaseModel):
    supplier_id: Optional[int] = Field(None, gt=0)
    product_id: Optional[int] = Field(None, gt=0)
    subject: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    # Positivity is checked by the store so the error carries invalid_quantity.
    quantity: Optional[int] = None

    @field_validator("subject", "message")
    @classmethod
    def strip_text(cls, v: str) -> str:
        vv = v.strip()
        if not vv:
            raise ValueError("must not be blank")
        return vv

    @model_validator(mode="after")
    def require_supplier_or_product(self):
        if self.supplier_id is None and self.product_id is None:
            raise ValueError("supplier_id or product_id is required")
        return self


class ReplyRequest(BaseModel):
    text: str = Field(..., min_length=1)

    @field_validator("text")
    @classmethod
    def strip_text(cls, v: str) -> str:
        vv = v.strip()
        if not vv:
            raise ValueError("must not be blank")
        return vv


class CloseRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("reason")
    @classmethod
    def clean_reason(cls, v: Optional[str]) -> Optional[str]:
        return _clean_text(v)


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        vv = v.strip()
        if not vv:
            raise ValueError("must not be blank")
        return vv


class InquiryRead(BaseModel):
    id: int
    buyer_id: int
    supplier_id: int
    product_id: Optional[int] = None
    subject: str
    message: str
    quantity: int
    status: InquiryStatus
    supplier_reply: Optional[str] = None
    replied_at: Optional[datetime] = None
    buyer_reply: Optional[str] = None
    buyer_replied_at: Optional[datetime] = None
    moderation_status: ModerationStatus
    moderated_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    closed_at: Optional[datetime] = None
    close_reason: Optional[str] = None
    version: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InquiryStatsRead(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_moderation_status: Dict[str, int]
    this_month: int

    model_config = ConfigDict(from_attributes=True)
