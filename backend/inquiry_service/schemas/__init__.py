from inquiry_service.schemas.inquiries import (
    CloseRequest,
    InquiryCreate,
    InquiryRead,
    InquiryStatsRead,
    RejectRequest,
    ReplyRequest,
)
from inquiry_service.schemas.notifications import (
    NotificationRead,
    ReadAllResponse,
    UnreadCountRead,
)

__all__ = [
    "InquiryCreate",
    "InquiryRead",
    "ReplyRequest",
    "CloseRequest",
    "RejectRequest",
    "InquiryStatsRead",
    "NotificationRead",
    "UnreadCountRead",
    "ReadAllResponse",
]
