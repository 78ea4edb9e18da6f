from inquiry_service.models.domain import (
    AuditLog,
    Inquiry,
    InquiryStatus,
    ModerationStatus,
    Notification,
    NotificationKind,
    RoleName,
)

__all__ = [
    "AuditLog",
    "Inquiry",
    "InquiryStatus",
    "ModerationStatus",
    "Notification",
    "NotificationKind",
    "RoleName",
]
