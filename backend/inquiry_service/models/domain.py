from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from inquiry_service.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RoleName(PyEnum):
    buyer = "buyer"
    supplier = "supplier"
    admin = "admin"


class InquiryStatus(PyEnum):
    pending = "pending"
    replied = "replied"
    closed = "closed"
    deleted = "deleted"


class ModerationStatus(PyEnum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class NotificationKind(PyEnum):
    inquiry_received = "inquiry_received"
    reply_received = "reply_received"
    buyer_replied = "buyer_replied"
    inquiry_closed = "inquiry_closed"
    inquiry_rejected = "inquiry_rejected"


class Inquiry(Base):
    __tablename__ = "inquiries"
    __table_args__ = (
        CheckConstraint(
            "(supplier_reply IS NULL) = (replied_at IS NULL)",
            name="ck_inquiries_supplier_reply_timestamp",
        ),
        CheckConstraint(
            "(buyer_reply IS NULL) = (buyer_replied_at IS NULL)",
            name="ck_inquiries_buyer_reply_timestamp",
        ),
        CheckConstraint(
            "buyer_reply IS NULL OR supplier_reply IS NOT NULL",
            name="ck_inquiries_buyer_reply_after_supplier",
        ),
        CheckConstraint("quantity > 0", name="ck_inquiries_quantity_positive"),
        Index("ix_inquiries_buyer_created", "buyer_id", "created_at"),
        Index("ix_inquiries_supplier_created", "supplier_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    buyer_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    supplier_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    product_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    # Stored as VARCHAR so new states never need an ALTER TYPE.
    status: Mapped[InquiryStatus] = mapped_column(
        Enum(InquiryStatus, native_enum=False),
        default=InquiryStatus.pending,
        nullable=False,
        index=True,
    )
    status_before_delete: Mapped[InquiryStatus | None] = mapped_column(
        Enum(InquiryStatus, native_enum=False), nullable=True
    )

    supplier_reply: Mapped[str | None] = mapped_column(Text)
    replied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    buyer_reply: Mapped[str | None] = mapped_column(Text)
    buyer_replied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    moderation_status: Mapped[ModerationStatus] = mapped_column(
        Enum(ModerationStatus, native_enum=False),
        default=ModerationStatus.pending,
        nullable=False,
        index=True,
    )
    moderated_by: Mapped[int | None] = mapped_column(Integer)
    moderated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    closed_by: Mapped[int | None] = mapped_column(Integer)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    close_reason: Mapped[str | None] = mapped_column(Text)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, index=True
    )

    def __repr__(self):
        return f"<Inquiry(id={self.id}, status='{self.status}', version={self.version})>"


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_recipient", "recipient_role", "recipient_id", "is_read"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipient_id: Mapped[int] = mapped_column(Integer, nullable=False)
    recipient_role: Mapped[RoleName] = mapped_column(
        Enum(RoleName, native_enum=False), nullable=False
    )
    kind: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    inquiry_id: Mapped[int | None] = mapped_column(
        ForeignKey("inquiries.id"), nullable=True, index=True
    )
    payload: Mapped[dict | None] = mapped_column(JSON)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    actor_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    actor_role: Mapped[str | None] = mapped_column(String(32), nullable=True)
    inquiry_id: Mapped[int | None] = mapped_column(
        ForeignKey("inquiries.id"), nullable=True, index=True
    )
    payload_json: Mapped[str | None] = mapped_column(Text)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
