from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from inquiry_service import models
from inquiry_service.core.errors import InquiryNotFoundError, InvalidQuantityError, WriteConflictError
from inquiry_service.models.domain import InquiryStatus, ModerationStatus, utc_now

logger = logging.getLogger("inquiries.store")

# Columns fixed at creation; save() refuses to touch them.
_IMMUTABLE = frozenset({"id", "buyer_id", "supplier_id", "product_id", "created_at", "version"})


@dataclass(frozen=True)
class InquiryStats:
    total: int
    by_status: dict[str, int]
    by_moderation_status: dict[str, int]
    this_month: int


class InquiryStore:
    """Owns inquiry rows. ``save`` is the only mutation entry point."""

    def __init__(self, db: Session, *, moderation_enabled: bool = False):
        self.db = db
        self.moderation_enabled = moderation_enabled

    def create(
        self,
        *,
        buyer_id: int,
        supplier_id: int,
        product_id: Optional[int],
        subject: str,
        message: str,
        quantity: Optional[int],
        now: Optional[datetime] = None,
    ) -> models.Inquiry:
        if quantity is None or int(quantity) <= 0:
            raise InvalidQuantityError(context={"quantity": quantity})

        inquiry = models.Inquiry(
            buyer_id=int(buyer_id),
            supplier_id=int(supplier_id),
            product_id=int(product_id) if product_id is not None else None,
            subject=subject,
            message=message,
            quantity=int(quantity),
            status=InquiryStatus.pending,
            moderation_status=ModerationStatus.pending,
            version=1,
            created_at=now or utc_now(),
        )
        self.db.add(inquiry)
        self.db.commit()
        self.db.refresh(inquiry)
        return inquiry

    def get_by_id(self, inquiry_id: int) -> models.Inquiry:
        inquiry = self.db.get(models.Inquiry, int(inquiry_id), populate_existing=True)
        if inquiry is None:
            raise InquiryNotFoundError(context={"inquiry_id": inquiry_id})
        return inquiry

    def _listing(self, status: Optional[InquiryStatus] = None):
        q = self.db.query(models.Inquiry)
        if status is not None:
            q = q.filter(models.Inquiry.status == status)
        return q.order_by(models.Inquiry.created_at.desc(), models.Inquiry.id.desc())

    def list_for_buyer(
        self, buyer_id: int, *, status: Optional[InquiryStatus] = None
    ) -> list[models.Inquiry]:
        return self._listing(status).filter(models.Inquiry.buyer_id == int(buyer_id)).all()

    def list_for_supplier(
        self, supplier_id: int, *, status: Optional[InquiryStatus] = None
    ) -> list[models.Inquiry]:
        q = self._listing(status).filter(models.Inquiry.supplier_id == int(supplier_id))
        if self.moderation_enabled:
            q = q.filter(models.Inquiry.moderation_status == ModerationStatus.approved)
        return q.all()

    def list_all(
        self,
        *,
        status: Optional[InquiryStatus] = None,
        moderation_status: Optional[ModerationStatus] = None,
        buyer_id: Optional[int] = None,
        supplier_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[models.Inquiry]:
        q = self._listing(status)
        if moderation_status is not None:
            q = q.filter(models.Inquiry.moderation_status == moderation_status)
        if buyer_id is not None:
            q = q.filter(models.Inquiry.buyer_id == int(buyer_id))
        if supplier_id is not None:
            q = q.filter(models.Inquiry.supplier_id == int(supplier_id))
        if limit is not None:
            q = q.limit(int(limit))
        return q.all()

    def save(self, inquiry: models.Inquiry, changes: dict[str, Any]) -> models.Inquiry:
        """Persist ``changes`` if nobody else saved this inquiry since it was read.

        A single conditional UPDATE guards the write:

            UPDATE inquiries
            SET ..., version = version + 1
            WHERE id = :id AND version = :seen_version

        Zero affected rows means a concurrent save won; the session is rolled
        back and ``WriteConflictError`` is raised so no stale write lands.
        Commits on success.
        """

        illegal = _IMMUTABLE.intersection(changes)
        if illegal:
            raise ValueError(f"immutable inquiry fields: {sorted(illegal)}")

        inquiry_id = int(inquiry.id)
        seen_version = int(inquiry.version)

        values = dict(changes)
        values["version"] = models.Inquiry.version + 1

        rowcount = (
            self.db.query(models.Inquiry)
            .filter(models.Inquiry.id == inquiry_id)
            .filter(models.Inquiry.version == seen_version)
            .update(values, synchronize_session=False)
        )
        if not rowcount:
            self.db.rollback()
            logger.info(
                "inquiry_write_conflict",
                extra={"inquiry_id": inquiry_id, "seen_version": seen_version},
            )
            raise WriteConflictError(
                context={"inquiry_id": inquiry_id, "seen_version": seen_version}
            )

        self.db.commit()
        # Reload so the instance reflects the committed row, version included.
        self.db.refresh(inquiry)
        return inquiry

    def stats(self, *, now: Optional[datetime] = None) -> InquiryStats:
        now = now or utc_now()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        by_status = {s.value: 0 for s in InquiryStatus}
        for status, count in (
            self.db.query(models.Inquiry.status, func.count(models.Inquiry.id))
            .group_by(models.Inquiry.status)
            .all()
        ):
            by_status[status.value] = int(count)

        by_moderation = {s.value: 0 for s in ModerationStatus}
        for status, count in (
            self.db.query(models.Inquiry.moderation_status, func.count(models.Inquiry.id))
            .group_by(models.Inquiry.moderation_status)
            .all()
        ):
            by_moderation[status.value] = int(count)

        this_month = (
            self.db.query(func.count(models.Inquiry.id))
            .filter(models.Inquiry.created_at >= month_start)
            .scalar()
        )
        return InquiryStats(
            total=sum(by_status.values()),
            by_status=by_status,
            by_moderation_status=by_moderation,
            this_month=int(this_month or 0),
        )
