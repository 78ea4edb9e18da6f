from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from inquiry_service import models
from inquiry_service.config import Settings, settings as default_settings
from inquiry_service.core.errors import AuthorizationError, SupplierMismatchError, WriteConflictError
from inquiry_service.models.domain import (
    InquiryStatus,
    ModerationStatus,
    NotificationKind,
    RoleName,
    utc_now,
)
from inquiry_service.services.access_guard import Operation, ensure_allowed
from inquiry_service.services.audit import audit_event
from inquiry_service.services.catalog import ProductLookup, default_catalog
from inquiry_service.services.identity import Principal
from inquiry_service.services.inquiry_store import InquiryStats, InquiryStore
from inquiry_service.services.inquiry_transitions import InquiryEvent, plan_transition
from inquiry_service.services.notifications import NotificationDispatcher

logger = logging.getLogger("inquiries.lifecycle")


class InquiryLifecycle:
    """Inquiry operations for one request.

    Every transition runs authorize -> plan -> save -> audit -> notify, in that
    order. Notifications and audit rows are only produced after ``save`` has
    committed. A ``WriteConflictError`` from ``save`` is retried by refetching
    the inquiry and re-running the guard and the plan, so a transition that
    became illegal in the meantime surfaces as a state error instead.
    """

    def __init__(
        self,
        db: Session,
        *,
        dispatcher: NotificationDispatcher,
        catalog: Optional[ProductLookup] = None,
        store: Optional[InquiryStore] = None,
        settings: Optional[Settings] = None,
        request_id: Optional[str] = None,
    ):
        self.db = db
        self.settings = settings or default_settings
        self.dispatcher = dispatcher
        self._catalog = catalog
        self.store = store or InquiryStore(
            db, moderation_enabled=self.settings.inquiry_moderation_enabled
        )
        self.request_id = request_id

    @property
    def catalog(self) -> ProductLookup:
        if self._catalog is None:
            self._catalog = default_catalog()
        return self._catalog

    # ---- transitions ----------------------------------------------------

    def submit(
        self,
        principal: Optional[Principal],
        *,
        supplier_id: Optional[int],
        subject: str,
        message: str,
        product_id: Optional[int] = None,
        quantity: Optional[int] = None,
    ) -> models.Inquiry:
        principal = ensure_allowed(principal, Operation.create_inquiry)

        if product_id is not None:
            product = self.catalog(int(product_id))
            if supplier_id is None:
                supplier_id = product.supplier_id
            elif int(supplier_id) != product.supplier_id:
                raise SupplierMismatchError(
                    context={
                        "product_id": product_id,
                        "supplier_id": supplier_id,
                        "product_supplier_id": product.supplier_id,
                    }
                )
            if quantity is None:
                quantity = product.min_order_quantity

        if supplier_id is None:
            raise SupplierMismatchError(
                "supplier_id is required when no product is referenced"
            )

        inquiry = self.store.create(
            buyer_id=principal.id,
            supplier_id=int(supplier_id),
            product_id=product_id,
            subject=subject,
            message=message,
            quantity=quantity,
        )

        logger.info(
            "inquiry_submitted",
            extra={
                "inquiry_id": inquiry.id,
                "buyer_id": inquiry.buyer_id,
                "supplier_id": inquiry.supplier_id,
                "product_id": inquiry.product_id,
            },
        )
        self._audit("inquiry.submitted", principal, inquiry, {"quantity": inquiry.quantity})
        if not self.settings.inquiry_moderation_enabled:
            self._notify_supplier(inquiry, NotificationKind.inquiry_received)
        return inquiry

    def supplier_reply(self, principal: Optional[Principal], inquiry_id: int, text: str) -> models.Inquiry:
        inquiry = self._transition(
            principal, inquiry_id, Operation.reply_as_supplier, InquiryEvent.supplier_reply, text=text
        )
        self._notify_buyer(inquiry, NotificationKind.reply_received)
        return inquiry

    def buyer_reply(self, principal: Optional[Principal], inquiry_id: int, text: str) -> models.Inquiry:
        inquiry = self._transition(
            principal, inquiry_id, Operation.reply_as_buyer, InquiryEvent.buyer_reply, text=text
        )
        self._notify_supplier(inquiry, NotificationKind.buyer_replied)
        return inquiry

    def soft_delete(self, principal: Optional[Principal], inquiry_id: int) -> models.Inquiry:
        return self._transition(
            principal, inquiry_id, Operation.delete_inquiry, InquiryEvent.soft_delete
        )

    def moderator_delete(self, principal: Optional[Principal], inquiry_id: int) -> models.Inquiry:
        return self._transition(
            principal, inquiry_id, Operation.moderator_delete, InquiryEvent.soft_delete
        )

    def recover(self, principal: Optional[Principal], inquiry_id: int) -> models.Inquiry:
        return self._transition(
            principal, inquiry_id, Operation.recover_inquiry, InquiryEvent.recover
        )

    def close(
        self, principal: Optional[Principal], inquiry_id: int, reason: Optional[str] = None
    ) -> models.Inquiry:
        inquiry = self._transition(
            principal, inquiry_id, Operation.close_inquiry, InquiryEvent.close, text=reason
        )
        self._notify_buyer(inquiry, NotificationKind.inquiry_closed)
        if self._visible_to_supplier(inquiry):
            self._notify_supplier(inquiry, NotificationKind.inquiry_closed)
        return inquiry

    def approve(self, principal: Optional[Principal], inquiry_id: int) -> models.Inquiry:
        inquiry = self._transition(
            principal, inquiry_id, Operation.moderate_inquiry, InquiryEvent.approve
        )
        # Suppliers only learn about moderated inquiries once they are approved.
        if self.settings.inquiry_moderation_enabled:
            self._notify_supplier(inquiry, NotificationKind.inquiry_received)
        return inquiry

    def reject(
        self, principal: Optional[Principal], inquiry_id: int, reason: str
    ) -> models.Inquiry:
        inquiry = self._transition(
            principal, inquiry_id, Operation.moderate_inquiry, InquiryEvent.reject, text=reason
        )
        self._notify_buyer(inquiry, NotificationKind.inquiry_rejected, reason=reason)
        return inquiry

    # ---- reads ----------------------------------------------------------

    def get_by_id(self, principal: Optional[Principal], inquiry_id: int) -> models.Inquiry:
        self._require_principal(principal)
        inquiry = self.store.get_by_id(inquiry_id)
        ensure_allowed(
            principal,
            Operation.view_inquiry,
            inquiry,
            moderation_enabled=self.settings.inquiry_moderation_enabled,
        )
        return inquiry

    def list_for_buyer(
        self,
        principal: Optional[Principal],
        *,
        buyer_id: Optional[int] = None,
        status: Optional[InquiryStatus] = None,
    ) -> list[models.Inquiry]:
        principal = ensure_allowed(principal, Operation.list_as_buyer)
        if principal.is_admin:
            if buyer_id is None:
                return self.store.list_all(status=status)
            return self.store.list_for_buyer(buyer_id, status=status)
        return self.store.list_for_buyer(principal.id, status=status)

    def list_for_supplier(
        self,
        principal: Optional[Principal],
        *,
        supplier_id: Optional[int] = None,
        status: Optional[InquiryStatus] = None,
    ) -> list[models.Inquiry]:
        principal = ensure_allowed(principal, Operation.list_as_supplier)
        if principal.is_admin:
            if supplier_id is None:
                return self.store.list_all(status=status)
            return self.store.list_all(status=status, supplier_id=supplier_id)
        return self.store.list_for_supplier(principal.id, status=status)

    def list_all(
        self,
        principal: Optional[Principal],
        *,
        status: Optional[InquiryStatus] = None,
        moderation_status: Optional[ModerationStatus] = None,
        limit: Optional[int] = None,
    ) -> list[models.Inquiry]:
        ensure_allowed(principal, Operation.list_all)
        return self.store.list_all(status=status, moderation_status=moderation_status, limit=limit)

    def stats(self, principal: Optional[Principal]) -> InquiryStats:
        ensure_allowed(principal, Operation.list_all)
        return self.store.stats()

    # ---- internals ------------------------------------------------------

    @staticmethod
    def _require_principal(principal: Optional[Principal]) -> Principal:
        if principal is None:
            raise AuthorizationError("not_authenticated")
        return principal

    def _transition(
        self,
        principal: Optional[Principal],
        inquiry_id: int,
        operation: Operation,
        event: InquiryEvent,
        *,
        text: Optional[str] = None,
    ) -> models.Inquiry:
        principal = self._require_principal(principal)
        max_retries = max(0, int(self.settings.write_conflict_max_retries))

        attempt = 0
        while True:
            inquiry = self.store.get_by_id(inquiry_id)
            ensure_allowed(
                principal,
                operation,
                inquiry,
                event=event,
                moderation_enabled=self.settings.inquiry_moderation_enabled,
            )
            changes = plan_transition(
                event, inquiry, now=utc_now(), actor_id=principal.id, text=text
            )
            try:
                saved = self.store.save(inquiry, changes)
                break
            except WriteConflictError:
                if attempt >= max_retries:
                    logger.warning(
                        "inquiry_write_conflict_exhausted",
                        extra={"inquiry_id": inquiry_id, "event": event.value, "attempts": attempt + 1},
                    )
                    raise
                attempt += 1
                logger.info(
                    "inquiry_write_conflict_retry",
                    extra={"inquiry_id": inquiry_id, "event": event.value, "attempt": attempt},
                )

        logger.info(
            "inquiry_transition",
            extra={
                "inquiry_id": saved.id,
                "event": event.value,
                "status": saved.status.value,
                "actor_id": principal.id,
                "actor_role": principal.role.value,
                "version": saved.version,
            },
        )
        self._audit(
            f"inquiry.{event.value}",
            principal,
            saved,
            {"status": saved.status.value, "moderation_status": saved.moderation_status.value},
        )
        return saved

    def _audit(
        self, action: str, principal: Principal, inquiry: models.Inquiry, payload: dict[str, Any]
    ) -> None:
        audit_event(
            action,
            principal.id,
            payload,
            db=self.db,
            actor_role=principal.role.value,
            inquiry_id=inquiry.id,
            request_id=self.request_id,
        )

    def _visible_to_supplier(self, inquiry: models.Inquiry) -> bool:
        return (
            not self.settings.inquiry_moderation_enabled
            or inquiry.moderation_status == ModerationStatus.approved
        )

    def _payload(self, inquiry: models.Inquiry, **extra: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "inquiry_id": inquiry.id,
            "subject": inquiry.subject,
            "status": inquiry.status.value,
            "version": inquiry.version,
        }
        payload.update({k: v for k, v in extra.items() if v is not None})
        return payload

    def _notify_buyer(self, inquiry: models.Inquiry, kind: NotificationKind, **extra: Any) -> None:
        self.dispatcher.notify(
            inquiry.buyer_id,
            kind.value,
            self._payload(inquiry, **extra),
            recipient_role=RoleName.buyer,
        )

    def _notify_supplier(self, inquiry: models.Inquiry, kind: NotificationKind, **extra: Any) -> None:
        self.dispatcher.notify(
            inquiry.supplier_id,
            kind.value,
            self._payload(inquiry, **extra),
            recipient_role=RoleName.supplier,
        )
