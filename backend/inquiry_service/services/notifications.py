from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol, Sequence

from sqlalchemy.orm import Session

from inquiry_service import models
from inquiry_service.config import settings
from inquiry_service.core.errors import NotificationNotFoundError
from inquiry_service.models.domain import NotificationKind, RoleName, utc_now
from inquiry_service.services.notification_sender import SendStatus, send_notification_email

logger = logging.getLogger("inquiries.notifications")

_TITLES = {
    NotificationKind.inquiry_received.value: "New inquiry received",
    NotificationKind.reply_received.value: "Supplier replied to your inquiry",
    NotificationKind.buyer_replied.value: "Buyer replied to your answer",
    NotificationKind.inquiry_closed.value: "Inquiry closed",
    NotificationKind.inquiry_rejected.value: "Inquiry rejected by moderation",
}


@dataclass(frozen=True)
class Notice:
    recipient_id: int
    recipient_role: RoleName
    kind: str
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def inquiry_id(self) -> Optional[int]:
        value = self.payload.get("inquiry_id")
        return int(value) if value is not None else None

    @property
    def title(self) -> str:
        return _TITLES.get(self.kind, self.kind.replace("_", " ").capitalize())

    @property
    def message(self) -> str:
        subject = self.payload.get("subject")
        return f"{self.title}: {subject}" if subject else self.title

    @property
    def idempotency_key(self) -> str:
        return (
            f"{self.kind}:{self.inquiry_id}:{self.recipient_role.value}:{self.recipient_id}"
            f":{self.payload.get('version', '')}"
        )


class NotificationHook(Protocol):
    name: str

    def __call__(self, notice: Notice) -> None: ...


class InAppNotificationHook:
    """Writes the notification row behind the client's unread-count badge."""

    name = "in_app"

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory

    def _session(self) -> Session:
        if self._session_factory is not None:
            return self._session_factory()
        from inquiry_service.database import SessionLocal

        return SessionLocal()

    def __call__(self, notice: Notice) -> None:
        db = self._session()
        try:
            db.add(
                models.Notification(
                    recipient_id=int(notice.recipient_id),
                    recipient_role=notice.recipient_role,
                    kind=notice.kind,
                    title=notice.title,
                    message=notice.message,
                    inquiry_id=notice.inquiry_id,
                    payload=notice.payload or None,
                    is_read=False,
                    created_at=utc_now(),
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class EmailNotificationHook:
    name = "email"

    def __init__(
        self,
        base_url: Optional[str],
        *,
        max_retries: int = 1,
        timeout_seconds: float = 5.0,
    ):
        self.base_url = base_url
        self.max_retries = max_retries
        self.timeout_seconds = timeout_seconds

    def __call__(self, notice: Notice) -> None:
        result = send_notification_email(
            recipient=f"{notice.recipient_role.value}:{notice.recipient_id}",
            subject=notice.title,
            body=notice.message,
            metadata={"inquiry_id": notice.inquiry_id, "kind": notice.kind},
            base_url=self.base_url,
            idempotency_key=notice.idempotency_key,
            max_retries=self.max_retries,
            timeout_seconds=self.timeout_seconds,
        )
        if result.status == SendStatus.failed:
            raise RuntimeError(
                f"email delivery failed after {result.attempts} attempt(s): {result.error}"
            )


def default_hooks() -> list[NotificationHook]:
    hooks: list[NotificationHook] = [InAppNotificationHook()]
    if settings.notifications_email_enabled:
        hooks.append(
            EmailNotificationHook(
                settings.messaging_base_url,
                max_retries=settings.notification_email_max_retries,
                timeout_seconds=settings.messaging_timeout_seconds,
            )
        )
    return hooks


class NotificationDispatcher:
    """Post-commit hook list for inquiry transitions.

    ``notify`` is fire-and-forget: delivery is handed to ``schedule`` (FastAPI
    BackgroundTasks in the HTTP layer) or run inline when no scheduler is set.
    Hook failures are logged and never reach the caller; the committed
    transition is the source of truth.
    """

    def __init__(
        self,
        hooks: Optional[Sequence[NotificationHook]] = None,
        *,
        schedule: Optional[Callable[..., Any]] = None,
    ):
        self.hooks = list(hooks) if hooks is not None else default_hooks()
        self._schedule = schedule

    def notify(
        self,
        recipient_id: int,
        kind: str,
        payload: Optional[dict[str, Any]] = None,
        *,
        recipient_role: RoleName,
    ) -> None:
        notice = Notice(
            recipient_id=int(recipient_id),
            recipient_role=recipient_role,
            kind=kind.value if isinstance(kind, NotificationKind) else str(kind),
            payload=dict(payload or {}),
        )
        if self._schedule is None:
            self.deliver(notice)
            return
        try:
            self._schedule(self.deliver, notice)
        except Exception:
            logger.exception(
                "notification_schedule_failed",
                extra={"kind": notice.kind, "inquiry_id": notice.inquiry_id},
            )

    def deliver(self, notice: Notice) -> None:
        for hook in self.hooks:
            try:
                hook(notice)
            except Exception:
                logger.exception(
                    "notification_dispatch_failed",
                    extra={
                        "hook": getattr(hook, "name", type(hook).__name__),
                        "kind": notice.kind,
                        "inquiry_id": notice.inquiry_id,
                        "recipient_id": notice.recipient_id,
                        "recipient_role": notice.recipient_role.value,
                    },
                )


class NotificationInbox:
    """Read side of in-app notifications, scoped to one recipient."""

    def __init__(self, db: Session, *, recipient_id: int, recipient_role: RoleName):
        self.db = db
        self.recipient_id = int(recipient_id)
        self.recipient_role = recipient_role

    def _mine(self):
        return (
            self.db.query(models.Notification)
            .filter(models.Notification.recipient_id == self.recipient_id)
            .filter(models.Notification.recipient_role == self.recipient_role)
        )

    def list(self, *, unread_only: bool = False, limit: int = 50) -> list[models.Notification]:
        q = self._mine()
        if unread_only:
            q = q.filter(models.Notification.is_read.is_(False))
        return (
            q.order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
            .limit(limit)
            .all()
        )

    def unread_count(self) -> int:
        return int(self._mine().filter(models.Notification.is_read.is_(False)).count())

    def _get(self, notification_id: int) -> models.Notification:
        n = self._mine().filter(models.Notification.id == int(notification_id)).first()
        if n is None:
            raise NotificationNotFoundError(context={"notification_id": notification_id})
        return n

    def mark_read(self, notification_id: int) -> models.Notification:
        n = self._get(notification_id)
        if not n.is_read:
            n.is_read = True
            n.read_at = utc_now()
            self.db.commit()
            self.db.refresh(n)
        return n

    def mark_all_read(self) -> int:
        updated = (
            self._mine()
            .filter(models.Notification.is_read.is_(False))
            .update(
                {"is_read": True, "read_at": utc_now()},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return int(updated or 0)

    def delete(self, notification_id: int) -> None:
        n = self._get(notification_id)
        self.db.delete(n)
        self.db.commit()
