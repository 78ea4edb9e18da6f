import io
import json
import logging
from urllib.error import HTTPError, URLError

import pytest

from inquiry_service import models
from inquiry_service.config import settings
from inquiry_service.core.errors import NotificationNotFoundError
from inquiry_service.models import InquiryStatus, RoleName
from inquiry_service.services import notification_sender as sender_module
from inquiry_service.services.notification_sender import (
    SendStatus,
    build_provider_id,
    send_notification_email,
)
from inquiry_service.services.notifications import (
    EmailNotificationHook,
    InAppNotificationHook,
    Notice,
    NotificationDispatcher,
    NotificationInbox,
    default_hooks,
)

from conftest import TestingSessionLocal


class _ExplodingHook:
    name = "exploding"

    def __call__(self, notice):
        raise RuntimeError("messaging collaborator down")


def _submit(lifecycle, buyer):
    return lifecycle.submit(
        buyer, supplier_id=20, subject="Aluminium coils", message="Stock?", quantity=5
    )


def test_hook_failure_never_fails_the_transition(make_lifecycle, buyer, supplier, recorder, caplog):
    dispatcher = NotificationDispatcher([_ExplodingHook(), recorder])
    lifecycle = make_lifecycle(dispatcher=dispatcher)

    with caplog.at_level(logging.ERROR, logger="inquiries.notifications"):
        inquiry = _submit(lifecycle, buyer)
        replied = lifecycle.supplier_reply(supplier, inquiry.id, "Yes")

    assert replied.status == InquiryStatus.replied
    # Hooks after the failing one still run.
    assert [n.kind for n in recorder.notices] == ["inquiry_received", "reply_received"]
    failures = [r for r in caplog.records if r.getMessage() == "notification_dispatch_failed"]
    assert len(failures) == 2
    assert failures[0].hook == "exploding"


def test_notifications_are_scheduled_only_after_commit(make_lifecycle, buyer, supplier, db_session):
    scheduled = []

    def schedule(fn, notice):
        # Runs inside the engine, after save: the row must already be committed.
        other = TestingSessionLocal()
        try:
            row = other.get(models.Inquiry, notice.inquiry_id)
            scheduled.append((notice.kind, row.status, row.version))
        finally:
            other.close()

    lifecycle = make_lifecycle(dispatcher=NotificationDispatcher([], schedule=schedule))
    inquiry = _submit(lifecycle, buyer)
    lifecycle.supplier_reply(supplier, inquiry.id, "Yes")

    assert scheduled == [
        ("inquiry_received", InquiryStatus.pending, 1),
        ("reply_received", InquiryStatus.replied, 2),
    ]


def test_scheduler_failure_is_logged_not_raised(make_lifecycle, buyer, caplog):
    def broken_schedule(fn, notice):
        raise RuntimeError("queue full")

    lifecycle = make_lifecycle(dispatcher=NotificationDispatcher([], schedule=broken_schedule))

    with caplog.at_level(logging.ERROR, logger="inquiries.notifications"):
        inquiry = _submit(lifecycle, buyer)

    assert inquiry.id is not None
    assert any(r.getMessage() == "notification_schedule_failed" for r in caplog.records)


def test_in_app_hook_writes_notification_rows(make_lifecycle, buyer, supplier, db_session):
    dispatcher = NotificationDispatcher([InAppNotificationHook(TestingSessionLocal)])
    lifecycle = make_lifecycle(dispatcher=dispatcher)

    inquiry = _submit(lifecycle, buyer)
    lifecycle.supplier_reply(supplier, inquiry.id, "Yes")

    rows = db_session.query(models.Notification).order_by(models.Notification.id).all()
    assert [(r.recipient_role, r.recipient_id, r.kind) for r in rows] == [
        (RoleName.supplier, supplier.id, "inquiry_received"),
        (RoleName.buyer, buyer.id, "reply_received"),
    ]
    assert rows[0].inquiry_id == inquiry.id
    assert rows[0].title == "New inquiry received"
    assert rows[0].message == "New inquiry received: Aluminium coils"
    assert rows[0].is_read is False


def _notify(recipient_id, role, kind="reply_received"):
    NotificationDispatcher([InAppNotificationHook(TestingSessionLocal)]).notify(
        recipient_id, kind, {"subject": "Coils"}, recipient_role=role
    )


def test_inbox_is_scoped_to_recipient_id_and_role(db_session):
    _notify(10, RoleName.buyer)
    _notify(10, RoleName.buyer, kind="inquiry_closed")
    # Same numeric id, different role: a different recipient.
    _notify(10, RoleName.supplier, kind="inquiry_received")

    inbox = NotificationInbox(db_session, recipient_id=10, recipient_role=RoleName.buyer)
    assert inbox.unread_count() == 2
    assert [n.kind for n in inbox.list()] == ["inquiry_closed", "reply_received"]

    supplier_inbox = NotificationInbox(db_session, recipient_id=10, recipient_role=RoleName.supplier)
    foreign_id = supplier_inbox.list()[0].id
    with pytest.raises(NotificationNotFoundError):
        inbox.mark_read(foreign_id)
    with pytest.raises(NotificationNotFoundError):
        inbox.delete(foreign_id)


def test_inbox_read_and_delete(db_session):
    _notify(10, RoleName.buyer)
    _notify(10, RoleName.buyer)
    _notify(10, RoleName.buyer)
    inbox = NotificationInbox(db_session, recipient_id=10, recipient_role=RoleName.buyer)
    first, second, third = inbox.list()

    read = inbox.mark_read(first.id)
    assert read.is_read is True
    assert read.read_at is not None
    assert inbox.unread_count() == 2
    assert [n.id for n in inbox.list(unread_only=True)] == [second.id, third.id]

    assert inbox.mark_all_read() == 2
    assert inbox.unread_count() == 0

    inbox.delete(second.id)
    assert [n.id for n in inbox.list()] == [first.id, third.id]


class _Resp(io.BytesIO):
    def __init__(self, status=200):
        super().__init__(b"{}")
        self.status = status

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def _messaging(monkeypatch, outcomes):
    """Fake messaging endpoint: each outcome is a status code or an exception."""
    calls = []
    pending = list(outcomes)

    def fake_urlopen(req, timeout=None):
        calls.append(
            {
                "url": req.full_url,
                "method": req.get_method(),
                "key": req.get_header("Idempotency-key"),
                "body": json.loads(req.data.decode("utf-8")),
                "timeout": timeout,
            }
        )
        outcome = pending.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome >= 400:
            raise HTTPError(req.full_url, outcome, "error", None, None)
        return _Resp(outcome)

    monkeypatch.setattr(sender_module, "urlopen", fake_urlopen)
    return calls


def test_email_sender_posts_to_messaging_endpoint(monkeypatch):
    calls = _messaging(monkeypatch, [200])
    result = send_notification_email(
        "buyer:10",
        "Supplier replied",
        "body",
        {"inquiry_id": 3},
        base_url="https://messaging.example/",
        idempotency_key="k",
        timeout_seconds=3.0,
    )

    assert result.status == SendStatus.sent
    assert result.provider_message_id == build_provider_id("k")
    assert len(calls) == 1
    call = calls[0]
    assert call["url"] == "https://messaging.example/messages"
    assert call["method"] == "POST"
    assert call["key"] == build_provider_id("k")
    assert call["timeout"] == 3.0
    assert call["body"]["recipient"] == "buyer:10"
    assert call["body"]["metadata"] == {"inquiry_id": 3}


def test_email_sender_retries_transport_errors_until_success(monkeypatch):
    calls = _messaging(monkeypatch, [URLError("connection refused"), 503, 200])
    result = send_notification_email(
        "buyer:10", "s", "b", base_url="https://messaging.example", idempotency_key="k", max_retries=3
    )
    assert result.status == SendStatus.sent
    assert result.attempts == 3
    # Every attempt reuses the same idempotency key.
    assert {c["key"] for c in calls} == {build_provider_id("k")}


def test_email_sender_gives_up_after_bounded_attempts(monkeypatch):
    calls = _messaging(monkeypatch, [500, 500, 500, 200])
    result = send_notification_email(
        "buyer:10", "s", "b", base_url="https://messaging.example", max_retries=3
    )
    assert result.status == SendStatus.failed
    assert result.attempts == 3
    assert len(calls) == 3


def test_email_sender_does_not_retry_client_errors(monkeypatch):
    calls = _messaging(monkeypatch, [400, 200])
    result = send_notification_email(
        "buyer:10", "s", "b", base_url="https://messaging.example", max_retries=3
    )
    assert result.status == SendStatus.failed
    assert result.error == "HTTP 400"
    assert len(calls) == 1


def test_email_sender_reports_accepted_as_queued(monkeypatch):
    _messaging(monkeypatch, [202])
    result = send_notification_email("buyer:10", "s", "b", base_url="https://messaging.example")
    assert result.status == SendStatus.queued


def test_email_sender_without_endpoint_fails_without_calling_out(monkeypatch):
    calls = _messaging(monkeypatch, [200])
    result = send_notification_email("buyer:10", "s", "b", base_url=None)
    assert result.status == SendStatus.failed
    assert calls == []


def test_provider_ids_are_idempotent_per_key():
    assert build_provider_id("a") == build_provider_id("a")
    assert build_provider_id("a") != build_provider_id("b")
    assert build_provider_id(None) != build_provider_id(None)


def test_email_hook_hands_notice_to_messaging(monkeypatch):
    calls = _messaging(monkeypatch, [200])
    notice = Notice(
        recipient_id=10,
        recipient_role=RoleName.buyer,
        kind="reply_received",
        payload={"inquiry_id": 3, "subject": "Coils", "version": 2},
    )
    EmailNotificationHook("https://messaging.example")(notice)

    assert len(calls) == 1
    body = calls[0]["body"]
    assert body["recipient"] == "buyer:10"
    assert body["subject"] == notice.title
    assert body["body"] == notice.message
    assert body["metadata"] == {"inquiry_id": 3, "kind": "reply_received"}
    assert calls[0]["key"] == build_provider_id(notice.idempotency_key)


def test_email_hook_failure_is_logged_by_dispatcher(monkeypatch, caplog):
    _messaging(monkeypatch, [503])
    hook = EmailNotificationHook("https://messaging.example", max_retries=1)
    dispatcher = NotificationDispatcher([hook])

    with caplog.at_level(logging.ERROR, logger="inquiries.notifications"):
        dispatcher.notify(10, "reply_received", {"inquiry_id": None}, recipient_role=RoleName.buyer)

    assert any(getattr(r, "hook", None) == "email" for r in caplog.records)


def test_default_hooks_are_in_app_only_unless_email_enabled(monkeypatch):
    assert [h.name for h in default_hooks()] == ["in_app"]

    monkeypatch.setattr(settings, "notifications_email_enabled", True)
    monkeypatch.setattr(settings, "messaging_base_url", "https://messaging.example")
    hooks = default_hooks()
    assert [h.name for h in hooks] == ["in_app", "email"]
    assert hooks[1].base_url == "https://messaging.example"


def test_notice_idempotency_key_includes_recipient_and_version():
    notice = Notice(
        recipient_id=10,
        recipient_role=RoleName.buyer,
        kind="reply_received",
        payload={"inquiry_id": 3, "version": 2},
    )
    assert notice.idempotency_key == "reply_received:3:buyer:10:2"
