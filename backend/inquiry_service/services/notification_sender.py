"""
Email connector for inquiry notifications, with idempotent provider ids and a
bounded retry. Rendering and delivery belong to the messaging collaborator;
this module POSTs the message to it and reports the outcome.
"""

import json
import logging
import uuid
from enum import Enum
from typing import Any, Dict, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

logger = logging.getLogger("inquiries.notifications.email")


class SendStatus(Enum):
    queued = "queued"
    sent = "sent"
    failed = "failed"


class SendResult:
    def __init__(
        self,
        status: SendStatus,
        provider_message_id: Optional[str] = None,
        error: Optional[str] = None,
        attempts: int = 1,
    ):
        self.status = status
        self.provider_message_id = provider_message_id
        self.error = error
        self.attempts = attempts


def build_provider_id(idempotency_key: Optional[str]) -> str:
    """
    Deterministic provider id when an idempotency key is supplied so a
    re-dispatched notification reuses the same remote identifier.
    """
    if idempotency_key:
        return f"email-{uuid.uuid5(uuid.NAMESPACE_URL, f'inquiry-notification:{idempotency_key}')}"
    return f"email-{uuid.uuid4()}"


def send_notification_email(
    recipient: str,
    subject: str,
    body: str,
    metadata: Optional[Dict[str, Any]] = None,
    *,
    base_url: Optional[str],
    idempotency_key: Optional[str] = None,
    max_retries: int = 1,
    timeout_seconds: float = 5.0,
) -> SendResult:
    """POST the message to ``{base_url}/messages``.

    2xx means the collaborator accepted it (202 is reported as queued). 4xx
    fails immediately; transport errors and 5xx are retried up to
    ``max_retries`` attempts in total.
    """
    provider_id = build_provider_id(idempotency_key)
    base = (base_url or "").rstrip("/")
    if not base:
        return SendResult(
            status=SendStatus.failed,
            provider_message_id=provider_id,
            error="messaging endpoint is not configured",
            attempts=0,
        )

    data = json.dumps(
        {
            "id": provider_id,
            "recipient": recipient,
            "subject": subject,
            "body": body,
            "metadata": metadata or {},
        }
    ).encode("utf-8")
    retries = max(1, int(max_retries))

    last_error = "unknown error"
    for attempt_index in range(retries):
        req = Request(
            f"{base}/messages",
            data=data,
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Idempotency-Key": provider_id,
                "User-Agent": "inquiry-service",
            },
        )
        try:
            with urlopen(req, timeout=timeout_seconds) as resp:  # noqa: S310
                code = resp.status
        except HTTPError as exc:
            last_error = f"HTTP {exc.code}"
            logger.warning(
                "notification_email_rejected",
                extra={"recipient": recipient, "status": exc.code, "attempt": attempt_index + 1},
            )
            if exc.code < 500:
                return SendResult(
                    status=SendStatus.failed,
                    provider_message_id=provider_id,
                    error=last_error,
                    attempts=attempt_index + 1,
                )
            continue
        except (URLError, TimeoutError) as exc:
            last_error = str(exc)
            logger.warning(
                "notification_email_transport_error",
                extra={"recipient": recipient, "error": last_error, "attempt": attempt_index + 1},
            )
            continue

        status = SendStatus.queued if code == 202 else SendStatus.sent
        logger.info(
            "notification_email_handed_off",
            extra={
                "recipient": recipient,
                "subject": subject,
                "provider_message_id": provider_id,
                "status": status.value,
            },
        )
        return SendResult(status=status, provider_message_id=provider_id, attempts=attempt_index + 1)

    return SendResult(
        status=SendStatus.failed,
        provider_message_id=provider_id,
        error=last_error,
        attempts=retries,
    )
