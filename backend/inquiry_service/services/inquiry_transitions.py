"""Inquiry state machine.

Single definition of which event may fire from which status and which fields
each event writes. Planning is pure: ``plan_transition`` inspects an inquiry
and returns the change set to persist, or raises ``InquiryStateError`` without
touching anything. Persistence and side effects belong to the lifecycle engine.

    pending --supplier_reply--> replied --close--> closed
    pending|replied --soft_delete--> deleted --recover--> (status before delete)
    pending --close--> closed
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Callable, FrozenSet, Optional, Protocol

from inquiry_service.core.errors import InquiryStateError
from inquiry_service.models.domain import InquiryStatus, ModerationStatus, utc_now


class InquiryEvent(PyEnum):
    supplier_reply = "supplier_reply"
    buyer_reply = "buyer_reply"
    soft_delete = "soft_delete"
    recover = "recover"
    close = "close"
    approve = "approve"
    reject = "reject"


class _InquiryLike(Protocol):
    status: InquiryStatus
    status_before_delete: Optional[InquiryStatus]
    supplier_reply: Optional[str]
    buyer_reply: Optional[str]
    moderation_status: ModerationStatus


@dataclass(frozen=True)
class Transition:
    event: InquiryEvent
    allowed_from: FrozenSet[InquiryStatus]
    check: Optional[Callable[[_InquiryLike], Optional[str]]] = None


def _buyer_reply_check(inquiry: _InquiryLike) -> Optional[str]:
    if not inquiry.supplier_reply:
        return "invalid_state"
    if inquiry.buyer_reply is not None:
        return "duplicate_reply"
    return None


def _moderation_check(inquiry: _InquiryLike) -> Optional[str]:
    if inquiry.moderation_status != ModerationStatus.pending:
        return "invalid_state"
    return None


_OPEN = frozenset({InquiryStatus.pending, InquiryStatus.replied})

TRANSITIONS: dict[InquiryEvent, Transition] = {
    InquiryEvent.supplier_reply: Transition(
        InquiryEvent.supplier_reply, frozenset({InquiryStatus.pending})
    ),
    InquiryEvent.buyer_reply: Transition(
        InquiryEvent.buyer_reply, frozenset({InquiryStatus.replied}), _buyer_reply_check
    ),
    InquiryEvent.soft_delete: Transition(InquiryEvent.soft_delete, _OPEN),
    InquiryEvent.recover: Transition(InquiryEvent.recover, frozenset({InquiryStatus.deleted})),
    # A moderator cannot close a soft-deleted inquiry; recover it first.
    InquiryEvent.close: Transition(InquiryEvent.close, _OPEN),
    InquiryEvent.approve: Transition(InquiryEvent.approve, _OPEN, _moderation_check),
    InquiryEvent.reject: Transition(InquiryEvent.reject, _OPEN, _moderation_check),
}


def precondition_failure(event: InquiryEvent, inquiry: _InquiryLike) -> Optional[str]:
    """Return the state reason blocking ``event``, or None if it may fire."""

    transition = TRANSITIONS[event]
    if inquiry.status not in transition.allowed_from:
        return "invalid_state"
    if transition.check is not None:
        return transition.check(inquiry)
    return None


def _recover_target(inquiry: _InquiryLike) -> InquiryStatus:
    prior = inquiry.status_before_delete
    if prior in _OPEN:
        return prior
    # Rows deleted before the prior status was tracked.
    return InquiryStatus.replied if inquiry.supplier_reply else InquiryStatus.pending


def plan_transition(
    event: InquiryEvent,
    inquiry: _InquiryLike,
    *,
    now: Optional[datetime] = None,
    actor_id: Optional[int] = None,
    text: Optional[str] = None,
) -> dict[str, Any]:
    reason = precondition_failure(event, inquiry)
    if reason is not None:
        raise InquiryStateError(
            reason,
            context={"event": event.value, "status": getattr(inquiry.status, "value", None)},
        )

    if now is None:
        now = utc_now()

    if event == InquiryEvent.supplier_reply:
        return {"supplier_reply": text, "replied_at": now, "status": InquiryStatus.replied}

    if event == InquiryEvent.buyer_reply:
        return {"buyer_reply": text, "buyer_replied_at": now}

    if event == InquiryEvent.soft_delete:
        return {"status": InquiryStatus.deleted, "status_before_delete": inquiry.status}

    if event == InquiryEvent.recover:
        return {"status": _recover_target(inquiry), "status_before_delete": None}

    if event == InquiryEvent.close:
        return {
            "status": InquiryStatus.closed,
            "closed_by": actor_id,
            "closed_at": now,
            "close_reason": text,
        }

    if event == InquiryEvent.approve:
        return {
            "moderation_status": ModerationStatus.approved,
            "moderated_by": actor_id,
            "moderated_at": now,
            "rejection_reason": None,
        }

    if event == InquiryEvent.reject:
        return {
            "moderation_status": ModerationStatus.rejected,
            "moderated_by": actor_id,
            "moderated_at": now,
            "rejection_reason": text,
        }

    raise ValueError(f"unhandled inquiry event: {event}")
