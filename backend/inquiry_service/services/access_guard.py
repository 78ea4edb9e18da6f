from __future__ import annotations

from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import Optional

from inquiry_service.core.errors import error_for_reason
from inquiry_service.models.domain import Inquiry, ModerationStatus, RoleName
from inquiry_service.services.identity import Principal
from inquiry_service.services.inquiry_transitions import InquiryEvent, precondition_failure


class Operation(PyEnum):
    create_inquiry = "create_inquiry"
    reply_as_supplier = "reply_as_supplier"
    reply_as_buyer = "reply_as_buyer"
    delete_inquiry = "delete_inquiry"
    moderator_delete = "moderator_delete"
    recover_inquiry = "recover_inquiry"
    list_as_buyer = "list_as_buyer"
    list_as_supplier = "list_as_supplier"
    view_inquiry = "view_inquiry"
    close_inquiry = "close_inquiry"
    moderate_inquiry = "moderate_inquiry"
    list_all = "list_all"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOWED = Decision(True)


def denied(reason: str) -> Decision:
    return Decision(False, reason)


@dataclass(frozen=True)
class _Rule:
    role: Optional[RoleName]
    verified: bool = False
    approved: bool = False
    owner: Optional[str] = None
    event: Optional[InquiryEvent] = None
    admin_passes: bool = False
    # Supplier-facing: hidden until approved while moderation is on.
    moderated: bool = False


# Order inside a rule is fixed: role, verification, approval, ownership, state.
_RULES: dict[Operation, _Rule] = {
    Operation.create_inquiry: _Rule(RoleName.buyer, verified=True, approved=True),
    Operation.reply_as_supplier: _Rule(
        RoleName.supplier,
        verified=True,
        approved=True,
        owner="supplier_id",
        event=InquiryEvent.supplier_reply,
        moderated=True,
    ),
    Operation.reply_as_buyer: _Rule(
        RoleName.buyer, owner="buyer_id", event=InquiryEvent.buyer_reply
    ),
    Operation.delete_inquiry: _Rule(
        RoleName.supplier, owner="supplier_id", event=InquiryEvent.soft_delete, moderated=True
    ),
    Operation.recover_inquiry: _Rule(
        RoleName.supplier, owner="supplier_id", event=InquiryEvent.recover, moderated=True
    ),
    Operation.list_as_buyer: _Rule(RoleName.buyer, admin_passes=True),
    Operation.list_as_supplier: _Rule(RoleName.supplier, admin_passes=True),
    Operation.moderator_delete: _Rule(
        RoleName.admin, approved=True, event=InquiryEvent.soft_delete
    ),
    Operation.close_inquiry: _Rule(RoleName.admin, approved=True, event=InquiryEvent.close),
    Operation.list_all: _Rule(RoleName.admin, approved=True),
}


def _moderation_rule(event: Optional[InquiryEvent]) -> _Rule:
    return _Rule(RoleName.admin, approved=True, event=event or InquiryEvent.approve)


def authorize(
    principal: Optional[Principal],
    operation: Operation,
    inquiry: Optional[Inquiry] = None,
    *,
    event: Optional[InquiryEvent] = None,
    moderation_enabled: bool = False,
) -> Decision:
    """Decide whether ``principal`` may perform ``operation`` on ``inquiry``.

    Pure function of its inputs. Super-admins skip the verification and
    approval checks but are still subject to role, ownership and state.
    ``event`` selects approve vs reject for ``moderate_inquiry``. With
    ``moderation_enabled`` a supplier cannot see or act on an inquiry that
    is not approved; it is reported as ``not_owner`` so it stays hidden.
    """

    if principal is None:
        return denied("not_authenticated")

    if operation == Operation.view_inquiry:
        return _authorize_view(principal, inquiry, moderation_enabled)

    rule = (
        _moderation_rule(event)
        if operation == Operation.moderate_inquiry
        else _RULES[operation]
    )

    if rule.admin_passes and principal.is_admin:
        return ALLOWED
    if rule.role is not None and principal.role != rule.role:
        return denied("wrong_role")

    if not principal.is_super_admin:
        if rule.verified and not principal.email_verified:
            return denied("not_verified")
        if rule.approved and not principal.approved:
            return denied("not_approved")

    if rule.owner is not None or rule.event is not None:
        if inquiry is None:
            raise ValueError(f"{operation.value} requires an inquiry")
        if rule.owner is not None and getattr(inquiry, rule.owner) != principal.id:
            return denied("not_owner")
        if rule.moderated and _hidden_by_moderation(inquiry, moderation_enabled):
            return denied("not_owner")
        if rule.event is not None:
            reason = precondition_failure(rule.event, inquiry)
            if reason is not None:
                return denied(reason)

    return ALLOWED


def _hidden_by_moderation(inquiry: Inquiry, moderation_enabled: bool) -> bool:
    return moderation_enabled and inquiry.moderation_status != ModerationStatus.approved


def _authorize_view(
    principal: Principal, inquiry: Optional[Inquiry], moderation_enabled: bool
) -> Decision:
    if inquiry is None:
        raise ValueError("view_inquiry requires an inquiry")
    if principal.is_admin:
        return ALLOWED
    if principal.role == RoleName.buyer and inquiry.buyer_id == principal.id:
        return ALLOWED
    if (
        principal.role == RoleName.supplier
        and inquiry.supplier_id == principal.id
        and not _hidden_by_moderation(inquiry, moderation_enabled)
    ):
        return ALLOWED
    return denied("not_owner")


def ensure_allowed(
    principal: Optional[Principal],
    operation: Operation,
    inquiry: Optional[Inquiry] = None,
    *,
    event: Optional[InquiryEvent] = None,
    moderation_enabled: bool = False,
) -> Principal:
    decision = authorize(
        principal, operation, inquiry, event=event, moderation_enabled=moderation_enabled
    )
    if not decision.allowed:
        raise error_for_reason(decision.reason or "wrong_role")
    return principal  # type: ignore[return-value]
