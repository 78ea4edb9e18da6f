from datetime import datetime

import pytest

from inquiry_service import models
from inquiry_service.core.errors import AuthorizationError, InquiryStateError
from inquiry_service.models import InquiryStatus, ModerationStatus, RoleName
from inquiry_service.services.access_guard import Operation, authorize, ensure_allowed
from inquiry_service.services.identity import Principal
from inquiry_service.services.inquiry_transitions import InquiryEvent


def _inquiry(status=InquiryStatus.pending, **kw) -> models.Inquiry:
    fields = dict(
        id=1,
        buyer_id=10,
        supplier_id=20,
        subject="Aluminium coils",
        message="Do you have stock?",
        quantity=50,
        status=status,
        moderation_status=ModerationStatus.pending,
        version=1,
    )
    if status in (InquiryStatus.replied, InquiryStatus.closed):
        fields.update(supplier_reply="Yes", replied_at=datetime(2026, 1, 1))
    fields.update(kw)
    return models.Inquiry(**fields)


def _principal(role, identity_id, *, verified=True, approved=True, super_admin=False):
    return Principal(
        id=identity_id,
        role=role,
        email_verified=verified,
        approved=approved,
        is_super_admin=super_admin,
    )


BUYER = _principal(RoleName.buyer, 10)
SUPPLIER = _principal(RoleName.supplier, 20)
ADMIN = _principal(RoleName.admin, 1)


def test_anonymous_is_not_authenticated_for_every_operation():
    for op in Operation:
        decision = authorize(None, op, _inquiry())
        assert not decision
        assert decision.reason == "not_authenticated"


@pytest.mark.parametrize(
    "status",
    [InquiryStatus.pending, InquiryStatus.replied, InquiryStatus.closed, InquiryStatus.deleted],
)
@pytest.mark.parametrize("buyer_id", [10, 20, 77])
def test_buyer_can_never_reply_as_supplier(status, buyer_id):
    buyer = _principal(RoleName.buyer, buyer_id)
    decision = authorize(buyer, Operation.reply_as_supplier, _inquiry(status, buyer_id=buyer_id))

    assert decision.reason == "wrong_role"


def test_create_requires_buyer_role_verified_and_approved():
    assert authorize(BUYER, Operation.create_inquiry).allowed
    assert authorize(SUPPLIER, Operation.create_inquiry).reason == "wrong_role"
    assert (
        authorize(_principal(RoleName.buyer, 10, verified=False), Operation.create_inquiry).reason
        == "not_verified"
    )
    assert (
        authorize(_principal(RoleName.buyer, 10, approved=False), Operation.create_inquiry).reason
        == "not_approved"
    )


def test_verification_is_checked_before_approval():
    unverified_unapproved = _principal(RoleName.buyer, 10, verified=False, approved=False)
    assert authorize(unverified_unapproved, Operation.create_inquiry).reason == "not_verified"


def test_role_precedes_ownership_and_ownership_precedes_state():
    # Wrong role on someone else's closed inquiry: role wins.
    closed_elsewhere = _inquiry(InquiryStatus.closed, supplier_id=99)
    assert authorize(BUYER, Operation.reply_as_supplier, closed_elsewhere).reason == "wrong_role"

    # Right role, not the owner, invalid state: ownership wins.
    assert authorize(SUPPLIER, Operation.reply_as_supplier, closed_elsewhere).reason == "not_owner"

    # Owner, invalid state.
    closed_mine = _inquiry(InquiryStatus.closed)
    assert authorize(SUPPLIER, Operation.reply_as_supplier, closed_mine).reason == "invalid_state"


def test_supplier_reply_requires_pending():
    assert authorize(SUPPLIER, Operation.reply_as_supplier, _inquiry()).allowed
    assert (
        authorize(SUPPLIER, Operation.reply_as_supplier, _inquiry(InquiryStatus.replied)).reason
        == "invalid_state"
    )


def test_buyer_reply_rules():
    assert authorize(BUYER, Operation.reply_as_buyer, _inquiry(InquiryStatus.replied)).allowed
    assert authorize(BUYER, Operation.reply_as_buyer, _inquiry()).reason == "invalid_state"

    already = _inquiry(
        InquiryStatus.replied, buyer_reply="Can you do 60?", buyer_replied_at=datetime(2026, 1, 2)
    )
    assert authorize(BUYER, Operation.reply_as_buyer, already).reason == "duplicate_reply"

    stranger = _principal(RoleName.buyer, 11)
    assert (
        authorize(stranger, Operation.reply_as_buyer, _inquiry(InquiryStatus.replied)).reason
        == "not_owner"
    )


def test_buyer_reply_does_not_require_verification():
    unverified = _principal(RoleName.buyer, 10, verified=False, approved=False)
    assert authorize(unverified, Operation.reply_as_buyer, _inquiry(InquiryStatus.replied)).allowed


def test_delete_and_recover_rules():
    assert authorize(SUPPLIER, Operation.delete_inquiry, _inquiry()).allowed
    assert authorize(SUPPLIER, Operation.delete_inquiry, _inquiry(InquiryStatus.replied)).allowed
    assert (
        authorize(SUPPLIER, Operation.delete_inquiry, _inquiry(InquiryStatus.deleted)).reason
        == "invalid_state"
    )
    assert authorize(BUYER, Operation.delete_inquiry, _inquiry()).reason == "wrong_role"

    deleted = _inquiry(InquiryStatus.deleted, status_before_delete=InquiryStatus.pending)
    assert authorize(SUPPLIER, Operation.recover_inquiry, deleted).allowed
    assert authorize(SUPPLIER, Operation.recover_inquiry, _inquiry()).reason == "invalid_state"
    assert (
        authorize(_principal(RoleName.supplier, 21), Operation.recover_inquiry, deleted).reason
        == "not_owner"
    )


def test_listing_rules():
    assert authorize(BUYER, Operation.list_as_buyer).allowed
    assert authorize(SUPPLIER, Operation.list_as_buyer).reason == "wrong_role"
    assert authorize(SUPPLIER, Operation.list_as_supplier).allowed
    assert authorize(BUYER, Operation.list_as_supplier).reason == "wrong_role"

    unapproved_admin = _principal(RoleName.admin, 2, verified=False, approved=False)
    assert authorize(unapproved_admin, Operation.list_as_buyer).allowed
    assert authorize(unapproved_admin, Operation.list_as_supplier).allowed


def test_view_allows_owners_and_admins_only():
    inquiry = _inquiry()
    assert authorize(BUYER, Operation.view_inquiry, inquiry).allowed
    assert authorize(SUPPLIER, Operation.view_inquiry, inquiry).allowed
    assert authorize(ADMIN, Operation.view_inquiry, inquiry).allowed
    assert authorize(_principal(RoleName.buyer, 11), Operation.view_inquiry, inquiry).reason == "not_owner"
    # A supplier whose id matches the buyer id is still not the owner.
    assert (
        authorize(_principal(RoleName.supplier, 10), Operation.view_inquiry, inquiry).reason
        == "not_owner"
    )


def test_close_is_admin_only_and_not_from_deleted():
    assert authorize(ADMIN, Operation.close_inquiry, _inquiry()).allowed
    assert authorize(ADMIN, Operation.close_inquiry, _inquiry(InquiryStatus.replied)).allowed
    assert authorize(SUPPLIER, Operation.close_inquiry, _inquiry()).reason == "wrong_role"
    assert (
        authorize(ADMIN, Operation.close_inquiry, _inquiry(InquiryStatus.deleted)).reason
        == "invalid_state"
    )
    assert (
        authorize(ADMIN, Operation.close_inquiry, _inquiry(InquiryStatus.closed)).reason
        == "invalid_state"
    )
    unapproved = _principal(RoleName.admin, 2, approved=False)
    assert authorize(unapproved, Operation.close_inquiry, _inquiry()).reason == "not_approved"


def test_moderation_requires_pending_moderation_status():
    assert authorize(
        ADMIN, Operation.moderate_inquiry, _inquiry(), event=InquiryEvent.approve
    ).allowed
    approved = _inquiry(moderation_status=ModerationStatus.approved)
    assert (
        authorize(ADMIN, Operation.moderate_inquiry, approved, event=InquiryEvent.reject).reason
        == "invalid_state"
    )
    assert (
        authorize(BUYER, Operation.moderate_inquiry, _inquiry(), event=InquiryEvent.approve).reason
        == "wrong_role"
    )


def test_super_admin_bypasses_verification_and_approval_only():
    super_admin = _principal(RoleName.admin, 999, verified=False, approved=False, super_admin=True)

    assert authorize(super_admin, Operation.list_all).allowed
    assert authorize(super_admin, Operation.close_inquiry, _inquiry()).allowed
    # Still bound by role and state.
    assert authorize(super_admin, Operation.create_inquiry).reason == "wrong_role"
    assert (
        authorize(super_admin, Operation.close_inquiry, _inquiry(InquiryStatus.closed)).reason
        == "invalid_state"
    )


def test_plain_admin_needs_approval_for_admin_operations():
    unapproved = _principal(RoleName.admin, 2, approved=False)
    assert authorize(unapproved, Operation.list_all).reason == "not_approved"


def test_ensure_allowed_raises_typed_errors():
    with pytest.raises(AuthorizationError) as exc:
        ensure_allowed(None, Operation.create_inquiry)
    assert exc.value.code == "not_authenticated"
    assert exc.value.status_code == 401

    with pytest.raises(AuthorizationError) as exc:
        ensure_allowed(SUPPLIER, Operation.create_inquiry)
    assert exc.value.code == "wrong_role"
    assert exc.value.status_code == 403

    already = _inquiry(
        InquiryStatus.replied, buyer_reply="again", buyer_replied_at=datetime(2026, 1, 2)
    )
    with pytest.raises(InquiryStateError) as exc:
        ensure_allowed(BUYER, Operation.reply_as_buyer, already)
    assert exc.value.code == "duplicate_reply"
    assert exc.value.status_code == 409

    assert ensure_allowed(BUYER, Operation.create_inquiry) is BUYER


@pytest.mark.parametrize(
    "operation, status",
    [
        (Operation.view_inquiry, InquiryStatus.pending),
        (Operation.reply_as_supplier, InquiryStatus.pending),
        (Operation.delete_inquiry, InquiryStatus.pending),
        (Operation.recover_inquiry, InquiryStatus.deleted),
    ],
)
@pytest.mark.parametrize("moderation", [ModerationStatus.pending, ModerationStatus.rejected])
def test_supplier_cannot_reach_unapproved_inquiry_under_moderation(operation, status, moderation):
    inquiry = _inquiry(
        status, moderation_status=moderation, status_before_delete=InquiryStatus.pending
    )

    decision = authorize(SUPPLIER, operation, inquiry, moderation_enabled=True)
    assert decision.reason == "not_owner"
    # Same inquiry, moderation off: ownership alone decides.
    assert authorize(SUPPLIER, operation, inquiry, moderation_enabled=False)


def test_approved_inquiry_is_open_to_its_supplier_under_moderation():
    inquiry = _inquiry(moderation_status=ModerationStatus.approved)
    assert authorize(SUPPLIER, Operation.view_inquiry, inquiry, moderation_enabled=True)
    assert authorize(SUPPLIER, Operation.reply_as_supplier, inquiry, moderation_enabled=True)


def test_moderation_never_hides_inquiry_from_buyer_or_admin():
    inquiry = _inquiry(moderation_status=ModerationStatus.rejected)
    assert authorize(BUYER, Operation.view_inquiry, inquiry, moderation_enabled=True)
    assert authorize(ADMIN, Operation.view_inquiry, inquiry, moderation_enabled=True)
    assert authorize(ADMIN, Operation.moderator_delete, inquiry, moderation_enabled=True)


def test_moderator_delete_rules():
    assert authorize(ADMIN, Operation.moderator_delete, _inquiry(InquiryStatus.replied))
    assert (
        authorize(SUPPLIER, Operation.moderator_delete, _inquiry()).reason == "wrong_role"
    )
    unapproved = _principal(RoleName.admin, 2, approved=False)
    assert authorize(unapproved, Operation.moderator_delete, _inquiry()).reason == "not_approved"
    super_admin = _principal(RoleName.admin, 999, approved=False, super_admin=True)
    assert authorize(super_admin, Operation.moderator_delete, _inquiry())
    for status in (InquiryStatus.deleted, InquiryStatus.closed):
        decision = authorize(ADMIN, Operation.moderator_delete, _inquiry(status))
        assert decision.reason == "invalid_state"
