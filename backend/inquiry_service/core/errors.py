"""Inquiry error taxonomy.

Every error carries a stable machine-readable ``code`` so presentation layers
can pick role-appropriate messaging without parsing ``detail``. The HTTP layer
maps ``status_code`` directly (see ``core.observability.inquiry_error_handler``).
"""

from __future__ import annotations

from typing import Any


class InquiryError(Exception):
    code: str = "inquiry_error"
    status_code: int = 400
    default_detail: str = "Inquiry operation failed"

    def __init__(self, detail: str | None = None, *, context: dict[str, Any] | None = None):
        self.detail = detail or self.default_detail
        self.context = dict(context or {})
        super().__init__(self.detail)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.detail, "code": self.code}


class AuthorizationError(InquiryError):
    """Denied by the access guard; never retried automatically."""

    status_code = 403

    def __init__(self, code: str, detail: str | None = None, **kwargs):
        self.code = code
        if code == "not_authenticated":
            self.status_code = 401
        super().__init__(detail or _AUTH_MESSAGES.get(code, "Access denied"), **kwargs)


_AUTH_MESSAGES = {
    "not_authenticated": "Authentication required",
    "wrong_role": "Your account type cannot perform this action",
    "not_owner": "This inquiry does not belong to you",
    "not_verified": "Email address must be verified first",
    "not_approved": "Account is awaiting approval",
}


class InquiryStateError(InquiryError):
    """Transition not allowed from the inquiry's current state (stale client view)."""

    status_code = 409

    def __init__(self, code: str = "invalid_state", detail: str | None = None, **kwargs):
        self.code = code
        if detail is None:
            detail = (
                "Buyer already replied to this inquiry"
                if code == "duplicate_reply"
                else "Inquiry is not in a state that allows this action"
            )
        super().__init__(detail, **kwargs)


class WriteConflictError(InquiryError):
    code = "write_conflict"
    status_code = 409
    default_detail = "Inquiry was modified concurrently; refetch and retry"


class InquiryNotFoundError(InquiryError):
    code = "not_found"
    status_code = 404
    default_detail = "Inquiry not found"


class NotificationNotFoundError(InquiryError):
    code = "not_found"
    status_code = 404
    default_detail = "Notification not found"


class InvalidQuantityError(InquiryError):
    code = "invalid_quantity"
    status_code = 422
    default_detail = "Quantity must be a positive integer"


class SupplierMismatchError(InquiryError):
    code = "supplier_mismatch"
    status_code = 422
    default_detail = "Product does not belong to the given supplier"


class CatalogLookupError(InquiryError):
    code = "catalog_unavailable"
    status_code = 502
    default_detail = "Product could not be verified with the catalog"


# Reasons the access guard can return, in the vocabulary exposed to clients.
AUTHORIZATION_REASONS = frozenset(_AUTH_MESSAGES)
STATE_REASONS = frozenset({"invalid_state", "duplicate_reply"})


def error_for_reason(reason: str, detail: str | None = None) -> InquiryError:
    if reason in STATE_REASONS:
        return InquiryStateError(reason, detail)
    return AuthorizationError(reason, detail)
