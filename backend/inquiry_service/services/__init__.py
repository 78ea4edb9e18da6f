from inquiry_service.services.audit import audit_event
from inquiry_service.services.identity import Principal, StoredIdentity, resolve

__all__ = [
    "Principal",
    "StoredIdentity",
    "resolve",
    "audit_event",
]
