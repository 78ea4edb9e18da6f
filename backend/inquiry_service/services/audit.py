import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger("inquiries.audit")


def audit_event(
    action: str,
    actor_id: Optional[int],
    payload: Dict[str, Any],
    *,
    db: Session | None = None,
    actor_role: str | None = None,
    inquiry_id: int | None = None,
    request_id: str | None = None,
) -> Optional[int]:
    """
    Persist an audit row for a committed inquiry transition.

    Best-effort: runs after the transition commit, so a failed write is logged
    with the full event and never undoes the transition. Returns the audit
    log id when available.
    """
    from inquiry_service import models
    from inquiry_service.database import SessionLocal

    created_session = db is None
    session: Session = db if db is not None else SessionLocal()
    try:
        log = models.AuditLog(
            action=action,
            actor_id=actor_id,
            actor_role=actor_role,
            inquiry_id=inquiry_id,
            payload_json=json.dumps(payload or {}, default=str),
            request_id=request_id,
        )
        session.add(log)
        session.commit()
        return log.id
    except SQLAlchemyError:
        session.rollback()
        logger.exception(
            "audit_write_failed",
            extra={
                "action": action,
                "actor_id": actor_id,
                "inquiry_id": inquiry_id,
                "payload": payload,
            },
        )
        return None
    finally:
        if created_session:
            session.close()
