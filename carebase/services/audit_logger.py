# carebase/services/audit_logger.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from carebase.models.audit import AuditLog

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    *,
    action: str,  # "prescription.dispense", "invite.accept", ...
    actor_user_id: Optional[int],
    target_type: str,
    target_id: Any = None,
    org_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> bool:
    """
    Persist one audit event. Call only after the business transaction has
    committed. Never raises: a failed write is rolled back and logged.
    """
    try:
        log = AuditLog(
            action=action,
            actor_user_id=actor_user_id,
            target_type=target_type,
            target_id=None if target_id is None else str(target_id),
            org_id=org_id,
            meta=metadata,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:255] or None,
        )
        db.add(log)
        db.commit()
        return True
    except Exception:
        db.rollback()
        logger.exception("Failed to log audit event %s for %s:%s", action,
                         target_type, target_id)
        return False
