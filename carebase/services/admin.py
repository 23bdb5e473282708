# carebase/services/admin.py
from __future__ import annotations

import logging
from typing import List, Tuple

from sqlalchemy.orm import Session

from carebase.core.errors import ForbiddenError, NotFoundError
from carebase.models.organization import OrgStatus, Organization
from carebase.schemas.admin import OrgIn
from carebase.services.access import Actor
from carebase.services.audit_logger import log_audit

logger = logging.getLogger(__name__)


def require_root(actor: Actor) -> None:
    if not actor.is_root_admin:
        raise ForbiddenError("Root admin only")


def create_org(db: Session, actor: Actor, payload: OrgIn) -> Organization:
    require_root(actor)
    org = Organization(name=payload.name,
                       type=payload.type,
                       domain=payload.domain,
                       status=OrgStatus.ACTIVE)
    db.add(org)
    db.commit()
    log_audit(db,
              action="org.create",
              actor_user_id=actor.user_id,
              target_type="organization",
              target_id=org.id,
              org_id=org.id,
              metadata={"type": org.type.value})
    return org


def list_orgs(db: Session, actor: Actor, page: int,
              page_size: int) -> Tuple[List[Organization], int]:
    """Newest first. Returns (page of orgs, total count)."""
    require_root(actor)
    q = db.query(Organization)
    total = q.count()
    items = (q.order_by(Organization.created_at.desc(),
                        Organization.id.desc()).offset(
                            (page - 1) * page_size).limit(page_size).all())
    return items, total


def set_org_status(db: Session, actor: Actor, org_id: int,
                   status: OrgStatus) -> Organization:
    """
    Suspend or reactivate an org. A SUSPENDED org cannot issue invites;
    existing memberships are kept.
    """
    require_root(actor)
    org = db.get(Organization, org_id)
    if not org:
        raise NotFoundError("Organization not found")

    previous = org.status
    org.status = status
    db.commit()

    logger.info("Org %s status %s -> %s by %s", org.id, previous.value,
                status.value, actor.user_id)
    log_audit(db,
              action="org.status",
              actor_user_id=actor.user_id,
              target_type="organization",
              target_id=org.id,
              org_id=org.id,
              metadata={
                  "from": previous.value,
                  "to": status.value
              })
    return org
