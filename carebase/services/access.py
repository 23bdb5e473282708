# carebase/services/access.py
"""
Access predicates for patient records and dispensing.

Every predicate answers with a bool / Optional and never raises: absence of
authorization is a normal outcome that callers turn into ``ForbiddenError``.
The only I/O goes through the ``Directory`` handed in by the caller.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol, Tuple

from sqlalchemy.orm import Session, selectinload

from carebase.models.guardian import GuardianLink, GuardianStatus
from carebase.models.organization import OrgMember, OrgRole, OrgType
from carebase.models.user import GlobalRole, User


@dataclass(frozen=True)
class Membership:
    org_id: int
    role: OrgRole
    org_type: OrgType


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, already verified by the auth layer."""

    user_id: int
    global_role: GlobalRole = GlobalRole.USER
    memberships: Tuple[Membership, ...] = field(default_factory=tuple)

    @property
    def is_root_admin(self) -> bool:
        return self.global_role == GlobalRole.ROOT_ADMIN

    def has_org_role(self, roles: Iterable[OrgRole]) -> bool:
        wanted = set(roles)
        return any(m.role in wanted for m in self.memberships)

    def role_in_org(self, org_id: int) -> Optional[OrgRole]:
        for m in self.memberships:
            if m.org_id == org_id:
                return m.role
        return None


class Directory(Protocol):

    def has_active_guardian_link(self, patient_id: int,
                                 guardian_id: int) -> bool:
        ...


class SqlDirectory:
    """Directory lookups backed by the request's SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def has_active_guardian_link(self, patient_id: int,
                                 guardian_id: int) -> bool:
        link = (self.db.query(GuardianLink).filter(
            GuardianLink.patient_id == patient_id,
            GuardianLink.guardian_id == guardian_id,
        ).first())
        return bool(link and link.status == GuardianStatus.ACTIVE)


def load_actor(db: Session, user: User) -> Actor:
    """
    Build the Actor for a loaded user, including each membership's org type.
    """
    rows = (db.query(OrgMember).options(selectinload(OrgMember.org)).filter(
        OrgMember.user_id == user.id).order_by(OrgMember.id.asc()).all())
    memberships = tuple(
        Membership(org_id=m.org_id, role=m.role, org_type=m.org.type)
        for m in rows)
    return Actor(user_id=user.id,
                 global_role=user.global_role,
                 memberships=memberships)


# ---------------- predicates ----------------


def can_access_patient_record(
    actor: Actor,
    patient_user_id: int,
    directory: Directory,
    clinical_roles: Iterable[OrgRole] = (),
) -> bool:
    """
    True for the root admin, the patient, an active guardian of the patient,
    or (only where the read path passes ``clinical_roles``) any member
    holding one of those org roles.
    """
    if actor.is_root_admin:
        return True
    if actor.user_id == patient_user_id:
        return True
    if directory.has_active_guardian_link(patient_user_id, actor.user_id):
        return True
    roles = tuple(clinical_roles)
    return bool(roles) and actor.has_org_role(roles)


def can_dispense(actor: Actor) -> Optional[int]:
    """
    Pharmacy org the actor may dispense for: the first PHARMACIST membership
    at a PHARMACY org. None when there is none.
    """
    for m in actor.memberships:
        if m.role == OrgRole.PHARMACIST and m.org_type == OrgType.PHARMACY:
            return m.org_id
    return None


def can_verify(actor: Actor) -> bool:
    return actor.is_root_admin or can_dispense(actor) is not None


def can_prescribe(actor: Actor) -> bool:
    return actor.is_root_admin or actor.has_org_role([OrgRole.DOCTOR])


def can_manage_org(actor: Actor, org_id: int) -> bool:
    return actor.is_root_admin or actor.role_in_org(org_id) == OrgRole.ORG_ADMIN
