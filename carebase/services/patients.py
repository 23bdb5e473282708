# carebase/services/patients.py
from __future__ import annotations

import logging
import re
from typing import Optional

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, selectinload

from carebase.core.config import settings
from carebase.core.errors import (
    CarebaseError,
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from carebase.core.security import hash_password
from carebase.db.session import is_retryable_conflict
from carebase.models.guardian import GuardianLink, GuardianStatus
from carebase.models.patient import PatientProfile
from carebase.models.user import GlobalRole, User
from carebase.schemas.patient import PatientCreateIn
from carebase.services.access import (
    Actor,
    Directory,
    SqlDirectory,
    can_access_patient_record,
)
from carebase.services.admin import require_root
from carebase.services.audit_logger import log_audit
from carebase.services.invites import find_user_by_email

logger = logging.getLogger(__name__)

# old format: 9 digits + V/X, new format: 12 digits
_NIC_RE = re.compile(r"^(\d{9}[VvXx]|\d{12})$")


def is_valid_nic(value: str) -> bool:
    return bool(_NIC_RE.match(value or ""))


def create_patient(db: Session, actor: Actor,
                   payload: PatientCreateIn) -> User:
    """
    Register a patient: find-or-create the user, attach a profile and
    optionally link an existing user as guardian. One transaction.

    An existing user keeps their password; the one supplied is only used
    for a new account.
    """
    require_root(actor)

    email = payload.email.strip().lower()
    nic = payload.nic.strip().upper()
    if not is_valid_nic(nic):
        raise InvalidInputError("Invalid NIC")
    if len(payload.password) < settings.PASSWORD_MIN_LENGTH:
        raise InvalidInputError(
            f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters"
        )

    guardian = None
    if payload.guardian_email:
        guardian_email = payload.guardian_email.strip().lower()
        if guardian_email == email:
            raise InvalidInputError("Guardian cannot be the patient")
        guardian = find_user_by_email(db, guardian_email)
        if not guardian:
            raise NotFoundError("Guardian user not found")

    try:
        user = find_user_by_email(db, email)
        if user and db.query(PatientProfile).filter(
                PatientProfile.user_id == user.id).first():
            raise ConflictError("Patient already exists")
        if db.query(PatientProfile).filter(PatientProfile.nic == nic).first():
            raise ConflictError("NIC already registered")

        if not user:
            user = User(email=email,
                        name=payload.name,
                        password_hash=hash_password(payload.password),
                        global_role=GlobalRole.USER)
            db.add(user)
            db.flush()

        user.patient_profile = PatientProfile(nic=nic,
                                              name=payload.name,
                                              dob=payload.dob,
                                              location=payload.location)

        if guardian:
            link = (db.query(GuardianLink).filter(
                GuardianLink.patient_id == user.id,
                GuardianLink.guardian_id == guardian.id,
            ).first())
            if not link:
                db.add(
                    GuardianLink(patient_id=user.id,
                                 guardian_id=guardian.id,
                                 status=GuardianStatus.ACTIVE))
        db.commit()
    except CarebaseError:
        db.rollback()
        raise
    except (IntegrityError, OperationalError) as exc:
        db.rollback()
        if is_retryable_conflict(exc):
            raise ConflictError("Patient was registered concurrently, retry",
                                retryable=True) from exc
        raise

    logger.info("Patient %s registered by %s", user.id, actor.user_id)
    log_audit(db,
              action="patient.create",
              actor_user_id=actor.user_id,
              target_type="user",
              target_id=user.id,
              metadata={"guardian_id": guardian.id if guardian else None})
    return user


def get_patient(db: Session,
                actor: Actor,
                patient_id: int,
                directory: Optional[Directory] = None) -> User:
    """
    Patient record with profile. Root admin, the patient and active
    guardians only; clinical staff read through prescriptions instead.
    """
    user = (db.query(User).options(selectinload(
        User.patient_profile)).filter(User.id == patient_id).first())
    if not user:
        raise NotFoundError("Patient not found")

    directory = directory or SqlDirectory(db)
    if not can_access_patient_record(actor, user.id, directory):
        raise ForbiddenError("Not permitted to view this patient")
    return user
