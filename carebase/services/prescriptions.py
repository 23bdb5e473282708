# carebase/services/prescriptions.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from carebase.core.errors import ForbiddenError, InvalidInputError, NotFoundError
from carebase.models.medicine import Medicine
from carebase.models.organization import OrgRole
from carebase.models.prescription import (
    Prescription,
    PrescriptionItem,
    PrescriptionStatus,
)
from carebase.models.user import User
from carebase.schemas.prescription import PrescriptionCreateIn
from carebase.services.access import (
    Actor,
    Directory,
    SqlDirectory,
    can_access_patient_record,
    can_dispense,
    can_prescribe,
)
from carebase.services.audit_logger import log_audit

logger = logging.getLogger(__name__)


def create_prescription(db: Session, actor: Actor, patient_id: int,
                        payload: PrescriptionCreateIn) -> Prescription:
    if not can_prescribe(actor):
        raise ForbiddenError("Only doctors can write prescriptions")

    patient = db.get(User, patient_id)
    if not patient:
        raise NotFoundError("Patient not found")

    medicine_ids = {i.medicine_id for i in payload.items}
    found = {
        m.id
        for m in db.query(Medicine).filter(Medicine.id.in_(medicine_ids)).all()
    }
    missing = sorted(medicine_ids - found)
    if missing:
        raise InvalidInputError("Unknown medicines",
                                details={"medicine_ids": missing})

    rx = Prescription(
        patient_id=patient.id,
        doctor_id=actor.user_id,
        status=PrescriptionStatus.ACTIVE,
        notes=payload.notes,
        items=[
            PrescriptionItem(
                medicine_id=i.medicine_id,
                dose=i.dose,
                frequency=i.frequency,
                duration_days=i.duration_days,
                quantity=i.quantity,
            ) for i in payload.items
        ],
    )
    db.add(rx)
    db.commit()

    logger.info("Prescription %s created for patient %s by %s", rx.id,
                patient.id, actor.user_id)
    log_audit(
        db,
        action="prescription.create",
        actor_user_id=actor.user_id,
        target_type="prescription",
        target_id=rx.id,
        metadata={"patient_id": patient.id, "items": len(rx.items)},
    )
    return rx


def get_prescription(db: Session,
                     actor: Actor,
                     prescription_id: int,
                     directory: Optional[Directory] = None) -> Prescription:
    rx = (db.query(Prescription).options(selectinload(
        Prescription.items)).filter(Prescription.id == prescription_id).first())
    if not rx:
        raise NotFoundError("Prescription not found")

    directory = directory or SqlDirectory(db)
    # pharmacists only through a pharmacy org membership
    allowed = (can_dispense(actor) is not None or can_access_patient_record(
        actor, rx.patient_id, directory, clinical_roles=[OrgRole.DOCTOR]))
    if not allowed:
        raise ForbiddenError("Not permitted to view this prescription")
    return rx
