# carebase/services/dispense.py
"""
Dispense reconciliation.

``verify`` is an advisory, read-only precheck: its remaining quantities can
be stale by the time the client submits. ``dispense`` never trusts them; it
locks the prescription and re-reads the whole ledger inside its own
transaction before deciding anything.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, selectinload

from carebase.core.errors import (
    CarebaseError,
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    OverDispenseError,
)
from carebase.db.session import is_retryable_conflict
from carebase.models.prescription import (
    DispenseItem,
    DispenseRecord,
    DispenseStatus,
    Prescription,
    PrescriptionItem,
    PrescriptionStatus,
)
from carebase.schemas.prescription import DispenseIn
from carebase.services.access import (
    Actor,
    Directory,
    SqlDirectory,
    can_access_patient_record,
    can_dispense,
    can_verify,
)
from carebase.services.audit_logger import log_audit
from carebase.services.remaining import (
    RemainingItem,
    dispensed_totals,
    remaining_from_totals,
)

logger = logging.getLogger(__name__)

AuditSink = Callable[..., object]

# no further dispensing from these
CLOSED_STATUSES = {PrescriptionStatus.CANCELLED, PrescriptionStatus.DISPENSED}


def _requested_by_item(payload: DispenseIn) -> Dict[int, int]:
    out: Dict[int, int] = {}
    for line in payload.items:
        if line.prescription_item_id in out:
            raise InvalidInputError(
                "Each prescription item may appear only once per dispense",
                details={"prescription_item_id": line.prescription_item_id},
            )
        out[line.prescription_item_id] = int(line.quantity)
    return out


def _load_prescription(db: Session, prescription_id: int) -> Prescription:
    rx = (db.query(Prescription).options(selectinload(
        Prescription.items)).filter(Prescription.id == prescription_id).first())
    if not rx:
        raise NotFoundError("Prescription not found")
    return rx


def _lock_prescription(db: Session, prescription_id: int) -> Prescription:
    rx = (db.query(Prescription).filter(
        Prescription.id == prescription_id).populate_existing().with_for_update().first())
    if not rx:
        raise NotFoundError("Prescription not found")
    return rx


# ---------------- verify ----------------


def verify(db: Session, prescription_id: int,
           actor: Actor) -> Tuple[Prescription, List[RemainingItem]]:
    """
    Read-only precheck shown to the pharmacist before a dispense.
    Allowed for DISPENSED prescriptions (history view), not for CANCELLED.
    Never writes.
    """
    rx = _load_prescription(db, prescription_id)

    if rx.status == PrescriptionStatus.CANCELLED:
        raise InvalidStateError("Prescription is cancelled",
                                details={"status": rx.status.value})

    if not can_verify(actor):
        raise ForbiddenError("Only pharmacists can verify prescriptions")

    totals = dispensed_totals(db, rx.id)
    return rx, remaining_from_totals(rx.items, totals)


# ---------------- dispense ----------------


def dispense(
    db: Session,
    prescription_id: int,
    actor: Actor,
    payload: DispenseIn,
    *,
    audit: AuditSink = log_audit,
    request_meta: Optional[Dict[str, Optional[str]]] = None,
) -> DispenseRecord:
    """
    Record one dispense event and move the prescription status forward.

    All checks and writes run in one transaction with the prescription row
    locked; the audit event is written only after commit.
    """
    try:
        rx = _lock_prescription(db, prescription_id)

        if rx.status in CLOSED_STATUSES:
            raise InvalidStateError("Prescription is not active",
                                    details={"status": rx.status.value})

        pharmacy_org_id = can_dispense(actor)
        if pharmacy_org_id is None:
            raise ForbiddenError("No pharmacist membership at a pharmacy")

        requested = _requested_by_item(payload)

        items = (db.query(PrescriptionItem).filter(
            PrescriptionItem.prescription_id == rx.id).order_by(
                PrescriptionItem.id.asc()).all())
        known_ids = {i.id for i in items}
        unknown = sorted(set(requested) - known_ids)
        if unknown:
            raise InvalidInputError("Invalid prescription items",
                                    details={"prescription_item_ids": unknown})

        # fresh ledger read, after the lock
        remaining = remaining_from_totals(items,
                                          dispensed_totals(db, rx.id))
        remaining_by_id = {r.prescription_item_id: r for r in remaining}

        for item_id, qty in requested.items():
            left = remaining_by_id[item_id].remaining_quantity
            if qty > left:
                logger.warning(
                    "Over-dispense rejected: rx=%s item=%s requested=%s remaining=%s",
                    rx.id, item_id, qty, left)
                raise OverDispenseError(
                    "Requested quantity exceeds remaining amount",
                    details={
                        "prescription_item_id": item_id,
                        "requested": qty,
                        "remaining": left,
                    },
                )

        is_full = all(r.remaining_quantity -
                      requested.get(r.prescription_item_id, 0) == 0
                      for r in remaining)

        record = DispenseRecord(
            prescription_id=rx.id,
            dispensed_by_id=actor.user_id,
            pharmacy_org_id=pharmacy_org_id,
            status=DispenseStatus.FULL if is_full else DispenseStatus.PARTIAL,
            notes=payload.notes,
            items=[
                DispenseItem(prescription_item_id=item_id, quantity=qty)
                for item_id, qty in requested.items()
            ],
        )
        db.add(record)

        rx.status = (PrescriptionStatus.DISPENSED
                     if is_full else PrescriptionStatus.PARTIALLY_DISPENSED)

        db.commit()
    except CarebaseError:
        db.rollback()
        raise
    except (IntegrityError, OperationalError) as exc:
        db.rollback()
        if is_retryable_conflict(exc):
            raise ConflictError(
                "Prescription was changed by another dispense; verify and retry",
                retryable=True,
            ) from exc
        raise

    logger.info("Dispensed rx=%s record=%s status=%s by user=%s org=%s",
                rx.id, record.id, record.status.value, actor.user_id,
                pharmacy_org_id)

    try:
        audit(
            db,
            action="prescription.dispense",
            actor_user_id=actor.user_id,
            target_type="dispense_record",
            target_id=record.id,
            org_id=pharmacy_org_id,
            metadata={
                "prescription_id": rx.id,
                "status": record.status.value,
                "items": [{
                    "prescription_item_id": i.prescription_item_id,
                    "quantity": i.quantity,
                } for i in record.items],
            },
            **(request_meta or {}),
        )
    except Exception:
        logger.exception("Audit sink failed for dispense record %s",
                         record.id)

    return record


# ---------------- history ----------------


def list_dispenses(
    db: Session,
    prescription_id: int,
    actor: Actor,
    directory: Optional[Directory] = None,
) -> List[DispenseRecord]:
    """
    Dispense history, newest first. Visible to the patient, an active
    guardian, the prescribing doctor and pharmacists at a pharmacy org.
    """
    rx = _load_prescription(db, prescription_id)
    directory = directory or SqlDirectory(db)

    allowed = (actor.user_id == rx.doctor_id
               or can_dispense(actor) is not None
               or can_access_patient_record(actor, rx.patient_id, directory))
    if not allowed:
        raise ForbiddenError("Not permitted to view this prescription")

    return (db.query(DispenseRecord).options(selectinload(
        DispenseRecord.items)).filter(
            DispenseRecord.prescription_id == rx.id).order_by(
                DispenseRecord.created_at.desc(),
                DispenseRecord.id.desc()).all())
