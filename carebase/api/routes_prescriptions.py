# carebase/api/routes_prescriptions.py
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.orm import Session

from carebase.api.deps import current_actor, get_db, request_meta
from carebase.schemas.prescription import (
    DispenseIn,
    DispenseRecordOut,
    PrescriptionCreateIn,
    PrescriptionOut,
    RemainingItemOut,
    VerifyOut,
)
from carebase.services import dispense as dispense_service
from carebase.services import prescriptions as rx_service
from carebase.services.access import Actor
from carebase.utils.resp import ok

router = APIRouter()


@router.post("/patients/{patient_id}/prescriptions", status_code=201)
def create_prescription(
        payload: PrescriptionCreateIn,
        patient_id: int = Path(..., ge=1),
        db: Session = Depends(get_db),
        actor: Actor = Depends(current_actor),
):
    rx = rx_service.create_prescription(db, actor, patient_id, payload)
    return ok({"prescription": PrescriptionOut.model_validate(rx)},
              status_code=201)


@router.get("/prescriptions/{prescription_id}")
def get_prescription(
        prescription_id: int = Path(..., ge=1),
        db: Session = Depends(get_db),
        actor: Actor = Depends(current_actor),
):
    rx = rx_service.get_prescription(db, actor, prescription_id)
    return ok({"prescription": PrescriptionOut.model_validate(rx)})


@router.api_route("/prescriptions/{prescription_id}",
                  methods=["PUT", "PATCH", "DELETE"])
def reject_prescription_mutation(prescription_id: int):
    raise HTTPException(status_code=405,
                        detail="Prescriptions are immutable")


@router.post("/prescriptions/{prescription_id}/verify")
def verify_prescription(
        prescription_id: int = Path(..., ge=1),
        db: Session = Depends(get_db),
        actor: Actor = Depends(current_actor),
):
    """
    Advisory snapshot of remaining quantities. The dispense call re-checks
    everything, so a stale snapshot can never cause an over-dispense.
    """
    rx, remaining = dispense_service.verify(db, prescription_id, actor)
    out = VerifyOut(
        prescription=PrescriptionOut.model_validate(rx),
        remaining_items=[RemainingItemOut.model_validate(r) for r in remaining],
    )
    return ok(out)


@router.post("/prescriptions/{prescription_id}/dispense", status_code=201)
def dispense_prescription(
        payload: DispenseIn,
        prescription_id: int = Path(..., ge=1),
        db: Session = Depends(get_db),
        actor: Actor = Depends(current_actor),
        meta: Dict[str, Optional[str]] = Depends(request_meta),
):
    record = dispense_service.dispense(db,
                                       prescription_id,
                                       actor,
                                       payload,
                                       request_meta=meta)
    return ok({"dispense_record": DispenseRecordOut.model_validate(record)},
              status_code=201)


@router.get("/prescriptions/{prescription_id}/dispenses")
def list_dispenses(
        prescription_id: int = Path(..., ge=1),
        db: Session = Depends(get_db),
        actor: Actor = Depends(current_actor),
):
    records = dispense_service.list_dispenses(db, prescription_id, actor)
    return ok({
        "dispense_records":
        [DispenseRecordOut.model_validate(r) for r in records]
    })
