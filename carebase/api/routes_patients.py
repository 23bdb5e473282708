from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from carebase.api.deps import current_actor, get_db
from carebase.schemas.patient import PatientOut
from carebase.services import patients as patient_service
from carebase.services.access import Actor
from carebase.utils.resp import ok

router = APIRouter()


@router.get("/patients/{patient_id}")
def get_patient(
        patient_id: int = Path(..., ge=1),
        db: Session = Depends(get_db),
        actor: Actor = Depends(current_actor),
):
    user = patient_service.get_patient(db, actor, patient_id)
    return ok({"patient": PatientOut.model_validate(user)})
