from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from carebase.api.deps import current_actor, get_db
from carebase.schemas.admin import (
    MedicineIn,
    MedicineOut,
    OrgIn,
    OrgOut,
    OrgStatusIn,
)
from carebase.schemas.patient import PatientCreateIn, PatientOut
from carebase.services import admin as admin_service
from carebase.services import medicines as medicine_service
from carebase.services import patients as patient_service
from carebase.services.access import Actor
from carebase.utils.resp import ok

router = APIRouter()


# ---------------- organizations ----------------


@router.post("/orgs", status_code=201)
def create_org(
        payload: OrgIn,
        db: Session = Depends(get_db),
        actor: Actor = Depends(current_actor),
):
    org = admin_service.create_org(db, actor, payload)
    return ok({"org": OrgOut.model_validate(org)}, status_code=201)


@router.get("/orgs")
def list_orgs(
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=100),
        db: Session = Depends(get_db),
        actor: Actor = Depends(current_actor),
):
    items, total = admin_service.list_orgs(db, actor, page, page_size)
    return ok({
        "items": [OrgOut.model_validate(o) for o in items],
        "page": page,
        "page_size": page_size,
        "total": total,
    })


@router.patch("/orgs/{org_id}")
def set_org_status(
        payload: OrgStatusIn,
        org_id: int = Path(..., ge=1),
        db: Session = Depends(get_db),
        actor: Actor = Depends(current_actor),
):
    org = admin_service.set_org_status(db, actor, org_id, payload.status)
    return ok({"org": OrgOut.model_validate(org)})


# ---------------- patients ----------------


@router.post("/patients", status_code=201)
def create_patient(
        payload: PatientCreateIn,
        db: Session = Depends(get_db),
        actor: Actor = Depends(current_actor),
):
    user = patient_service.create_patient(db, actor, payload)
    return ok({"patient": PatientOut.model_validate(user)}, status_code=201)


# ---------------- medicines ----------------


@router.post("/medicines", status_code=201)
def create_medicine(
        payload: MedicineIn,
        db: Session = Depends(get_db),
        actor: Actor = Depends(current_actor),
):
    med = medicine_service.create_medicine(db, actor, payload)
    return ok({"medicine": MedicineOut.model_validate(med)}, status_code=201)
