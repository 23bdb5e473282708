from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from carebase.api.deps import current_actor, get_db
from carebase.schemas.admin import MedicineOut
from carebase.services import medicines as medicine_service
from carebase.services.access import Actor
from carebase.utils.resp import ok

router = APIRouter()


@router.get("/medicines")
def list_medicines(
        q: Optional[str] = Query(None, max_length=100),
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=100),
        db: Session = Depends(get_db),
        actor: Actor = Depends(current_actor),
):
    items, total = medicine_service.list_medicines(db, q, page, page_size)
    return ok({
        "items": [MedicineOut.model_validate(m) for m in items],
        "page": page,
        "page_size": page_size,
        "total": total,
    })
