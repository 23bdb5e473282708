# carebase/services/medicines.py
from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from carebase.models.medicine import Medicine
from carebase.schemas.admin import MedicineIn
from carebase.services.access import Actor
from carebase.services.admin import require_root


def create_medicine(db: Session, actor: Actor,
                    payload: MedicineIn) -> Medicine:
    require_root(actor)
    med = Medicine(**payload.model_dump())
    db.add(med)
    db.commit()
    return med


def list_medicines(db: Session,
                   q: Optional[str],
                   page: int,
                   page_size: int) -> Tuple[List[Medicine], int]:
    """
    Catalog search, case-insensitive on name or generic name; newest first.
    Open to every signed-in user.
    """
    query = db.query(Medicine)
    term = (q or "").strip().lower()
    if term:
        like = f"%{term}%"
        query = query.filter(
            or_(
                func.lower(Medicine.name).like(like),
                func.lower(Medicine.generic_name).like(like),
            ))

    total = query.count()
    items = (query.order_by(Medicine.created_at.desc(),
                            Medicine.id.desc()).offset(
                                (page - 1) * page_size).limit(page_size).all())
    return items, total
