# carebase/services/remaining.py
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from carebase.models.prescription import (
    DispenseItem,
    DispenseRecord,
    PrescriptionItem,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemainingItem:
    prescription_item_id: int
    prescribed_quantity: int
    dispensed_quantity: int
    remaining_quantity: int


def compute_remaining(
    items: Iterable[PrescriptionItem],
    dispense_history: Iterable[DispenseItem],
) -> List[RemainingItem]:
    """
    Per-item dispensed / remaining quantities.

    ``dispense_history`` must be the complete ledger for the prescription;
    anything less under-counts what was dispensed. Output follows the order
    of ``items``; the order of the history does not matter.
    """
    totals: Dict[int, int] = defaultdict(int)
    for d in dispense_history:
        totals[d.prescription_item_id] += int(d.quantity)
    return _zip_totals(items, totals)


def remaining_from_totals(
    items: Iterable[PrescriptionItem],
    totals: Dict[int, int],
) -> List[RemainingItem]:
    """Same as compute_remaining, from pre-aggregated per-item sums."""
    return _zip_totals(items, totals)


def _zip_totals(items: Iterable[PrescriptionItem],
                totals: Dict[int, int]) -> List[RemainingItem]:
    out: List[RemainingItem] = []
    for item in items:
        prescribed = int(item.quantity)
        dispensed = int(totals.get(item.id, 0))
        if dispensed > prescribed:
            # clamp, but leave a trace: the ledger should never allow this
            logger.warning(
                "Ledger over-dispense on prescription item %s: "
                "prescribed=%s dispensed=%s", item.id, prescribed, dispensed)
        out.append(
            RemainingItem(
                prescription_item_id=item.id,
                prescribed_quantity=prescribed,
                dispensed_quantity=dispensed,
                remaining_quantity=max(prescribed - dispensed, 0),
            ))
    return out


def dispensed_totals(db: Session, prescription_id: int) -> Dict[int, int]:
    """
    SUM(quantity) GROUP BY prescription_item_id over every dispense record of
    the prescription, read in the caller's transaction.
    """
    rows = (db.query(
        DispenseItem.prescription_item_id,
        func.coalesce(func.sum(DispenseItem.quantity), 0),
    ).join(DispenseRecord,
           DispenseRecord.id == DispenseItem.dispense_record_id).filter(
               DispenseRecord.prescription_id == prescription_id).group_by(
                   DispenseItem.prescription_item_id).all())
    return {int(item_id): int(total) for item_id, total in rows}
