# carebase/schemas/prescription.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from carebase.models.prescription import DispenseStatus, PrescriptionStatus


# -------- Prescriptions --------


class PrescriptionItemIn(BaseModel):
    medicine_id: int = Field(..., ge=1)
    dose: str = Field(..., min_length=1, max_length=64)
    frequency: str = Field(..., min_length=1, max_length=64)
    duration_days: int = Field(..., ge=1)
    quantity: int = Field(..., gt=0)


class PrescriptionCreateIn(BaseModel):
    notes: Optional[str] = None
    items: List[PrescriptionItemIn] = Field(..., min_length=1)


class PrescriptionItemOut(BaseModel):
    id: int
    medicine_id: int
    dose: str
    frequency: str
    duration_days: int
    quantity: int

    model_config = ConfigDict(from_attributes=True)


class PrescriptionOut(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    status: PrescriptionStatus
    notes: Optional[str] = None
    created_at: datetime
    items: List[PrescriptionItemOut] = []

    model_config = ConfigDict(from_attributes=True)


# -------- Dispensing --------


class DispenseItemIn(BaseModel):
    prescription_item_id: int = Field(..., ge=1)
    quantity: int = Field(..., gt=0)


class DispenseIn(BaseModel):
    notes: Optional[str] = Field(None, min_length=1)
    items: List[DispenseItemIn] = Field(..., min_length=1)


class RemainingItemOut(BaseModel):
    prescription_item_id: int
    prescribed_quantity: int
    dispensed_quantity: int
    remaining_quantity: int

    model_config = ConfigDict(from_attributes=True)


class VerifyOut(BaseModel):
    prescription: PrescriptionOut
    remaining_items: List[RemainingItemOut]


class DispenseItemOut(BaseModel):
    id: int
    prescription_item_id: int
    quantity: int

    model_config = ConfigDict(from_attributes=True)


class DispenseRecordOut(BaseModel):
    id: int
    prescription_id: int
    dispensed_by_id: int
    pharmacy_org_id: int
    status: DispenseStatus
    notes: Optional[str] = None
    created_at: datetime
    items: List[DispenseItemOut] = []

    model_config = ConfigDict(from_attributes=True)
