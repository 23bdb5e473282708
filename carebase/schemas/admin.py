# carebase/schemas/admin.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from carebase.models.organization import OrgStatus, OrgType


class OrgIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=191)
    type: OrgType
    domain: Optional[str] = None

    @field_validator("domain")
    @classmethod
    def _norm_domain(cls, v: Optional[str]) -> Optional[str]:
        v = (v or "").strip().lower().lstrip("@")
        return v or None


class OrgOut(BaseModel):
    id: int
    name: str
    type: OrgType
    status: OrgStatus
    domain: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MedicineIn(BaseModel):
    name: str = Field(..., min_length=1)
    generic_name: Optional[str] = None
    strength: Optional[str] = None
    form: str = Field(..., pattern="^(TABLET|CAPSULE|SYRUP|INJECTION|CREAM|OTHER)$")
    manufacturer: Optional[str] = None
    notes: Optional[str] = None


class MedicineOut(MedicineIn):
    id: int

    model_config = ConfigDict(from_attributes=True)


class OrgStatusIn(BaseModel):
    status: OrgStatus
