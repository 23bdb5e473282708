from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class PatientCreateIn(BaseModel):
    email: EmailStr
    # min length is enforced against settings.PASSWORD_MIN_LENGTH in the service
    password: str = Field(..., min_length=1)
    nic: str = Field(..., min_length=1, max_length=12)
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    dob: Optional[date] = None
    location: Optional[str] = Field(None, min_length=1, max_length=191)
    guardian_email: Optional[EmailStr] = None


class PatientProfileOut(BaseModel):
    id: int
    nic: str
    name: Optional[str] = None
    dob: Optional[date] = None
    location: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PatientOut(BaseModel):
    id: int  # user id; every patient record references it
    email: str
    name: Optional[str] = None
    profile: Optional[PatientProfileOut] = Field(
        None, validation_alias="patient_profile")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
