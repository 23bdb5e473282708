# carebase/schemas/invite.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from carebase.models.organization import InviteStatus, OrgRole


class OrgInviteIn(BaseModel):
    email: EmailStr
    role: OrgRole


class GuardianInviteIn(BaseModel):
    email: EmailStr


class InviteAcceptIn(BaseModel):
    token: str = Field(..., min_length=1)
    # min length is enforced against settings.PASSWORD_MIN_LENGTH in the service
    password: str = Field(..., min_length=1)


class InviteOut(BaseModel):
    id: int
    email: str
    token: str
    status: InviteStatus
    expires_at: datetime
    org_id: Optional[int] = None
    role: Optional[OrgRole] = None
    patient_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class InviteAcceptOut(BaseModel):
    user_id: int
    created: bool
