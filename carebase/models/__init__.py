# carebase/models/__init__.py
from .user import User, GlobalRole
from .organization import (
    Organization,
    OrgMember,
    OrgInvite,
    OrgType,
    OrgStatus,
    OrgRole,
    InviteStatus,
)
from .medicine import Medicine
from .prescription import (
    Prescription,
    PrescriptionItem,
    DispenseRecord,
    DispenseItem,
    PrescriptionStatus,
    DispenseStatus,
)
from .guardian import GuardianLink, GuardianInvite, GuardianStatus
from .patient import PatientProfile
from .audit import AuditLog

__all__ = [
    "User",
    "GlobalRole",
    "Organization",
    "OrgMember",
    "OrgInvite",
    "OrgType",
    "OrgStatus",
    "OrgRole",
    "InviteStatus",
    "Medicine",
    "Prescription",
    "PrescriptionItem",
    "DispenseRecord",
    "DispenseItem",
    "PrescriptionStatus",
    "DispenseStatus",
    "GuardianLink",
    "GuardianInvite",
    "GuardianStatus",
    "PatientProfile",
    "AuditLog",
]
