from fastapi import APIRouter

from carebase.api import (
    routes_auth,
    routes_admin,
    routes_medicines,
    routes_patients,
    routes_prescriptions,
    routes_invites,
)

api_router = APIRouter()

api_router.include_router(routes_auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(routes_admin.router, prefix="/admin", tags=["Admin"])
api_router.include_router(routes_patients.router, tags=["Patients"])
api_router.include_router(routes_medicines.router, tags=["Medicines"])
api_router.include_router(routes_prescriptions.router, tags=["Prescriptions"])
api_router.include_router(routes_invites.router, tags=["Invites"])
