from fastapi import APIRouter
from telecare.api.v1 import admin, appointments, consultations

api_router = APIRouter()

api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
api_router.include_router(consultations.router, prefix="/consultations", tags=["consultations"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
