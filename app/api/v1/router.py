"""API v1 router configuration."""

from fastapi import APIRouter

from app.api.v1.endpoints import appointments, doctors, health, medical_orders, patients

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(
    medical_orders.router, prefix="/medical-orders", tags=["Medical Orders"]
)
api_router.include_router(patients.router, prefix="/patients", tags=["Patients"])
api_router.include_router(doctors.router, prefix="/doctors", tags=["Doctors"])
