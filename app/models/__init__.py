"""Database models."""

from app.models.appointments import appointments
from app.models.audit import appointment_status_reversions, patient_noshow_resets
from app.models.base import metadata
from app.models.doctors import doctors
from app.models.medical_orders import appointment_order_assignments, medical_orders

__all__ = [
    "appointment_order_assignments",
    "appointment_status_reversions",
    "appointments",
    "doctors",
    "medical_orders",
    "metadata",
    "patient_noshow_resets",
]
