"""SQLAlchemy models for the FotoDerma API."""

from fotoderma.models.consultation import Consultation
from fotoderma.models.doctor_profile import DEFAULT_PREFERENCES, DoctorProfile
from fotoderma.models.patient import Patient

__all__ = [
    "Consultation",
    "DEFAULT_PREFERENCES",
    "DoctorProfile",
    "Patient",
]
