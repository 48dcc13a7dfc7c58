"""Import SQLAlchemy models for Alembic's autogenerate feature."""

from fotoderma.models.base import Base
from fotoderma.models import (  # noqa: F401
    Consultation,
    DoctorProfile,
    Patient,
)

__all__ = [
    "Base",
    "Consultation",
    "DoctorProfile",
    "Patient",
]
