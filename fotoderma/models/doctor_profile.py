from __future__ import annotations

from typing import Any

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from fotoderma.models.base import Base, JSONDocument, TimestampMixin

DEFAULT_PREFERENCES: dict[str, Any] = {"language": "es", "zoomLevel": 100}


class DoctorProfile(Base, TimestampMixin):
    """Denormalized profile of an authenticated doctor, keyed by principal id."""

    __tablename__ = "doctor_profiles"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    picture: Mapped[str] = mapped_column(String(2048), default="", nullable=False)
    role: Mapped[str] = mapped_column(String(32), default="doctor", nullable=False)
    preferences: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument, default=lambda: dict(DEFAULT_PREFERENCES), nullable=False
    )
    last_login: Mapped[str | None] = mapped_column(String(32), nullable=True)
