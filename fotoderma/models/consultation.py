from __future__ import annotations

from typing import Any

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fotoderma.models.base import Base, JSONDocument, TimestampMixin, new_id


class Consultation(Base, TimestampMixin):
    """Clinical encounter that accumulates its follow-up history."""

    __tablename__ = "consultations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    patient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("patients.id", ondelete="CASCADE"), index=True
    )
    # Copied from the patient at creation; authorization always re-reads the patient.
    doctor_id: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    date: Mapped[str] = mapped_column(String(32), nullable=False)
    disease: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    diagnosis: Mapped[str] = mapped_column(Text, nullable=False)
    photos: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument, default=list, nullable=False
    )
    follow_ups: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument, default=list, nullable=False
    )
    has_follow_up: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_follow_up_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_follow_up: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    original_consultation_id: Mapped[str | None] = mapped_column(
        String(36), nullable=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
