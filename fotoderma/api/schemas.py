from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request body accepting the camelCase keys sent by the web client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TokenVerifyRequest(CamelModel):
    token: str | None = None


class ProfileUpdate(CamelModel):
    name: str | None = None
    preferences: dict[str, Any] | None = None


class PatientCreate(CamelModel):
    first_name: str | None = None
    last_name: str | None = None
    age: Any = None
    photos: Any = None
    photo: str | None = None
    disease: str | None = None
    consultation_date: str | None = None
    diagnosis: str | None = None


class PatientUpdate(CamelModel):
    first_name: str | None = None
    last_name: str | None = None
    age: Any = None
    photo: str | None = None
    photos: Any = None


class ConsultationCreate(CamelModel):
    patient_id: str | None = None
    date: str | None = None
    disease: str | None = None
    diagnosis: str | None = None


class FollowUpCreate(CamelModel):
    patient_id: str | None = None
    date: str | None = None
    diagnosis: str | None = None
    original_consultation_id: str | None = None
    photos: Any = None


class ConsultationUpdate(CamelModel):
    date: str | None = None
    disease: str | None = None
    diagnosis: str | None = None
