"""Doctor profile documents backing the auth endpoints."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from fotoderma.errors import NotFoundError
from fotoderma.models import DEFAULT_PREFERENCES, DoctorProfile
from fotoderma.models.base import utcnow_iso
from fotoderma.services.identity import Principal

logger = logging.getLogger(__name__)


def serialize_profile(profile: DoctorProfile) -> dict[str, Any]:
    return {
        "uid": profile.id,
        "email": profile.email,
        "name": profile.name,
        "picture": profile.picture,
        "role": profile.role,
        "preferences": dict(profile.preferences or {}),
        "lastLogin": profile.last_login,
        "createdAt": profile.created_at,
        "updatedAt": profile.updated_at,
    }


def upsert_profile(db: Session, principal: Principal) -> DoctorProfile:
    """Create the profile on first login, otherwise record the new login."""

    now = utcnow_iso()
    profile = db.get(DoctorProfile, principal.doctor_id)
    if profile is None:
        profile = DoctorProfile(
            id=principal.doctor_id,
            email=principal.email,
            name=principal.display_name,
            picture=principal.picture,
            role="doctor",
            preferences=dict(DEFAULT_PREFERENCES),
            last_login=now,
        )
        db.add(profile)
        logger.info("doctor profile created", extra={"profile_id": principal.doctor_id})
    else:
        profile.last_login = now
    db.flush()
    return profile


def get_profile(db: Session, doctor_id: str) -> DoctorProfile:
    profile = db.get(DoctorProfile, doctor_id)
    if profile is None:
        raise NotFoundError("User profile does not exist", error="User not found")
    return profile


def update_profile(
    db: Session,
    doctor_id: str,
    *,
    name: str | None = None,
    preferences: dict[str, Any] | None = None,
) -> DoctorProfile:
    profile = get_profile(db, doctor_id)
    if name:
        profile.name = name.strip()
    if preferences:
        profile.preferences = {**(profile.preferences or {}), **preferences}
    profile.touch()
    db.flush()
    return profile
