from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fotoderma.api.deps import get_identity_verifier, require_doctor, unauthorized_from
from fotoderma.api.schemas import ProfileUpdate, TokenVerifyRequest
from fotoderma.db.session import get_db
from fotoderma.errors import BadRequestError
from fotoderma.logging_utils import set_doctor_context
from fotoderma.services.identity import IdentityError, IdentityVerifier, Principal
from fotoderma.services.profiles import (
    get_profile,
    serialize_profile,
    update_profile,
    upsert_profile,
)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/verify")
def verify_token(
    payload: TokenVerifyRequest,
    db: Session = Depends(get_db),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> dict[str, Any]:
    """Exchange an identity-provider token for the stored doctor profile."""

    if not payload.token:
        raise BadRequestError("Token is required")
    try:
        principal = verifier.verify(payload.token)
    except IdentityError as exc:
        raise unauthorized_from(exc) from exc

    set_doctor_context(principal.doctor_id)
    profile = upsert_profile(db, principal)
    return {"success": True, "user": serialize_profile(profile)}


@router.get("/me")
def current_user(
    principal: Principal = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    profile = get_profile(db, principal.doctor_id)
    return {"success": True, "user": serialize_profile(profile)}


@router.put("/profile")
def update_user_profile(
    payload: ProfileUpdate,
    principal: Principal = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    profile = update_profile(
        db, principal.doctor_id, name=payload.name, preferences=payload.preferences
    )
    return {"success": True, "user": serialize_profile(profile)}
