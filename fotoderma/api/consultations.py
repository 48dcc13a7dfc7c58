from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.orm import Session

from fotoderma.api.deps import get_object_store, require_doctor
from fotoderma.api.schemas import ConsultationCreate, ConsultationUpdate, FollowUpCreate
from fotoderma.db.session import get_db
from fotoderma.services import consultations as consultation_service
from fotoderma.services.consultations import UploadedPhoto, serialize_consultation
from fotoderma.services.identity import Principal
from fotoderma.services.object_store import ObjectStore

router = APIRouter(prefix="/consultations", tags=["consultations"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_consultation(
    payload: ConsultationCreate,
    principal: Principal = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    consultation = consultation_service.create_consultation(
        db,
        doctor_id=principal.doctor_id,
        patient_id=payload.patient_id,
        date=payload.date,
        diagnosis=payload.diagnosis,
        disease=payload.disease,
    )
    return {"success": True, "data": serialize_consultation(consultation)}


@router.post("/followup")
def create_follow_up(
    payload: FollowUpCreate,
    principal: Principal = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Append a follow-up to the original consultation and return it."""

    consultation = consultation_service.add_follow_up(
        db,
        doctor_id=principal.doctor_id,
        patient_id=payload.patient_id,
        date=payload.date,
        diagnosis=payload.diagnosis,
        original_consultation_id=payload.original_consultation_id,
        photos=payload.photos,
    )
    return {"success": True, "data": serialize_consultation(consultation)}


@router.get("/patient/{patient_id}")
def list_patient_consultations(
    patient_id: str,
    principal: Principal = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    consultations = consultation_service.list_consultations(
        db, patient_id, principal.doctor_id
    )
    return {"success": True, "data": [serialize_consultation(c) for c in consultations]}


@router.post("/{consultation_id}/photos")
def upload_consultation_photos(
    consultation_id: str,
    photos: list[UploadFile] | None = File(default=None),
    principal: Principal = Depends(require_doctor),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
) -> dict[str, Any]:
    """Store uploaded images and append them to the consultation."""

    files = [
        UploadedPhoto(
            filename=upload.filename or "photo",
            content_type=upload.content_type or "",
            data=upload.file.read(),
        )
        for upload in photos or []
    ]
    result = consultation_service.upload_photos(
        db, consultation_id, principal.doctor_id, files, store
    )
    return {"success": True, "data": result}


@router.get("/{consultation_id}")
def get_consultation(
    consultation_id: str,
    principal: Principal = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    consultation = consultation_service.get_consultation(
        db, consultation_id, principal.doctor_id
    )
    return {"success": True, "data": serialize_consultation(consultation)}


@router.put("/{consultation_id}")
def update_consultation(
    consultation_id: str,
    payload: ConsultationUpdate,
    principal: Principal = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    consultation = consultation_service.update_consultation(
        db,
        consultation_id,
        principal.doctor_id,
        date=payload.date,
        disease=payload.disease,
        diagnosis=payload.diagnosis,
    )
    return {"success": True, "data": serialize_consultation(consultation)}


@router.delete("/{consultation_id}")
def delete_consultation(
    consultation_id: str,
    principal: Principal = Depends(require_doctor),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
) -> dict[str, Any]:
    consultation_service.delete_consultation(
        db, consultation_id, principal.doctor_id, store
    )
    return {"success": True, "message": "Consultation deleted successfully"}
