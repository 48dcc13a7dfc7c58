from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from fotoderma.api.deps import require_doctor
from fotoderma.api.schemas import PatientCreate, PatientUpdate
from fotoderma.db.session import get_db
from fotoderma.jobs.tasks import schedule_photo_purge
from fotoderma.services import patients as patient_service
from fotoderma.services.consultations import serialize_consultation
from fotoderma.services.identity import Principal
from fotoderma.services.ownership import get_owned_patient
from fotoderma.services.patients import serialize_patient

router = APIRouter(prefix="/patients", tags=["patients"])


@router.get("")
def list_patients(
    principal: Principal = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    patients = patient_service.list_patients(db, principal.doctor_id)
    return {"success": True, "data": [serialize_patient(p) for p in patients]}


@router.get("/search")
def search_patients(
    q: str | None = Query(default=None),
    principal: Principal = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    patients = patient_service.search_patients(db, principal.doctor_id, q)
    return {"success": True, "data": [serialize_patient(p) for p in patients]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_patient(
    payload: PatientCreate,
    principal: Principal = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Create a patient and, when a diagnosis is sent, its first consultation."""

    patient, consultation = patient_service.create_patient(
        db,
        principal.doctor_id,
        first_name=payload.first_name,
        last_name=payload.last_name,
        age=payload.age,
        photos=payload.photos,
        photo=payload.photo,
        disease=payload.disease,
        consultation_date=payload.consultation_date,
        diagnosis=payload.diagnosis,
    )
    data = serialize_patient(patient)
    data["firstConsultation"] = (
        serialize_consultation(consultation) if consultation else None
    )
    message = (
        "Patient and first consultation created successfully"
        if consultation
        else "Patient created successfully"
    )
    return {"success": True, "data": data, "message": message}


@router.get("/{patient_id}")
def get_patient(
    patient_id: str,
    principal: Principal = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    patient = get_owned_patient(db, patient_id, principal.doctor_id)
    return {"success": True, "data": serialize_patient(patient)}


@router.put("/{patient_id}")
def update_patient(
    patient_id: str,
    payload: PatientUpdate,
    principal: Principal = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    patient = patient_service.update_patient(
        db, patient_id, principal.doctor_id, payload.model_dump(exclude_unset=True)
    )
    return {"success": True, "data": serialize_patient(patient)}


@router.delete("/{patient_id}")
def delete_patient(
    patient_id: str,
    principal: Principal = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Delete a patient and its consultations, then queue blob cleanup."""

    file_names = patient_service.delete_patient(db, patient_id, principal.doctor_id)
    db.commit()
    schedule_photo_purge(file_names)
    return {"success": True, "message": "Patient deleted successfully"}
