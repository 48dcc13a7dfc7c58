"""Patient profiles scoped to the owning doctor."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from fotoderma.errors import BadRequestError
from fotoderma.models import Consultation, Patient
from fotoderma.services.consultations import create_consultation, photo_file_names
from fotoderma.services.dates import today_local
from fotoderma.services.ownership import get_owned_patient
from fotoderma.services.validation import (
    clean_text,
    is_blank,
    normalize_photo_refs,
    parse_age,
)

logger = logging.getLogger(__name__)


def serialize_patient(patient: Patient) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": patient.id,
        "firstName": patient.first_name,
        "lastName": patient.last_name,
        "age": patient.age,
        "photos": list(patient.photos or []),
        "photo": patient.photo,
        "doctorId": patient.doctor_id,
        "createdAt": patient.created_at,
        "updatedAt": patient.updated_at,
    }
    if patient.disease:
        payload["disease"] = patient.disease
    return payload


def list_patients(db: Session, doctor_id: str) -> list[Patient]:
    """Return the doctor's patients, newest first."""

    stmt = (
        select(Patient)
        .where(Patient.doctor_id == doctor_id)
        .order_by(Patient.created_at.desc(), Patient.created_seq.desc())
    )
    return list(db.execute(stmt).scalars().all())


def search_patients(db: Session, doctor_id: str, query: str | None) -> list[Patient]:
    """Case-insensitive substring search over first, last and full name."""

    term = (query or "").strip().casefold()
    patients = list_patients(db, doctor_id)
    if not term:
        return patients
    return [
        patient
        for patient in patients
        if term in patient.first_name.casefold()
        or term in patient.last_name.casefold()
        or term in patient.full_name.casefold()
    ]


def distribute_intake_photos(
    photos: list[dict[str, Any]], *, creates_consultation: bool
) -> tuple[dict[str, Any] | None, list[dict[str, Any]]]:
    """Split intake photos into the profile photo and the consultation photos.

    The first photo always goes to the patient profile. The rest go to the
    first consultation, but only when one is being created; otherwise they are
    dropped.
    """

    if not photos:
        return None, []
    profile_photo, rest = photos[0], photos[1:]
    if not creates_consultation:
        if rest:
            logger.info(
                "discarding intake photos without a consultation",
                extra={"count": len(rest)},
            )
        return profile_photo, []
    return profile_photo, rest


def create_patient(
    db: Session,
    doctor_id: str,
    *,
    first_name: str | None,
    last_name: str | None,
    age: Any,
    photos: Any = None,
    photo: str | None = None,
    disease: str | None = None,
    consultation_date: str | None = None,
    diagnosis: str | None = None,
) -> tuple[Patient, Consultation | None]:
    """Create a patient and, when a diagnosis is given, its first consultation.

    Both documents are written in the caller's transaction.
    """

    if is_blank(first_name) or is_blank(last_name) or is_blank(age):
        raise BadRequestError("First name, last name, and age are required")
    patient_age = parse_age(age)

    creates_consultation = not is_blank(diagnosis)
    profile_photo, consultation_photos = distribute_intake_photos(
        normalize_photo_refs(photos), creates_consultation=creates_consultation
    )

    patient = Patient(
        doctor_id=doctor_id,
        first_name=clean_text(first_name),
        last_name=clean_text(last_name),
        age=patient_age,
        photos=[profile_photo] if profile_photo else [],
        photo=profile_photo["url"] if profile_photo else (photo or None),
        disease=clean_text(disease) or None,
    )
    db.add(patient)
    db.flush()

    consultation = None
    if creates_consultation:
        consultation = create_consultation(
            db,
            doctor_id=doctor_id,
            patient_id=patient.id,
            date=consultation_date if not is_blank(consultation_date) else today_local(),
            diagnosis=diagnosis,
            disease=disease,
            photos=consultation_photos,
        )

    logger.info(
        "patient created",
        extra={"patient_id": patient.id, "with_consultation": consultation is not None},
    )
    return patient, consultation


def update_patient(
    db: Session,
    patient_id: str,
    doctor_id: str,
    changes: dict[str, Any],
) -> Patient:
    """Apply the provided subset of name, age and photo fields."""

    patient = get_owned_patient(db, patient_id, doctor_id)

    if not is_blank(changes.get("first_name")):
        patient.first_name = clean_text(changes["first_name"])
    if not is_blank(changes.get("last_name")):
        patient.last_name = clean_text(changes["last_name"])
    if not is_blank(changes.get("age")):
        patient.age = parse_age(changes["age"])
    if "photo" in changes:
        patient.photo = changes["photo"]
    if "photos" in changes:
        patient.photos = normalize_photo_refs(changes["photos"])
    patient.touch()

    db.flush()
    return patient


def delete_patient(db: Session, patient_id: str, doctor_id: str) -> list[str]:
    """Delete a patient with all of its consultations in the caller's transaction.

    Returns the blob names referenced by the deleted consultations so they can
    be purged once the transaction commits.
    """

    patient = get_owned_patient(db, patient_id, doctor_id)
    stmt = select(Consultation).where(Consultation.patient_id == patient.id)
    consultations = db.execute(stmt).scalars().all()

    file_names: list[str] = []
    for consultation in consultations:
        file_names.extend(photo_file_names(consultation))
        db.delete(consultation)
    # Children first: the foreign key cascades on PostgreSQL.
    db.flush()
    db.delete(patient)
    db.flush()

    logger.info(
        "patient deleted",
        extra={"patient_id": patient_id, "consultations": len(consultations)},
    )
    return file_names
