"""Consultations, follow-up merging and photo accumulation."""

from __future__ import annotations

import logging
import secrets
import time
import uuid
from dataclasses import dataclass
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from fotoderma.core.config import settings
from fotoderma.errors import BadRequestError, ConflictError, InternalError
from fotoderma.models import Consultation
from fotoderma.models.base import utcnow_iso
from fotoderma.services.dates import format_display_date
from fotoderma.services.object_store import ObjectStore, ObjectStoreError
from fotoderma.services.ownership import get_owned_consultation, get_owned_patient
from fotoderma.services.validation import (
    clean_text,
    is_blank,
    normalize_photo_refs,
    parse_calendar_date,
)

logger = logging.getLogger(__name__)

FOLLOW_UP_HEADER = "--- SEGUIMIENTO {formatted_date} ---"


@dataclass
class UploadedPhoto:
    """Image received from the client, before it reaches the object store."""

    filename: str
    content_type: str
    data: bytes


def serialize_consultation(consultation: Consultation) -> dict[str, Any]:
    """Return the document view of a consultation with a non-null photo list."""

    return {
        "id": consultation.id,
        "patientId": consultation.patient_id,
        "doctorId": consultation.doctor_id,
        "date": consultation.date,
        "disease": consultation.disease or "",
        "diagnosis": consultation.diagnosis,
        "photos": list(consultation.photos or []),
        "followUps": list(consultation.follow_ups or []),
        "hasFollowUp": bool(consultation.has_follow_up),
        "lastFollowUpDate": consultation.last_follow_up_date,
        "isFollowUp": bool(consultation.is_follow_up),
        "originalConsultationId": consultation.original_consultation_id,
        "createdAt": consultation.created_at,
        "updatedAt": consultation.updated_at,
    }


def _flush_or_conflict(db: Session) -> None:
    try:
        db.flush()
    except StaleDataError as exc:
        raise ConflictError(
            "Consultation was modified concurrently, retry the request"
        ) from exc


def create_consultation(
    db: Session,
    *,
    doctor_id: str,
    patient_id: str | None,
    date: str | None,
    diagnosis: str | None,
    disease: str | None = None,
    photos: Sequence[dict[str, Any]] | None = None,
) -> Consultation:
    """Create a standalone consultation for one of the caller's patients.

    A non-empty ``disease`` also becomes the patient's current disease label.
    """

    if is_blank(patient_id) or is_blank(date) or is_blank(diagnosis):
        raise BadRequestError("Patient ID, date, and diagnosis are required")

    patient = get_owned_patient(db, patient_id, doctor_id)
    consultation_date = parse_calendar_date(date)
    disease_label = clean_text(disease)

    consultation = Consultation(
        patient_id=patient.id,
        doctor_id=patient.doctor_id,
        date=consultation_date,
        disease=disease_label,
        diagnosis=clean_text(diagnosis),
        photos=list(photos or []),
        follow_ups=[],
        has_follow_up=False,
        is_follow_up=False,
        original_consultation_id=None,
    )
    db.add(consultation)

    if disease_label:
        patient.disease = disease_label
        patient.touch()

    db.flush()
    logger.info(
        "consultation created",
        extra={"consultation_id": consultation.id, "patient_id": patient.id},
    )
    return consultation


def get_consultation(db: Session, consultation_id: str, doctor_id: str) -> Consultation:
    consultation, _ = get_owned_consultation(db, consultation_id, doctor_id)
    return consultation


def _recency_key(consultation: Consultation) -> tuple[str, str, int]:
    return (
        consultation.date or consultation.created_at[:10],
        consultation.created_at,
        consultation.created_seq,
    )


def list_consultations(db: Session, patient_id: str, doctor_id: str) -> list[Consultation]:
    """Return a patient's consultations, most recent first."""

    patient = get_owned_patient(db, patient_id, doctor_id)
    stmt = select(Consultation).where(Consultation.patient_id == patient.id)
    consultations = db.execute(stmt).scalars().all()
    return sorted(consultations, key=_recency_key, reverse=True)


def add_follow_up(
    db: Session,
    *,
    doctor_id: str,
    patient_id: str | None,
    date: str | None,
    diagnosis: str | None,
    original_consultation_id: str | None,
    photos: Any = None,
) -> Consultation:
    """Append a follow-up to an existing consultation and return it.

    No new consultation document is created: the follow-up is embedded in
    ``follow_ups``, its diagnosis is appended to the original diagnosis under a
    ``--- SEGUIMIENTO DD/MM/YYYY ---`` header, and its photos are appended to
    the original photo list. The disease label never changes. At most one
    follow-up may exist per calendar date. The write is guarded by the
    consultation's version counter so that two concurrent submissions cannot
    both pass the duplicate check.
    """

    if (
        is_blank(patient_id)
        or is_blank(date)
        or is_blank(diagnosis)
        or is_blank(original_consultation_id)
    ):
        raise BadRequestError(
            "Patient ID, date, diagnosis, and original consultation ID are required"
        )

    patient = get_owned_patient(db, patient_id, doctor_id)
    original, _ = get_owned_consultation(db, original_consultation_id, doctor_id)
    if original.patient_id != patient.id:
        raise BadRequestError("Original consultation belongs to another patient")

    follow_up_date = parse_calendar_date(date)
    follow_up_photos = normalize_photo_refs(photos)
    existing = list(original.follow_ups or [])
    for follow_up in existing:
        try:
            existing_date = parse_calendar_date(follow_up.get("date", ""))
        except BadRequestError:
            existing_date = follow_up.get("date")
        if existing_date == follow_up_date:
            raise ConflictError(
                "A follow-up already exists for this date",
                error="Duplicate follow-up",
            )

    formatted_date = format_display_date(date.strip())
    follow_up_diagnosis = clean_text(diagnosis)
    existing.append(
        {
            "date": follow_up_date,
            "formattedDate": formatted_date,
            "diagnosis": follow_up_diagnosis,
            "createdAt": utcnow_iso(),
        }
    )

    header = FOLLOW_UP_HEADER.format(formatted_date=formatted_date)
    original.diagnosis = f"{original.diagnosis}\n\n{header}\n\n{follow_up_diagnosis}"
    original.follow_ups = existing
    original.has_follow_up = True
    original.last_follow_up_date = follow_up_date
    if follow_up_photos:
        original.photos = list(original.photos or []) + follow_up_photos
    original.touch()

    _flush_or_conflict(db)
    logger.info(
        "follow-up appended",
        extra={
            "consultation_id": original.id,
            "follow_up_date": follow_up_date,
            "follow_ups": len(existing),
        },
    )
    return original


def update_consultation(
    db: Session,
    consultation_id: str,
    doctor_id: str,
    *,
    date: str | None = None,
    disease: str | None = None,
    diagnosis: str | None = None,
) -> Consultation:
    consultation, _ = get_owned_consultation(db, consultation_id, doctor_id)

    if not is_blank(date):
        consultation.date = parse_calendar_date(date)
    if disease is not None:
        consultation.disease = clean_text(disease)
    if not is_blank(diagnosis):
        consultation.diagnosis = clean_text(diagnosis)
    consultation.touch()

    _flush_or_conflict(db)
    return consultation


def _object_name(consultation_id: str, filename: str) -> str:
    safe_name = "".join(c for c in filename if c.isalnum() or c in "._-") or "photo"
    timestamp = int(time.time() * 1000)
    return f"consultations/{consultation_id}/{timestamp}_{secrets.token_hex(4)}_{safe_name}"


def _validate_uploads(files: Sequence[UploadedPhoto]) -> None:
    if not files:
        raise BadRequestError("No files uploaded")
    if len(files) > settings.upload_max_files:
        raise BadRequestError(
            f"At most {settings.upload_max_files} photos can be uploaded at once"
        )
    for upload in files:
        if not (upload.content_type or "").startswith("image/"):
            raise BadRequestError(f"Only image files are allowed: {upload.filename}")
        if len(upload.data) > settings.upload_max_bytes:
            raise BadRequestError(f"File too large: {upload.filename}")


def upload_photos(
    db: Session,
    consultation_id: str,
    doctor_id: str,
    files: Sequence[UploadedPhoto],
    store: ObjectStore,
) -> dict[str, Any]:
    """Store images and append their records to the consultation's photo list.

    A failure on one file is reported in ``failed`` and does not stop the
    others. Successful records are appended in a single update.
    """

    _validate_uploads(files)
    consultation, _ = get_owned_consultation(db, consultation_id, doctor_id)

    uploaded: list[dict[str, Any]] = []
    failed: list[dict[str, str]] = []
    for upload in files:
        name = _object_name(consultation.id, upload.filename)
        try:
            stored = store.put(name, upload.data, upload.content_type)
        except ObjectStoreError as exc:
            logger.warning(
                "photo upload failed",
                extra={"consultation_id": consultation.id, "file_name": name},
                exc_info=exc,
            )
            failed.append({"originalName": upload.filename, "reason": "upload failed"})
            continue
        uploaded.append(
            {
                "id": uuid.uuid4().hex,
                "url": stored.url,
                "fileName": stored.name,
                "originalName": upload.filename,
                "uploadedAt": utcnow_iso(),
            }
        )

    if not uploaded:
        raise InternalError("Failed to upload photos")

    consultation.photos = list(consultation.photos or []) + uploaded
    consultation.touch()
    try:
        _flush_or_conflict(db)
    except ConflictError:
        remove_photo_objects(store, [photo["fileName"] for photo in uploaded])
        raise

    return {
        "uploaded": uploaded,
        "failed": failed,
        "totalPhotos": len(consultation.photos),
    }


def remove_photo_objects(store: ObjectStore, file_names: Sequence[str]) -> int:
    """Best-effort blob removal; failures are logged and skipped."""

    removed = 0
    for name in file_names:
        try:
            store.remove(name)
            removed += 1
        except ObjectStoreError:
            logger.warning("photo removal failed", extra={"file_name": name}, exc_info=True)
    return removed


def photo_file_names(consultation: Consultation) -> list[str]:
    return [
        photo["fileName"]
        for photo in consultation.photos or []
        if isinstance(photo, dict) and photo.get("fileName")
    ]


def delete_consultation(
    db: Session, consultation_id: str, doctor_id: str, store: ObjectStore
) -> None:
    """Delete the consultation document and remove its blobs.

    The version-checked DELETE is flushed first so that a concurrent photo
    upload turns into a conflict before any blob is touched. The row stays
    uncommitted until the request transaction ends, after the blobs are gone.
    """

    consultation, _ = get_owned_consultation(db, consultation_id, doctor_id)
    file_names = photo_file_names(consultation)
    db.delete(consultation)
    _flush_or_conflict(db)
    remove_photo_objects(store, file_names)
    logger.info("consultation deleted", extra={"consultation_id": consultation_id})
