"""Ownership-chain checks: doctor -> patient -> consultation."""

from __future__ import annotations

from sqlalchemy.orm import Session

from fotoderma.errors import ForbiddenError, NotFoundError
from fotoderma.models import Consultation, Patient


def get_owned_patient(db: Session, patient_id: str, doctor_id: str) -> Patient:
    """Load a patient and ensure it belongs to ``doctor_id``."""

    patient = db.get(Patient, patient_id)
    if patient is None:
        raise NotFoundError("Patient does not exist", error="Patient not found")
    if patient.doctor_id != doctor_id:
        raise ForbiddenError("You do not have access to this patient")
    return patient


def get_owned_consultation(
    db: Session, consultation_id: str, doctor_id: str
) -> tuple[Consultation, Patient]:
    """Load a consultation and its live patient, checking the patient's owner.

    ``Consultation.doctor_id`` is a denormalized copy and is never trusted here.
    """

    consultation = db.get(Consultation, consultation_id)
    if consultation is None:
        raise NotFoundError(
            "Consultation does not exist", error="Consultation not found"
        )
    patient = db.get(Patient, consultation.patient_id)
    if patient is None or patient.doctor_id != doctor_id:
        raise ForbiddenError("You do not have access to this consultation")
    return consultation, patient
