import pytest
from sqlalchemy import select

from conftest import (
    DOCTOR_A,
    DOCTOR_B,
    auth_headers,
    create_consultation,
    create_patient,
    photo_ref,
)
from fotoderma.errors import ConflictError
from fotoderma.models import Consultation
from fotoderma.services.consultations import add_follow_up


def _follow_up(client, patient_id, consultation_id, uid=DOCTOR_A, **overrides):
    payload = {
        "patientId": patient_id,
        "originalConsultationId": consultation_id,
        "date": "2025-03-15",
        "diagnosis": "Mejoria parcial, continuar tratamiento",
    }
    payload.update(overrides)
    return client.post("/consultations/followup", json=payload, headers=auth_headers(uid))


def test_follow_up_merges_into_original(client, db_session):
    patient = create_patient(client)
    original = create_consultation(
        client,
        patient["id"],
        date="2025-03-01",
        diagnosis="Dermatitis seborreica leve",
        disease="Dermatitis",
    )

    response = _follow_up(client, patient["id"], original["id"])

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["id"] == original["id"]
    assert data["diagnosis"] == (
        "Dermatitis seborreica leve\n\n--- SEGUIMIENTO 15/03/2025 ---\n\n"
        "Mejoria parcial, continuar tratamiento"
    )
    assert data["diagnosis"].startswith(original["diagnosis"])
    assert data["disease"] == "Dermatitis"
    assert data["hasFollowUp"] is True
    assert data["lastFollowUpDate"] == "2025-03-15"
    assert data["isFollowUp"] is False
    assert len(data["followUps"]) == 1
    record = data["followUps"][0]
    assert record["date"] == "2025-03-15"
    assert record["formattedDate"] == "15/03/2025"
    assert record["diagnosis"] == "Mejoria parcial, continuar tratamiento"
    # No separate consultation document is created.
    assert len(db_session.execute(select(Consultation)).scalars().all()) == 1


def test_follow_ups_accumulate_and_append_photos(client):
    patient = create_patient(
        client, photos=[photo_ref("p0.jpg"), photo_ref("p1.jpg")], diagnosis="Acne"
    )
    original = patient["firstConsultation"]

    _follow_up(
        client, patient["id"], original["id"], date="2025-04-01", photos=[photo_ref("f1.jpg")]
    )
    response = _follow_up(
        client,
        patient["id"],
        original["id"],
        date="2025-05-01",
        diagnosis="Resuelto",
        photos=[photo_ref("f2.jpg"), photo_ref("f3.jpg")],
    )

    data = response.json()["data"]
    assert [p["fileName"] for p in data["photos"]] == ["p1.jpg", "f1.jpg", "f2.jpg", "f3.jpg"]
    assert [f["date"] for f in data["followUps"]] == ["2025-04-01", "2025-05-01"]
    assert data["lastFollowUpDate"] == "2025-05-01"
    assert data["diagnosis"].count("--- SEGUIMIENTO") == 2
    assert data["diagnosis"].endswith("--- SEGUIMIENTO 01/05/2025 ---\n\nResuelto")


def test_duplicate_follow_up_date_is_rejected(client):
    patient = create_patient(client)
    original = create_consultation(client, patient["id"])
    first = _follow_up(client, patient["id"], original["id"])

    duplicate = _follow_up(
        client, patient["id"], original["id"], diagnosis="Otra nota el mismo dia"
    )

    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "Duplicate follow-up"
    stored = client.get(f"/consultations/{original['id']}", headers=auth_headers()).json()
    assert len(stored["data"]["followUps"]) == 1
    assert stored["data"]["diagnosis"] == first.json()["data"]["diagnosis"]


def test_follow_up_requires_fields(client):
    patient = create_patient(client)
    original = create_consultation(client, patient["id"])

    response = _follow_up(client, patient["id"], original["id"], diagnosis="  ")

    assert response.status_code == 400


def test_follow_up_on_consultation_of_another_patient(client):
    patient = create_patient(client)
    other = create_patient(client, firstName="Carlos")
    original = create_consultation(client, other["id"])

    response = _follow_up(client, patient["id"], original["id"])

    assert response.status_code == 400
    stored = client.get(f"/consultations/{original['id']}", headers=auth_headers()).json()
    assert stored["data"]["followUps"] == []


def test_follow_up_by_foreign_doctor_is_forbidden(client):
    patient = create_patient(client)
    original = create_consultation(client, patient["id"])

    response = _follow_up(client, patient["id"], original["id"], uid=DOCTOR_B)

    assert response.status_code == 403


def test_follow_up_unknown_consultation(client):
    patient = create_patient(client)

    response = _follow_up(client, patient["id"], "missing")

    assert response.status_code == 404


def test_concurrent_follow_up_is_reported_as_conflict(client, session_factory):
    patient = create_patient(client)
    original = create_consultation(client, patient["id"])
    first, second = session_factory(), session_factory()
    try:
        second.get(Consultation, original["id"])

        add_follow_up(
            first,
            doctor_id=DOCTOR_A,
            patient_id=patient["id"],
            date="2025-03-15",
            diagnosis="Primera nota",
            original_consultation_id=original["id"],
        )
        first.commit()

        with pytest.raises(ConflictError):
            add_follow_up(
                second,
                doctor_id=DOCTOR_A,
                patient_id=patient["id"],
                date="2025-03-15",
                diagnosis="Nota concurrente",
                original_consultation_id=original["id"],
            )
        second.rollback()
    finally:
        first.close()
        second.close()

    stored = client.get(f"/consultations/{original['id']}", headers=auth_headers()).json()
    assert [f["diagnosis"] for f in stored["data"]["followUps"]] == ["Primera nota"]
