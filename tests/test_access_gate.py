import pytest

from conftest import DOCTOR_A, auth_headers
from fotoderma.api.deps import unauthorized_from
from fotoderma.models import Patient
from fotoderma.services.identity import (
    InvalidTokenError,
    TokenExpiredError,
    TokenRevokedError,
)


@pytest.mark.parametrize("headers", [
    {},
    {"Authorization": "token-doctor-a"},
    {"Authorization": "Basic dXNlcjpwYXNz"},
    {"Authorization": "Bearer "},
])
def test_missing_or_malformed_header(client, headers):
    response = client.get("/patients", headers=headers)

    assert response.status_code == 401
    assert response.json() == {
        "error": "Unauthorized",
        "message": "No token provided or invalid format",
    }


def test_invalid_token(client):
    response = client.get("/patients", headers={"Authorization": "Bearer garbage"})

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized", "message": "Invalid token"}


@pytest.mark.parametrize("token, error", [
    ("expired", "Token expired"),
    ("revoked", "Token revoked"),
])
def test_expired_and_revoked_tokens(client, token, error):
    response = client.get("/patients", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json() == {"error": error, "message": "Please login again"}


@pytest.mark.parametrize("exc, expected", [
    (TokenExpiredError("exp claim in the past"), ("Token expired", "Please login again")),
    (TokenRevokedError("revoked at 1700000000"), ("Token revoked", "Please login again")),
    (InvalidTokenError("kid not found"), ("Unauthorized", "Invalid token")),
])
def test_verifier_failures_hide_their_details(exc, expected):
    error = unauthorized_from(exc)

    assert error.status_code == 401
    assert (error.error, error.message) == expected

def test_rejected_token_does_not_touch_data(client, db_session):
    response = client.post(
        "/patients",
        json={"firstName": "Ana", "lastName": "Lopez", "age": 30},
        headers={"Authorization": "Bearer expired"},
    )

    assert response.status_code == 401
    assert db_session.query(Patient).count() == 0


def test_index_without_token(client):
    response = client.get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["user"] is None
    assert body["endpoints"]["patients"] == "/patients"


def test_index_with_token_echoes_principal(client):
    response = client.get("/", headers=auth_headers())

    assert response.json()["user"] == {
        "doctorId": DOCTOR_A,
        "email": f"{DOCTOR_A}@clinic.test",
        "displayName": f"Dr. {DOCTOR_A}",
    }


def test_index_ignores_bad_token(client):
    response = client.get("/", headers={"Authorization": "Bearer expired"})

    assert response.status_code == 200
    assert response.json()["user"] is None


def test_unknown_route_uses_error_shape(client):
    response = client.get("/nowhere", headers=auth_headers())

    assert response.status_code == 404
    assert response.json()["error"] == "Route not found"
