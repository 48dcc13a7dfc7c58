"""Shared fixtures: in-memory database, fake identity provider and object store."""

import os
from typing import Generator
from unittest.mock import patch

import pytest

# Settings are read at import time.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("IDENTITY_MOCK_MODE", "true")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fotoderma.api.deps import get_identity_verifier, get_object_store
from fotoderma.db.base import Base
from fotoderma.db.session import get_db
from fotoderma.main import app
from fotoderma.services.identity import (
    InvalidTokenError,
    Principal,
    TokenExpiredError,
    TokenRevokedError,
)
from fotoderma.services.object_store import ObjectStoreError, StoredObject

DOCTOR_A = "doctor-a"
DOCTOR_B = "doctor-b"


class FakeVerifier:
    """Accepts ``token-<uid>``; ``expired`` and ``revoked`` map to those failures."""

    def verify(self, token: str) -> Principal:
        if token == "expired":
            raise TokenExpiredError("Token expired")
        if token == "revoked":
            raise TokenRevokedError("Token revoked")
        if not token.startswith("token-"):
            raise InvalidTokenError("Unknown token")
        uid = token[len("token-"):]
        return Principal(
            doctor_id=uid,
            email=f"{uid}@clinic.test",
            display_name=f"Dr. {uid}",
            picture="",
        )


class FakeObjectStore:
    """Dictionary-backed store; names containing a marker in ``fail_on`` fail."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.fail_on: set[str] = set()
        self.fail_remove_on: set[str] = set()
        self.removed: list[str] = []

    def url_for(self, name: str) -> str:
        return f"https://photos.test/{name}"

    def put(self, name: str, data: bytes, content_type: str) -> StoredObject:
        if any(marker in name for marker in self.fail_on):
            raise ObjectStoreError(f"put failed for {name}")
        self.objects[name] = data
        return StoredObject(name=name, url=self.url_for(name))

    def remove(self, name: str) -> None:
        if any(marker in name for marker in self.fail_remove_on):
            raise ObjectStoreError(f"remove failed for {name}")
        self.objects.pop(name, None)
        self.removed.append(name)


@pytest.fixture(scope="function")
def test_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Independent session for arranging and inspecting rows."""

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture(scope="function")
def purge_scheduler():
    with patch("fotoderma.api.patients.schedule_photo_purge", return_value=True) as mocked:
        yield mocked


@pytest.fixture(scope="function")
def client(session_factory, object_store, purge_scheduler) -> Generator[TestClient, None, None]:
    def _override_get_db():
        db = session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_identity_verifier] = FakeVerifier
    app.dependency_overrides[get_object_store] = lambda: object_store
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(uid: str = DOCTOR_A) -> dict[str, str]:
    return {"Authorization": f"Bearer token-{uid}"}


def create_patient(client: TestClient, uid: str = DOCTOR_A, **overrides) -> dict:
    payload = {"firstName": "Ana", "lastName": "Lopez", "age": 34}
    payload.update(overrides)
    response = client.post("/patients", json=payload, headers=auth_headers(uid))
    assert response.status_code == 201, response.text
    return response.json()["data"]


def create_consultation(
    client: TestClient, patient_id: str, uid: str = DOCTOR_A, **overrides
) -> dict:
    payload = {
        "patientId": patient_id,
        "date": "2025-03-01",
        "diagnosis": "Dermatitis seborreica leve",
        "disease": "Dermatitis",
    }
    payload.update(overrides)
    response = client.post("/consultations", json=payload, headers=auth_headers(uid))
    assert response.status_code == 201, response.text
    return response.json()["data"]


def photo_ref(name: str) -> dict[str, str]:
    return {"url": f"https://photos.test/{name}", "fileName": name}
