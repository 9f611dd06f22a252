import os
import tempfile
from pathlib import Path

import pytest

# Settings are read at import time; the app refuses to start without a secret.
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-library-api-0123456789")
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="library-api-tests-"))
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "1000")

from fastapi.testclient import TestClient  # noqa: E402

from library_api.config import Settings  # noqa: E402
from library_api.main import create_app  # noqa: E402
from library_api.repositories import BookRepository, StudentRepository  # noqa: E402
from library_api.services import make_password_context  # noqa: E402
from library_api.storage import DocumentStore  # noqa: E402

STUDENT = {
    "name": "Asha Rao",
    "admissionNumber": "ADM001",
    "class": "10",
    "section": "A",
    "gender": "F",
    "mobileNumber": "5550100",
    "address": "12 Hill Road",
    "password": "secret123",
}

BOOK = {
    "isbn": "123",
    "title": "A",
    "author": "B",
    "publicationYear": 2020,
    "genre": "Fiction",
    "copiesAvailable": 3,
}


@pytest.fixture()
def data_dir(tmp_path) -> Path:
    return tmp_path / "data"


@pytest.fixture()
def store(data_dir):
    return DocumentStore(data_dir, lock_timeout=5)


@pytest.fixture()
def students(store):
    return StudentRepository(store, make_password_context(rounds=1000))


@pytest.fixture()
def books(store):
    return BookRepository(store)


@pytest.fixture()
def client(tmp_path, monkeypatch):
    """A TestClient over a fresh app whose collections live in `tmp_path`."""
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "api-data"))
    return TestClient(create_app(Settings()))


@pytest.fixture()
def auth_headers(client):
    """Register the default student and return bearer headers for it."""
    r = client.post("/api/students/register", json=STUDENT)
    assert r.status_code == 201
    login = client.post(
        "/api/auth/login",
        json={"admissionNumber": STUDENT["admissionNumber"], "password": STUDENT["password"]},
    )
    assert login.status_code == 200
    return {"Authorization": f"Bearer {login.json()['token']}"}
