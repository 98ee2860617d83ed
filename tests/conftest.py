from __future__ import annotations

import io
import os
import shutil
import tempfile
from pathlib import Path

TEST_ROOT = Path(tempfile.mkdtemp(prefix="oralvis-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{(TEST_ROOT / 'test_app.db').as_posix()}"
os.environ["FILE_STORAGE_ROOT"] = str(TEST_ROOT / "uploads")
os.environ["SECRET_KEY"] = "test-secret-key-0123456789abcdef0123456789"
os.environ["BASE_URL"] = "http://testserver"
os.environ["APP_ENV"] = "test"

from app.core.config import get_settings

get_settings.cache_clear()

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import delete

from app.core.database import SessionLocal, init_db
from app.core.security import get_password_hash
from app.main import app
from app.models.submission import Submission
from app.models.user import RoleName, User
from app.utils.file_storage import get_blob_store

init_db()

PASSWORD = "Secret123"
_PASSWORD_HASH = get_password_hash(PASSWORD)


def pytest_sessionfinish(session, exitstatus):  # type: ignore[no-untyped-def]
    shutil.rmtree(TEST_ROOT, ignore_errors=True)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with SessionLocal() as session:
        session.execute(delete(Submission))
        session.execute(delete(User))
        session.commit()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def blob_store():
    return get_blob_store()


def png_bytes(size: tuple[int, int] = (32, 24)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, "white").save(buffer, format="PNG")
    return buffer.getvalue()


def make_user(
    db,
    *,
    role: RoleName = RoleName.PATIENT,
    email: str | None = None,
    name: str = "Test User",
    patient_id: str | None = None,
) -> User:
    """Insert a user directly; the password is always ``PASSWORD``."""
    count = db.query(User).count()
    if role == RoleName.ADMIN:
        patient_id = None
    elif patient_id is None:
        patient_id = f"P{count:04d}"

    user = User(
        name=name,
        email=email or f"user{count}-{role.value}@example.com",
        hashed_password=_PASSWORD_HASH,
        role=role,
        patient_id=patient_id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def login(client: TestClient, email: str, password: str = PASSWORD) -> dict[str, str]:
    response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['data']['token']}"}
