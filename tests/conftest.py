"""Pytest fixtures: test client, in-memory SQLite, fake storage / inference / PDF renderer."""
import itertools
import os
from datetime import date

import pytest
from fastapi.testclient import TestClient

# must be set before medlens is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("HF_API_KEY", "hf_test_dummy")
os.environ.setdefault("STORAGE_ACCESS_KEY", "")
os.environ.setdefault("STORAGE_SECRET_KEY", "")
os.environ.setdefault("RATE_LIMIT_LOGIN_PER_MINUTE", "5")

from sqlmodel import Session, SQLModel  # noqa: E402

from medlens.api.deps import get_inference_client, get_report_renderer, get_storage  # noqa: E402
from medlens.core.database import engine  # noqa: E402
from medlens.core.errors import InferenceError, StorageReadError  # noqa: E402
from medlens.core.rate_limit import limiter  # noqa: E402
from medlens.core.security import create_access_token, hash_password  # noqa: E402
from medlens.main import app  # noqa: E402
from medlens.models import Gender, Patient, Role, UploadRecord, UploadStatus, User  # noqa: E402

PASSWORD = "password123"
_codes = itertools.count(1)
# bcrypt is slow on purpose: hash once for every fixture user
_PASSWORD_HASH = hash_password(PASSWORD)


class FakeStorage:
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.removed: list[str] = []

    def ensure_bucket(self):
        pass

    def presigned_put_url(self, key, expires_seconds=None):
        return f"https://storage.test/put/{key}?expires={expires_seconds}"

    def presigned_get_url(self, key, expires_seconds=None):
        return f"https://storage.test/get/{key}?expires={expires_seconds}"

    def get_object_bytes(self, key):
        data = self.objects.get(key)
        if not data:
            raise StorageReadError("Document could not be read from storage: NoSuchKey")
        return data

    def put_object(self, key, data, content_type):
        self.objects[key] = data

    def remove_object(self, key):
        self.removed.append(key)
        self.objects.pop(key, None)


class FakeInference:
    model = "test/model"

    def __init__(self):
        self.reply = "Finding: mild inflammation noted. Recommend follow-up in 2 weeks."
        self.error: Exception | None = None
        self.prompts: list[str] = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply

    def ping(self):
        return (True, 1.0, None)


class FakeRenderer:
    def __init__(self):
        self.fail = False
        self.rendered: list[str] = []

    def render(self, analysis, patient, requester=None):
        if self.fail:
            raise RuntimeError("renderer exploded")
        self.rendered.append(analysis.analysis_id)
        return b"%PDF-1.4 fake report"


@pytest.fixture(autouse=True)
def tables():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    limiter.reset()
    yield


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def inference():
    return FakeInference()


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def timeout_error():
    return InferenceError("Inference request timed out", transient=True)


@pytest.fixture
def client(storage, inference, renderer):
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_inference_client] = lambda: inference
    app.dependency_overrides[get_report_renderer] = lambda: renderer
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user():
    """make_user(role, email=None, senior=None) -> detached User saved in the DB."""
    counter = {"n": 0}

    def _make(role: Role, email: str | None = None, senior: User | None = None, **fields) -> User:
        counter["n"] += 1
        email = email or f"{role.value}{counter['n']}@example.com"
        with Session(engine, expire_on_commit=False) as s:
            user = User(
                email=email,
                hashed_password=_PASSWORD_HASH,
                first_name=fields.pop("first_name", "Test"),
                last_name=fields.pop("last_name", role.value.replace("_", " ").title()),
                role=role,
                **fields,
            )
            s.add(user)
            s.commit()
            if senior is not None:
                user.assigned_senior_doctor_id = senior.id
                parent = s.get(User, senior.id)
                parent.assigned_consulting_doctors = [*parent.assigned_consulting_doctors, user.id]
                s.add(user)
                s.add(parent)
                s.commit()
            s.refresh(user)
            return user

    return _make


@pytest.fixture
def make_patient():
    def _make(created_by: User | None = None, assigned_doctor: User | None = None, **fields) -> Patient:
        with Session(engine, expire_on_commit=False) as s:
            patient = Patient(
                patient_code=fields.pop("patient_code", None) or f"PATTEST{next(_codes):05d}",
                first_name=fields.pop("first_name", "Jane"),
                last_name=fields.pop("last_name", "Doe"),
                date_of_birth=fields.pop("date_of_birth", date(1980, 5, 17)),
                gender=fields.pop("gender", Gender.female),
                created_by_id=created_by.id if created_by else None,
                assigned_doctor_id=assigned_doctor.id if assigned_doctor else None,
                **fields,
            )
            s.add(patient)
            s.commit()
            s.refresh(patient)
            return patient

    return _make


@pytest.fixture
def make_upload(storage):
    """Completed (by default) user upload whose bytes are present in the fake storage."""

    def _make(patient: Patient, uploader: User, status: UploadStatus = UploadStatus.completed,
              name: str = "labs.txt", content: bytes = b"CRP 12 mg/L", content_type: str = "text/plain") -> UploadRecord:
        key = f"patients/{patient.id}/documents/{name}-{len(storage.objects)}"
        storage.objects[key] = content
        with Session(engine, expire_on_commit=False) as s:
            record = UploadRecord(
                patient_id=patient.id,
                file_key=key,
                original_name=name,
                uploaded_by_id=uploader.id,
                status=status,
                file_size=len(content),
                content_type=content_type,
            )
            s.add(record)
            s.commit()
            s.refresh(record)
            return record

    return _make


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def headers():
    return auth_headers


def reload(model, pk):
    """Fresh read through a new session, bypassing any identity map the test holds."""
    with Session(engine) as s:
        return s.get(model, pk)


@pytest.fixture
def fresh():
    return reload
