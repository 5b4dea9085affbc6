"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("SUPABASE_URL", "https://project.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date, datetime, time, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import cleanerapp.models  # noqa: F401
from cleanerapp.database import Base
from cleanerapp.errors import StoreError
from cleanerapp.schemas.auth import SessionContext
from cleanerapp.services.object_store import SignedUpload
from cleanerapp.services.sql_store import SqlStore


@pytest.fixture(scope="function")
def test_db():
    """Create a test database for each test; yields its session factory."""
    # In-memory SQLite shared across threads (TestClient runs routes in a pool)
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    yield TestingSessionLocal

    engine.dispose()


@pytest.fixture
def store(test_db):
    return SqlStore(test_db)


@pytest.fixture
def session():
    return SessionContext(user_id="cleaner-1", access_token="token-1", email="sam@example.com")


class FakeClock:
    """Deterministic clock that advances one second per reading."""

    def __init__(self, start=datetime(2025, 1, 2, 10, 0, 0)):
        self.now = start

    def __call__(self):
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current

    def set(self, moment):
        self.now = moment


@pytest.fixture
def clock():
    return FakeClock()


class FakeObjectStore:
    """In-memory stand-in for the storage bucket client."""

    def __init__(self, bucket="photos"):
        self.bucket = bucket
        self.base_url = "https://project.test"
        self.objects = {}
        self.calls = []
        self.bucket_missing = False
        self.fail_signed_upload = False
        self.fail_upload = False
        self.fail_signed_url = False

    def bucket_exists(self):
        self.calls.append(("bucket_exists",))
        return not self.bucket_missing

    def create_signed_upload_url(self, path):
        self.calls.append(("create_signed_upload_url", path))
        if self.fail_signed_upload:
            raise StoreError("signed uploads disabled")
        return SignedUpload(path=path, token=f"tok-{len(self.calls)}", url=f"{self.base_url}/upload/{path}")

    def upload_to_signed_url(self, path, token, data, content_type):
        self.calls.append(("upload_to_signed_url", path, content_type))
        if self.fail_upload:
            raise StoreError("upload rejected")
        self.objects[path] = (data, content_type)
        return path

    def upload(self, path, data, content_type, upsert=True):
        self.calls.append(("upload", path, content_type, upsert))
        if self.fail_upload:
            raise StoreError("upload rejected")
        self.objects[path] = (data, content_type)
        return path

    def get_public_url(self, path):
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    def create_signed_url(self, path, expires_in=None):
        self.calls.append(("create_signed_url", path, expires_in))
        if self.fail_signed_url:
            raise StoreError("cannot sign")
        return f"{self.base_url}/storage/v1/object/sign/{self.bucket}/{path}?token=abc"

    def upload_calls(self):
        return [c for c in self.calls if c[0] in ("upload", "upload_to_signed_url")]


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def seed(store):
    """Insert users, a job and its tasks; returns a helper."""

    def _seed(
        job_id="job-1",
        status="scheduled",
        tasks=("Kitchen", "Bathroom", "Floors"),
        completed=0,
        cleaner_id="cleaner-1",
        job_date=date(2025, 1, 2),
        start=time(10, 0),
        end=time(12, 0),
        **job_fields,
    ):
        if not store.select("users", eq={"id": "cleaner-1"}):
            store.insert("users", {"id": "cleaner-1", "name": "Sam Lee", "email": "sam@example.com", "role": "cleaner"})
            store.insert("users", {"id": "client-1", "name": "Sarah Johnson", "email": "sarah@example.com", "role": "client"})

        store.insert(
            "jobs",
            {
                "id": job_id,
                "cleaner_id": cleaner_id,
                "client_id": "client-1",
                "status": status,
                "date": job_date,
                "start_time": start,
                "end_time": end,
                "address": "123 Oak Street",
                "notes": "Key under mat",
                **job_fields,
            },
        )
        base = datetime(2025, 1, 1, 8, 0, 0)
        for i, description in enumerate(tasks):
            store.insert(
                "tasks",
                {
                    "id": f"{job_id}-task-{i + 1}",
                    "job_id": job_id,
                    "description": description,
                    "is_completed": i < completed,
                    "created_at": base + timedelta(minutes=i),
                },
            )
        return job_id

    return _seed


@pytest.fixture
def jpeg_file(tmp_path):
    """A small real JPEG on disk."""
    from PIL import Image

    path = tmp_path / "capture.jpg"
    Image.new("RGB", (8, 8), (200, 30, 30)).save(str(path), "JPEG")
    return path
