"""
Pytest configuration and fixtures
"""
import os
import uuid
from datetime import datetime, timedelta, timezone

import pytest

# settings are read once; point them at throwaway resources before any import
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ.pop("R2_BUCKET", None)

from fastapi.testclient import TestClient  # noqa: E402

from findr.core.config import ResolvePolicy, Settings  # noqa: E402
from findr.db.db import create_db_engine, init_db  # noqa: E402
from findr.main import create_app  # noqa: E402
from findr.models.report import Report, ReportKind  # noqa: E402
from findr.services.auth_service import AuthService  # noqa: E402
from findr.services.report_collection import SQLReportCollection  # noqa: E402
from findr.services.report_service import ReportService  # noqa: E402
from findr.utils.auth_helper import Identity  # noqa: E402
from findr.utils.s3_service import validate_image  # noqa: E402

NOW = datetime(2025, 8, 5, 12, 0, tzinfo=timezone.utc)


class FakeBlobStore:
    """In-memory stand-in for the S3 bucket."""

    def __init__(self):
        self.objects = {}
        self.deleted = []

    def upload(self, data, content_type, filename):
        validate_image(data, filename, content_type)
        key = f"report_images/{uuid.uuid4()}.jpg"
        self.objects[key] = data
        return key

    def delete(self, reference):
        self.deleted.append(reference)
        self.objects.pop(reference, None)

    def url_for(self, reference):
        if not reference:
            return None
        return f"https://blobs.test/{reference}"


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    return engine


@pytest.fixture
def collection(engine):
    return SQLReportCollection(engine)


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def service(collection, blob_store):
    return ReportService(collection, blob_store)


@pytest.fixture
def owner():
    return Identity(email="alice@example.com")


@pytest.fixture
def stranger():
    return Identity(email="bob@example.com")


@pytest.fixture
def valid_form():
    """Raw form input that passes every field rule."""
    return {
        "kind": "lost",
        "title": "Blue Wallet",
        "description": "Leather wallet with two cards inside",
        "tags": "wallet, leather, blue",
        "color": "#1E90FF",
        "location": "Central Library",
        "reporter_name": "Alice Smith",
        "reporter_email": "alice@example.com",
        "occurred_at": NOW - timedelta(hours=3),
    }


@pytest.fixture
def make_report():
    """Factory for stored-looking reports."""

    def _make(title="Blue Wallet", kind=ReportKind.LOST, occurred_at=None, **overrides):
        data = {
            "title": title,
            "kind": kind,
            "description": "Something that was lost or found",
            "tags": ["misc"],
            "color": "red",
            "occurred_at": occurred_at or NOW - timedelta(days=1),
            "location": "Main Hall",
            "reporter_name": "Alice Smith",
            "reporter_email": "alice@example.com",
            "created_at": NOW,
        }
        data.update(overrides)
        return Report(**data)

    return _make


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        jwt_secret="test-secret",
        resolve_policy=ResolvePolicy.OWNER,
    )


@pytest.fixture
def auth_service(engine, settings):
    return AuthService(engine, settings.jwt_secret, settings.access_token_expire_minutes)


@pytest.fixture
def app(settings, collection, blob_store, auth_service):
    return create_app(settings, collection=collection, blob_store=blob_store, auth_service=auth_service)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_headers(auth_service):
    """Sign up a user and return bearer headers for them."""

    def _headers(email="alice@example.com", password="secret123"):
        result = auth_service.sign_up(email, password)
        return {"Authorization": f"Bearer {result.access_token}"}

    return _headers
