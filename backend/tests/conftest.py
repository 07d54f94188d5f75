"""
Pytest Configuration and Test Fixtures for the Content Processor Backend

Provides:
- Test settings with an isolated upload directory under ``tmp_path``
- A mocked DatabaseClient whose collections are AsyncMock objects
- Test users and locally signed bearer tokens
- FastAPI TestClient with dependency overrides for settings, services and
  the current user
- Sample FileMetadata and Job documents
"""

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from bson import ObjectId
from fastapi.testclient import TestClient

from content_processor.api.routes.files import get_file_storage_service
from content_processor.api.routes.jobs import get_job_service
from content_processor.config import Settings, get_settings
from content_processor.core.auth import create_local_jwt, get_current_user
from content_processor.core.database import DatabaseClient
from content_processor.main import app
from content_processor.models.user import User
from content_processor.services.file_storage_service import FileStorageService
from content_processor.services.job_service import JobService


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def mock_settings(upload_dir: Path) -> Settings:
    """
    Settings isolated from the environment and any .env file.

    OIDC is left unconfigured; tests that need it build their own settings.
    """
    return Settings(
        _env_file=None,
        app_env="testing",
        debug=True,
        secret_key="test-secret-key-for-jwt-signing-minimum-32-chars",
        mongodb_uri="mongodb://localhost:27017",
        mongodb_db_name="test_content_processor",
        upload_dir=str(upload_dir),
        jwt_algorithm="HS256",
        jwt_expiration_hours=24,
        frontend_url="http://localhost:3000",
        oidc_issuer=None,
        oidc_client_id=None,
        oidc_client_secret=None,
    )


@pytest.fixture
def mock_settings_with_oidc(mock_settings: Settings) -> Settings:
    return mock_settings.model_copy(
        update={
            "oidc_issuer": "https://login.example.com/tenant/v2.0",
            "oidc_client_id": "test-client-id",
            "oidc_client_secret": "test-client-secret",
            "oidc_authorization_endpoint": "https://login.example.com/tenant/oauth2/v2.0/authorize",
            "oidc_token_endpoint": "https://login.example.com/tenant/oauth2/v2.0/token",
            "oidc_jwks_uri": "https://login.example.com/tenant/discovery/v2.0/keys",
        }
    )


# ==============================================================================
# MongoDB Fixtures
# ==============================================================================


def make_cursor(documents: list[dict[str, Any]]) -> MagicMock:
    """Motor-style cursor: chainable sort/skip/limit and an async to_list."""
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=documents)
    return cursor


def make_collection() -> MagicMock:
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=ObjectId()))
    collection.update_one = AsyncMock(return_value=MagicMock(modified_count=1))
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
    collection.count_documents = AsyncMock(return_value=0)
    collection.find = MagicMock(return_value=make_cursor([]))
    return collection


@pytest.fixture
def cursor_factory():
    """Build a mock cursor over the given documents."""
    return make_cursor


@pytest.fixture
def mock_db() -> MagicMock:
    """
    Mocked DatabaseClient for unit testing without MongoDB.

    Each collection accessor returns the same mock collection on every call,
    so tests can configure ``mock_db.get_jobs_collection().find_one`` directly.
    """
    mock = MagicMock(spec=DatabaseClient)

    users = make_collection()
    files = make_collection()
    jobs = make_collection()

    mock.get_users_collection.return_value = users
    mock.get_files_collection.return_value = files
    mock.get_jobs_collection.return_value = jobs

    mock.connect = AsyncMock(return_value=True)
    mock.close = AsyncMock()
    mock.ping = AsyncMock(return_value=True)

    return mock


# ==============================================================================
# User Fixtures
# ==============================================================================


@pytest.fixture
def test_user() -> User:
    return User(
        _id=str(ObjectId()),
        email="owner@example.com",
        provider="microsoft",
        provider_id="microsoft-subject-owner",
        enabled=True,
    )


@pytest.fixture
def other_user() -> User:
    return User(
        _id=str(ObjectId()),
        email="someone.else@example.com",
        provider="microsoft",
        provider_id="microsoft-subject-other",
        enabled=True,
    )


@pytest.fixture
def test_user_document(test_user: User) -> dict[str, Any]:
    """The test user as stored in MongoDB."""
    document = test_user.to_document()
    document["_id"] = ObjectId(test_user.id)
    return document


@pytest.fixture
def test_jwt_token(mock_settings: Settings, test_user: User) -> str:
    return create_local_jwt(test_user.id, test_user.email, mock_settings)


@pytest.fixture
def auth_headers(test_jwt_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {test_jwt_token}"}


# ==============================================================================
# Document Fixtures
# ==============================================================================


@pytest.fixture
def stored_video(upload_dir: Path, test_user: User) -> dict[str, Any]:
    """A video file present on disk together with its metadata document."""
    upload_dir.mkdir(parents=True, exist_ok=True)
    stored_name = "0f8fad5b-d9cb-469f-a165-70867728950e_lecture.mp4"
    path = upload_dir / stored_name
    path.write_bytes(b"fake mp4 video bytes")

    now = datetime.now(UTC)
    return {
        "_id": ObjectId(),
        "original_file_name": "lecture.mp4",
        "stored_file_name": stored_name,
        "file_type": "VIDEO",
        "local_file_path": str(path),
        "file_size": path.stat().st_size,
        "content_type": "video/mp4",
        "uploaded_by": test_user.id,
        "processed": False,
        "created_at": now,
        "updated_at": now,
    }


@pytest.fixture
def job_document(test_user: User) -> dict[str, Any]:
    now = datetime.now(UTC)
    return {
        "_id": ObjectId(),
        "user_id": test_user.id,
        "source_type": "TEXT",
        "text_content": "Notes from the distributed systems lecture",
        "title": "Lecture notes",
        "status": "PENDING",
        "progress": 0,
        "created_at": now - timedelta(minutes=5),
        "updated_at": now - timedelta(minutes=5),
    }


# ==============================================================================
# Service Fixtures
# ==============================================================================


@pytest.fixture
def storage_service(mock_db: MagicMock, mock_settings: Settings) -> FileStorageService:
    return FileStorageService(mock_db, mock_settings)


@pytest.fixture
def job_service(mock_db: MagicMock) -> JobService:
    return JobService(mock_db)


# ==============================================================================
# FastAPI Client Fixtures
# ==============================================================================


@pytest.fixture
def test_client(
    mock_settings: Settings,
    storage_service: FileStorageService,
    job_service: JobService,
    test_user: User,
) -> Generator[TestClient, None, None]:
    """
    TestClient authenticated as ``test_user``.

    The lifespan is not entered, so no MongoDB connection is attempted.
    """
    app.dependency_overrides[get_settings] = lambda: mock_settings
    app.dependency_overrides[get_file_storage_service] = lambda: storage_service
    app.dependency_overrides[get_job_service] = lambda: job_service
    app.dependency_overrides[get_current_user] = lambda: test_user

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()


@pytest.fixture
def unauthenticated_client(
    mock_settings: Settings, mock_db: MagicMock
) -> Generator[TestClient, None, None]:
    """TestClient that runs the real bearer-token dependencies against ``mock_db``."""
    app.dependency_overrides[get_settings] = lambda: mock_settings

    with patch("content_processor.core.auth.get_db_client", return_value=mock_db):
        yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()
