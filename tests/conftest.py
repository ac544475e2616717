"""Shared pytest fixtures for all tests."""

import base64
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from cli.config import Config
from server import service_locator
from server.auth import generate_session_token, hash_session_token
from server.config import get_settings
from server.database import init_database
from server.repositories.session_repository import SessionRepository
from server.repositories.user_repository import UserRepository
from server.services.auth_service import AuthService
from server.utils import utc_now

TEST_AUTH_SECRET = "test-auth-secret-0123456789"

PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)
PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")
PDF_DATA_URL = "data:application/pdf;base64," + base64.b64encode(b"%PDF-1.4\n%%EOF\n").decode("ascii")


@pytest.fixture
def test_env(tmp_path, monkeypatch):
    """
    Environment for a valid server configuration backed by a temporary database.

    Returns:
        Path to the temporary database file
    """
    db_path = tmp_path / "garchomper-test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("GOOGLE_ID", "test-google-id")
    monkeypatch.setenv("GOOGLE_SECRET", "test-google-secret")
    monkeypatch.setenv("AUTH_SECRET", TEST_AUTH_SECRET)
    monkeypatch.delenv("AUTH_URL", raising=False)
    monkeypatch.delenv("MAX_UPLOAD_BATCH", raising=False)
    get_settings.cache_clear()
    yield db_path
    get_settings.cache_clear()


@pytest.fixture
def settings(test_env):
    return get_settings()


@pytest.fixture
def test_db(test_env, monkeypatch):
    """
    Create a temporary test database for each test.
    """
    monkeypatch.setattr("server.database.DATABASE_PATH", str(test_env))
    init_database()
    yield test_env


def _create_user(account_id: str, name: str):
    return UserRepository.upsert_from_provider(
        provider="google",
        provider_account_id=account_id,
        name=name,
        email=f"{name.lower()}@example.com",
        image=None,
        created_at=utc_now(),
    )


@pytest.fixture
def alice(test_db):
    return _create_user("google-alice", "Alice")


@pytest.fixture
def bob(test_db):
    return _create_user("google-bob", "Bob")


@pytest.fixture
def auth_service(settings):
    """AuthService whose identity provider is a mock; only session issuance is exercised."""
    return AuthService(settings, provider=MagicMock())


@pytest.fixture
def alice_token(auth_service, alice):
    return auth_service.issue_session(alice).token


@pytest.fixture
def bob_token(auth_service, bob):
    return auth_service.issue_session(bob).token


@pytest.fixture
def expired_token(settings, alice):
    """Token of a session that expired an hour ago."""
    token = generate_session_token()
    now = utc_now()
    SessionRepository.create_session(
        token_hash=hash_session_token(token, settings.auth_secret),
        user_id=alice.user_id,
        expires_at=now - timedelta(hours=1),
        created_at=now - timedelta(days=31),
    )
    return token


@pytest.fixture
def app(test_db):
    """
    FastAPI app pointed at the temporary database.

    Startup hooks are not run, so no background task is started.
    """
    from server.main import app as server_app

    yield server_app
    server_app.dependency_overrides.clear()
    service_locator.set_identity_provider(None)


@pytest.fixture
def client(app):
    """Anonymous test client."""
    return TestClient(app)


@pytest.fixture
def alice_client(app, alice_token):
    return TestClient(app, headers={"Authorization": f"Bearer {alice_token}"})


@pytest.fixture
def bob_client(app, bob_token):
    return TestClient(app, headers={"Authorization": f"Bearer {bob_token}"})


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Returns:
        Path to temporary .garchomper directory
    """
    config_dir = tmp_path / '.garchomper'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Returns:
        Config instance with temp config file
    """
    config = Config(temp_config_dir / 'config.json')
    config.data['server_host'] = 'localhost'
    config.data['server_port'] = 8000
    return config


@pytest.fixture
def uploads_dir(tmp_path):
    """
    Create an uploads directory holding one PNG and one PDF.

    Returns:
        Path to the uploads directory
    """
    uploads = tmp_path / 'uploads'
    uploads.mkdir()
    (uploads / 'cat.png').write_bytes(PNG_BYTES)
    (uploads / 'report.pdf').write_bytes(b"%PDF-1.4\n%%EOF\n")
    (uploads / 'notes.txt').write_text('plain text')
    return uploads


@pytest.fixture
def png_data_url():
    return PNG_DATA_URL


@pytest.fixture
def pdf_data_url():
    return PDF_DATA_URL
