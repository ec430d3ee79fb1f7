"""Pytest configuration and fixtures for property survey tests."""
import pytest
import tempfile
import os
from datetime import datetime, timedelta, timezone
import jwt
from backend.app import create_app
from backend.models import db

TEST_JWT_SECRET = 'test-secret'
ADMIN_EMAIL = 'admin@survey.com'
ADMIN_PASSWORD = 'admin2026'


@pytest.fixture
def app(tmp_path):
    """Create and configure a test app instance."""
    # Create temporary database for testing
    db_fd, db_path = tempfile.mkstemp()

    test_config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'JWT_SECRET': TEST_JWT_SECRET,
        'ADMIN_EMAIL': ADMIN_EMAIL,
        'ADMIN_PASSWORD': ADMIN_PASSWORD,
        'AUTO_ENSURE_SCHEMA': True,
        'LOG_DIR': str(tmp_path / 'logs'),
        'LEGACY_UPLOADS_DIR': str(tmp_path / 'uploads'),
    }

    app = create_app(test_config)

    yield app

    # Cleanup
    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


def make_token(email, is_admin=False, secret=TEST_JWT_SECRET, expires_in=timedelta(hours=1)):
    issued = datetime.now(timezone.utc)
    payload = {'email': email, 'isAdmin': is_admin, 'iat': issued, 'exp': issued + expires_in}
    return jwt.encode(payload, secret, algorithm='HS256')


@pytest.fixture
def token_for():
    """Factory fixture: token_for(email, is_admin=False, ...) -> signed JWT."""
    return make_token


@pytest.fixture
def admin_headers():
    return {'Authorization': f'Bearer {make_token(ADMIN_EMAIL, is_admin=True)}'}


@pytest.fixture
def citizen_headers():
    return {'Authorization': f'Bearer {make_token("asha@example.com")}'}


class FakeStorage:
    """Stands in for CloudStorageService; records uploads and returns bucket URLs."""

    base_url = 'https://storage.googleapis.com/test-bucket'

    def __init__(self):
        self.uploads = []
        self.paths = []

    def upload_file(self, data, filename, content_type=None, folder='uploads'):
        self.uploads.append((folder, filename, content_type, data))
        return f"{self.base_url}/{folder}/{len(self.uploads)}_{filename}"

    def upload_path(self, file_path, folder='uploads'):
        self.paths.append(str(file_path))
        return f"{self.base_url}/{folder}/{os.path.basename(str(file_path))}"


@pytest.fixture
def fake_storage(monkeypatch):
    storage = FakeStorage()
    monkeypatch.setattr('backend.blueprints.surveys.get_cloud_storage', lambda: storage)
    monkeypatch.setattr('backend.cli.get_cloud_storage', lambda: storage)
    return storage
