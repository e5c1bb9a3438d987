"""
Pytest configuration for auth_worker. In-memory SQLite and a throwaway signing key,
so tests don't touch the working directory.
"""
import os
import tempfile

# In-memory SQLite; database.py uses StaticPool so all connections share the same DB
os.environ["AUTH_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["OAUTH_SIGNING_KEY_PATH"] = os.path.join(tempfile.mkdtemp(), "signing_key.pem")
# Tests build their own registry; ignore deployment settings
for var in ("OAUTH_ALLOWED_CLIENTS", "OAUTH_DEFAULT_CLIENT_ID", "OAUTH_LANDING_MODE", "OAUTH_CODE_SENDER", "OAUTH_STORAGE"):
    os.environ.pop(var, None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete

from auth_worker.database import SessionLocal, init_db
from auth_worker.main import create_app
from auth_worker.models import KeyValue, User
from auth_worker.registry import RedirectRegistry
from auth_worker.storage import MemoryStorage

APP_X_CB = "https://app-x.example/cb"
APP_Y_CB = "https://app-y.example/callback"


class RecordingStorage(MemoryStorage):
    """MemoryStorage that records every call, to prove rejected requests never touch storage."""

    def __init__(self):
        super().__init__()
        self.calls = []

    def get(self, key):
        self.calls.append(("get", key))
        return super().get(key)

    def set(self, key, value, ttl=None):
        self.calls.append(("set", key))
        super().set(key, value, ttl)

    def remove(self, key):
        self.calls.append(("remove", key))
        super().remove(key)

    def pop(self, key):
        self.calls.append(("pop", key))
        return super().pop(key)


class Outbox:
    """Code sender that keeps what it would have emailed."""

    def __init__(self):
        self.sent = []

    def __call__(self, email, code):
        self.sent.append((email, code))

    @property
    def last_code(self):
        return self.sent[-1][1]


@pytest.fixture
def registry():
    return RedirectRegistry.from_mapping(
        {
            "app-x": [APP_X_CB],
            "app-y": [APP_Y_CB, APP_Y_CB + "/"],
        }
    )


@pytest.fixture
def storage():
    return RecordingStorage()


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def clean_db():
    """Tables exist and are empty (lifespan doesn't run without the TestClient context manager)."""
    init_db()
    yield
    with SessionLocal() as db:
        db.execute(delete(User))
        db.execute(delete(KeyValue))
        db.commit()


@pytest.fixture
def make_app(registry, storage, outbox, clean_db):
    def _make(**overrides):
        kwargs = {
            "registry": registry,
            "default_client_id": "app-x",
            "storage": storage,
            "code_sender": outbox,
        }
        kwargs.update(overrides)
        return create_app(**kwargs)

    return _make


@pytest.fixture
def client(make_app):
    return TestClient(make_app())
