import pytest
import tempfile
from typing import Generator
from fastapi.encoders import jsonable_encoder
from fastapi.testclient import TestClient

# It is important to set environment variables before importing app modules
import os
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["ENVIRONMENT"] = "testing"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="recipe-uploads-")

from app.db.session import Base, SessionLocal, engine
from app.main import create_app
from app.realtime import EventChannel


class RecordingChannel(EventChannel):
    """EventChannel that also remembers everything emitted through it."""

    def __init__(self):
        super().__init__()
        self.emitted = []

    def emit(self, event, payload, room=None):
        self.emitted.append((event, jsonable_encoder(payload), room))
        super().emit(event, payload, room)

    def named(self, event):
        return [(payload, room) for name, payload, room in self.emitted if name == event]


@pytest.fixture(scope="session", autouse=True)
def db_engine():
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    os.remove("./test.db")


@pytest.fixture(autouse=True)
def clean_tables(db_engine):
    # Every test starts from empty tables
    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)
    yield


@pytest.fixture
def db() -> Generator:
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def events() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def client(events) -> Generator:
    with TestClient(create_app(events)) as c:
        yield c


@pytest.fixture
def register(client):
    """Register a user through the API; returns (user_id, auth_headers)."""

    def _register(name="Alice", email=None, password="password"):
        email = email or f"{name.lower()}@example.com"
        response = client.post(
            "/api/users/register",
            json={"name": name, "email": email, "password": password},
        )
        assert response.status_code == 201, response.json()
        body = response.json()
        return body["userId"], {"Authorization": f"Bearer {body['token']}"}

    return _register
