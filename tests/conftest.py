"""Shared pytest fixtures for Cupid tests.

Everything runs against an in-memory SQLite database; ``app.main`` builds a
module-level app on import, so the environment it reads is pinned here first.
"""
import os
import tempfile
import uuid
from datetime import date

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="cupid-uploads-"))

import httpx
import pytest
from sqlalchemy.pool import StaticPool

from app.config import Settings
from app.database import Database
from app.main import create_app
from app.models import User


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        JWT_SECRET="test-secret",
        DATABASE_URL="sqlite+aiosqlite://",
        BCRYPT_ROUNDS=4,
        UPLOAD_DIR=str(tmp_path / "uploads"),
        GCS_BUCKET_NAME="",
    )


@pytest.fixture
async def database():
    db = Database.from_url(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def db_session(database):
    async with database.session() as session:
        yield session


@pytest.fixture
def make_user(db_session):
    """Insert a user row directly; returns the flushed ``User``."""

    async def _make(
        first_name="Test",
        genre="male",
        preference="all",
        email=None,
    ):
        user = User(
            email=email or f"{first_name.lower()}_{uuid.uuid4().hex[:8]}@test.com",
            password_hash="not-a-real-hash",
            first_name=first_name,
            last_name="User",
            genre=genre,
            dob=date(1995, 6, 15),
            preference=preference,
            interests=[],
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make


@pytest.fixture
def app(settings, database):
    return create_app(settings=settings, database=database)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def register_user(client):
    """Register through the API; returns ``{"id", "token", "headers"}``."""

    async def _register(
        first_name="Test",
        genre="male",
        preference="all",
        email=None,
        password="secret123",
    ):
        payload = {
            "firstName": first_name,
            "lastName": "User",
            "genre": genre,
            "email": email or f"{first_name.lower()}_{uuid.uuid4().hex[:8]}@test.com",
            "password": password,
            "dob": "1995-06-15",
            "preference": preference,
        }
        resp = await client.post("/api/register", json=payload)
        assert resp.status_code == 200, resp.text
        body = resp.json()
        return {
            "id": body["user"]["id"],
            "token": body["token"],
            "email": payload["email"],
            "headers": {"Authorization": f"Bearer {body['token']}"},
        }

    return _register
