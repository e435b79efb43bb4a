"""Test fixtures: a fresh in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Environment is pointed at SQLite (aiosqlite) and a throwaway upload
   directory *before* userhub is imported, because settings and the app
   are module-level singletons.
2. Each test gets its own in-memory engine (StaticPool keeps the single
   connection alive) with the schema created from Base.metadata.
3. The app's get_db is overridden to hand out sessions from that engine,
   one per request, just like production.

bcrypt rounds are lowered to 4 so registration/login stay fast.
"""

import os
import tempfile

os.environ.setdefault("USERHUB_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("USERHUB_BCRYPT_ROUNDS", "4")
os.environ.setdefault("USERHUB_UPLOAD_DIR", tempfile.mkdtemp(prefix="userhub-uploads-"))

import uuid  # noqa: E402

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from userhub.auth.password import hash_password  # noqa: E402
from userhub.db.engine import get_db  # noqa: E402
from userhub.db.models import Base, Role  # noqa: E402
from userhub.main import app  # noqa: E402
from userhub.services.user_store import UserStore  # noqa: E402

PASSWORD = "secret123"


def profile(**overrides) -> dict:
    """A valid registration payload with unique email/phone."""
    suffix = uuid.uuid4().int % 10**8
    body = {
        "name": "Test User",
        "email": f"user-{suffix}@example.com",
        "phone": f"55{suffix:08d}",
        "password": PASSWORD,
        "address": "1 Main Street",
        "state": "Karnataka",
        "city": "Bengaluru",
        "country": "India",
        "pincode": "560001",
    }
    body.update(overrides)
    return body


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def client(session_factory):
    """HTTP client running the real app against the per-test database.

    Learn: Nothing auth-related is mocked. Tests register/login through
    the API and send real Bearer tokens.
    """

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def registered(client):
    """Register a regular user through the API; returns the response data."""
    r = await client.post("/api/auth/register", json=profile())
    assert r.status_code == 201
    return r.json()["data"]


@pytest_asyncio.fixture()
async def admin(client, session_factory):
    """Create an admin directly in the store, then log in through the API.

    Learn: Registration always yields role "user", so admins are seeded
    the same way the create-admin CLI command does it.
    """
    body = profile(name="Admin User")
    async with session_factory() as session:
        await UserStore(session).create(
            name=body["name"],
            email=body["email"],
            phone=body["phone"],
            password_hash=hash_password(PASSWORD),
            role=Role.ADMIN,
            address=body["address"],
            state=body["state"],
            city=body["city"],
            country=body["country"],
            pincode=body["pincode"],
        )

    r = await client.post(
        "/api/auth/login", json={"email": body["email"], "password": PASSWORD}
    )
    assert r.status_code == 200
    return r.json()["data"]
