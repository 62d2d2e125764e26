"""
tests/conftest.py
Shared fixtures: a throwaway SQLite database, fakeredis, an HTTP client over
the ASGI app, profile factories, and provider-shaped session tokens.
"""

import os
import tempfile
import uuid
from typing import Optional, Union

# Settings are read at import time, so the environment comes first.
_DB_PATH = os.path.join(tempfile.gettempdir(), f"campus_match_test_{os.getpid()}.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["REALTIME_BACKEND"] = "local"
os.environ["RATE_LIMIT_BACKEND"] = "redis"
os.environ["APP_ENV"] = "test"

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession

from config import database
from config import redis_client as redis_module
from main import app
from shared.models.models import (
    College,
    Gender,
    LookingFor,
    ModerationState,
    PreferredGender,
    Profile,
    UserRole,
    utcnow,
)
from shared.utils.security import create_access_token, hash_email


def email_for(user_id: Union[uuid.UUID, str]) -> str:
    return f"{user_id}@campus.test"


def auth_headers(
    subject: Union[Profile, uuid.UUID],
    email: Optional[str] = None,
    email_verified: bool = True,
) -> dict:
    """Bearer header with a fresh session token for a profile or a bare user id."""
    if isinstance(subject, Profile):
        # The identity key needs no IO, so expired instances work too.
        user_id = sa_inspect(subject).identity[0]
    else:
        user_id = subject
    token, _ = create_access_token(
        str(user_id), email or email_for(user_id), email_verified=email_verified
    )
    return {"Authorization": f"Bearer {token}"}


# ── Infrastructure ────────────────────────────────────────────

@pytest_asyncio.fixture(autouse=True)
async def redis(monkeypatch):
    client = FakeRedis(decode_responses=True)
    await client.flushall()
    monkeypatch.setattr(redis_module, "redis_client", client)
    yield client
    await client.flushall()
    await client.aclose()


@pytest_asyncio.fixture(autouse=True)
async def setup_database():
    async with database.engine.begin() as conn:
        await conn.run_sync(database.Base.metadata.drop_all)
        await conn.run_sync(database.Base.metadata.create_all)
    yield
    await database.engine.dispose()


@pytest_asyncio.fixture
async def db() -> AsyncSession:
    async with database.AsyncSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def client() -> AsyncClient:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ── Profiles ──────────────────────────────────────────────────

@pytest_asyncio.fixture
async def make_profile(db: AsyncSession):
    """Factory for stored profiles. Approved, Male seeking Female, unless overridden."""

    async def _make(**overrides) -> Profile:
        user_id = overrides.pop("id", None) or uuid.uuid4()
        fields = dict(
            id=user_id,
            email_hash=hash_email(email_for(user_id)),
            role=UserRole.USER,
            nickname="Sam",
            college=College.CAS,
            year_level=2,
            gender=Gender.MALE,
            preferred_gender=PreferredGender.FEMALE,
            looking_for=LookingFor.ROMANTIC,
            hobbies=["chess", "coffee"],
            description="Second year, always at the library.",
            photo_urls=["https://cdn.example.com/photos/a.jpg"],
            state=ModerationState.APPROVED,
            terms_accepted_at=utcnow(),
        )
        fields.update(overrides)
        profile = Profile(**fields)
        db.add(profile)
        await db.commit()
        await db.refresh(profile)
        return profile

    return _make


@pytest_asyncio.fixture
async def user(make_profile) -> Profile:
    return await make_profile(nickname="Alex", gender=Gender.MALE, preferred_gender=PreferredGender.FEMALE)


@pytest_asyncio.fixture
async def other_user(make_profile) -> Profile:
    return await make_profile(nickname="Bea", gender=Gender.FEMALE, preferred_gender=PreferredGender.MALE)


@pytest_asyncio.fixture
async def admin_user(make_profile) -> Profile:
    return await make_profile(nickname="Admin", role=UserRole.ADMIN)


@pytest.fixture
def profile_payload() -> dict:
    return {
        "nickname": "Jamie",
        "college": "CENG",
        "year_level": 3,
        "gender": "Female",
        "preferred_gender": "Everyone",
        "looking_for": "Friendship",
        "hobbies": "hiking, board games, ",
        "description": "Engineering student who likes long walks.",
        "photo_urls": ["https://cdn.example.com/photos/jamie.jpg"],
        "age_confirmed": True,
        "terms_accepted": True,
    }
