"""
Shared fixtures: an in-memory SQLite database per test and a few users.

Environment is set before any app module is imported because app.core.config
reads it at import time.
"""
import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["DB_TYPE"] = "sqlite"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.db import Base
from app.models.user_models import User
from tests.factories import ORG_ID, OTHER_ORG_ID


@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def users(db):
    """One user per role in the main org, plus an owner of another org."""
    created = {}
    for role in ("sales", "manager", "admin", "owner"):
        user = User(org_id=ORG_ID, username=f"{role}@example.com", password_hash="x", role=role, token_version=0)
        db.add(user)
        created[role] = user
    outsider = User(org_id=OTHER_ORG_ID, username="owner@other.example.com", password_hash="x", role="owner", token_version=0)
    db.add(outsider)
    created["outsider"] = outsider
    await db.commit()
    return created
