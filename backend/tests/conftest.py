from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

# Settings are read at import time; pin the test environment before any dirigia import
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_URL"] = ""
os.environ["DEV_AUTH_BYPASS"] = "false"
os.environ["SENTRY_DSN"] = ""

# Add backend folder to sys.path so `import dirigia...` works when running from the repo root
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

import pytest
from fastapi import Depends, HTTPException
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from dirigia.core.database import Base, get_db
from dirigia.core.security import get_current_profile
from dirigia.models.enums import PlanType
from dirigia.models.tables import Profile


@pytest.fixture
def engine(tmp_path):
    # File database + NullPool: TestClient requests run on their own event loop
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    yield engine
    engine.sync_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def profile_factory():
    def _make(user_id: str = "user-1", email: str = "motorista@example.com", plan: PlanType = PlanType.FREE, **kw) -> Profile:
        kw.setdefault("name", "Motorista")
        kw.setdefault("resources_count", 0)
        return Profile(id=user_id, email=email, plan=plan, **kw)

    return _make


@pytest.fixture
def seed(session_factory):
    """Insert ORM rows synchronously (for TestClient tests)."""

    def _seed(*rows):
        async def _insert():
            async with session_factory() as session:
                session.add_all(rows)
                await session.commit()

        asyncio.run(_insert())
        return rows[0] if len(rows) == 1 else rows

    return _seed


@pytest.fixture
def query(session_factory):
    """Run a select synchronously and return ``result.all()``."""

    def _query(stmt):
        async def _run():
            async with session_factory() as session:
                result = await session.execute(stmt)
                return result.all()

        return asyncio.run(_run())

    return _query


@pytest.fixture
def app(session_factory):
    from dirigia.api.main import app as fastapi_app

    async def _get_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def login(app):
    """Authenticate subsequent requests as ``user_id`` (profile loaded from the request session)."""

    def _login(user_id: str = "user-1"):
        async def _profile(db: AsyncSession = Depends(get_db)) -> Profile:
            profile = await db.get(Profile, user_id)
            if profile is None:
                raise HTTPException(status_code=401, detail="unknown test user")
            return profile

        app.dependency_overrides[get_current_profile] = _profile

    return _login


@pytest.fixture
def client(app):
    return TestClient(app)
