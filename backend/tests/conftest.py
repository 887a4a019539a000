"""
Shared pytest fixtures.

pytest-asyncio (asyncio_mode=auto) gives each test its own event loop.
An async engine is bound to the loop it was first used on, so the
module-level engine in app.database cannot be shared across tests.

Each test therefore builds its own engine: a throwaway SQLite file under
tmp_path by default, or TEST_DATABASE_URL (e.g. a PostgreSQL database)
when set. The schema is dropped and recreated per test, so tests never see
each other's rows.
"""
import os

# Settings are read at import time; give them something valid before any
# app module is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

import app.models  # noqa: E402,F401  registers every table on Base.metadata
from app.database import Base  # noqa: E402


@pytest.fixture
async def engine(tmp_path):
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    engine = create_async_engine(url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session
