"""
Shared fixtures for PRD Validator integration tests.

API tests run against a throwaway SQLite database (aiosqlite). Tables are
created before and dropped after every test, so each test starts clean.
The Ollama model is never contacted: tests that exercise AI analysis
monkeypatch ``OllamaAnalysisService._call_llm``.
"""
from __future__ import annotations

import os
import tempfile
from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Override settings *before* any prd_validator module is imported, so that
# settings.DATABASE_URL and the global engine point at the test DB.
_TMP_DIR = os.path.join(tempfile.gettempdir(), "prd_validator_tests")
os.makedirs(_TMP_DIR, exist_ok=True)

TEST_DATABASE_URL = os.environ.get(
    "TEST_DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'test.db')}",
)
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")

from prd_validator.database import Base, get_db  # noqa: E402
from prd_validator.main import app  # noqa: E402
from prd_validator.models import database_models  # noqa: E402,F401


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a DB session for each test on freshly created tables.
    All tables are dropped after the test.
    """
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the DB dependency
    overridden to use the per-test session.
    """

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

AUTH_HEADERS = {
    "X-User-Id": "test-user-1",
    "X-User-Email": "test1@example.com",
    "X-User-Name": "Test User 1",
}

AUTH_HEADERS_USER2 = {
    "X-User-Id": "test-user-2",
    "X-User-Email": "test2@example.com",
    "X-User-Name": "Test User 2",
}


def words(n: int, word: str = "word") -> str:
    """A string of *n* space-separated words."""
    return " ".join([word] * n)


SAMPLE_PRD = """Checkout Revamp PRD

Problem Statement
Shoppers abandon carts because checkout takes five screens and asks for an
account before payment. Support tickets about lost carts doubled last quarter.

Solution
A single-page checkout with guest payment and saved wallets.

Target Market
Mid-size online retailers in Europe and North America.
Primary users are Small Business Owners.
Built for Online Retailers first.

Features
- Guest checkout without account creation
- One-click wallet payments
The system must support saved addresses.

Success Metrics
Goal: 15% increase in conversion within two quarters.
Reach 10,000 users in the first year.

Risks
Risk: payment provider downtime.
Potential issue with regional tax rules.
"""
