"""
Database engine and session handling for projects, members and stored PRDs.

PostgreSQL via asyncpg in deployment; any SQLAlchemy async URL works
(the test suite runs on sqlite+aiosqlite).
"""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from typing import AsyncGenerator, List
import logging

from prd_validator.config import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_pre_ping=True,
    poolclass=NullPool,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session: committed when the handler returns, rolled back
    if it raises.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            logger.warning("Rolled back request transaction", exc_info=True)
            raise


async def init_db() -> List[str]:
    """Create any missing tables for the ORM models and return their names."""
    from prd_validator.models import database_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    tables = sorted(Base.metadata.tables)
    logger.info("Tables ready: %s", ", ".join(tables))
    return tables


async def close_db() -> None:
    await engine.dispose()
    logger.info("Database connections closed")
