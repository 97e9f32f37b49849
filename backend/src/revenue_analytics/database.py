"""Database session management with async SQLAlchemy."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from revenue_analytics.config import settings

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


def build_session_factory(database_url: str, echo: bool = False) -> async_sessionmaker[AsyncSession]:
    """
    Create a session factory bound to its own engine.

    Args:
        database_url: SQLAlchemy async connection string
        echo: Echo SQL statements

    Returns:
        async_sessionmaker: Factory with the same session options as AsyncSessionLocal
    """
    return async_sessionmaker(
        create_async_engine(database_url, echo=echo),
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a transactional session.

    Commits on success and rolls back on any exception.

    Yields:
        AsyncSession: Database session for one unit of work
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Declarative base for all models
Base = declarative_base()
