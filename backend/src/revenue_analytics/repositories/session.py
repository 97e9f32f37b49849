"""Shared session handling for SQLAlchemy-backed repositories."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from revenue_analytics.database import session_scope
from revenue_analytics.errors import RepositoryUnavailable

logger = structlog.get_logger(__name__)


class SQLRepository:
    """
    Base class for repositories that open one session per call.

    Concurrent coroutines never share a session, so per-business scoring
    can fan out safely over the same repository instance.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """
        Initialize repository.

        Args:
            session_factory: Factory producing async database sessions
        """
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        """
        Open a transactional session, mapping driver failures to RepositoryUnavailable.

        Args:
            operation: Name of the calling operation, used in logs and errors
        """
        try:
            async with session_scope(self._session_factory) as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.warning("repository_call_failed", operation=operation, error=str(e))
            raise RepositoryUnavailable(operation, str(e)) from e
