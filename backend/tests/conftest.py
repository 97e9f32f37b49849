"""Pytest configuration and fixtures for async testing."""
from datetime import date
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from revenue_analytics.config import Settings
from revenue_analytics.database import Base
import revenue_analytics.models  # noqa: F401  registers every table on the metadata
from revenue_analytics.services.insight_engine import InsightEngine
from revenue_analytics.services.pricing import PlanCatalog
from revenue_analytics.services.scoring_engine import ScoringEngine
from revenue_analytics.services.signals import SignalCollector
from revenue_analytics.services.snapshot_engine import SnapshotEngine
from tests.utils.fakes import (
    FakeAlertStore,
    FakeInsightStore,
    FakeMetricsRepository,
    FakePredictionStore,
    FakeSnapshotStore,
)

# Fixed run date so calendar arithmetic in tests is reproducible
AS_OF = date(2024, 6, 15)


@pytest.fixture
def as_of() -> date:
    return AS_OF


@pytest.fixture
def catalog() -> PlanCatalog:
    """Default plan ladder: free, starter, pro, business, enterprise."""
    return PlanCatalog()


@pytest.fixture
def metrics_repository() -> FakeMetricsRepository:
    return FakeMetricsRepository()


@pytest.fixture
def snapshot_store() -> FakeSnapshotStore:
    return FakeSnapshotStore()


@pytest.fixture
def prediction_store() -> FakePredictionStore:
    return FakePredictionStore()


@pytest.fixture
def insight_store() -> FakeInsightStore:
    return FakeInsightStore()


@pytest.fixture
def alert_store() -> FakeAlertStore:
    return FakeAlertStore()


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with short timeouts and no retry backoff."""
    return Settings(
        repository_timeout_seconds=2.0,
        repository_retry_delays_seconds=[0.0, 0.0],
        pipeline_batch_size=2,
    )


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Create a session factory bound to a fresh SQLite database for each test.

    Yields:
        async_sessionmaker: Factory with every table created
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'analytics.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def scoring(metrics_repository, catalog, snapshot_store) -> ScoringEngine:
    return ScoringEngine(SignalCollector(metrics_repository, catalog), catalog, snapshot_store)


@pytest.fixture
def snapshot_engine(metrics_repository, catalog, scoring) -> SnapshotEngine:
    return SnapshotEngine(metrics_repository, catalog, scoring)


@pytest.fixture
def insight_engine(insight_store, alert_store, snapshot_store, prediction_store) -> InsightEngine:
    return InsightEngine(
        insight_store=insight_store,
        alert_store=alert_store,
        snapshot_store=snapshot_store,
        prediction_store=prediction_store,
    )
