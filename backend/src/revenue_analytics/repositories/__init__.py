"""Collaborator interfaces and their SQLAlchemy implementations."""
from revenue_analytics.repositories.base import (
    AlertStore,
    InsightStore,
    MetricsRepository,
    PlanPricing,
    PredictionStore,
    SnapshotStore,
)
from revenue_analytics.repositories.sql_metrics import SQLMetricsRepository
from revenue_analytics.repositories.sql_stores import (
    SQLAlertStore,
    SQLInsightStore,
    SQLPredictionStore,
    SQLSnapshotStore,
)

__all__ = [
    "AlertStore",
    "InsightStore",
    "MetricsRepository",
    "PlanPricing",
    "PredictionStore",
    "SnapshotStore",
    "SQLAlertStore",
    "SQLInsightStore",
    "SQLMetricsRepository",
    "SQLPredictionStore",
    "SQLSnapshotStore",
]
