"""
Collaborator interfaces consumed by the analytics engines.

The engines depend only on these abstractions; SQLAlchemy implementations
live alongside in this package.
"""
from abc import ABC, abstractmethod
from datetime import date
from uuid import UUID

from revenue_analytics.schemas.feeds import PaymentEvent, PlanTier, SubscriptionRecord, UsageEvent, Window
from revenue_analytics.schemas.insight import Alert, Insight
from revenue_analytics.schemas.prediction import ChurnPrediction, ExpansionOpportunity, RevenueForecast
from revenue_analytics.schemas.revenue import CustomerLTVRecord, MRRSnapshot


class MetricsRepository(ABC):
    """Read-only access to subscription, payment and usage history."""

    @abstractmethod
    async def active_subscriptions(self, as_of: date) -> list[SubscriptionRecord]:
        """Subscriptions that cover `as_of`."""

    @abstractmethod
    async def business_subscriptions(self, business_id: UUID) -> list[SubscriptionRecord]:
        """Every subscription a business has ever held, oldest first."""

    @abstractmethod
    async def all_subscriptions(self, until: date) -> list[SubscriptionRecord]:
        """Every subscription created on or before `until`."""

    @abstractmethod
    async def payment_events(self, business_id: UUID, window: Window) -> list[PaymentEvent]:
        """Payments processed inside the window."""

    @abstractmethod
    async def usage_events(self, business_id: UUID, window: Window) -> list[UsageEvent]:
        """Usage events that occurred inside the window."""

    @abstractmethod
    async def count_customers(self, as_of: date) -> int:
        """Businesses that subscribed at any point on or before `as_of`."""

    @abstractmethod
    async def plan_tiers(self) -> list[PlanTier]:
        """Active plan definitions."""


class PlanPricing(ABC):
    """Plan price and tier-ladder lookups."""

    @abstractmethod
    def price_of(self, plan_id: str) -> int:
        """Monthly price in cents; unknown plans price at 0."""

    @abstractmethod
    def tier_rank(self, plan_id: str) -> int | None:
        """Position on the upgrade ladder, None for unknown plans."""

    @abstractmethod
    def next_tier(self, plan_id: str) -> str | None:
        """Plan one rung above `plan_id`, None at the top of the ladder."""

    @abstractmethod
    def usage_limit(self, plan_id: str) -> int | None:
        """Monthly usage cap, -1 for unlimited, None when unknown."""


class SnapshotStore(ABC):
    """Sink for MRR snapshots and lifetime value records."""

    @abstractmethod
    async def upsert_mrr(self, snapshot: MRRSnapshot) -> None:
        """Insert or replace the snapshot for its date."""

    @abstractmethod
    async def get_mrr(self, snapshot_date: date) -> MRRSnapshot | None:
        """Snapshot stored for exactly this date."""

    @abstractmethod
    async def mrr_history(self, until: date, limit: int) -> list[MRRSnapshot]:
        """Up to `limit` most recent snapshots on or before `until`, oldest first."""

    @abstractmethod
    async def upsert_ltv(self, record: CustomerLTVRecord) -> None:
        """Insert or replace the lifetime value record of a business."""

    @abstractmethod
    async def get_ltv(self, business_id: UUID) -> CustomerLTVRecord | None:
        """Latest lifetime value record of a business."""


class PredictionStore(ABC):
    """Append-only sink for predictions."""

    @abstractmethod
    async def append_churn(self, prediction: ChurnPrediction) -> None:
        """Append a churn prediction."""

    @abstractmethod
    async def append_forecast(self, forecast: RevenueForecast) -> None:
        """Append a revenue forecast."""

    @abstractmethod
    async def append_opportunities(self, opportunities: list[ExpansionOpportunity]) -> None:
        """Append expansion opportunities."""

    @abstractmethod
    async def churn_history(self, since: date, until: date) -> list[ChurnPrediction]:
        """Churn predictions made in [since, until)."""

    @abstractmethod
    async def latest_forecast(self, horizon_months: int, made_on_or_before: date) -> RevenueForecast | None:
        """Most recent forecast for the horizon made on or before the date."""


class InsightStore(ABC):
    """Sink for generated insights."""

    @abstractmethod
    async def insert(self, insight: Insight) -> None:
        """Store an insight."""


class AlertStore(ABC):
    """Sink for alerts with unresolved-duplicate suppression."""

    @abstractmethod
    async def insert_if_not_duplicate(self, alert: Alert) -> bool:
        """
        Store the alert unless an unresolved alert with the same key exists.

        Returns:
            True when the alert was stored, False when it was suppressed
        """

    @abstractmethod
    async def get(self, alert_id: UUID) -> Alert | None:
        """Alert by id."""

    @abstractmethod
    async def save(self, alert: Alert) -> None:
        """Persist lifecycle changes of an existing alert."""

    @abstractmethod
    async def unresolved(self) -> list[Alert]:
        """All alerts that are not resolved."""
