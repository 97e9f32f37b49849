"""SQLAlchemy implementation of the metrics repository."""
from datetime import date
from uuid import UUID

from sqlalchemy import func, select

from revenue_analytics.models.payment import Payment
from revenue_analytics.models.plan_definition import PlanDefinition
from revenue_analytics.models.subscription import Subscription, SubscriptionStatus
from revenue_analytics.models.usage_record import UsageRecord
from revenue_analytics.repositories.base import MetricsRepository
from revenue_analytics.repositories.session import SQLRepository
from revenue_analytics.schemas.feeds import PaymentEvent, PlanTier, SubscriptionRecord, UsageEvent, Window
from revenue_analytics.utils.dates import end_of_day


def _to_record(subscription: Subscription) -> SubscriptionRecord:
    return SubscriptionRecord(
        business_id=subscription.business_id,
        plan_id=subscription.plan_key,
        status=subscription.status,
        created_at=subscription.created_at,
        period_start=subscription.current_period_start,
        period_end=subscription.current_period_end,
    )


class SQLMetricsRepository(SQLRepository, MetricsRepository):
    """Reads subscription, payment and usage history from the database."""

    async def active_subscriptions(self, as_of: date) -> list[SubscriptionRecord]:
        stmt = (
            select(Subscription)
            .where(
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.current_period_start <= as_of,
                Subscription.current_period_end > as_of,
            )
            .order_by(Subscription.business_id, Subscription.created_at)
        )
        async with self._session("active_subscriptions") as session:
            result = await session.execute(stmt)
            return [_to_record(row) for row in result.scalars().all()]

    async def business_subscriptions(self, business_id: UUID) -> list[SubscriptionRecord]:
        stmt = (
            select(Subscription)
            .where(Subscription.business_id == business_id)
            .order_by(Subscription.created_at)
        )
        async with self._session("business_subscriptions") as session:
            result = await session.execute(stmt)
            return [_to_record(row) for row in result.scalars().all()]

    async def all_subscriptions(self, until: date) -> list[SubscriptionRecord]:
        stmt = (
            select(Subscription)
            .where(Subscription.created_at < end_of_day(until))
            .order_by(Subscription.created_at)
        )
        async with self._session("all_subscriptions") as session:
            result = await session.execute(stmt)
            return [_to_record(row) for row in result.scalars().all()]

    async def payment_events(self, business_id: UUID, window: Window) -> list[PaymentEvent]:
        stmt = (
            select(Payment)
            .where(
                Payment.business_id == business_id,
                Payment.processed_at >= window.start,
                Payment.processed_at < window.end,
            )
            .order_by(Payment.processed_at)
        )
        async with self._session("payment_events") as session:
            result = await session.execute(stmt)
            return [
                PaymentEvent(
                    business_id=payment.business_id,
                    amount_cents=payment.amount_cents,
                    status=payment.status,
                    processed_at=payment.processed_at,
                )
                for payment in result.scalars().all()
            ]

    async def usage_events(self, business_id: UUID, window: Window) -> list[UsageEvent]:
        stmt = (
            select(UsageRecord)
            .where(
                UsageRecord.business_id == business_id,
                UsageRecord.occurred_at >= window.start,
                UsageRecord.occurred_at < window.end,
            )
            .order_by(UsageRecord.occurred_at)
        )
        async with self._session("usage_events") as session:
            result = await session.execute(stmt)
            return [
                UsageEvent(
                    business_id=record.business_id,
                    occurred_at=record.occurred_at,
                    outcome=record.outcome,
                    feature=record.feature,
                )
                for record in result.scalars().all()
            ]

    async def count_customers(self, as_of: date) -> int:
        stmt = select(func.count(func.distinct(Subscription.business_id))).where(
            Subscription.created_at < end_of_day(as_of)
        )
        async with self._session("count_customers") as session:
            result = await session.execute(stmt)
            return result.scalar() or 0

    async def plan_tiers(self) -> list[PlanTier]:
        stmt = select(PlanDefinition).where(PlanDefinition.active.is_(True)).order_by(PlanDefinition.tier_rank)
        async with self._session("plan_tiers") as session:
            result = await session.execute(stmt)
            return [
                PlanTier(
                    plan_id=plan.plan_key,
                    name=plan.name,
                    price_cents=plan.price_cents,
                    tier_rank=plan.tier_rank,
                    monthly_usage_limit=plan.monthly_usage_limit,
                )
                for plan in result.scalars().all()
            ]
