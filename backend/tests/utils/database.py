"""Helpers for seeding and inspecting the test database."""
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import func, select

from revenue_analytics.database import session_scope
from revenue_analytics.models import (
    Payment,
    PaymentStatus,
    PlanDefinition,
    Subscription,
    SubscriptionStatus,
    UsageOutcome,
    UsageRecord,
)
from revenue_analytics.services.pricing import DEFAULT_PLAN_TIERS


async def persist(session_factory, *rows) -> None:
    """Add ORM rows in a single transaction."""
    async with session_scope(session_factory) as session:
        session.add_all(rows)


async def count_rows(session_factory, model) -> int:
    async with session_scope(session_factory) as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar()


def plan_rows() -> list[PlanDefinition]:
    """The default plan ladder as stored plan definitions."""
    return [
        PlanDefinition(
            plan_key=tier.plan_id,
            name=tier.name,
            price_cents=tier.price_cents,
            tier_rank=tier.tier_rank,
            monthly_usage_limit=tier.monthly_usage_limit,
        )
        for tier in DEFAULT_PLAN_TIERS
    ]


def subscription_row(
    business_id: UUID,
    plan_key: str,
    period_start: date,
    period_end: date,
    created_at: datetime,
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
) -> Subscription:
    return Subscription(
        business_id=business_id,
        plan_key=plan_key,
        status=status,
        current_period_start=period_start,
        current_period_end=period_end,
        created_at=created_at,
    )


def payment_row(
    business_id: UUID,
    amount_cents: int,
    processed_at: datetime,
    status: PaymentStatus = PaymentStatus.SUCCEEDED,
) -> Payment:
    return Payment(business_id=business_id, amount_cents=amount_cents, status=status, processed_at=processed_at)


def usage_row(
    business_id: UUID,
    occurred_at: datetime,
    outcome: UsageOutcome = UsageOutcome.SUCCESS,
    feature: str | None = "dashboard",
) -> UsageRecord:
    return UsageRecord(business_id=business_id, occurred_at=occurred_at, outcome=outcome, feature=feature)
