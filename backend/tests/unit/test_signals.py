"""Unit tests for per-business signal collection."""
from datetime import date, timedelta
from uuid import uuid4

import pytest

from revenue_analytics.errors import EntityNotFound
from revenue_analytics.models.payment import PaymentStatus
from revenue_analytics.models.subscription import SubscriptionStatus
from revenue_analytics.models.usage_record import UsageOutcome
from revenue_analytics.schemas.signals import UsageDirection
from revenue_analytics.services.signals import SignalCollector
from tests.utils.factories import at, payment, subscription, usage_event

JUNE = (date(2024, 6, 1), date(2024, 7, 1))


def active(business_id, plan_id="pro", created=date(2024, 1, 1)):
    return subscription(
        business_id=business_id,
        plan_id=plan_id,
        created_at=at(created),
        period_start=JUNE[0],
        period_end=JUNE[1],
    )


@pytest.fixture
def collector(metrics_repository, catalog) -> SignalCollector:
    return SignalCollector(metrics_repository, catalog)


@pytest.mark.asyncio
async def test_no_activity(collector, metrics_repository, as_of) -> None:
    """Test a silent business gets neutral trends and maximal inactivity."""
    business_id = uuid4()
    metrics_repository.subscriptions = [active(business_id)]

    signals = await collector.collect(business_id, as_of)

    assert signals.plan_id == "pro"
    assert signals.usage_direction == UsageDirection.STABLE
    assert signals.recent_activity_score == 0.0
    assert signals.last_active_date is None
    assert signals.churn.days_since_last_login == SignalCollector.NO_ACTIVITY_DAYS
    assert signals.churn.usage_trend == 0.0
    assert signals.churn.login_frequency_decline == 0.0
    assert signals.expansion.payment_reliability == 1.0
    assert signals.expansion.support_sentiment == 1.0
    assert signals.churn.subscription_age_months == (as_of - date(2024, 1, 1)).days // 30


@pytest.mark.asyncio
async def test_subscription_age_ignores_cancelled_rows(collector, metrics_repository, as_of) -> None:
    """Test age counts from the oldest active subscription, not an older cancelled one."""
    business_id = uuid4()
    metrics_repository.subscriptions = [
        subscription(
            business_id=business_id,
            plan_id="starter",
            status=SubscriptionStatus.CANCELLED,
            created_at=at(date(2023, 1, 1)),
            period_start=date(2023, 1, 1),
            period_end=date(2023, 2, 1),
        ),
        active(business_id, created=date(2024, 3, 1)),
    ]

    signals = await collector.collect(business_id, as_of)

    assert signals.churn.subscription_age_months == (as_of - date(2024, 3, 1)).days // 30


@pytest.mark.asyncio
async def test_usage_and_error_counts(collector, metrics_repository, as_of) -> None:
    """Test usage windows, error windows and feature adoption."""
    business_id = uuid4()
    metrics_repository.subscriptions = [active(business_id)]
    metrics_repository.usage = (
        # 10 events in the last 7 days across 5 features
        [
            usage_event(
                business_id=business_id,
                occurred_at=at(as_of - timedelta(days=i % 7)),
                feature=f"feature_{i % 5}",
            )
            for i in range(10)
        ]
        # 20 events in the week before
        + [
            usage_event(business_id=business_id, occurred_at=at(as_of - timedelta(days=7 + i % 7)), feature="api")
            for i in range(20)
        ]
        # 4 errors today
        + [
            usage_event(business_id=business_id, occurred_at=at(as_of, hour=9), outcome=UsageOutcome.ERROR, feature=None)
            for _ in range(4)
        ]
        # 40 events 31-59 days ago
        + [
            usage_event(business_id=business_id, occurred_at=at(as_of - timedelta(days=31 + i % 28)), feature="api")
            for i in range(40)
        ]
    )

    signals = await collector.collect(business_id, as_of)

    assert signals.usage_last_7d == 14
    assert signals.usage_previous_7d == 20
    assert signals.errors_last_7d == 4
    assert signals.errors_last_24h == 4
    assert signals.churn.support_tickets == 4
    assert signals.churn.feature_adoption_rate == pytest.approx(0.6)
    assert signals.churn.login_frequency_decline == pytest.approx(6 / 20)
    # 34 events in the last 30 days vs 40 before
    assert signals.churn.usage_trend == pytest.approx((34 - 40) / 40)
    assert signals.usage_direction == UsageDirection.DECLINING
    assert signals.expansion.support_sentiment == pytest.approx(0.6)
    assert signals.last_active_date == as_of
    assert signals.churn.days_since_last_login == 0


@pytest.mark.asyncio
async def test_payment_signals(collector, metrics_repository, as_of) -> None:
    """Test payment reliability, failures and revenue to date."""
    business_id = uuid4()
    metrics_repository.subscriptions = [active(business_id)]
    metrics_repository.payments = [
        payment(business_id=business_id, amount_cents=9900, processed_at=at(as_of - timedelta(days=40))),
        payment(business_id=business_id, amount_cents=9900, processed_at=at(as_of - timedelta(days=10))),
        payment(
            business_id=business_id,
            amount_cents=9900,
            status=PaymentStatus.FAILED,
            processed_at=at(as_of - timedelta(days=3)),
        ),
        payment(business_id=business_id, amount_cents=9900, processed_at=at(as_of - timedelta(days=2))),
        # After the run date, ignored
        payment(business_id=business_id, amount_cents=9900, processed_at=at(as_of + timedelta(days=2))),
    ]

    signals = await collector.collect(business_id, as_of)

    assert signals.churn.payment_failures == 1
    assert signals.expansion.payment_reliability == pytest.approx(0.75)
    assert signals.churn.total_revenue_cents == 9900 * 3
    assert signals.payments_last_7d == 2
    assert signals.payment_failures_last_7d == 1


@pytest.mark.asyncio
async def test_plan_utilization(collector, metrics_repository, as_of) -> None:
    """Test utilization is capped at 1 and neutral for unlimited plans."""
    capped, unlimited, unknown = uuid4(), uuid4(), uuid4()
    metrics_repository.subscriptions = [
        active(capped, plan_id="free"),
        active(unlimited, plan_id="enterprise"),
        active(unknown, plan_id="legacy"),
    ]
    metrics_repository.usage = [
        usage_event(business_id=business_id, occurred_at=at(as_of - timedelta(days=i % 30)))
        for business_id in (capped, unlimited, unknown)
        for i in range(1200)
    ]

    assert (await collector.collect(capped, as_of)).churn.plan_utilization == 1.0
    assert (await collector.collect(unlimited, as_of)).churn.plan_utilization == 0.5
    assert (await collector.collect(unknown, as_of)).churn.plan_utilization == 0.0


@pytest.mark.asyncio
async def test_missing_subscription_raises(collector, metrics_repository, as_of) -> None:
    """Test collecting for a business without a covering subscription raises EntityNotFound."""
    business_id = uuid4()
    metrics_repository.subscriptions = [
        subscription(business_id=business_id, plan_id="pro", period_start=date(2024, 4, 1), period_end=date(2024, 5, 1)),
    ]

    with pytest.raises(EntityNotFound):
        await collector.collect(business_id, as_of)
