"""Unit tests for MRR snapshots, plan performance, LTV and cohorts."""
from datetime import date, timedelta
from uuid import uuid4

import pytest

from revenue_analytics.errors import EntityNotFound
from revenue_analytics.models.customer_ltv import CustomerSegment
from revenue_analytics.models.payment import PaymentStatus
from revenue_analytics.models.subscription import SubscriptionStatus
from revenue_analytics.schemas.revenue import CohortKind
from revenue_analytics.services.snapshot_engine import classify_segment
from tests.utils.factories import at, payment, subscription, usage_event

MAY = (date(2024, 5, 1), date(2024, 6, 1))
JUNE = (date(2024, 6, 1), date(2024, 7, 1))
BOTH = (date(2024, 5, 1), date(2024, 7, 1))


def sub(business_id, plan_id, period, status=SubscriptionStatus.ACTIVE, created=None):
    return subscription(
        business_id=business_id,
        plan_id=plan_id,
        status=status,
        created_at=at(created or period[0]),
        period_start=period[0],
        period_end=period[1],
    )


@pytest.fixture
def businesses():
    return {name: uuid4() for name in ("steady", "upgraded", "cancelled", "new", "downgraded")}


@pytest.fixture
def mixed_book(metrics_repository, businesses):
    """Steady, upgrading, churning, new and downgrading businesses across May and June 2024."""
    b = businesses
    metrics_repository.subscriptions = [
        sub(b["steady"], "starter", BOTH),
        sub(b["upgraded"], "starter", MAY),
        sub(b["upgraded"], "pro", JUNE),
        sub(b["cancelled"], "pro", MAY),
        sub(b["new"], "business", (date(2024, 6, 10), date(2024, 7, 10))),
        sub(b["downgraded"], "pro", MAY),
        sub(b["downgraded"], "starter", JUNE),
    ]
    return metrics_repository


@pytest.mark.asyncio
async def test_mrr_decomposition(snapshot_engine, mixed_book, as_of) -> None:
    """Test MRR components for a month with every kind of movement."""
    snapshot = await snapshot_engine.calculate_mrr(as_of)

    assert snapshot.snapshot_date == as_of
    assert snapshot.total_mrr_cents == 2900 + 9900 + 29900 + 2900
    assert snapshot.new_business_mrr_cents == 29900
    assert snapshot.expansion_mrr_cents == 7000
    assert snapshot.contraction_mrr_cents == 7000
    assert snapshot.churned_mrr_cents == 9900
    assert snapshot.net_new_mrr_cents == 29900 + 7000 - 7000 - 9900
    assert snapshot.paying_customers == 4
    assert snapshot.total_customers == 5
    assert snapshot.average_revenue_per_user_cents == 11400


@pytest.mark.asyncio
async def test_mrr_decomposition_is_consistent(snapshot_engine, mixed_book, as_of) -> None:
    """Test total MRR equals previous total plus net new MRR."""
    snapshot = await snapshot_engine.calculate_mrr(as_of)
    previous = await snapshot_engine.calculate_mrr(date(2024, 5, 15))

    assert snapshot.total_mrr_cents == previous.total_mrr_cents + snapshot.net_new_mrr_cents
    assert snapshot.previous_total_mrr_cents == previous.total_mrr_cents


@pytest.mark.asyncio
async def test_starter_to_pro_upgrade_is_expansion(snapshot_engine, metrics_repository, as_of) -> None:
    """Test upgrading from starter to pro contributes 7000 cents of expansion."""
    business_id = uuid4()
    metrics_repository.subscriptions = [
        sub(business_id, "starter", MAY),
        sub(business_id, "pro", JUNE),
    ]

    snapshot = await snapshot_engine.calculate_mrr(as_of)

    assert snapshot.expansion_mrr_cents == 7000
    assert snapshot.new_business_mrr_cents == 0
    assert snapshot.net_new_mrr_cents == 7000


@pytest.mark.asyncio
async def test_cancellation_counts_as_churn(snapshot_engine, metrics_repository, as_of) -> None:
    """Test a cancelled subscription is churned MRR and no longer paying."""
    business_id = uuid4()
    metrics_repository.subscriptions = [
        sub(business_id, "pro", MAY),
        sub(business_id, "pro", JUNE, status=SubscriptionStatus.CANCELLED),
    ]

    snapshot = await snapshot_engine.calculate_mrr(as_of)

    assert snapshot.churned_mrr_cents == 9900
    assert snapshot.total_mrr_cents == 0
    assert snapshot.paying_customers == 0


@pytest.mark.asyncio
async def test_arpu_is_zero_without_paying_customers(snapshot_engine, metrics_repository, as_of) -> None:
    """Test ARPU does not divide by zero when only free plans are active."""
    metrics_repository.subscriptions = [sub(uuid4(), "free", BOTH), sub(uuid4(), "free", BOTH)]

    snapshot = await snapshot_engine.calculate_mrr(as_of)

    assert snapshot.total_mrr_cents == 0
    assert snapshot.paying_customers == 0
    assert snapshot.average_revenue_per_user_cents == 0
    assert snapshot.total_customers == 2


@pytest.mark.asyncio
async def test_empty_book(snapshot_engine, as_of) -> None:
    """Test a business with no subscriptions yields an all-zero snapshot."""
    snapshot = await snapshot_engine.calculate_mrr(as_of)

    assert snapshot.total_mrr_cents == 0
    assert snapshot.net_new_mrr_cents == 0
    assert snapshot.average_revenue_per_user_cents == 0


@pytest.mark.asyncio
async def test_unknown_plan_is_priced_at_zero(snapshot_engine, metrics_repository, as_of) -> None:
    """Test an unknown plan id contributes nothing instead of failing the snapshot."""
    metrics_repository.subscriptions = [sub(uuid4(), "legacy-gold", BOTH), sub(uuid4(), "pro", BOTH)]

    snapshot = await snapshot_engine.calculate_mrr(as_of)

    assert snapshot.total_mrr_cents == 9900
    assert snapshot.paying_customers == 1


@pytest.mark.asyncio
async def test_recalculation_is_byte_identical(snapshot_engine, mixed_book, snapshot_store, as_of) -> None:
    """Test recomputing the same date serializes identically and upserts a single row."""
    first = await snapshot_engine.calculate_mrr(as_of)
    await snapshot_store.upsert_mrr(first)
    second = await snapshot_engine.calculate_mrr(as_of)
    await snapshot_store.upsert_mrr(second)

    assert first.model_dump_json() == second.model_dump_json()
    assert len(snapshot_store.snapshots) == 1


@pytest.mark.asyncio
async def test_plan_performance(snapshot_engine, mixed_book, as_of) -> None:
    """Test per-plan subscribers, churn and MRR are reported in ladder order."""
    plans = await snapshot_engine.plan_performance(as_of)

    assert [plan.plan_id for plan in plans] == ["starter", "pro", "business"]
    by_plan = {plan.plan_id: plan for plan in plans}

    assert by_plan["starter"].subscribers == 2
    assert by_plan["starter"].mrr_cents == 5800
    assert by_plan["starter"].churn_rate == 0.0

    assert by_plan["pro"].previous_subscribers == 2
    assert by_plan["pro"].churned_subscribers == 1
    assert by_plan["pro"].churn_rate == 0.5

    assert by_plan["business"].previous_subscribers == 0
    assert by_plan["business"].churn_rate == 0.0


@pytest.mark.asyncio
async def test_calculate_ltv(snapshot_engine, metrics_repository, as_of) -> None:
    """Test LTV annualizes current MRR and carries scoring results."""
    business_id = uuid4()
    metrics_repository.subscriptions = [
        sub(business_id, "starter", (date(2024, 6, 1), date(2024, 7, 1)), created=date(2024, 1, 10)),
    ]
    metrics_repository.payments = [
        payment(business_id=business_id, amount_cents=2900, processed_at=at(date(2024, month, 10)))
        for month in (3, 4, 5)
    ] + [
        payment(
            business_id=business_id,
            amount_cents=2900,
            status=PaymentStatus.FAILED,
            processed_at=at(date(2024, 6, 10)),
        )
    ]
    metrics_repository.usage = [
        usage_event(business_id=business_id, occurred_at=at(as_of - timedelta(days=day)), feature="reports")
        for day in range(0, 20)
    ]

    record = await snapshot_engine.calculate_ltv(business_id, as_of)

    assert record.business_id == business_id
    assert record.first_subscription_date == date(2024, 1, 10)
    assert record.months_active == (as_of - date(2024, 1, 10)).days // 30
    assert record.current_mrr_cents == 2900
    assert record.predicted_ltv_cents == 2900 * 12
    assert record.total_revenue_cents == 2900 * 3
    assert record.last_active_date == as_of
    assert 0.01 <= record.churn_probability <= 0.95
    assert 0 <= record.health_score <= 100
    assert record.segment == classify_segment(record.health_score, record.churn_probability)


@pytest.mark.asyncio
async def test_calculate_ltv_requires_active_subscription(snapshot_engine, metrics_repository, as_of) -> None:
    """Test LTV for a business without a covering subscription raises EntityNotFound."""
    business_id = uuid4()
    metrics_repository.subscriptions = [sub(business_id, "pro", MAY)]

    with pytest.raises(EntityNotFound):
        await snapshot_engine.calculate_ltv(business_id, as_of)

    with pytest.raises(EntityNotFound):
        await snapshot_engine.calculate_ltv(uuid4(), as_of)


@pytest.mark.parametrize(
    "health, churn, segment",
    [
        (85, 0.1, CustomerSegment.CHAMPION),
        (85, 0.3, CustomerSegment.LOYAL),
        (65, 0.1, CustomerSegment.LOYAL),
        (50, 0.5, CustomerSegment.AT_RISK),
        (50, 0.75, CustomerSegment.CRITICAL),
        (30, 0.1, CustomerSegment.CRITICAL),
    ],
)
def test_classify_segment(health, churn, segment) -> None:
    """Test segment thresholds on health score and churn probability."""
    assert classify_segment(health, churn) == segment


@pytest.mark.asyncio
async def test_cohort_analysis(snapshot_engine, metrics_repository, as_of) -> None:
    """Test cohorts group by first subscription month with bounded retention."""
    retained, churned, fresh = uuid4(), uuid4(), uuid4()
    metrics_repository.subscriptions = [
        sub(retained, "starter", (date(2024, 1, 5), date(2024, 7, 5))),
        sub(churned, "pro", (date(2024, 1, 20), date(2024, 3, 20))),
        sub(fresh, "business", (date(2024, 6, 3), date(2024, 7, 3))),
    ]

    cohorts = await snapshot_engine.cohort_analysis(as_of)

    assert [cohort.cohort_month for cohort in cohorts] == ["2024-01", "2024-06"]
    january = cohorts[0]
    assert january.initial_customers == 2
    assert january.customers_remaining == 1
    assert january.retention_rate == 0.5
    assert january.months_since_start == 5
    assert january.total_revenue_cents == 2900 + 9900
    assert january.average_revenue_per_customer_cents == 6400
    for cohort in cohorts:
        assert 0 <= cohort.retention_rate <= 1
        assert cohort.customers_remaining <= cohort.initial_customers


@pytest.mark.asyncio
async def test_retention_cohorts_skip_current_month(snapshot_engine, metrics_repository, as_of) -> None:
    """Test retention analysis drops cohorts younger than one month."""
    metrics_repository.subscriptions = [
        sub(uuid4(), "starter", (date(2024, 2, 1), date(2024, 7, 1))),
        sub(uuid4(), "starter", (date(2024, 6, 3), date(2024, 7, 3))),
    ]

    cohorts = await snapshot_engine.cohort_analysis(as_of, kind=CohortKind.RETENTION)

    assert [cohort.cohort_month for cohort in cohorts] == ["2024-02"]
