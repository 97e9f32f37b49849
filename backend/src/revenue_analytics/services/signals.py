"""
Signal collection for per-business scoring.

Turns raw subscription, payment and usage history into the feature sets
consumed by the churn model, the expansion rules, the health score and
the per-business alert rules. The only I/O is repository reads.
"""
from datetime import date, datetime, timedelta
from uuid import UUID

import structlog

from revenue_analytics.errors import EntityNotFound
from revenue_analytics.models.payment import PaymentStatus
from revenue_analytics.models.plan_definition import UNLIMITED_USAGE
from revenue_analytics.models.subscription import SubscriptionStatus
from revenue_analytics.models.usage_record import UsageOutcome
from revenue_analytics.repositories.base import MetricsRepository, PlanPricing
from revenue_analytics.schemas.feeds import PaymentEvent, SubscriptionRecord, UsageEvent, Window
from revenue_analytics.schemas.signals import BusinessSignals, ChurnFeatures, ExpansionSignals, UsageDirection
from revenue_analytics.utils.dates import end_of_day

logger = structlog.get_logger(__name__)


class SignalCollector:
    """Collects BusinessSignals for one business at a point in time."""

    # Number of distinct features that counts as full adoption
    TOTAL_FEATURES = 10

    USAGE_LOOKBACK_DAYS = 60
    PAYMENT_LOOKBACK_DAYS = 90
    NO_ACTIVITY_DAYS = 999

    # Utilization assumed for plans without a usage cap
    UNLIMITED_UTILIZATION = 0.5

    def __init__(self, repository: MetricsRepository, pricing: PlanPricing):
        """
        Initialize signal collector.

        Args:
            repository: Source of subscription, payment and usage history
            pricing: Plan catalog for usage limits
        """
        self.repository = repository
        self.pricing = pricing

    async def collect(self, business_id: UUID, as_of: date) -> BusinessSignals:
        """
        Collect signals for a business as of the end of `as_of`.

        Args:
            business_id: Business to collect signals for
            as_of: Run date

        Returns:
            BusinessSignals with churn features, expansion signals and activity counts

        Raises:
            EntityNotFound: If the business has no subscription covering `as_of`
        """
        subscriptions = await self.repository.business_subscriptions(business_id)
        covering = [sub for sub in subscriptions if sub.covers(as_of)]
        if not covering:
            raise EntityNotFound("active subscription for business", business_id)

        current = max(covering, key=lambda sub: sub.created_at)
        first_created = min(sub.created_at for sub in subscriptions)
        # tenure runs from the oldest active row; cancelled rows do not extend it
        tenure_start = min(
            (sub.created_at for sub in subscriptions if sub.status == SubscriptionStatus.ACTIVE),
            default=current.created_at,
        )
        window_end = end_of_day(as_of)

        usage = await self.repository.usage_events(
            business_id,
            Window(start=min(first_created, window_end - timedelta(days=self.USAGE_LOOKBACK_DAYS)), end=window_end),
        )
        payments = await self.repository.payment_events(
            business_id,
            Window(start=min(first_created, window_end - timedelta(days=self.PAYMENT_LOOKBACK_DAYS)), end=window_end),
        )

        signals = build_signals(
            business_id=business_id,
            as_of=as_of,
            current=current,
            tenure_start=tenure_start,
            usage=usage,
            payments=payments,
            usage_limit=self.pricing.usage_limit(current.plan_id),
        )
        logger.debug(
            "signals_collected",
            business_id=str(business_id),
            usage_events=len(usage),
            payment_events=len(payments),
        )
        return signals


def _count(events, start: datetime, end: datetime, moment, predicate=None) -> int:
    return sum(1 for event in events if start <= moment(event) < end and (predicate is None or predicate(event)))


def build_signals(
    business_id: UUID,
    as_of: date,
    current: SubscriptionRecord,
    tenure_start: datetime,
    usage: list[UsageEvent],
    payments: list[PaymentEvent],
    usage_limit: int | None,
) -> BusinessSignals:
    """Derive BusinessSignals from already-fetched history."""
    end = end_of_day(as_of)

    def days_ago(days: int) -> datetime:
        return end - timedelta(days=days)

    def occurred(event: UsageEvent) -> datetime:
        return event.occurred_at

    def processed(event: PaymentEvent) -> datetime:
        return event.processed_at

    def is_error(event: UsageEvent) -> bool:
        return event.outcome == UsageOutcome.ERROR

    def is_failed(event: PaymentEvent) -> bool:
        return event.status == PaymentStatus.FAILED

    def is_succeeded(event: PaymentEvent) -> bool:
        return event.status == PaymentStatus.SUCCEEDED

    usage_30 = _count(usage, days_ago(30), end, occurred)
    usage_prev_30 = _count(usage, days_ago(60), days_ago(30), occurred)
    usage_7 = _count(usage, days_ago(7), end, occurred)
    usage_prev_7 = _count(usage, days_ago(14), days_ago(7), occurred)
    usage_prev_23 = _count(usage, days_ago(30), days_ago(7), occurred)
    errors_30 = _count(usage, days_ago(30), end, occurred, is_error)
    errors_7 = _count(usage, days_ago(7), end, occurred, is_error)
    errors_24h = _count(usage, days_ago(1), end, occurred, is_error)
    features_30 = {
        event.feature
        for event in usage
        if event.feature and days_ago(30) <= event.occurred_at < end
    }

    payments_90 = _count(payments, days_ago(90), end, processed)
    failures_90 = _count(payments, days_ago(90), end, processed, is_failed)
    successes_90 = _count(payments, days_ago(90), end, processed, is_succeeded)
    payments_7 = _count(payments, days_ago(7), end, processed)
    failures_7 = _count(payments, days_ago(7), end, processed, is_failed)
    total_revenue = sum(event.amount_cents for event in payments if is_succeeded(event) and event.processed_at < end)

    usage_trend = (usage_30 - usage_prev_30) / usage_prev_30 if usage_prev_30 else 0.0
    if usage_30 > usage_prev_30 * 1.1:
        direction = UsageDirection.INCREASING
    elif usage_30 < usage_prev_30 * 0.9:
        direction = UsageDirection.DECLINING
    else:
        direction = UsageDirection.STABLE

    login_decline = max(0.0, (usage_prev_7 - usage_7) / usage_prev_7) if usage_prev_7 else 0.0

    if usage_limit is None or usage_limit == 0:
        utilization = 0.0
    elif usage_limit == UNLIMITED_USAGE:
        utilization = SignalCollector.UNLIMITED_UTILIZATION
    else:
        utilization = min(1.0, usage_30 / usage_limit)

    # Recent week against the weekly average of the 23 days before it
    if usage_prev_23 == 0:
        activity_score = 100.0 if usage_7 > 0 else 0.0
    else:
        activity_score = min(100.0, usage_7 / (usage_prev_23 / 3) * 100)

    last_event = max((event.occurred_at for event in usage if event.occurred_at < end), default=None)
    last_active_date = last_event.date() if last_event else None
    days_inactive = (as_of - last_active_date).days if last_active_date else SignalCollector.NO_ACTIVITY_DAYS

    adoption = min(1.0, len(features_30) / SignalCollector.TOTAL_FEATURES)
    reliability = successes_90 / payments_90 if payments_90 else 1.0

    churn = ChurnFeatures(
        usage_trend=usage_trend,
        payment_failures=failures_90,
        support_tickets=errors_30,
        feature_adoption_rate=adoption,
        login_frequency_decline=login_decline,
        plan_utilization=utilization,
        days_since_last_login=max(0, days_inactive),
        subscription_age_months=max(0, (as_of - tenure_start.date()).days // 30),
        plan_id=current.plan_id,
        total_revenue_cents=total_revenue,
    )
    expansion = ExpansionSignals(
        current_usage_vs_limit=utilization,
        usage_growth=usage_trend,
        feature_engagement=adoption,
        support_sentiment=max(0.0, 1 - errors_30 / 10),
        payment_reliability=reliability,
        plan_utilization=utilization,
    )

    return BusinessSignals(
        business_id=business_id,
        as_of=as_of,
        plan_id=current.plan_id,
        churn=churn,
        expansion=expansion,
        usage_direction=direction,
        recent_activity_score=activity_score,
        usage_last_7d=usage_7,
        usage_previous_7d=usage_prev_7,
        errors_last_7d=errors_7,
        errors_last_24h=errors_24h,
        payments_last_7d=payments_7,
        payment_failures_last_7d=failures_7,
        last_active_date=last_active_date,
    )
