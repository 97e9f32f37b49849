"""
Snapshot engine for revenue metrics.

Calculations:
- MRR: Sum of plan prices of subscriptions covering the run date, decomposed
  against the same date one calendar month earlier into new business,
  expansion, contraction and churned MRR
- Plan performance: Subscriber movement and MRR per plan
- LTV: Current MRR annualized (flat x12), with health score and churn
  probability from the scoring engine
- Cohorts: Businesses grouped by the month of their first subscription
"""
from collections import defaultdict
from datetime import date
from uuid import UUID

import structlog

from revenue_analytics.errors import EntityNotFound
from revenue_analytics.models.customer_ltv import CustomerSegment
from revenue_analytics.repositories.base import MetricsRepository, PlanPricing
from revenue_analytics.schemas.feeds import SubscriptionRecord
from revenue_analytics.schemas.prediction import ChurnPrediction
from revenue_analytics.schemas.revenue import CohortEntry, CohortKind, CustomerLTVRecord, MRRSnapshot, PlanPerformance
from revenue_analytics.schemas.signals import BusinessSignals
from revenue_analytics.services.scoring_engine import ScoringEngine
from revenue_analytics.utils.dates import months_between, round_half_up, shift_months

logger = structlog.get_logger(__name__)

# (segment, minimum health score, churn probability strictly below), best first
SEGMENT_THRESHOLDS = (
    (CustomerSegment.CHAMPION, 80, 0.2),
    (CustomerSegment.LOYAL, 60, 0.4),
    (CustomerSegment.AT_RISK, 40, 0.7),
)

# Lifetime value assumes twelve more months at the current MRR
LTV_MONTHS = 12


def classify_segment(health_score: float, churn_probability: float) -> CustomerSegment:
    for segment, min_health, max_churn in SEGMENT_THRESHOLDS:
        if health_score >= min_health and churn_probability < max_churn:
            return segment
    return CustomerSegment.CRITICAL


class SnapshotEngine:
    """
    Computes MRR snapshots, plan performance, customer lifetime value and cohorts.

    Results are pure functions of repository data and the run date.
    """

    def __init__(self, repository: MetricsRepository, pricing: PlanPricing, scoring: ScoringEngine):
        """
        Initialize snapshot engine.

        Args:
            repository: Source of subscription, payment and usage history
            pricing: Plan catalog used to price subscriptions
            scoring: Scoring engine providing churn probability and health score
        """
        self.repository = repository
        self.pricing = pricing
        self.scoring = scoring

    def _mrr_by_business(self, subscriptions: list[SubscriptionRecord]) -> dict[UUID, int]:
        totals: dict[UUID, int] = defaultdict(int)
        for sub in subscriptions:
            totals[sub.business_id] += self.pricing.price_of(sub.plan_id)
        return dict(totals)

    async def _periods(self, as_of: date) -> tuple[list[SubscriptionRecord], list[SubscriptionRecord]]:
        current = await self.repository.active_subscriptions(as_of)
        previous = await self.repository.active_subscriptions(shift_months(as_of, -1))
        return current, previous

    async def calculate_mrr(self, as_of: date) -> MRRSnapshot:
        """
        Calculate the MRR decomposition for a date.

        New business MRR is the current MRR of businesses absent from the
        comparison period, so total == previous total + net new always holds.

        Args:
            as_of: Snapshot date

        Returns:
            MRRSnapshot for `as_of`
        """
        logger.info("calculating_mrr", as_of_date=as_of.isoformat())

        current, previous = await self._periods(as_of)
        current_mrr = self._mrr_by_business(current)
        previous_mrr = self._mrr_by_business(previous)

        new_business = 0
        expansion = 0
        contraction = 0
        for business_id, amount in current_mrr.items():
            if business_id not in previous_mrr:
                new_business += amount
                continue
            delta = amount - previous_mrr[business_id]
            if delta > 0:
                expansion += delta
            elif delta < 0:
                contraction += -delta

        churned = sum(amount for business_id, amount in previous_mrr.items() if business_id not in current_mrr)

        total_mrr = sum(current_mrr.values())
        paying_customers = sum(1 for amount in current_mrr.values() if amount > 0)
        total_customers = await self.repository.count_customers(as_of)

        snapshot = MRRSnapshot(
            snapshot_date=as_of,
            total_mrr_cents=total_mrr,
            new_business_mrr_cents=new_business,
            expansion_mrr_cents=expansion,
            contraction_mrr_cents=contraction,
            churned_mrr_cents=churned,
            net_new_mrr_cents=new_business + expansion - contraction - churned,
            total_customers=max(total_customers, len(current_mrr)),
            paying_customers=paying_customers,
            average_revenue_per_user_cents=round_half_up(total_mrr, paying_customers),
        )

        logger.info(
            "mrr_calculated",
            total_mrr_cents=snapshot.total_mrr_cents,
            net_new_mrr_cents=snapshot.net_new_mrr_cents,
            paying_customers=snapshot.paying_customers,
        )
        return snapshot

    async def plan_performance(self, as_of: date) -> list[PlanPerformance]:
        """
        Break subscriber movement and MRR down by plan.

        A business counts as churned from a plan when it held that plan in
        the comparison period and holds no subscription at all now.
        """
        current, previous = await self._periods(as_of)
        current_businesses = {sub.business_id for sub in current}

        subscribers: dict[str, set[UUID]] = defaultdict(set)
        previous_subscribers: dict[str, set[UUID]] = defaultdict(set)
        plan_mrr: dict[str, int] = defaultdict(int)

        for sub in current:
            subscribers[sub.plan_id].add(sub.business_id)
            plan_mrr[sub.plan_id] += self.pricing.price_of(sub.plan_id)
        for sub in previous:
            previous_subscribers[sub.plan_id].add(sub.business_id)

        def ladder_position(plan_id: str) -> tuple[int, str]:
            rank = self.pricing.tier_rank(plan_id)
            return (rank if rank is not None else len(plan_mrr) + 1000, plan_id)

        results = []
        for plan_id in sorted(set(subscribers) | set(previous_subscribers), key=ladder_position):
            before = previous_subscribers[plan_id]
            churned = len(before - current_businesses)
            results.append(
                PlanPerformance(
                    plan_id=plan_id,
                    subscribers=len(subscribers[plan_id]),
                    previous_subscribers=len(before),
                    churned_subscribers=churned,
                    churn_rate=churned / len(before) if before else 0.0,
                    mrr_cents=plan_mrr[plan_id],
                )
            )
        return results

    async def calculate_ltv(
        self,
        business_id: UUID,
        as_of: date,
        signals: BusinessSignals | None = None,
        churn: ChurnPrediction | None = None,
    ) -> CustomerLTVRecord:
        """
        Calculate lifetime value, health and segment of a business.

        Args:
            business_id: Business to calculate for
            as_of: Run date
            signals: Precomputed signals; collected when omitted
            churn: Precomputed churn prediction; scored when omitted

        Returns:
            CustomerLTVRecord

        Raises:
            EntityNotFound: If the business has no subscription covering `as_of`
        """
        subscriptions = await self.repository.business_subscriptions(business_id)
        covering = [sub for sub in subscriptions if sub.covers(as_of)]
        if not covering:
            raise EntityNotFound("active subscription for business", business_id)

        if signals is None:
            signals = await self.scoring.signals.collect(business_id, as_of)
        if churn is None:
            churn = await self.scoring.predict_churn(business_id, as_of, signals=signals)
        health_score = self.scoring.health_score(signals)

        first_subscription_date = min(sub.created_at for sub in subscriptions).date()
        current_mrr = sum(self.pricing.price_of(sub.plan_id) for sub in covering)

        record = CustomerLTVRecord(
            business_id=business_id,
            first_subscription_date=first_subscription_date,
            last_active_date=signals.last_active_date,
            total_revenue_cents=signals.churn.total_revenue_cents,
            months_active=max(0, (as_of - first_subscription_date).days // 30),
            current_mrr_cents=current_mrr,
            predicted_ltv_cents=current_mrr * LTV_MONTHS,
            churn_probability=churn.probability,
            health_score=health_score,
            segment=classify_segment(health_score, churn.probability),
        )

        logger.info(
            "ltv_calculated",
            business_id=str(business_id),
            predicted_ltv_cents=record.predicted_ltv_cents,
            health_score=record.health_score,
            segment=record.segment.value,
        )
        return record

    async def cohort_analysis(self, as_of: date, kind: CohortKind = CohortKind.REVENUE) -> list[CohortEntry]:
        """
        Group businesses by the month of their first subscription.

        Args:
            as_of: Run date; retention is measured against subscriptions covering it
            kind: RETENTION drops cohorts younger than one month

        Returns:
            Cohort entries sorted by cohort month
        """
        subscriptions = await self.repository.all_subscriptions(as_of)
        active = {sub.business_id for sub in await self.repository.active_subscriptions(as_of)}

        first_by_business: dict[UUID, SubscriptionRecord] = {}
        for sub in subscriptions:
            first = first_by_business.get(sub.business_id)
            if first is None or sub.created_at < first.created_at:
                first_by_business[sub.business_id] = sub

        cohorts: dict[str, list[SubscriptionRecord]] = defaultdict(list)
        for sub in first_by_business.values():
            cohorts[sub.created_at.strftime("%Y-%m")].append(sub)

        entries = []
        for cohort_month in sorted(cohorts):
            members = cohorts[cohort_month]
            year, month = (int(part) for part in cohort_month.split("-"))
            months_since_start = months_between(date(year, month, 1), as_of)
            if kind == CohortKind.RETENTION and months_since_start < 1:
                continue

            initial = len(members)
            remaining = sum(1 for sub in members if sub.business_id in active)
            revenue = sum(self.pricing.price_of(sub.plan_id) for sub in members)
            entries.append(
                CohortEntry(
                    cohort_month=cohort_month,
                    months_since_start=months_since_start,
                    initial_customers=initial,
                    customers_remaining=remaining,
                    total_revenue_cents=revenue,
                    average_revenue_per_customer_cents=round_half_up(revenue, initial),
                    retention_rate=remaining / initial if initial else 0.0,
                )
            )

        logger.info("cohorts_calculated", cohorts=len(entries), kind=kind.value)
        return entries
