"""
Scoring engine: health score, churn prediction, revenue forecast and
expansion opportunities.

Scoring is an explicit weighted-rule system, not a trained model. Every
rule, weight and threshold lives in the tables below so a score can be
audited by reading them.
"""
import asyncio
import operator
from datetime import date
from typing import Any, Callable, NamedTuple
from uuid import UUID

import structlog

from revenue_analytics.errors import EntityNotFound
from revenue_analytics.models.prediction import OpportunityType
from revenue_analytics.repositories.base import PlanPricing, SnapshotStore
from revenue_analytics.schemas.prediction import ChurnPrediction, ExpansionOpportunity, RevenueForecast
from revenue_analytics.schemas.revenue import MRRSnapshot
from revenue_analytics.schemas.signals import BusinessSignals, ChurnFeatures, ExpansionSignals, UsageDirection
from revenue_analytics.services.signals import SignalCollector
from revenue_analytics.utils.dates import quarter_of

logger = structlog.get_logger(__name__)

MODEL_VERSION = "heuristic-v1"


class RuleTier(NamedTuple):
    """One threshold of a churn rule; the first matching tier of a rule fires."""

    compare: Callable[[Any, Any], bool]
    threshold: Any
    weight: float
    label: str


_USAGE_ACTIONS = ("Conduct usage review and optimization session", "Provide personalized feature recommendations")
_PAYMENT_ACTIONS = ("Update payment method and billing information", "Offer payment plan or billing flexibility")
_SUPPORT_ACTIONS = ("Assign dedicated success manager", "Prioritize support ticket resolution")
_ADOPTION_ACTIONS = ("Provide comprehensive product training", "Share feature usage best practices")

# (feature, tiers, actions attached when any tier fires)
CHURN_RULES: tuple[tuple[str, tuple[RuleTier, ...], tuple[str, ...]], ...] = (
    (
        "usage_trend",
        (
            RuleTier(operator.lt, -0.3, 0.30, "Usage declined more than 30% over the last month"),
            RuleTier(operator.lt, -0.1, 0.15, "Usage declined more than 10% over the last month"),
            RuleTier(operator.lt, 0.0, 0.05, "Usage trending down"),
        ),
        _USAGE_ACTIONS,
    ),
    (
        "payment_failures",
        (
            RuleTier(operator.gt, 3, 0.25, "More than 3 failed payments in 90 days"),
            RuleTier(operator.gt, 1, 0.15, "Multiple failed payments in 90 days"),
            RuleTier(operator.gt, 0, 0.05, "Failed payment in the last 90 days"),
        ),
        _PAYMENT_ACTIONS,
    ),
    (
        "support_tickets",
        (
            RuleTier(operator.gt, 5, 0.20, "High support ticket volume"),
            RuleTier(operator.gt, 2, 0.10, "Elevated support ticket volume"),
            RuleTier(operator.gt, 0, 0.05, "Recent support tickets"),
        ),
        _SUPPORT_ACTIONS,
    ),
    (
        "feature_adoption_rate",
        (
            RuleTier(operator.lt, 0.3, 0.15, "Low feature adoption"),
            RuleTier(operator.lt, 0.5, 0.10, "Limited feature adoption"),
        ),
        _ADOPTION_ACTIONS,
    ),
    (
        "login_frequency_decline",
        (
            RuleTier(operator.gt, 0.5, 0.20, "Login frequency dropped by more than half"),
            RuleTier(operator.gt, 0.2, 0.10, "Decreasing login frequency"),
        ),
        (),
    ),
    (
        "plan_utilization",
        (
            RuleTier(operator.gt, 0.9, 0.10, "Plan over-utilization"),
            RuleTier(operator.lt, 0.1, 0.15, "Plan under-utilization"),
        ),
        (),
    ),
    (
        "days_since_last_login",
        (
            RuleTier(operator.gt, 30, 0.20, "Inactive for more than 30 days"),
            RuleTier(operator.gt, 14, 0.10, "Inactive for more than 14 days"),
            RuleTier(operator.gt, 7, 0.05, "Inactive for more than a week"),
        ),
        (),
    ),
    (
        "subscription_age_months",
        (
            RuleTier(operator.lt, 1, 0.10, "New customer (high early churn risk)"),
            RuleTier(operator.lt, 3, 0.05, "Customer in first three months"),
        ),
        (),
    ),
    (
        "plan_id",
        (
            RuleTier(operator.eq, "free", 0.10, "Free plan"),
            RuleTier(operator.eq, "starter", 0.05, "Entry-level plan"),
        ),
        (),
    ),
)

CHURN_BASE_PROBABILITY = 0.10
CHURN_PROBABILITY_BOUNDS = (0.01, 0.95)
CHURN_BASE_CONFIDENCE = 0.8
CHURN_CONFIDENCE_BOUNDS = (0.3, 0.95)

# (minimum probability, actions), highest band first
CHURN_ACTION_BANDS = (
    (0.7, ("Immediate intervention required", "Schedule executive check-in call", "Offer retention discount or incentive")),
    (0.5, ("Proactive customer success outreach", "Provide additional training resources", "Review account health and usage patterns")),
    (0.3, ("Send engagement email campaign", "Share product tips and best practices")),
)

SEASONAL_MULTIPLIERS = {1: 0.95, 2: 1.05, 3: 1.02, 4: 1.08}
MIN_GROWTH_RATE = 0.02
FORECAST_BASE_CONFIDENCE = 0.8
FORECAST_CONFIDENCE_BOUNDS = (0.5, 0.95)
FORECAST_MIN_HISTORY = 6
ELEVATED_CHURN_RATE = 0.1
FORECAST_ASSUMPTIONS = (
    "Current growth trends continue",
    "No major market disruptions",
    "Seasonal patterns remain consistent",
    "Customer acquisition costs remain stable",
    "Product-market fit maintained",
)

ADDON_REVENUE_CENTS = 5000


def _clip(value: float, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return max(low, min(high, value))


def _dedupe(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def score_churn(
    business_id: UUID,
    features: ChurnFeatures,
    horizon_days: int,
    as_of: date,
) -> ChurnPrediction:
    """
    Score churn probability from a feature set.

    Deterministic: the same features always yield the same prediction.
    Every risk factor is the label of a rule tier that fired.
    """
    probability = CHURN_BASE_PROBABILITY
    risk_factors: list[str] = []
    feature_actions: list[str] = []

    for feature, tiers, actions in CHURN_RULES:
        value = getattr(features, feature)
        for tier in tiers:
            if tier.compare(value, tier.threshold):
                probability += tier.weight
                risk_factors.append(tier.label)
                feature_actions.extend(actions)
                break

    probability = _clip(round(probability, 4), CHURN_PROBABILITY_BOUNDS)

    confidence = CHURN_BASE_CONFIDENCE
    if features.subscription_age_months < 1:
        confidence -= 0.2
    if features.total_revenue_cents == 0:
        confidence -= 0.1
    if features.days_since_last_login > 30:
        confidence -= 0.1
    confidence = _clip(round(confidence, 4), CHURN_CONFIDENCE_BOUNDS)

    band_actions: list[str] = []
    for minimum, actions in CHURN_ACTION_BANDS:
        if probability > minimum:
            band_actions = list(actions)
            break

    return ChurnPrediction(
        business_id=business_id,
        probability=probability,
        confidence=confidence,
        horizon_days=horizon_days,
        risk_factors=risk_factors,
        recommended_actions=_dedupe(band_actions + feature_actions),
        predicted_on=as_of,
        model_version=MODEL_VERSION,
    )


def score_health(signals: BusinessSignals) -> float:
    """
    Health score in [0, 100].

    Starts at 100 and deducts for usage direction, payment failures,
    support volume and low recent activity.
    """
    score = 100.0

    if signals.usage_direction == UsageDirection.DECLINING:
        score -= 30
    elif signals.usage_direction == UsageDirection.STABLE:
        score -= 10

    failures = signals.churn.payment_failures
    if failures > 2:
        score -= 25
    elif failures > 0:
        score -= 10

    tickets = signals.churn.support_tickets
    if tickets > 5:
        score -= 20
    elif tickets > 2:
        score -= 10

    score -= (100 - signals.recent_activity_score) * 0.3

    return round(max(0.0, min(100.0, score)), 1)


def monthly_points(history: list[MRRSnapshot], limit: int) -> list[MRRSnapshot]:
    """
    Reduce snapshot history (oldest first) to the latest snapshot of each
    calendar month, keeping the most recent `limit` months.
    """
    by_month: dict[tuple[int, int], MRRSnapshot] = {}
    for snapshot in history:
        by_month[(snapshot.snapshot_date.year, snapshot.snapshot_date.month)] = snapshot
    return [by_month[month] for month in sorted(by_month)][-limit:]


def project_revenue(history: list[MRRSnapshot], as_of: date, horizon_months: int) -> RevenueForecast:
    """
    Project MRR `horizon_months` ahead from monthly snapshot history (oldest first).

    Growth is the mean month-over-month growth of the history, floored at
    2% and scaled by the seasonal multiplier of the run date's quarter.
    """
    growth_rates = [
        (current.total_mrr_cents - previous.total_mrr_cents) / previous.total_mrr_cents
        for previous, current in zip(history, history[1:])
        if previous.total_mrr_cents > 0
    ]
    average_growth = sum(growth_rates) / len(growth_rates) if growth_rates else 0.0
    seasonal = SEASONAL_MULTIPLIERS[quarter_of(as_of)]
    growth_rate = max(MIN_GROWTH_RATE, average_growth) * seasonal

    current_mrr = history[-1].total_mrr_cents if history else 0
    predicted_mrr = int(current_mrr * (1 + growth_rate) ** horizon_months + 0.5)

    assumptions = list(FORECAST_ASSUMPTIONS)
    confidence = FORECAST_BASE_CONFIDENCE
    if len(history) < FORECAST_MIN_HISTORY:
        confidence -= 0.1
        assumptions.append(f"Limited history: {len(history)} monthly snapshot(s) available")
    elevated_churn = any(
        snapshot.previous_total_mrr_cents > 0
        and snapshot.churned_mrr_cents / snapshot.previous_total_mrr_cents > ELEVATED_CHURN_RATE
        for snapshot in history
    )
    if elevated_churn:
        confidence -= 0.1
        assumptions.append("Recent revenue churn above 10% may recur")
    confidence = _clip(round(confidence, 4), FORECAST_CONFIDENCE_BOUNDS)

    margin = int(predicted_mrr * (1 - confidence) * 0.5 + 0.5)

    return RevenueForecast(
        forecast_date=as_of,
        horizon_months=horizon_months,
        predicted_mrr_cents=predicted_mrr,
        predicted_arr_cents=predicted_mrr * 12,
        confidence=confidence,
        interval_lower_cents=max(0, predicted_mrr - margin),
        interval_upper_cents=predicted_mrr + margin,
        growth_rate=round(growth_rate, 6),
        assumptions=assumptions,
        model_version=MODEL_VERSION,
    )


def evaluate_expansion(
    business_id: UUID,
    plan_id: str,
    signals: ExpansionSignals,
    as_of: date,
    pricing: PlanPricing,
) -> list[ExpansionOpportunity]:
    """
    Apply the expansion rules to one business.

    Rules are independent; a business may qualify for several.
    """
    opportunities: list[ExpansionOpportunity] = []
    next_plan = pricing.next_tier(plan_id)

    if (
        signals.plan_utilization > 0.8
        and signals.usage_growth > 0.1
        and signals.payment_reliability > 0.9
        and next_plan is not None
    ):
        urgent = signals.plan_utilization >= 0.95
        opportunities.append(
            ExpansionOpportunity(
                business_id=business_id,
                opportunity_type=OpportunityType.UPGRADE,
                current_plan_id=plan_id,
                recommended_plan_id=next_plan,
                potential_revenue_increase_cents=max(0, pricing.price_of(next_plan) - pricing.price_of(plan_id)),
                conversion_probability=round(min(0.8, signals.plan_utilization * 1.2), 4),
                urgency_score=90 if urgent else 70,
                actions=[
                    "Present upgrade benefits and ROI analysis",
                    "Offer limited-time upgrade incentive",
                    "Schedule product demo of advanced features",
                ],
                timing_recommendation="Within 7 days" if urgent else "Within 30 days",
                identified_on=as_of,
            )
        )

    if signals.current_usage_vs_limit > 0.9 and signals.usage_growth > 0.05:
        opportunities.append(
            ExpansionOpportunity(
                business_id=business_id,
                opportunity_type=OpportunityType.USAGE_INCREASE,
                current_plan_id=plan_id,
                potential_revenue_increase_cents=0,
                conversion_probability=0.6,
                urgency_score=60,
                actions=["Discuss usage expansion options", "Offer volume-based pricing"],
                timing_recommendation="Within 14 days",
                identified_on=as_of,
            )
        )

    if signals.feature_engagement > 0.7 and signals.plan_utilization > 0.6:
        opportunities.append(
            ExpansionOpportunity(
                business_id=business_id,
                opportunity_type=OpportunityType.ADDON,
                current_plan_id=plan_id,
                potential_revenue_increase_cents=ADDON_REVENUE_CENTS,
                conversion_probability=0.5,
                urgency_score=50,
                actions=["Introduce relevant add-on features", "Provide add-on trial period"],
                timing_recommendation="Within 60 days",
                identified_on=as_of,
            )
        )

    return opportunities


class ScoringEngine:
    """
    Produces churn predictions, health scores, revenue forecasts and
    expansion opportunities.
    """

    def __init__(
        self,
        signals: SignalCollector,
        pricing: PlanPricing,
        snapshot_store: SnapshotStore,
        churn_horizon_days: int = 30,
        forecast_history_limit: int = 12,
    ):
        """
        Initialize scoring engine.

        Args:
            signals: Collector used when callers do not pass precomputed signals
            pricing: Plan catalog for tier ladder and prices
            snapshot_store: Source of MRR history for forecasts
            churn_horizon_days: Default churn prediction horizon
            forecast_history_limit: Number of snapshots used as forecast history
        """
        self.signals = signals
        self.pricing = pricing
        self.snapshot_store = snapshot_store
        self.churn_horizon_days = churn_horizon_days
        self.forecast_history_limit = forecast_history_limit

    def health_score(self, signals: BusinessSignals) -> float:
        return score_health(signals)

    async def predict_churn(
        self,
        business_id: UUID,
        as_of: date,
        horizon_days: int | None = None,
        signals: BusinessSignals | None = None,
    ) -> ChurnPrediction:
        """
        Predict churn for a business.

        Args:
            business_id: Business to score
            as_of: Run date
            horizon_days: Prediction horizon, defaults to the engine's horizon
            signals: Precomputed signals; collected when omitted

        Raises:
            EntityNotFound: If the business has no active subscription
        """
        if signals is None:
            signals = await self.signals.collect(business_id, as_of)

        prediction = score_churn(
            business_id,
            signals.churn,
            horizon_days or self.churn_horizon_days,
            as_of,
        )
        logger.info(
            "churn_predicted",
            business_id=str(business_id),
            probability=prediction.probability,
            confidence=prediction.confidence,
            risk_factors=len(prediction.risk_factors),
        )
        return prediction

    async def predict_churn_batch(self, business_ids: list[UUID], as_of: date) -> list[ChurnPrediction]:
        """
        Predict churn for several businesses concurrently.

        Businesses without an active subscription are skipped.
        """
        results = await asyncio.gather(
            *(self.predict_churn(business_id, as_of) for business_id in business_ids),
            return_exceptions=True,
        )
        predictions = []
        for business_id, result in zip(business_ids, results):
            if isinstance(result, EntityNotFound):
                logger.info("churn_batch_skipped", business_id=str(business_id), reason=str(result))
                continue
            if isinstance(result, BaseException):
                raise result
            predictions.append(result)
        return predictions

    async def forecast_revenue(self, as_of: date, horizon_months: int) -> RevenueForecast:
        """
        Forecast MRR `horizon_months` ahead from stored snapshots.

        Args:
            as_of: Run date; snapshots after it are ignored
            horizon_months: Months ahead to project
        """
        # Daily snapshots are sampled down to one point per month
        history = await self.snapshot_store.mrr_history(as_of, self.forecast_history_limit * 31)
        history = monthly_points(history, self.forecast_history_limit)
        forecast = project_revenue(history, as_of, horizon_months)
        logger.info(
            "revenue_forecasted",
            horizon_months=horizon_months,
            history_points=len(history),
            predicted_mrr_cents=forecast.predicted_mrr_cents,
            growth_rate=forecast.growth_rate,
            confidence=forecast.confidence,
        )
        return forecast

    async def identify_expansion_opportunities(
        self,
        business_id: UUID,
        as_of: date,
        signals: BusinessSignals | None = None,
    ) -> list[ExpansionOpportunity]:
        """
        Identify expansion opportunities for a business.

        Raises:
            EntityNotFound: If the business has no active subscription
        """
        if signals is None:
            signals = await self.signals.collect(business_id, as_of)

        opportunities = evaluate_expansion(business_id, signals.plan_id, signals.expansion, as_of, self.pricing)
        if opportunities:
            logger.info(
                "expansion_opportunities_identified",
                business_id=str(business_id),
                types=[opportunity.opportunity_type.value for opportunity in opportunities],
            )
        return opportunities
