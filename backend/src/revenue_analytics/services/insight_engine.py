"""
Insight and alert generation.

Insights are scored observations with suggested actions. Alerts are
severity-tagged and de-duplicated: while an alert with the same
(alert_type, category, business_id) is unresolved, new ones are suppressed.

Alert lifecycle: created -> acknowledged (optional) -> resolved (terminal).
"""
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from statistics import mean, pvariance
from uuid import UUID

import structlog

from revenue_analytics import metrics
from revenue_analytics.errors import EntityNotFound, InvalidAlertTransition
from revenue_analytics.models.customer_ltv import CustomerSegment
from revenue_analytics.models.insight import (
    AlertCategory,
    AlertSeverity,
    AlertType,
    InsightCategory,
    InsightType,
)
from revenue_analytics.repositories.base import AlertStore, InsightStore, PredictionStore, SnapshotStore
from revenue_analytics.schemas.insight import Alert, Insight
from revenue_analytics.schemas.prediction import ChurnPrediction, ExpansionOpportunity, RevenueForecast
from revenue_analytics.schemas.revenue import CohortEntry, CustomerLTVRecord, MRRSnapshot, PlanPerformance
from revenue_analytics.schemas.signals import BusinessSignals
from revenue_analytics.utils.currency import format_amount_for_currency, format_percent
from revenue_analytics.utils.dates import quarter_of, shift_months

logger = structlog.get_logger(__name__)


@dataclass
class InsightContext:
    """Everything one run knows when generating insights and alerts."""

    as_of: date
    generated_at: datetime
    snapshot: MRRSnapshot
    history: list[MRRSnapshot] = field(default_factory=list)
    plan_performance: list[PlanPerformance] = field(default_factory=list)
    cohorts: list[CohortEntry] = field(default_factory=list)
    ltv_records: list[CustomerLTVRecord] = field(default_factory=list)
    churn_predictions: list[ChurnPrediction] = field(default_factory=list)
    opportunities: list[ExpansionOpportunity] = field(default_factory=list)
    signals: list[BusinessSignals] = field(default_factory=list)
    baseline_forecast: RevenueForecast | None = None
    historical_churn_probability: float | None = None


def mom_growth_percent(snapshot: MRRSnapshot) -> float | None:
    """Month-over-month MRR growth in percent, None without a prior month."""
    previous = snapshot.previous_total_mrr_cents
    if previous <= 0:
        return None
    return snapshot.net_new_mrr_cents / previous * 100


class InsightEngine:
    """Generates insights and alerts and manages the alert lifecycle."""

    # Insight thresholds
    GROWTH_INSIGHT_PERCENT = 20
    DECLINE_INSIGHT_PERCENT = -10
    SEASONAL_VARIANCE_POINTS = 15
    PLAN_CHURN_INSIGHT_RATE = 0.10
    COHORT_RETENTION_FLOOR = 0.6
    CHURN_DRIVER_PROBABILITY = 0.5
    HIGH_CONVERSION = 0.6
    LTV_VARIANCE_THRESHOLD = 1_000_000
    HEALTH_VARIANCE_THRESHOLD = 100
    REVENUE_CHURN_PRIORITY_RATE = 0.05

    # Alert thresholds
    MRR_DECLINE_PERCENT = 5
    CHURN_SPIKE_PERCENT = 20
    HIGH_VALUE_CHURN_PROBABILITY = 0.8
    MILESTONES_CENTS = [1_000_000, 5_000_000, 10_000_000, 25_000_000, 50_000_000]
    MILESTONE_WINDOW = 0.1
    FORECAST_VARIANCE_PERCENT = 15
    SUPPORT_ERRORS_7D = 10
    SUPPORT_ERRORS_24H = 3
    USAGE_ANOMALY_CHANGE = 0.5
    PAYMENT_FAILURE_PERCENT = 10
    PLAN_CHURN_ALERT_RATE = 0.15
    EXPANSION_PIPELINE_MIN = 5

    def __init__(
        self,
        insight_store: InsightStore,
        alert_store: AlertStore,
        snapshot_store: SnapshotStore,
        prediction_store: PredictionStore,
        currency: str = "USD",
        insight_ttl_days: int = 7,
        high_value_mrr_cents: int = 50000,
    ):
        """
        Initialize insight engine.

        Args:
            insight_store: Sink for insights
            alert_store: Sink for alerts with duplicate suppression
            snapshot_store: Source of MRR history
            prediction_store: Source of past churn predictions and forecasts
            currency: Currency used when formatting amounts in messages
            insight_ttl_days: Days until a generated insight expires
            high_value_mrr_cents: MRR above which a customer counts as high value
        """
        self.insight_store = insight_store
        self.alert_store = alert_store
        self.snapshot_store = snapshot_store
        self.prediction_store = prediction_store
        self.currency = currency
        self.insight_ttl_days = insight_ttl_days
        self.high_value_mrr_cents = high_value_mrr_cents

    def _money(self, cents: int) -> str:
        return format_amount_for_currency(cents, self.currency)

    async def build_context(self, as_of: date, snapshot: MRRSnapshot, **results) -> InsightContext:
        """
        Assemble an InsightContext, loading history from the stores.

        Args:
            as_of: Run date
            snapshot: The run's MRR snapshot
            **results: Per-run results (plan_performance, cohorts, ltv_records,
                churn_predictions, opportunities, signals)
        """
        history = await self.snapshot_store.mrr_history(as_of, 366)
        baseline = await self.prediction_store.latest_forecast(1, shift_months(as_of, -1))
        past_predictions = await self.prediction_store.churn_history(
            as_of - timedelta(days=30),
            as_of - timedelta(days=7),
        )
        historical = mean(p.probability for p in past_predictions) if past_predictions else None

        return InsightContext(
            as_of=as_of,
            generated_at=datetime.utcnow(),
            snapshot=snapshot,
            history=history,
            baseline_forecast=baseline,
            historical_churn_probability=historical,
            **results,
        )

    # Insights

    def generate_insights(self, ctx: InsightContext) -> list[Insight]:
        """
        Apply every insight rule to the context.

        Rules are independent and skip themselves when their data is missing.
        Results are sorted by impact score, highest first.
        """
        insights: list[Insight] = []
        for rule in (
            self._revenue_trend_insight,
            self._seasonal_insight,
            self._plan_optimization_insight,
            self._cohort_retention_insight,
            self._churn_driver_insight,
            self._expansion_insight,
            self._success_pattern_insight,
            self._segmentation_insight,
            self._investment_priority_insight,
        ):
            insight = rule(ctx)
            if insight is not None:
                insights.append(insight)

        insights.sort(key=lambda insight: insight.impact_score, reverse=True)
        logger.info("insights_generated", count=len(insights))
        return insights

    def _insight(self, ctx: InsightContext, **fields) -> Insight:
        return Insight(
            generated_at=ctx.generated_at,
            expires_at=ctx.generated_at + timedelta(days=self.insight_ttl_days),
            **fields,
        )

    def _revenue_trend_insight(self, ctx: InsightContext) -> Insight | None:
        growth = mom_growth_percent(ctx.snapshot)
        if growth is None:
            return None

        data = {
            "growth_percent": round(growth, 2),
            "current_mrr_cents": ctx.snapshot.total_mrr_cents,
            "previous_mrr_cents": ctx.snapshot.previous_total_mrr_cents,
        }
        if growth > self.GROWTH_INSIGHT_PERCENT:
            return self._insight(
                ctx,
                insight_type=InsightType.REVENUE_GROWTH,
                category=InsightCategory.REVENUE,
                title="Strong revenue growth",
                description=f"MRR grew {format_percent(growth)} month over month to {self._money(ctx.snapshot.total_mrr_cents)}.",
                impact_score=90,
                confidence=0.95,
                actions=[
                    "Identify the acquisition channels driving growth",
                    "Scale customer success capacity ahead of demand",
                    "Review infrastructure capacity",
                ],
                data=data,
            )
        if growth < self.DECLINE_INSIGHT_PERCENT:
            return self._insight(
                ctx,
                insight_type=InsightType.REVENUE_DECLINE,
                category=InsightCategory.REVENUE,
                title="Revenue decline detected",
                description=f"MRR fell {format_percent(abs(growth))} month over month to {self._money(ctx.snapshot.total_mrr_cents)}.",
                impact_score=85,
                confidence=0.90,
                actions=[
                    "Analyze churned and contracted accounts",
                    "Launch a retention campaign for at-risk customers",
                    "Review recent pricing or product changes",
                ],
                data=data,
            )
        return None

    def _seasonal_insight(self, ctx: InsightContext) -> Insight | None:
        cutoff = shift_months(ctx.as_of, -12)
        by_quarter: dict[int, list[float]] = defaultdict(list)
        for snapshot in ctx.history:
            growth = mom_growth_percent(snapshot)
            if snapshot.snapshot_date > cutoff and growth is not None:
                by_quarter[quarter_of(snapshot.snapshot_date)].append(growth)

        if len(by_quarter) < 4:
            return None

        averages = {quarter: mean(values) for quarter, values in by_quarter.items()}
        strongest = max(averages, key=averages.get)
        weakest = min(averages, key=averages.get)
        spread = averages[strongest] - averages[weakest]
        if spread <= self.SEASONAL_VARIANCE_POINTS:
            return None

        return self._insight(
            ctx,
            insight_type=InsightType.SEASONAL_PATTERNS,
            category=InsightCategory.REVENUE,
            title="Seasonal revenue pattern",
            description=(
                f"Q{strongest} growth averages {format_percent(averages[strongest])} against "
                f"{format_percent(averages[weakest])} in Q{weakest}."
            ),
            impact_score=75,
            confidence=0.85,
            actions=[
                f"Plan campaigns ahead of Q{strongest}",
                f"Prepare retention programs for Q{weakest}",
            ],
            data={
                "quarterly_growth_percent": {f"Q{q}": round(v, 2) for q, v in sorted(averages.items())},
                "spread_points": round(spread, 2),
            },
        )

    def _plan_optimization_insight(self, ctx: InsightContext) -> Insight | None:
        weak = [plan for plan in ctx.plan_performance if plan.churn_rate > self.PLAN_CHURN_INSIGHT_RATE]
        if not weak:
            return None
        return self._insight(
            ctx,
            insight_type=InsightType.PLAN_OPTIMIZATION,
            category=InsightCategory.REVENUE,
            title="Plans with elevated churn",
            description=f"{len(weak)} plan(s) lost more than 10% of their subscribers this month.",
            impact_score=80,
            confidence=0.90,
            actions=[
                "Review plan feature sets and price points",
                "Interview churned customers on these plans",
            ],
            data={"plans": {plan.plan_id: round(plan.churn_rate, 4) for plan in weak}},
        )

    def _cohort_retention_insight(self, ctx: InsightContext) -> Insight | None:
        weak = [
            cohort
            for cohort in ctx.cohorts
            if cohort.months_since_start >= 1 and cohort.retention_rate < self.COHORT_RETENTION_FLOOR
        ]
        if not weak:
            return None
        worst = min(weak, key=lambda cohort: cohort.retention_rate)
        return self._insight(
            ctx,
            insight_type=InsightType.COHORT_RETENTION,
            category=InsightCategory.CUSTOMER,
            title="Weak cohort retention",
            description=(
                f"{len(weak)} cohort(s) retain fewer than 60% of customers; "
                f"{worst.cohort_month} retains {format_percent(worst.retention_rate * 100)}."
            ),
            impact_score=70,
            confidence=0.80,
            actions=[
                "Review onboarding for the affected cohorts",
                "Compare activation milestones with healthier cohorts",
            ],
            data={"cohorts": {cohort.cohort_month: round(cohort.retention_rate, 4) for cohort in weak}},
        )

    def _churn_driver_insight(self, ctx: InsightContext) -> Insight | None:
        at_risk = [p for p in ctx.churn_predictions if p.probability > self.CHURN_DRIVER_PROBABILITY]
        if not at_risk:
            return None
        drivers = Counter(factor for prediction in at_risk for factor in prediction.risk_factors)
        top = drivers.most_common(3)
        return self._insight(
            ctx,
            insight_type=InsightType.CHURN_DRIVERS,
            category=InsightCategory.CUSTOMER,
            title="Top churn risk drivers",
            description=(
                f"{len(at_risk)} customer(s) are likely to churn. "
                f"Leading factors: {', '.join(factor for factor, _ in top) or 'none recorded'}."
            ),
            impact_score=85,
            confidence=0.90,
            actions=[f"Address: {factor}" for factor, _ in top],
            data={"at_risk_customers": len(at_risk), "drivers": dict(top)},
        )

    def _expansion_insight(self, ctx: InsightContext) -> Insight | None:
        likely = [o for o in ctx.opportunities if o.conversion_probability > self.HIGH_CONVERSION]
        if not likely:
            return None
        by_type = Counter(o.opportunity_type.value for o in likely)
        potential = sum(o.potential_revenue_increase_cents for o in likely)
        return self._insight(
            ctx,
            insight_type=InsightType.EXPANSION_OPPORTUNITIES,
            category=InsightCategory.CUSTOMER,
            title="High-probability expansion opportunities",
            description=f"{len(likely)} opportunities worth {self._money(potential)} in monthly revenue.",
            impact_score=80,
            confidence=0.85,
            actions=[
                "Prioritize upgrade conversations with these accounts",
                "Prepare usage-based pricing proposals",
            ],
            data={"by_type": dict(by_type), "potential_revenue_cents": potential},
        )

    def _success_pattern_insight(self, ctx: InsightContext) -> Insight | None:
        champions = [r for r in ctx.ltv_records if r.segment == CustomerSegment.CHAMPION]
        if not champions:
            return None
        return self._insight(
            ctx,
            insight_type=InsightType.SUCCESS_PATTERNS,
            category=InsightCategory.CUSTOMER,
            title="Champion customer patterns",
            description=(
                f"{len(champions)} champion customer(s) average a health score of "
                f"{mean(r.health_score for r in champions):.1f}."
            ),
            impact_score=75,
            confidence=0.85,
            actions=[
                "Turn champion usage patterns into onboarding playbooks",
                "Invite champions to referral and case-study programs",
            ],
            data={
                "champions": len(champions),
                "average_ltv_cents": round(mean(r.predicted_ltv_cents for r in champions)),
            },
        )

    def _segmentation_insight(self, ctx: InsightContext) -> Insight | None:
        segments: dict[CustomerSegment, list[CustomerLTVRecord]] = defaultdict(list)
        for record in ctx.ltv_records:
            segments[record.segment].append(record)
        if len(segments) < 2:
            return None

        ltv_means = [mean(r.predicted_ltv_cents for r in records) for records in segments.values()]
        health_means = [mean(r.health_score for r in records) for records in segments.values()]
        ltv_variance = pvariance(ltv_means)
        health_variance = pvariance(health_means)
        if ltv_variance <= self.LTV_VARIANCE_THRESHOLD and health_variance <= self.HEALTH_VARIANCE_THRESHOLD:
            return None

        return self._insight(
            ctx,
            insight_type=InsightType.SEGMENTATION_OPPORTUNITIES,
            category=InsightCategory.CUSTOMER,
            title="Customer segments diverge",
            description=f"Lifetime value and health differ sharply across {len(segments)} segments.",
            impact_score=70,
            confidence=0.80,
            actions=[
                "Tailor engagement programs per segment",
                "Align pricing and packaging with segment value",
            ],
            data={
                "segments": {segment.value: len(records) for segment, records in segments.items()},
                "ltv_variance": round(ltv_variance, 2),
                "health_variance": round(health_variance, 2),
            },
        )

    def _investment_priority_insight(self, ctx: InsightContext) -> Insight | None:
        previous = ctx.snapshot.previous_total_mrr_cents
        if previous <= 0:
            return None
        churn_rate = ctx.snapshot.churned_mrr_cents / previous
        if churn_rate <= self.REVENUE_CHURN_PRIORITY_RATE:
            return None
        return self._insight(
            ctx,
            insight_type=InsightType.INVESTMENT_PRIORITY,
            category=InsightCategory.RETENTION,
            title="Prioritize retention investment",
            description=f"Revenue churn reached {format_percent(churn_rate * 100)} of last month's MRR.",
            impact_score=90,
            confidence=0.90,
            actions=[
                "Fund customer success ahead of acquisition",
                "Introduce proactive health monitoring",
            ],
            data={"revenue_churn_rate": round(churn_rate, 4), "churned_mrr_cents": ctx.snapshot.churned_mrr_cents},
        )

    # Alerts

    def generate_alerts(self, ctx: InsightContext) -> list[Alert]:
        """Apply every alert rule to the context."""
        alerts: list[Alert] = []
        for rule in (
            self._mrr_decline_alert,
            self._churn_spike_alert,
            self._high_value_churn_alerts,
            self._milestone_alert,
            self._forecast_variance_alert,
            self._support_escalation_alerts,
            self._usage_anomaly_alerts,
            self._payment_failure_alert,
            self._plan_performance_alert,
            self._expansion_pipeline_alert,
        ):
            result = rule(ctx)
            if result is None:
                continue
            if isinstance(result, list):
                alerts.extend(result)
            else:
                alerts.append(result)

        logger.info("alerts_generated", count=len(alerts))
        return alerts

    def _alert(self, ctx: InsightContext, **fields) -> Alert:
        return Alert(created_at=ctx.generated_at, **fields)

    def _mrr_decline_alert(self, ctx: InsightContext) -> Alert | None:
        growth = mom_growth_percent(ctx.snapshot)
        if growth is None or -growth < self.MRR_DECLINE_PERCENT:
            return None
        decline = -growth
        if decline > 15:
            severity = AlertSeverity.CRITICAL
        elif decline > 10:
            severity = AlertSeverity.HIGH
        else:
            severity = AlertSeverity.MEDIUM
        return self._alert(
            ctx,
            alert_type=AlertType.MRR_DECLINE,
            category=AlertCategory.REVENUE,
            severity=severity,
            title="MRR decline",
            message=f"MRR declined {format_percent(decline)} month over month to {self._money(ctx.snapshot.total_mrr_cents)}.",
            data={"decline_percent": round(decline, 2), "current_mrr_cents": ctx.snapshot.total_mrr_cents},
        )

    def _churn_spike_alert(self, ctx: InsightContext) -> Alert | None:
        historical = ctx.historical_churn_probability
        if not ctx.churn_predictions or not historical:
            return None
        current = mean(p.probability for p in ctx.churn_predictions)
        spike = (current - historical) / historical * 100
        if spike < self.CHURN_SPIKE_PERCENT:
            return None
        if spike > 50:
            severity = AlertSeverity.CRITICAL
        elif spike > 30:
            severity = AlertSeverity.HIGH
        else:
            severity = AlertSeverity.MEDIUM
        return self._alert(
            ctx,
            alert_type=AlertType.CHURN_SPIKE,
            category=AlertCategory.CUSTOMER,
            severity=severity,
            title="Churn risk spike",
            message=f"Average churn probability rose {format_percent(spike)} against the prior weeks.",
            data={
                "current_probability": round(current, 4),
                "historical_probability": round(historical, 4),
                "spike_percent": round(spike, 2),
            },
        )

    def _high_value_churn_alerts(self, ctx: InsightContext) -> list[Alert]:
        return [
            self._alert(
                ctx,
                alert_type=AlertType.HIGH_VALUE_CHURN_RISK,
                category=AlertCategory.CUSTOMER,
                severity=AlertSeverity.CRITICAL,
                title="High-value customer at risk",
                message=(
                    f"Customer paying {self._money(record.current_mrr_cents)} per month has a "
                    f"{format_percent(record.churn_probability * 100)} churn probability."
                ),
                business_id=record.business_id,
                data={
                    "churn_probability": record.churn_probability,
                    "current_mrr_cents": record.current_mrr_cents,
                    "segment": record.segment.value,
                },
            )
            for record in ctx.ltv_records
            if record.churn_probability > self.HIGH_VALUE_CHURN_PROBABILITY
            and record.current_mrr_cents > self.high_value_mrr_cents
        ]

    def _milestone_alert(self, ctx: InsightContext) -> Alert | None:
        mrr = ctx.snapshot.total_mrr_cents
        reached = [m for m in self.MILESTONES_CENTS if m <= mrr < m * (1 + self.MILESTONE_WINDOW)]
        if not reached:
            return None
        milestone = reached[-1]
        return self._alert(
            ctx,
            alert_type=AlertType.REVENUE_MILESTONE,
            category=AlertCategory.REVENUE,
            severity=AlertSeverity.LOW,
            title="Revenue milestone reached",
            message=f"MRR passed {self._money(milestone)}.",
            data={"milestone_cents": milestone, "current_mrr_cents": mrr},
        )

    def _forecast_variance_alert(self, ctx: InsightContext) -> Alert | None:
        baseline = ctx.baseline_forecast
        if baseline is None or baseline.predicted_mrr_cents <= 0:
            return None
        actual = ctx.snapshot.total_mrr_cents
        variance = abs(actual - baseline.predicted_mrr_cents) / baseline.predicted_mrr_cents * 100
        if variance < self.FORECAST_VARIANCE_PERCENT:
            return None
        return self._alert(
            ctx,
            alert_type=AlertType.FORECAST_VARIANCE,
            category=AlertCategory.REVENUE,
            severity=AlertSeverity.HIGH if variance > 30 else AlertSeverity.MEDIUM,
            title="MRR deviates from forecast",
            message=(
                f"Actual MRR {self._money(actual)} differs {format_percent(variance)} from the "
                f"{self._money(baseline.predicted_mrr_cents)} forecast on {baseline.forecast_date.isoformat()}."
            ),
            data={
                "variance_percent": round(variance, 2),
                "forecast_mrr_cents": baseline.predicted_mrr_cents,
                "actual_mrr_cents": actual,
            },
        )

    def _support_escalation_alerts(self, ctx: InsightContext) -> list[Alert]:
        return [
            self._alert(
                ctx,
                alert_type=AlertType.SUPPORT_ESCALATION,
                category=AlertCategory.CUSTOMER,
                severity=AlertSeverity.MEDIUM,
                title="Support escalation",
                message=(
                    f"{s.errors_last_7d} errors in the last 7 days, "
                    f"{s.errors_last_24h} in the last 24 hours."
                ),
                business_id=s.business_id,
                data={"errors_7d": s.errors_last_7d, "errors_24h": s.errors_last_24h},
            )
            for s in ctx.signals
            if s.errors_last_7d > self.SUPPORT_ERRORS_7D and s.errors_last_24h > self.SUPPORT_ERRORS_24H
        ]

    def _usage_anomaly_alerts(self, ctx: InsightContext) -> list[Alert]:
        alerts = []
        for s in ctx.signals:
            if s.usage_previous_7d <= 0:
                continue
            change = (s.usage_last_7d - s.usage_previous_7d) / s.usage_previous_7d
            if abs(change) <= self.USAGE_ANOMALY_CHANGE:
                continue
            direction = "spike" if change > 0 else "drop"
            alerts.append(
                self._alert(
                    ctx,
                    alert_type=AlertType.USAGE_ANOMALY,
                    category=AlertCategory.CUSTOMER,
                    severity=AlertSeverity.MEDIUM,
                    title=f"Usage {direction}",
                    message=f"Weekly usage changed {format_percent(change * 100)} against the prior week.",
                    business_id=s.business_id,
                    data={
                        "usage_last_7d": s.usage_last_7d,
                        "usage_previous_7d": s.usage_previous_7d,
                        "change": round(change, 4),
                    },
                )
            )
        return alerts

    def _payment_failure_alert(self, ctx: InsightContext) -> Alert | None:
        total = sum(s.payments_last_7d for s in ctx.signals)
        if total == 0:
            return None
        failed = sum(s.payment_failures_last_7d for s in ctx.signals)
        rate = failed / total * 100
        if rate < self.PAYMENT_FAILURE_PERCENT:
            return None
        return self._alert(
            ctx,
            alert_type=AlertType.PAYMENT_FAILURE_TREND,
            category=AlertCategory.OPERATIONAL,
            severity=AlertSeverity.HIGH if rate > 20 else AlertSeverity.MEDIUM,
            title="Payment failures rising",
            message=f"{failed} of {total} payments failed in the last 7 days ({format_percent(rate)}).",
            data={"failure_rate_percent": round(rate, 2), "failed": failed, "total": total},
        )

    def _plan_performance_alert(self, ctx: InsightContext) -> Alert | None:
        weak = [plan for plan in ctx.plan_performance if plan.churn_rate > self.PLAN_CHURN_ALERT_RATE]
        if not weak:
            return None
        return self._alert(
            ctx,
            alert_type=AlertType.PLAN_PERFORMANCE_ISSUE,
            category=AlertCategory.OPERATIONAL,
            severity=AlertSeverity.MEDIUM,
            title="Plan churn above 15%",
            message=f"High churn on: {', '.join(plan.plan_id for plan in weak)}.",
            data={"plans": {plan.plan_id: round(plan.churn_rate, 4) for plan in weak}},
        )

    def _expansion_pipeline_alert(self, ctx: InsightContext) -> Alert | None:
        likely = [o for o in ctx.opportunities if o.conversion_probability > self.HIGH_CONVERSION]
        if len(likely) < self.EXPANSION_PIPELINE_MIN:
            return None
        potential = sum(o.potential_revenue_increase_cents for o in likely)
        return self._alert(
            ctx,
            alert_type=AlertType.EXPANSION_PIPELINE,
            category=AlertCategory.CUSTOMER,
            severity=AlertSeverity.MEDIUM,
            title="Expansion opportunities ready",
            message=f"{len(likely)} high-probability expansion opportunities worth {self._money(potential)}.",
            data={"opportunities": len(likely), "potential_revenue_cents": potential},
        )

    # Publishing

    async def publish_insights(self, insights: list[Insight]) -> int:
        """Store insights; returns the number stored."""
        for insight in insights:
            await self.insight_store.insert(insight)
            metrics.insights_generated_total.labels(insight_type=insight.insight_type.value).inc()
        return len(insights)

    async def publish_alerts(self, alerts: list[Alert]) -> tuple[int, int]:
        """
        Store alerts through the duplicate-suppressing store.

        Returns:
            (created, suppressed) counts
        """
        created = 0
        suppressed = 0
        for alert in alerts:
            if await self.alert_store.insert_if_not_duplicate(alert):
                created += 1
                metrics.alerts_created_total.labels(
                    alert_type=alert.alert_type.value,
                    severity=alert.severity.value,
                ).inc()
                logger.info(
                    "alert_created",
                    alert_type=alert.alert_type.value,
                    severity=alert.severity.value,
                    business_id=str(alert.business_id) if alert.business_id else None,
                )
            else:
                suppressed += 1
                metrics.alerts_suppressed_total.labels(alert_type=alert.alert_type.value).inc()
                logger.debug(
                    "alert_suppressed",
                    alert_type=alert.alert_type.value,
                    business_id=str(alert.business_id) if alert.business_id else None,
                )
        return created, suppressed

    # Lifecycle

    async def _load_alert(self, alert_id: UUID) -> Alert:
        alert = await self.alert_store.get(alert_id)
        if alert is None:
            raise EntityNotFound("alert", alert_id)
        return alert

    async def acknowledge_alert(self, alert_id: UUID, at: datetime | None = None) -> Alert:
        """
        Mark an alert acknowledged.

        Raises:
            EntityNotFound: If the alert does not exist
            InvalidAlertTransition: If the alert is already acknowledged or resolved
        """
        alert = await self._load_alert(alert_id)
        if alert.state != "created":
            raise InvalidAlertTransition(alert_id, alert.state, "acknowledged")

        updated = alert.model_copy(update={"acknowledged_at": at or datetime.utcnow()})
        await self.alert_store.save(updated)
        logger.info("alert_acknowledged", alert_id=str(alert_id), alert_type=alert.alert_type.value)
        return updated

    async def resolve_alert(self, alert_id: UUID, at: datetime | None = None) -> Alert:
        """
        Resolve an alert. Resolution is terminal; the same key may fire again afterwards.

        Raises:
            EntityNotFound: If the alert does not exist
            InvalidAlertTransition: If the alert is already resolved
        """
        alert = await self._load_alert(alert_id)
        if alert.is_resolved:
            raise InvalidAlertTransition(alert_id, alert.state, "resolved")

        updated = alert.model_copy(update={"resolved_at": at or datetime.utcnow()})
        await self.alert_store.save(updated)
        logger.info("alert_resolved", alert_id=str(alert_id), alert_type=alert.alert_type.value)
        return updated
