"""
Pipeline orchestration.

Runs one analytics pass for a date:
1. MRR snapshot (fatal on failure)
2. Plan performance and cohorts
3. Revenue forecasts
4. Per-business signals, churn, LTV and expansion in concurrent batches
5. Insights and alerts

Every repository and store call runs under a timeout with bounded retry.
Failures other than the snapshot are recorded in the RunSummary and the run
continues.
"""
import asyncio
import time
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

import structlog

from revenue_analytics import metrics
from revenue_analytics.config import Settings, settings as default_settings
from revenue_analytics.errors import EntityNotFound, RepositoryUnavailable, SnapshotStepFailed
from revenue_analytics.logging_config import bind_run_context
from revenue_analytics.repositories.base import (
    AlertStore,
    InsightStore,
    MetricsRepository,
    PlanPricing,
    PredictionStore,
    SnapshotStore,
)
from revenue_analytics.schemas.pipeline import FailureKind, PipelineStep, RunSummary, StepFailure
from revenue_analytics.schemas.prediction import ChurnPrediction, ExpansionOpportunity
from revenue_analytics.schemas.revenue import CohortEntry, CustomerLTVRecord, MRRSnapshot, PlanPerformance
from revenue_analytics.schemas.signals import BusinessSignals
from revenue_analytics.services.insight_engine import InsightEngine
from revenue_analytics.services.pricing import PlanCatalog
from revenue_analytics.services.scoring_engine import ScoringEngine
from revenue_analytics.services.signals import SignalCollector
from revenue_analytics.services.snapshot_engine import SnapshotEngine
from revenue_analytics.utils.retry import ResilientProxy, RetryPolicy

logger = structlog.get_logger(__name__)


@dataclass
class RunResults:
    """Intermediate results collected during a run and fed to the insight engine."""

    plan_performance: list[PlanPerformance] = field(default_factory=list)
    cohorts: list[CohortEntry] = field(default_factory=list)
    ltv_records: list[CustomerLTVRecord] = field(default_factory=list)
    churn_predictions: list[ChurnPrediction] = field(default_factory=list)
    opportunities: list[ExpansionOpportunity] = field(default_factory=list)
    signals: list[BusinessSignals] = field(default_factory=list)


@dataclass
class Engines:
    signals: SignalCollector
    scoring: ScoringEngine
    snapshot: SnapshotEngine
    insights: InsightEngine


def classify_failure(error: BaseException) -> FailureKind:
    if isinstance(error, EntityNotFound):
        return FailureKind.ENTITY_NOT_FOUND
    if isinstance(error, RepositoryUnavailable):
        return FailureKind.REPOSITORY_UNAVAILABLE
    return FailureKind.UNEXPECTED


def unscored_businesses(summary: RunSummary) -> list[StepFailure]:
    """
    Signal failures that kept a business from being scored.

    A business that does not exist is skipped, not failed, so ENTITY_NOT_FOUND
    does not count against the LTV, churn and expansion steps.
    """
    return [
        failure
        for failure in summary.failures_for(PipelineStep.SIGNALS)
        if failure.kind != FailureKind.ENTITY_NOT_FOUND
    ]


class PipelineOrchestrator:
    """Runs the analytics engines in dependency order with failure isolation."""

    def __init__(
        self,
        repository: MetricsRepository,
        snapshot_store: SnapshotStore,
        prediction_store: PredictionStore,
        insight_store: InsightStore,
        alert_store: AlertStore,
        pricing: PlanPricing | None = None,
        settings: Settings = default_settings,
    ):
        """
        Initialize pipeline orchestrator.

        Args:
            repository: Source of subscription, payment and usage history
            snapshot_store: Sink for MRR snapshots and LTV records
            prediction_store: Sink for churn predictions, forecasts and opportunities
            insight_store: Sink for insights
            alert_store: Sink for alerts
            pricing: Plan pricing; loaded from the repository on each run when omitted
            settings: Pipeline configuration
        """
        self.settings = settings
        policy = RetryPolicy.from_settings(settings)
        self.repository = ResilientProxy(repository, policy)
        self.snapshot_store = ResilientProxy(snapshot_store, policy)
        self.prediction_store = ResilientProxy(prediction_store, policy)
        self.insight_store = ResilientProxy(insight_store, policy)
        self.alert_store = ResilientProxy(alert_store, policy)
        self.pricing = pricing

    def _build_engines(self, pricing: PlanPricing) -> Engines:
        signals = SignalCollector(self.repository, pricing)
        scoring = ScoringEngine(
            signals,
            pricing,
            self.snapshot_store,
            churn_horizon_days=self.settings.churn_horizon_days,
            forecast_history_limit=self.settings.forecast_history_limit,
        )
        return Engines(
            signals=signals,
            scoring=scoring,
            snapshot=SnapshotEngine(self.repository, pricing, scoring),
            insights=InsightEngine(
                insight_store=self.insight_store,
                alert_store=self.alert_store,
                snapshot_store=self.snapshot_store,
                prediction_store=self.prediction_store,
                currency=self.settings.currency,
                insight_ttl_days=self.settings.insight_ttl_days,
                high_value_mrr_cents=self.settings.high_value_mrr_cents,
            ),
        )

    def _record_failure(
        self,
        summary: RunSummary,
        step: PipelineStep,
        error: BaseException,
        business_id: UUID | None = None,
    ) -> None:
        kind = classify_failure(error)
        summary.failures.append(StepFailure(step=step, kind=kind, reason=str(error), business_id=business_id))
        metrics.pipeline_step_failures_total.labels(step=step.value, kind=kind.value).inc()

        log_fields = {
            "step": step.value,
            "kind": kind.value,
            "business_id": str(business_id) if business_id else None,
        }
        if kind == FailureKind.UNEXPECTED:
            logger.exception("pipeline_step_failed", **log_fields, exc_info=error)
        elif kind == FailureKind.ENTITY_NOT_FOUND:
            logger.info("business_skipped", **log_fields, reason=str(error))
        else:
            logger.warning("pipeline_step_failed", **log_fields, reason=str(error))

    async def run_pipeline(
        self,
        as_of: date,
        business_ids: list[UUID] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RunSummary:
        """
        Run the full pipeline for a date.

        Args:
            as_of: Run date
            business_ids: Businesses to score; defaults to those with a subscription covering `as_of`
            cancel_event: When set, no further business batches are started

        Returns:
            RunSummary describing what succeeded and what failed

        Raises:
            SnapshotStepFailed: If the plan catalog or the MRR snapshot cannot be produced
        """
        run_id = bind_run_context(as_of)
        started = time.monotonic()
        summary = RunSummary(as_of=as_of, run_id=run_id)
        logger.info("pipeline_started", business_ids=len(business_ids) if business_ids is not None else None)

        try:
            pricing = self.pricing if self.pricing is not None else await PlanCatalog.load(self.repository)
            engines = self._build_engines(pricing)
            snapshot = await self._snapshot_step(engines, as_of)
        except SnapshotStepFailed:
            metrics.pipeline_runs_total.labels(status="failed").inc()
            metrics.pipeline_duration_seconds.observe(time.monotonic() - started)
            raise
        except Exception as e:
            metrics.pipeline_runs_total.labels(status="failed").inc()
            metrics.pipeline_duration_seconds.observe(time.monotonic() - started)
            logger.error("plan_catalog_failed", error=str(e))
            raise SnapshotStepFailed(f"plan catalog unavailable: {e}") from e
        summary.snapshot_ok = True

        results = RunResults()
        await self._cohort_step(engines, as_of, summary, results)
        await self._forecast_step(engines, as_of, summary)
        await self._business_step(engines, as_of, business_ids, cancel_event, summary, results)
        await self._insight_step(engines, as_of, snapshot, summary, results)

        summary.forecast_ok = not summary.failures_for(PipelineStep.FORECAST)
        summary.cohorts_ok = not summary.failures_for(PipelineStep.COHORTS)
        unscored = unscored_businesses(summary)
        summary.ltv_ok = not (unscored or summary.failures_for(PipelineStep.LTV))
        summary.churn_ok = not (unscored or summary.failures_for(PipelineStep.CHURN))
        summary.expansion_ok = not (unscored or summary.failures_for(PipelineStep.EXPANSION))
        summary.insights_ok = not summary.failures_for(PipelineStep.INSIGHTS)
        summary.alerts_ok = not summary.failures_for(PipelineStep.ALERTS)
        summary.duration_seconds = time.monotonic() - started

        status = "cancelled" if summary.cancelled else "success"
        metrics.pipeline_runs_total.labels(status=status).inc()
        metrics.pipeline_duration_seconds.observe(summary.duration_seconds)
        logger.info(
            "pipeline_completed",
            status=status,
            businesses_total=summary.businesses_total,
            businesses_processed=summary.businesses_processed,
            failures=len(summary.failures),
            insights_created=summary.insights_created,
            alerts_created=summary.alerts_created,
            alerts_suppressed=summary.alerts_suppressed,
            duration_seconds=round(summary.duration_seconds, 3),
        )
        return summary

    async def _snapshot_step(self, engines: Engines, as_of: date) -> MRRSnapshot:
        try:
            snapshot = await engines.snapshot.calculate_mrr(as_of)
            await self.snapshot_store.upsert_mrr(snapshot)
        except Exception as e:
            logger.error("snapshot_step_failed", error=str(e), error_type=type(e).__name__)
            raise SnapshotStepFailed(f"MRR snapshot for {as_of.isoformat()} failed: {e}") from e

        metrics.mrr_cents.labels(currency=self.settings.currency).set(snapshot.total_mrr_cents)
        metrics.paying_customers_gauge.set(snapshot.paying_customers)
        logger.info(
            "snapshot_stored",
            total_mrr_cents=snapshot.total_mrr_cents,
            net_new_mrr_cents=snapshot.net_new_mrr_cents,
            paying_customers=snapshot.paying_customers,
        )
        return snapshot

    async def _cohort_step(self, engines: Engines, as_of: date, summary: RunSummary, results: RunResults) -> None:
        try:
            results.plan_performance = await engines.snapshot.plan_performance(as_of)
            results.cohorts = await engines.snapshot.cohort_analysis(as_of)
        except Exception as e:
            self._record_failure(summary, PipelineStep.COHORTS, e)

    async def _forecast_step(self, engines: Engines, as_of: date, summary: RunSummary) -> None:
        for horizon in self.settings.forecast_horizons_months:
            try:
                forecast = await engines.scoring.forecast_revenue(as_of, horizon)
                await self.prediction_store.append_forecast(forecast)
            except Exception as e:
                self._record_failure(summary, PipelineStep.FORECAST, e)

    async def _default_business_ids(self, as_of: date) -> list[UUID]:
        subscriptions = await self.repository.active_subscriptions(as_of)
        return sorted({sub.business_id for sub in subscriptions}, key=str)

    async def _business_step(
        self,
        engines: Engines,
        as_of: date,
        business_ids: list[UUID] | None,
        cancel_event: asyncio.Event | None,
        summary: RunSummary,
        results: RunResults,
    ) -> None:
        if business_ids is None:
            try:
                business_ids = await self._default_business_ids(as_of)
            except Exception as e:
                self._record_failure(summary, PipelineStep.SIGNALS, e)
                return

        summary.businesses_total = len(business_ids)
        batch_size = self.settings.pipeline_batch_size

        for offset in range(0, len(business_ids), batch_size):
            if cancel_event is not None and cancel_event.is_set():
                summary.cancelled = True
                logger.warning(
                    "pipeline_cancelled",
                    businesses_processed=summary.businesses_processed,
                    businesses_remaining=len(business_ids) - offset,
                )
                return

            batch = business_ids[offset:offset + batch_size]
            outcomes = await asyncio.gather(
                *(self._process_business(engines, business_id, as_of, summary, results) for business_id in batch)
            )
            summary.businesses_processed += sum(1 for processed in outcomes if processed)
            logger.info("business_batch_completed", batch_start=offset, batch_size=len(batch))

    async def _process_business(
        self,
        engines: Engines,
        business_id: UUID,
        as_of: date,
        summary: RunSummary,
        results: RunResults,
    ) -> bool:
        """
        Score one business. Each step runs even if an earlier one failed.

        Returns:
            True when every step succeeded
        """
        try:
            signals = await engines.signals.collect(business_id, as_of)
        except Exception as e:
            self._record_failure(summary, PipelineStep.SIGNALS, e, business_id)
            return False
        results.signals.append(signals)
        ok = True

        churn = None
        try:
            churn = await engines.scoring.predict_churn(business_id, as_of, signals=signals)
        except Exception as e:
            self._record_failure(summary, PipelineStep.CHURN, e, business_id)
            ok = False

        try:
            record = await engines.snapshot.calculate_ltv(business_id, as_of, signals=signals, churn=churn)
            await self.snapshot_store.upsert_ltv(record)
            results.ltv_records.append(record)
        except Exception as e:
            self._record_failure(summary, PipelineStep.LTV, e, business_id)
            ok = False

        if churn is not None:
            try:
                await self.prediction_store.append_churn(churn)
                results.churn_predictions.append(churn)
            except Exception as e:
                self._record_failure(summary, PipelineStep.CHURN, e, business_id)
                ok = False

        try:
            opportunities = await engines.scoring.identify_expansion_opportunities(business_id, as_of, signals=signals)
            await self.prediction_store.append_opportunities(opportunities)
            results.opportunities.extend(opportunities)
        except Exception as e:
            self._record_failure(summary, PipelineStep.EXPANSION, e, business_id)
            ok = False

        if ok:
            metrics.businesses_scored_total.inc()
        return ok

    async def _insight_step(
        self,
        engines: Engines,
        as_of: date,
        snapshot: MRRSnapshot,
        summary: RunSummary,
        results: RunResults,
    ) -> None:
        try:
            ctx = await engines.insights.build_context(
                as_of,
                snapshot,
                plan_performance=results.plan_performance,
                cohorts=results.cohorts,
                ltv_records=results.ltv_records,
                churn_predictions=results.churn_predictions,
                opportunities=results.opportunities,
                signals=results.signals,
            )
        except Exception as e:
            self._record_failure(summary, PipelineStep.INSIGHTS, e)
            self._record_failure(summary, PipelineStep.ALERTS, e)
            return

        try:
            insights = engines.insights.generate_insights(ctx)
            summary.insights_created = await engines.insights.publish_insights(insights)
        except Exception as e:
            self._record_failure(summary, PipelineStep.INSIGHTS, e)

        try:
            alerts = engines.insights.generate_alerts(ctx)
            created, suppressed = await engines.insights.publish_alerts(alerts)
            summary.alerts_created = created
            summary.alerts_suppressed = suppressed
        except Exception as e:
            self._record_failure(summary, PipelineStep.ALERTS, e)
