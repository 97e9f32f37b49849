"""
Background worker for the analytics pipeline.

Runs the full pipeline once per day for the current date:
- MRR snapshot, plan performance and cohorts
- Revenue forecasts
- Churn, LTV and expansion per business
- Insights and alerts

Usage (with ARQ):
    arq revenue_analytics.workers.analytics.WorkerSettings
"""
import asyncio
from datetime import date, datetime

import structlog

from revenue_analytics.config import settings
from revenue_analytics.database import AsyncSessionLocal
from revenue_analytics.errors import SnapshotStepFailed
from revenue_analytics.logging_config import setup_logging
from revenue_analytics.repositories import (
    SQLAlertStore,
    SQLInsightStore,
    SQLMetricsRepository,
    SQLPredictionStore,
    SQLSnapshotStore,
)
from revenue_analytics.services.pipeline import PipelineOrchestrator

logger = structlog.get_logger(__name__)


def build_orchestrator(session_factory=AsyncSessionLocal, app_settings=settings) -> PipelineOrchestrator:
    """
    Wire SQLAlchemy repositories to a PipelineOrchestrator.

    Args:
        session_factory: Factory producing async database sessions
        app_settings: Pipeline configuration

    Returns:
        PipelineOrchestrator that loads the plan catalog on each run
    """
    return PipelineOrchestrator(
        repository=SQLMetricsRepository(session_factory),
        snapshot_store=SQLSnapshotStore(session_factory),
        prediction_store=SQLPredictionStore(session_factory),
        insight_store=SQLInsightStore(session_factory),
        alert_store=SQLAlertStore(session_factory),
        settings=app_settings,
    )


async def run_analytics_pipeline(ctx: dict) -> dict:
    """
    Run the analytics pipeline.

    ARQ worker task that runs daily.

    Args:
        ctx: ARQ context; may carry "session_factory" and "as_of" overrides

    Returns:
        Dict with run status and summary
    """
    as_of = ctx.get("as_of") or date.today()
    session_factory = ctx.get("session_factory") or AsyncSessionLocal
    logger.info("analytics_worker_started", as_of_date=as_of.isoformat(), job_id=ctx.get("job_id"))

    try:
        summary = await build_orchestrator(session_factory).run_pipeline(as_of)
    except SnapshotStepFailed as e:
        logger.exception("analytics_worker_failed", as_of_date=as_of.isoformat())
        return {
            "status": "failed",
            "as_of": as_of.isoformat(),
            "error": str(e),
        }

    logger.info(
        "analytics_worker_completed",
        run_id=summary.run_id,
        failures=len(summary.failures),
    )
    return {
        "status": "success",
        "as_of": as_of.isoformat(),
        "summary": summary.model_dump(mode="json"),
    }


class WorkerSettings:
    """
    ARQ worker settings for the analytics pipeline.

    Schedule:
    - Full pipeline: Daily at 02:00 UTC
    - Can be triggered manually

    Usage:
        arq revenue_analytics.workers.analytics.WorkerSettings
    """

    functions = [run_analytics_pipeline]

    cron_jobs = [
        {
            "function": run_analytics_pipeline,
            "cron": "0 2 * * *",  # Daily at 02:00
            "timeout": 1800,
        },
    ]

    # Job retention
    keep_result = 86400  # Keep results for 24 hours

    max_jobs = 1
    job_timeout = 1800


async def trigger_analytics_update(as_of: date | None = None) -> dict:
    """
    Manually trigger an analytics run.

    Args:
        as_of: Run date, defaults to today

    Returns:
        Dict with run results
    """
    logger.info("manual_analytics_trigger")
    ctx = {"job_id": f"manual_{datetime.utcnow().isoformat()}", "as_of": as_of}
    return await run_analytics_pipeline(ctx)


if __name__ == "__main__":
    """
    Run the analytics pipeline manually.

    Usage:
        python -m revenue_analytics.workers.analytics
    """

    async def main():
        setup_logging()
        results = await trigger_analytics_update()

        print("\n" + "=" * 60)
        print("Analytics Pipeline Results")
        print("=" * 60)

        if results["status"] != "success":
            print(f"\nFAILED: {results['error']}")
        else:
            summary = results["summary"]
            for step in ("snapshot", "cohorts", "forecast", "ltv", "churn", "expansion", "insights", "alerts"):
                print(f"  {step:<10} {'ok' if summary[f'{step}_ok'] else 'FAILED'}")
            print(f"\nBusinesses: {summary['businesses_processed']}/{summary['businesses_total']}")
            print(f"Insights: {summary['insights_created']}")
            print(f"Alerts: {summary['alerts_created']} created, {summary['alerts_suppressed']} suppressed")

        print("=" * 60 + "\n")

    asyncio.run(main())
