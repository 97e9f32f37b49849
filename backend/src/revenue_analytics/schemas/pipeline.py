"""Pydantic schemas for pipeline run reporting."""
import enum
from datetime import date
from uuid import UUID

from pydantic import BaseModel, Field


class PipelineStep(enum.Enum):
    """Steps of a pipeline run."""

    SNAPSHOT = "snapshot"
    COHORTS = "cohorts"
    FORECAST = "forecast"
    SIGNALS = "signals"
    LTV = "ltv"
    CHURN = "churn"
    EXPANSION = "expansion"
    INSIGHTS = "insights"
    ALERTS = "alerts"


class FailureKind(enum.Enum):
    """Classification of a recorded step failure."""

    ENTITY_NOT_FOUND = "entity_not_found"
    REPOSITORY_UNAVAILABLE = "repository_unavailable"
    UNEXPECTED = "unexpected"


class StepFailure(BaseModel):
    """A failure recorded during a run, scoped to a business where applicable."""

    step: PipelineStep
    kind: FailureKind
    reason: str
    business_id: UUID | None = None


class RunSummary(BaseModel):
    """Outcome of one pipeline run."""

    as_of: date
    run_id: str
    snapshot_ok: bool = False
    cohorts_ok: bool = False
    forecast_ok: bool = False
    ltv_ok: bool = False
    churn_ok: bool = False
    expansion_ok: bool = False
    insights_ok: bool = False
    alerts_ok: bool = False
    cancelled: bool = False
    businesses_total: int = 0
    businesses_processed: int = 0
    insights_created: int = 0
    alerts_created: int = 0
    alerts_suppressed: int = 0
    duration_seconds: float = 0.0
    failures: list[StepFailure] = Field(default_factory=list)

    def failures_for(self, step: PipelineStep) -> list[StepFailure]:
        return [failure for failure in self.failures if failure.step == step]
