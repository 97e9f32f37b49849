"""Pydantic schemas exchanged between the analytics components."""
from revenue_analytics.schemas.feeds import PaymentEvent, PlanTier, SubscriptionRecord, UsageEvent, Window
from revenue_analytics.schemas.insight import Alert, Insight
from revenue_analytics.schemas.pipeline import FailureKind, PipelineStep, RunSummary, StepFailure
from revenue_analytics.schemas.prediction import ChurnPrediction, ExpansionOpportunity, RevenueForecast
from revenue_analytics.schemas.revenue import (
    CohortEntry,
    CohortKind,
    CustomerLTVRecord,
    MRRSnapshot,
    PlanPerformance,
)
from revenue_analytics.schemas.signals import BusinessSignals, ChurnFeatures, ExpansionSignals, UsageDirection

__all__ = [
    "Alert",
    "BusinessSignals",
    "ChurnFeatures",
    "ChurnPrediction",
    "CohortEntry",
    "CohortKind",
    "CustomerLTVRecord",
    "ExpansionOpportunity",
    "ExpansionSignals",
    "FailureKind",
    "Insight",
    "MRRSnapshot",
    "PaymentEvent",
    "PipelineStep",
    "PlanPerformance",
    "PlanTier",
    "RevenueForecast",
    "RunSummary",
    "StepFailure",
    "SubscriptionRecord",
    "UsageDirection",
    "UsageEvent",
    "Window",
]
