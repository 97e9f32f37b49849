"""SQLAlchemy ORM models for the revenue analytics pipeline."""
# Import all models here so they are registered on the shared metadata

from revenue_analytics.models.base import Base, JSONType
from revenue_analytics.models.plan_definition import PlanDefinition, UNLIMITED_USAGE
from revenue_analytics.models.subscription import Subscription, SubscriptionStatus
from revenue_analytics.models.payment import Payment, PaymentStatus
from revenue_analytics.models.usage_record import UsageOutcome, UsageRecord
from revenue_analytics.models.mrr_snapshot import RevenueSnapshot
from revenue_analytics.models.customer_ltv import CustomerLTVMetric, CustomerSegment
from revenue_analytics.models.prediction import (
    CustomerPrediction,
    ExpansionOpportunityRecord,
    ForecastRecord,
    OpportunityType,
)
from revenue_analytics.models.insight import (
    AlertCategory,
    AlertSeverity,
    AlertType,
    BusinessAlert,
    BusinessInsight,
    InsightCategory,
    InsightType,
)

__all__ = [
    "Base",
    "JSONType",
    "PlanDefinition",
    "UNLIMITED_USAGE",
    "Subscription",
    "SubscriptionStatus",
    "Payment",
    "PaymentStatus",
    "UsageOutcome",
    "UsageRecord",
    "RevenueSnapshot",
    "CustomerLTVMetric",
    "CustomerSegment",
    "CustomerPrediction",
    "ExpansionOpportunityRecord",
    "ForecastRecord",
    "OpportunityType",
    "AlertCategory",
    "AlertSeverity",
    "AlertType",
    "BusinessAlert",
    "BusinessInsight",
    "InsightCategory",
    "InsightType",
]
