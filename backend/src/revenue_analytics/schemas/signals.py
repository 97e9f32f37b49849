"""Feature sets derived from raw business activity."""
import enum
from datetime import date
from uuid import UUID

from pydantic import BaseModel, Field


class UsageDirection(enum.Enum):
    """Direction of 30-day usage compared with the 30 days before."""

    INCREASING = "increasing"
    STABLE = "stable"
    DECLINING = "declining"


class ChurnFeatures(BaseModel):
    """Inputs of the churn model."""

    usage_trend: float = 0.0
    payment_failures: int = Field(default=0, ge=0)
    support_tickets: int = Field(default=0, ge=0)
    feature_adoption_rate: float = Field(default=0.0, ge=0, le=1)
    login_frequency_decline: float = Field(default=0.0, ge=0)
    plan_utilization: float = Field(default=0.0, ge=0)
    days_since_last_login: int = Field(default=0, ge=0)
    subscription_age_months: int = Field(default=0, ge=0)
    plan_id: str = ""
    total_revenue_cents: int = Field(default=0, ge=0)


class ExpansionSignals(BaseModel):
    """Inputs of the expansion rules."""

    current_usage_vs_limit: float = Field(default=0.0, ge=0)
    usage_growth: float = 0.0
    feature_engagement: float = Field(default=0.0, ge=0, le=1)
    support_sentiment: float = Field(default=1.0, ge=0, le=1)
    payment_reliability: float = Field(default=1.0, ge=0, le=1)
    plan_utilization: float = Field(default=0.0, ge=0)


class BusinessSignals(BaseModel):
    """Everything the scoring and alerting rules need to know about one business."""

    business_id: UUID
    as_of: date
    plan_id: str
    churn: ChurnFeatures
    expansion: ExpansionSignals
    usage_direction: UsageDirection = UsageDirection.STABLE
    recent_activity_score: float = Field(default=0.0, ge=0, le=100)
    usage_last_7d: int = 0
    usage_previous_7d: int = 0
    errors_last_7d: int = 0
    errors_last_24h: int = 0
    payments_last_7d: int = 0
    payment_failures_last_7d: int = 0
    last_active_date: date | None = None
