"""Pydantic schemas for MRR snapshots, lifetime value and cohorts."""
import enum
from datetime import date
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from revenue_analytics.models.customer_ltv import CustomerSegment


class MRRSnapshot(BaseModel):
    """
    MRR decomposition for one calendar date.

    Holds no wall-clock timestamp, so recomputing the same date from the
    same data serializes identically.
    """

    snapshot_date: date
    total_mrr_cents: int = Field(..., ge=0)
    new_business_mrr_cents: int = Field(..., ge=0)
    expansion_mrr_cents: int = Field(..., ge=0)
    contraction_mrr_cents: int = Field(..., ge=0)
    churned_mrr_cents: int = Field(..., ge=0)
    net_new_mrr_cents: int
    total_customers: int = Field(..., ge=0)
    paying_customers: int = Field(..., ge=0)
    average_revenue_per_user_cents: int = Field(..., ge=0)

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def previous_total_mrr_cents(self) -> int:
        """Total MRR of the comparison period implied by the decomposition."""
        return self.total_mrr_cents - self.net_new_mrr_cents


class PlanPerformance(BaseModel):
    """Subscriber movement and MRR for a single plan."""

    plan_id: str
    subscribers: int = Field(..., ge=0)
    previous_subscribers: int = Field(..., ge=0)
    churned_subscribers: int = Field(..., ge=0)
    churn_rate: float = Field(..., ge=0, le=1)
    mrr_cents: int = Field(..., ge=0)


class CustomerLTVRecord(BaseModel):
    """Lifetime value, health and segment of one business."""

    business_id: UUID
    first_subscription_date: date
    last_active_date: date | None = None
    total_revenue_cents: int = Field(..., ge=0)
    months_active: int = Field(..., ge=0)
    current_mrr_cents: int = Field(..., ge=0)
    predicted_ltv_cents: int = Field(..., ge=0)
    churn_probability: float = Field(..., ge=0, le=1)
    health_score: float = Field(..., ge=0, le=100)
    segment: CustomerSegment

    model_config = ConfigDict(from_attributes=True)


class CohortKind(enum.Enum):
    """Cohort analysis flavor."""

    REVENUE = "revenue"
    RETENTION = "retention"


class CohortEntry(BaseModel):
    """Retention and revenue of the businesses that first subscribed in one month."""

    cohort_month: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    months_since_start: int = Field(..., ge=0)
    initial_customers: int = Field(..., ge=0)
    customers_remaining: int = Field(..., ge=0)
    total_revenue_cents: int = Field(..., ge=0)
    average_revenue_per_customer_cents: int = Field(..., ge=0)
    retention_rate: float = Field(..., ge=0, le=1)
