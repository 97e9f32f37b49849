"""Pydantic schemas for the records read from the metrics repository."""
from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from revenue_analytics.models.payment import PaymentStatus
from revenue_analytics.models.subscription import SubscriptionStatus
from revenue_analytics.models.usage_record import UsageOutcome


class PlanTier(BaseModel):
    """Plan price and position on the upgrade ladder."""

    plan_id: str = Field(..., min_length=1, description="Stable plan key (free, starter, pro, ...)")
    name: str
    price_cents: int = Field(..., ge=0, description="Monthly price in cents")
    tier_rank: int = Field(..., ge=0, description="Position on the upgrade ladder, lowest first")
    monthly_usage_limit: int | None = Field(default=None, description="Monthly usage cap, -1 for unlimited")

    model_config = ConfigDict(frozen=True)


class SubscriptionRecord(BaseModel):
    """A business subscription as seen by the analytics engines."""

    business_id: UUID
    plan_id: str
    status: SubscriptionStatus
    created_at: datetime
    period_start: date
    period_end: date

    model_config = ConfigDict(frozen=True)

    def covers(self, day: date) -> bool:
        """True when the subscription is active and `day` falls in its period."""
        return self.status == SubscriptionStatus.ACTIVE and self.period_start <= day < self.period_end


class PaymentEvent(BaseModel):
    """Payment attempt made by a business."""

    business_id: UUID
    amount_cents: int
    status: PaymentStatus
    processed_at: datetime

    model_config = ConfigDict(frozen=True)


class UsageEvent(BaseModel):
    """Product usage event; error outcomes count as support friction."""

    business_id: UUID
    occurred_at: datetime
    outcome: UsageOutcome = UsageOutcome.SUCCESS
    feature: str | None = None

    model_config = ConfigDict(frozen=True)


class Window(BaseModel):
    """Half-open time window [start, end)."""

    start: datetime
    end: datetime

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_order(self) -> "Window":
        if self.end < self.start:
            raise ValueError("window end must not precede start")
        return self

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end
