"""Subscription model for business subscriptions to plans."""
import enum

from sqlalchemy import Column, Date, Enum as SQLEnum, ForeignKey, String, Uuid

from revenue_analytics.models.base import Base


class SubscriptionStatus(enum.Enum):
    """Subscription lifecycle status."""

    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"
    PAUSED = "paused"


class Subscription(Base):
    """
    Business subscription to a pricing plan.

    One row per billing period. Renewals, plan changes and cancellations add
    a new row; earlier rows are never rewritten, so a cancellation is a
    CANCELLED row following the last ACTIVE one.

    A row covers a date when it is active and the date falls in
    [current_period_start, current_period_end).
    """

    __tablename__ = "subscriptions"

    business_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    plan_key = Column(String(50), ForeignKey("plan_definitions.plan_key"), nullable=False, index=True)
    status = Column(SQLEnum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.ACTIVE, index=True)
    current_period_start = Column(Date, nullable=False)
    current_period_end = Column(Date, nullable=False, index=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<Subscription(id={self.id}, business_id={self.business_id}, status={self.status.value})>"
