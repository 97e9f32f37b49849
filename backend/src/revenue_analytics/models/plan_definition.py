"""Plan definition model holding the price and tier ladder."""
from sqlalchemy import Boolean, Column, Integer, String

from revenue_analytics.models.base import Base

# Sentinel for plans without a usage cap
UNLIMITED_USAGE = -1


class PlanDefinition(Base):
    """
    Pricing plan with its monthly price and position on the upgrade ladder.

    Plans are referenced by their stable plan_key (e.g. "starter", "pro").
    """

    __tablename__ = "plan_definitions"

    plan_key = Column(String(50), nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=False)
    price_cents = Column(Integer, nullable=False, default=0)  # Monthly price in cents
    tier_rank = Column(Integer, nullable=False, unique=True)
    monthly_usage_limit = Column(Integer, nullable=True)  # -1 = unlimited
    active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<PlanDefinition(plan_key={self.plan_key}, price_cents={self.price_cents}, rank={self.tier_rank})>"
