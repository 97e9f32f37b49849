"""Customer lifetime value model."""
import enum
from datetime import datetime

from sqlalchemy import BigInteger, Column, Date, DateTime, Enum as SQLEnum, Float, Integer, Uuid

from revenue_analytics.models.base import Base


class CustomerSegment(enum.Enum):
    """Value/risk segment derived from health score and churn probability."""

    CHAMPION = "champion"
    LOYAL = "loyal"
    AT_RISK = "at_risk"
    CRITICAL = "critical"


class CustomerLTVMetric(Base):
    """Latest lifetime value calculation for a business (one row per business)."""

    __tablename__ = "customer_ltv_metrics"

    business_id = Column(Uuid(as_uuid=True), nullable=False, unique=True, index=True)
    first_subscription_date = Column(Date, nullable=False)
    last_active_date = Column(Date, nullable=True)
    total_revenue_cents = Column(BigInteger, nullable=False, default=0)
    months_active = Column(Integer, nullable=False, default=0)
    current_mrr_cents = Column(BigInteger, nullable=False, default=0)
    predicted_ltv_cents = Column(BigInteger, nullable=False, default=0)
    churn_probability = Column(Float, nullable=False)
    health_score = Column(Float, nullable=False)
    segment = Column(SQLEnum(CustomerSegment), nullable=False, index=True)
    last_calculated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        """String representation."""
        return f"<CustomerLTVMetric(business_id={self.business_id}, segment={self.segment.value})>"
