"""Usage record model for product activity events."""
import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum as SQLEnum, Index, String, Uuid

from revenue_analytics.models.base import Base


class UsageOutcome(enum.Enum):
    """Outcome of a usage event."""

    SUCCESS = "success"
    ERROR = "error"


class UsageRecord(Base):
    """
    A single product usage event.

    Error outcomes stand in for support friction when scoring churn.
    """

    __tablename__ = "usage_records"

    business_id = Column(Uuid(as_uuid=True), nullable=False)
    occurred_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    outcome = Column(SQLEnum(UsageOutcome), nullable=False, default=UsageOutcome.SUCCESS)
    feature = Column(String(100), nullable=True)

    __table_args__ = (
        Index("ix_usage_records_business_occurred", "business_id", "occurred_at"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<UsageRecord(business_id={self.business_id}, occurred_at={self.occurred_at}, outcome={self.outcome.value})>"
