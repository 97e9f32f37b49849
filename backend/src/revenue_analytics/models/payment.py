"""Payment model for payment attempts made by businesses."""
import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum as SQLEnum, Integer, Uuid

from revenue_analytics.models.base import Base


class PaymentStatus(enum.Enum):
    """Payment transaction status."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class Payment(Base):
    """Payment attempt for a business."""

    __tablename__ = "payments"

    business_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False)
    status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING, index=True)
    processed_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<Payment(id={self.id}, business_id={self.business_id}, status={self.status.value}, amount={self.amount_cents})>"
