"""
MRR snapshot model for the daily revenue decomposition.

One row per calendar date; recomputing a date overwrites its row.
"""
from sqlalchemy import BigInteger, Column, Date, Integer

from revenue_analytics.models.base import Base


class RevenueSnapshot(Base):
    """Pre-calculated MRR decomposition for a single date."""

    __tablename__ = "mrr_snapshots"

    snapshot_date = Column(Date, nullable=False, unique=True, index=True)
    total_mrr_cents = Column(BigInteger, nullable=False, default=0)
    new_business_mrr_cents = Column(BigInteger, nullable=False, default=0)
    expansion_mrr_cents = Column(BigInteger, nullable=False, default=0)
    contraction_mrr_cents = Column(BigInteger, nullable=False, default=0)
    churned_mrr_cents = Column(BigInteger, nullable=False, default=0)
    net_new_mrr_cents = Column(BigInteger, nullable=False, default=0)
    total_customers = Column(Integer, nullable=False, default=0)
    paying_customers = Column(Integer, nullable=False, default=0)
    average_revenue_per_user_cents = Column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<RevenueSnapshot("
            f"date={self.snapshot_date}, "
            f"total_mrr={self.total_mrr_cents}, "
            f"net_new={self.net_new_mrr_cents}"
            f")>"
        )
