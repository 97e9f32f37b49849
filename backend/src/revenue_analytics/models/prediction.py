"""
Append-only prediction history.

Churn predictions, revenue forecasts and expansion opportunities are
never updated in place; every run adds new rows.
"""
import enum

from sqlalchemy import BigInteger, Column, Date, Enum as SQLEnum, Float, Integer, String, Uuid

from revenue_analytics.models.base import Base, JSONType


class OpportunityType(enum.Enum):
    """Kind of expansion opportunity."""

    UPGRADE = "upgrade"
    USAGE_INCREASE = "usage_increase"
    ADDON = "addon"


class CustomerPrediction(Base):
    """Churn prediction for a business over a horizon in days."""

    __tablename__ = "customer_predictions"

    business_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    predicted_on = Column(Date, nullable=False, index=True)
    horizon_days = Column(Integer, nullable=False)
    probability = Column(Float, nullable=False)
    confidence = Column(Float, nullable=False)
    risk_factors = Column(JSONType, nullable=False, default=list)
    recommended_actions = Column(JSONType, nullable=False, default=list)
    model_version = Column(String(50), nullable=False)

    def __repr__(self) -> str:
        """String representation."""
        return f"<CustomerPrediction(business_id={self.business_id}, probability={self.probability})>"


class ForecastRecord(Base):
    """Revenue forecast for a horizon in months."""

    __tablename__ = "revenue_forecasts"

    forecast_date = Column(Date, nullable=False, index=True)
    horizon_months = Column(Integer, nullable=False)
    predicted_mrr_cents = Column(BigInteger, nullable=False)
    predicted_arr_cents = Column(BigInteger, nullable=False)
    confidence = Column(Float, nullable=False)
    interval_lower_cents = Column(BigInteger, nullable=False)
    interval_upper_cents = Column(BigInteger, nullable=False)
    growth_rate = Column(Float, nullable=False)
    assumptions = Column(JSONType, nullable=False, default=list)
    model_version = Column(String(50), nullable=False)

    def __repr__(self) -> str:
        """String representation."""
        return f"<ForecastRecord(date={self.forecast_date}, horizon={self.horizon_months}, mrr={self.predicted_mrr_cents})>"


class ExpansionOpportunityRecord(Base):
    """Identified expansion opportunity for a business."""

    __tablename__ = "expansion_opportunities"

    business_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    identified_on = Column(Date, nullable=False, index=True)
    opportunity_type = Column(SQLEnum(OpportunityType), nullable=False)
    current_plan_key = Column(String(50), nullable=False)
    recommended_plan_key = Column(String(50), nullable=True)
    potential_revenue_increase_cents = Column(BigInteger, nullable=False, default=0)
    conversion_probability = Column(Float, nullable=False)
    urgency_score = Column(Integer, nullable=False)
    actions = Column(JSONType, nullable=False, default=list)
    timing_recommendation = Column(String(100), nullable=False)

    def __repr__(self) -> str:
        """String representation."""
        return f"<ExpansionOpportunityRecord(business_id={self.business_id}, type={self.opportunity_type.value})>"
