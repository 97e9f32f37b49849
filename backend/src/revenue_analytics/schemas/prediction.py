"""Pydantic schemas for churn predictions, forecasts and expansion opportunities."""
from datetime import date
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from revenue_analytics.models.prediction import OpportunityType


class ChurnPrediction(BaseModel):
    """Probability that a business churns within the horizon."""

    business_id: UUID
    probability: float = Field(..., ge=0.01, le=0.95)
    confidence: float = Field(..., ge=0.3, le=0.95)
    horizon_days: int = Field(..., ge=1)
    risk_factors: list[str] = Field(default_factory=list)
    recommended_actions: list[str] = Field(default_factory=list)
    predicted_on: date
    model_version: str

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())


class RevenueForecast(BaseModel):
    """Projected MRR and ARR for a horizon in months."""

    forecast_date: date
    horizon_months: int = Field(..., ge=1)
    predicted_mrr_cents: int = Field(..., ge=0)
    predicted_arr_cents: int = Field(..., ge=0)
    confidence: float = Field(..., ge=0.5, le=0.95)
    interval_lower_cents: int = Field(..., ge=0)
    interval_upper_cents: int = Field(..., ge=0)
    growth_rate: float
    assumptions: list[str] = Field(default_factory=list)
    model_version: str

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())


class ExpansionOpportunity(BaseModel):
    """Upsell or usage-expansion opportunity for a business."""

    business_id: UUID
    opportunity_type: OpportunityType
    current_plan_id: str
    recommended_plan_id: str | None = None
    potential_revenue_increase_cents: int = Field(..., ge=0)
    conversion_probability: float = Field(..., ge=0, le=1)
    urgency_score: int = Field(..., ge=0, le=100)
    actions: list[str] = Field(default_factory=list)
    timing_recommendation: str
    identified_on: date
