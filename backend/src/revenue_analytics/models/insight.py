"""Business insight and alert models."""
import enum

from sqlalchemy import Boolean, Column, DateTime, Enum as SQLEnum, Float, Index, String, Text, Uuid

from revenue_analytics.models.base import Base, JSONType


class InsightType(enum.Enum):
    """Kind of generated insight."""

    REVENUE_GROWTH = "revenue_growth"
    REVENUE_DECLINE = "revenue_decline"
    SEASONAL_PATTERNS = "seasonal_patterns"
    PLAN_OPTIMIZATION = "plan_optimization"
    COHORT_RETENTION = "cohort_retention"
    CHURN_DRIVERS = "churn_drivers"
    EXPANSION_OPPORTUNITIES = "expansion_opportunities"
    SUCCESS_PATTERNS = "success_patterns"
    SEGMENTATION_OPPORTUNITIES = "segmentation_opportunities"
    INVESTMENT_PRIORITY = "investment_priority"


class InsightCategory(enum.Enum):
    """Business area an insight belongs to."""

    REVENUE = "revenue"
    CUSTOMER = "customer"
    RETENTION = "retention"


class AlertType(enum.Enum):
    """Kind of alert."""

    MRR_DECLINE = "mrr_decline"
    CHURN_SPIKE = "churn_spike"
    HIGH_VALUE_CHURN_RISK = "high_value_churn_risk"
    REVENUE_MILESTONE = "revenue_milestone"
    FORECAST_VARIANCE = "forecast_variance"
    SUPPORT_ESCALATION = "support_escalation"
    USAGE_ANOMALY = "usage_anomaly"
    PAYMENT_FAILURE_TREND = "payment_failure_trend"
    PLAN_PERFORMANCE_ISSUE = "plan_performance_issue"
    EXPANSION_PIPELINE = "expansion_pipeline"


class AlertCategory(enum.Enum):
    """Business area an alert belongs to."""

    REVENUE = "revenue"
    CUSTOMER = "customer"
    OPERATIONAL = "operational"


class AlertSeverity(enum.Enum):
    """Alert severity, lowest to highest."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class BusinessInsight(Base):
    """Generated insight with impact and confidence scores."""

    __tablename__ = "business_insights"

    insight_type = Column(SQLEnum(InsightType), nullable=False, index=True)
    category = Column(SQLEnum(InsightCategory), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    impact_score = Column(Float, nullable=False)
    confidence = Column(Float, nullable=False)
    actionable = Column(Boolean, nullable=False, default=True)
    actions = Column(JSONType, nullable=False, default=list)
    data = Column(JSONType, nullable=False, default=dict)
    generated_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<BusinessInsight(type={self.insight_type.value}, impact={self.impact_score})>"


class BusinessAlert(Base):
    """
    Severity-tagged alert.

    At most one unresolved alert exists per (alert_type, category, business_id).
    """

    __tablename__ = "business_alerts"

    alert_type = Column(SQLEnum(AlertType), nullable=False)
    category = Column(SQLEnum(AlertCategory), nullable=False)
    severity = Column(SQLEnum(AlertSeverity), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    business_id = Column(Uuid(as_uuid=True), nullable=True)
    data = Column(JSONType, nullable=False, default=dict)
    acknowledged_at = Column(DateTime, nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_business_alerts_dedup_key", "alert_type", "category", "business_id", "resolved_at"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<BusinessAlert(type={self.alert_type.value}, severity={self.severity.value}, business_id={self.business_id})>"
