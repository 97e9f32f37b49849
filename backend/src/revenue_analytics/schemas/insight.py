"""Pydantic schemas for insights and alerts."""
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from revenue_analytics.models.insight import (
    AlertCategory,
    AlertSeverity,
    AlertType,
    InsightCategory,
    InsightType,
)


class Insight(BaseModel):
    """Scored business observation with suggested actions."""

    id: UUID = Field(default_factory=uuid4)
    insight_type: InsightType
    category: InsightCategory
    title: str
    description: str
    impact_score: float = Field(..., ge=0, le=100)
    confidence: float = Field(..., ge=0, le=1)
    actionable: bool = True
    actions: list[str] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)
    generated_at: datetime
    expires_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class Alert(BaseModel):
    """Severity-tagged alert with an optional business scope."""

    id: UUID = Field(default_factory=uuid4)
    alert_type: AlertType
    category: AlertCategory
    severity: AlertSeverity
    title: str
    message: str
    business_id: UUID | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    acknowledged_at: datetime | None = None
    resolved_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def dedup_key(self) -> tuple[AlertType, AlertCategory, UUID | None]:
        """Key under which at most one unresolved alert may exist."""
        return (self.alert_type, self.category, self.business_id)

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None

    @property
    def state(self) -> str:
        """Lifecycle state: created, acknowledged or resolved."""
        if self.resolved_at is not None:
            return "resolved"
        if self.acknowledged_at is not None:
            return "acknowledged"
        return "created"
