"""SQLAlchemy implementations of the snapshot, prediction, insight and alert stores."""
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select

from revenue_analytics.models.customer_ltv import CustomerLTVMetric
from revenue_analytics.models.insight import BusinessAlert, BusinessInsight
from revenue_analytics.models.mrr_snapshot import RevenueSnapshot
from revenue_analytics.models.prediction import CustomerPrediction, ExpansionOpportunityRecord, ForecastRecord
from revenue_analytics.repositories.base import AlertStore, InsightStore, PredictionStore, SnapshotStore
from revenue_analytics.repositories.session import SQLRepository
from revenue_analytics.schemas.insight import Alert, Insight
from revenue_analytics.schemas.prediction import ChurnPrediction, ExpansionOpportunity, RevenueForecast
from revenue_analytics.schemas.revenue import CustomerLTVRecord, MRRSnapshot


def _alert_values(alert: Alert) -> dict:
    """Column values for an alert, with its data payload made JSON-safe."""
    values = alert.model_dump()
    values["data"] = alert.model_dump(mode="json")["data"]
    return values


class SQLSnapshotStore(SQLRepository, SnapshotStore):
    """Stores one MRR snapshot per date and one LTV record per business."""

    async def upsert_mrr(self, snapshot: MRRSnapshot) -> None:
        values = snapshot.model_dump()
        async with self._session("upsert_mrr") as session:
            result = await session.execute(
                select(RevenueSnapshot).where(RevenueSnapshot.snapshot_date == snapshot.snapshot_date)
            )
            existing = result.scalar_one_or_none()

            if existing:
                for field, value in values.items():
                    setattr(existing, field, value)
            else:
                session.add(RevenueSnapshot(**values))

    async def get_mrr(self, snapshot_date: date) -> MRRSnapshot | None:
        async with self._session("get_mrr") as session:
            result = await session.execute(
                select(RevenueSnapshot).where(RevenueSnapshot.snapshot_date == snapshot_date)
            )
            row = result.scalar_one_or_none()
            return MRRSnapshot.model_validate(row) if row else None

    async def mrr_history(self, until: date, limit: int) -> list[MRRSnapshot]:
        stmt = (
            select(RevenueSnapshot)
            .where(RevenueSnapshot.snapshot_date <= until)
            .order_by(RevenueSnapshot.snapshot_date.desc())
            .limit(limit)
        )
        async with self._session("mrr_history") as session:
            result = await session.execute(stmt)
            rows = result.scalars().all()
            return [MRRSnapshot.model_validate(row) for row in reversed(rows)]

    async def upsert_ltv(self, record: CustomerLTVRecord) -> None:
        values = record.model_dump()
        async with self._session("upsert_ltv") as session:
            result = await session.execute(
                select(CustomerLTVMetric).where(CustomerLTVMetric.business_id == record.business_id)
            )
            existing = result.scalar_one_or_none()

            if existing:
                for field, value in values.items():
                    setattr(existing, field, value)
                existing.last_calculated_at = datetime.utcnow()
            else:
                session.add(CustomerLTVMetric(**values, last_calculated_at=datetime.utcnow()))

    async def get_ltv(self, business_id: UUID) -> CustomerLTVRecord | None:
        async with self._session("get_ltv") as session:
            result = await session.execute(
                select(CustomerLTVMetric).where(CustomerLTVMetric.business_id == business_id)
            )
            row = result.scalar_one_or_none()
            return CustomerLTVRecord.model_validate(row) if row else None


class SQLPredictionStore(SQLRepository, PredictionStore):
    """Append-only prediction history."""

    async def append_churn(self, prediction: ChurnPrediction) -> None:
        async with self._session("append_churn") as session:
            session.add(CustomerPrediction(**prediction.model_dump()))

    async def append_forecast(self, forecast: RevenueForecast) -> None:
        async with self._session("append_forecast") as session:
            session.add(ForecastRecord(**forecast.model_dump()))

    async def append_opportunities(self, opportunities: list[ExpansionOpportunity]) -> None:
        if not opportunities:
            return
        async with self._session("append_opportunities") as session:
            session.add_all(
                [
                    ExpansionOpportunityRecord(
                        business_id=opportunity.business_id,
                        identified_on=opportunity.identified_on,
                        opportunity_type=opportunity.opportunity_type,
                        current_plan_key=opportunity.current_plan_id,
                        recommended_plan_key=opportunity.recommended_plan_id,
                        potential_revenue_increase_cents=opportunity.potential_revenue_increase_cents,
                        conversion_probability=opportunity.conversion_probability,
                        urgency_score=opportunity.urgency_score,
                        actions=opportunity.actions,
                        timing_recommendation=opportunity.timing_recommendation,
                    )
                    for opportunity in opportunities
                ]
            )

    async def churn_history(self, since: date, until: date) -> list[ChurnPrediction]:
        stmt = (
            select(CustomerPrediction)
            .where(CustomerPrediction.predicted_on >= since, CustomerPrediction.predicted_on < until)
            .order_by(CustomerPrediction.predicted_on)
        )
        async with self._session("churn_history") as session:
            result = await session.execute(stmt)
            return [ChurnPrediction.model_validate(row) for row in result.scalars().all()]

    async def latest_forecast(self, horizon_months: int, made_on_or_before: date) -> RevenueForecast | None:
        stmt = (
            select(ForecastRecord)
            .where(
                ForecastRecord.horizon_months == horizon_months,
                ForecastRecord.forecast_date <= made_on_or_before,
            )
            .order_by(ForecastRecord.forecast_date.desc(), ForecastRecord.created_at.desc())
            .limit(1)
        )
        async with self._session("latest_forecast") as session:
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            return RevenueForecast.model_validate(row) if row else None


class SQLInsightStore(SQLRepository, InsightStore):
    """Stores generated insights."""

    async def insert(self, insight: Insight) -> None:
        async with self._session("insert_insight") as session:
            values = insight.model_dump()
            values["data"] = insight.model_dump(mode="json")["data"]
            session.add(BusinessInsight(**values))


class SQLAlertStore(SQLRepository, AlertStore):
    """Stores alerts, suppressing duplicates of unresolved alerts."""

    async def insert_if_not_duplicate(self, alert: Alert) -> bool:
        business_clause = (
            BusinessAlert.business_id.is_(None)
            if alert.business_id is None
            else BusinessAlert.business_id == alert.business_id
        )
        stmt = (
            select(BusinessAlert.id)
            .where(
                BusinessAlert.alert_type == alert.alert_type,
                BusinessAlert.category == alert.category,
                business_clause,
                BusinessAlert.resolved_at.is_(None),
            )
            .limit(1)
        )
        async with self._session("insert_alert") as session:
            result = await session.execute(stmt)
            if result.scalar_one_or_none() is not None:
                return False
            session.add(BusinessAlert(**_alert_values(alert)))
            return True

    async def get(self, alert_id: UUID) -> Alert | None:
        async with self._session("get_alert") as session:
            row = await session.get(BusinessAlert, alert_id)
            return Alert.model_validate(row) if row else None

    async def save(self, alert: Alert) -> None:
        async with self._session("save_alert") as session:
            row = await session.get(BusinessAlert, alert.id)
            if row is None:
                session.add(BusinessAlert(**_alert_values(alert)))
                return
            row.severity = alert.severity
            row.data = _alert_values(alert)["data"]
            row.acknowledged_at = alert.acknowledged_at
            row.resolved_at = alert.resolved_at

    async def unresolved(self) -> list[Alert]:
        stmt = select(BusinessAlert).where(BusinessAlert.resolved_at.is_(None)).order_by(BusinessAlert.created_at)
        async with self._session("unresolved_alerts") as session:
            result = await session.execute(stmt)
            return [Alert.model_validate(row) for row in result.scalars().all()]
