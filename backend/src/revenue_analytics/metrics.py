"""Business metrics for Prometheus monitoring."""
from prometheus_client import Counter, Gauge, Histogram

# Pipeline metrics
pipeline_runs_total = Counter(
    "analytics_pipeline_runs_total",
    "Total analytics pipeline runs",
    labelnames=["status"],  # status: success, failed, cancelled
)

pipeline_duration_seconds = Histogram(
    "analytics_pipeline_duration_seconds",
    "Wall-clock duration of analytics pipeline runs",
    buckets=(1, 5, 15, 30, 60, 120, 300, 600, 1800),
)

pipeline_step_failures_total = Counter(
    "analytics_pipeline_step_failures_total",
    "Total failures recorded by pipeline steps",
    labelnames=["step", "kind"],
)

businesses_scored_total = Counter(
    "analytics_businesses_scored_total",
    "Total businesses that completed per-business scoring",
)

repository_retries_total = Counter(
    "analytics_repository_retries_total",
    "Total retries of repository calls",
    labelnames=["operation"],
)

# Revenue metrics
mrr_cents = Gauge(
    "analytics_mrr_cents",
    "Monthly Recurring Revenue from the latest snapshot, in cents",
    labelnames=["currency"],
)

paying_customers_gauge = Gauge(
    "analytics_paying_customers",
    "Paying customers from the latest snapshot",
)

# Insight and alert metrics
insights_generated_total = Counter(
    "analytics_insights_generated_total",
    "Total insights generated",
    labelnames=["insight_type"],
)

alerts_created_total = Counter(
    "analytics_alerts_created_total",
    "Total alerts created",
    labelnames=["alert_type", "severity"],
)

alerts_suppressed_total = Counter(
    "analytics_alerts_suppressed_total",
    "Total alerts suppressed because an unresolved duplicate exists",
    labelnames=["alert_type"],
)
