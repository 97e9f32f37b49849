"""Error taxonomy for the analytics pipeline."""
from uuid import UUID


class AnalyticsError(Exception):
    """Base class for all analytics pipeline errors."""


class EntityNotFound(AnalyticsError):
    """Raised when a business or alert required by a calculation does not exist.

    Attributes:
        entity: Kind of entity that was looked up.
        entity_id: Identifier that was not found.
    """

    def __init__(self, entity: str, entity_id: UUID | str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class RepositoryUnavailable(AnalyticsError):
    """Raised when a repository or store call fails or times out.

    Attributes:
        operation: Name of the repository call.
        attempts: Number of attempts made before giving up.
    """

    def __init__(self, operation: str, reason: str, attempts: int = 1) -> None:
        self.operation = operation
        self.attempts = attempts
        super().__init__(f"{operation} unavailable after {attempts} attempt(s): {reason}")


class InvalidPricing(AnalyticsError):
    """Raised when a plan id has no price in the catalog."""

    def __init__(self, plan_id: str) -> None:
        self.plan_id = plan_id
        super().__init__(f"No price defined for plan {plan_id!r}")


class InvalidAlertTransition(AnalyticsError, ValueError):
    """Raised when an alert lifecycle transition is not allowed."""

    def __init__(self, alert_id: UUID, current: str, requested: str) -> None:
        self.alert_id = alert_id
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move alert {alert_id} from {current} to {requested}")


class SnapshotStepFailed(AnalyticsError):
    """Raised when the global MRR snapshot cannot be computed or stored.

    This is the only failure that aborts a pipeline run.
    """
