"""Plan catalog: price and tier-ladder lookups."""
from typing import Iterable

import structlog

from revenue_analytics.errors import InvalidPricing
from revenue_analytics.models.plan_definition import UNLIMITED_USAGE
from revenue_analytics.repositories.base import PlanPricing
from revenue_analytics.schemas.feeds import PlanTier

logger = structlog.get_logger(__name__)

# Default ladder used when no plan definitions are stored.
# Enterprise is custom-priced and contributes 0 to MRR.
DEFAULT_PLAN_TIERS = (
    PlanTier(plan_id="free", name="Free", price_cents=0, tier_rank=0, monthly_usage_limit=1000),
    PlanTier(plan_id="starter", name="Starter", price_cents=2900, tier_rank=1, monthly_usage_limit=10000),
    PlanTier(plan_id="pro", name="Pro", price_cents=9900, tier_rank=2, monthly_usage_limit=50000),
    PlanTier(plan_id="business", name="Business", price_cents=29900, tier_rank=3, monthly_usage_limit=250000),
    PlanTier(
        plan_id="enterprise",
        name="Enterprise",
        price_cents=0,
        tier_rank=4,
        monthly_usage_limit=UNLIMITED_USAGE,
    ),
)


class PlanCatalog(PlanPricing):
    """
    In-memory plan catalog.

    Lookups are synchronous; load the catalog from the metrics repository
    once per run with `PlanCatalog.load`.
    """

    def __init__(self, tiers: Iterable[PlanTier] = DEFAULT_PLAN_TIERS):
        self._tiers = {tier.plan_id: tier for tier in tiers}
        self._ladder = sorted(self._tiers.values(), key=lambda tier: tier.tier_rank)

    @classmethod
    async def load(cls, repository) -> "PlanCatalog":
        """
        Build a catalog from stored plan definitions.

        Falls back to the default ladder when none are stored.

        Args:
            repository: MetricsRepository providing plan_tiers()
        """
        tiers = await repository.plan_tiers()
        if not tiers:
            logger.info("plan_catalog_defaulted", plans=len(DEFAULT_PLAN_TIERS))
            return cls()
        logger.info("plan_catalog_loaded", plans=len(tiers))
        return cls(tiers)

    @property
    def tiers(self) -> list[PlanTier]:
        return list(self._ladder)

    def require(self, plan_id: str) -> PlanTier:
        """
        Look up a plan.

        Raises:
            InvalidPricing: If the plan id is not in the catalog
        """
        tier = self._tiers.get(plan_id)
        if tier is None:
            raise InvalidPricing(plan_id)
        return tier

    def price_of(self, plan_id: str) -> int:
        try:
            return self.require(plan_id).price_cents
        except InvalidPricing as e:
            logger.warning("invalid_pricing", plan_id=plan_id, error=str(e))
            return 0

    def tier_rank(self, plan_id: str) -> int | None:
        tier = self._tiers.get(plan_id)
        return tier.tier_rank if tier else None

    def next_tier(self, plan_id: str) -> str | None:
        rank = self.tier_rank(plan_id)
        if rank is None:
            return None
        for tier in self._ladder:
            if tier.tier_rank > rank:
                return tier.plan_id
        return None

    def usage_limit(self, plan_id: str) -> int | None:
        tier = self._tiers.get(plan_id)
        return tier.monthly_usage_limit if tier else None
