"""
Plan entitlement resolution: tenant subscription to feature flags, fail-open.
"""

from typing import Optional, Tuple, TYPE_CHECKING

from shared.logging import get_logger
from shared.errors import ResolutionUnavailable
from shared.metrics import MetricsCollector
from ..cache.plan_cache import PlanEntitlementCache
from .models import FeatureSet, PlanOutcome, PlanType, SubscriptionStatus

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.store import IdentityStore


class PlanEntitlementResolver:
    """Maps a tenant's active subscription to its enabled features.

    Entitlement failures must never lock a paying tenant out, so every
    store failure resolves to the full feature set. Successful lookups
    are cached for the freshness window; fallbacks are not, so the next
    resolution after an outage sees the real plan.
    """

    def __init__(
        self,
        store: "IdentityStore",
        cache: Optional[PlanEntitlementCache] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.cache = cache or PlanEntitlementCache()
        self.metrics = metrics
        self.logger = get_logger("access.resolvers.plan")

    async def resolve(self, tenant_id: str) -> PlanOutcome:
        cached = self.cache.get(tenant_id)
        if cached is not None:
            self._count_cache("hit")
            return cached

        async with self.cache.lock_for(tenant_id):
            # Another caller may have refreshed the entry while we waited.
            cached = self.cache.get(tenant_id)
            if cached is not None:
                self._count_cache("hit")
                return cached

            self._count_cache("miss")
            load_id = self.cache.begin_load(tenant_id)
            try:
                outcome, cacheable = await self._load(tenant_id)
                if cacheable:
                    self.cache.set(tenant_id, outcome, load_id)
            finally:
                self.cache.end_load(tenant_id, load_id)
            return outcome

    def invalidate(self, tenant_id: str) -> bool:
        """Forget a tenant's cached plan after an upgrade or downgrade."""
        return self.cache.invalidate(tenant_id)

    async def _load(self, tenant_id: str) -> Tuple[PlanOutcome, bool]:
        try:
            subscription = await self.store.get_active_subscription(tenant_id)
        except ResolutionUnavailable as exc:
            self.logger.warning(
                "Subscription lookup failed, granting all features",
                tenant_id=tenant_id,
                error=exc.message
            )
            self._record_fallback()
            return self._all_enabled(PlanType.ENTERPRISE, subscription_found=False), False

        found = subscription is not None and subscription.status == SubscriptionStatus.ACTIVE
        plan_type = subscription.plan_type if found else PlanType.BASIC

        try:
            flags = await self.store.get_feature_flags(plan_type)
        except ResolutionUnavailable as exc:
            self.logger.warning(
                "Feature lookup failed, granting all features",
                tenant_id=tenant_id,
                plan_type=plan_type.value,
                error=exc.message
            )
            self._record_fallback()
            return self._all_enabled(plan_type, subscription_found=found), False

        self.logger.debug("Resolved plan entitlements", tenant_id=tenant_id, plan_type=plan_type.value)
        return PlanOutcome(plan_type=plan_type, features=FeatureSet(flags), subscription_found=found), True

    @staticmethod
    def _all_enabled(plan_type: PlanType, subscription_found: bool) -> PlanOutcome:
        return PlanOutcome(
            plan_type=plan_type,
            features=FeatureSet.all_enabled(),
            subscription_found=subscription_found,
            fallback=True
        )

    def _count_cache(self, result: str):
        if self.metrics:
            self.metrics.increment_counter("plan_cache_requests_total", result=result)

    def _record_fallback(self):
        if self.metrics:
            self.metrics.increment_counter("resolution_fallbacks_total", source="plan", policy="open")
