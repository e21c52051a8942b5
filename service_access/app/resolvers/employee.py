"""
Employee capability resolution, fail-closed.
"""

from typing import Optional, TYPE_CHECKING

from shared.logging import get_logger
from shared.errors import ResolutionUnavailable
from shared.metrics import MetricsCollector
from .models import CapabilityOutcome, EmployeeCapabilities, ResolvedRole, Role

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.store import IdentityStore


class EmployeeCapabilityResolver:
    """Maps an ``employee`` actor to its capability record.

    Other roles bypass the store entirely. A missing record means nothing
    was ever granted, so every capability is False; a store failure is
    treated the same way.
    """

    def __init__(self, store: "IdentityStore", metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("access.resolvers.employee")

    async def resolve(self, actor_id: str, role: ResolvedRole) -> CapabilityOutcome:
        if role is not Role.EMPLOYEE:
            return CapabilityOutcome.not_applicable()

        try:
            record = await self.store.get_employee_capabilities(actor_id)
        except ResolutionUnavailable as exc:
            self.logger.warning("Capability lookup failed, denying all", actor_id=actor_id, error=exc.message)
            self._record_fallback()
            return CapabilityOutcome()

        if record is None:
            self.logger.info("No capability record for employee", actor_id=actor_id)
            self._record_fallback()
            return CapabilityOutcome()

        return CapabilityOutcome(
            capabilities=EmployeeCapabilities.from_record(record),
            record_found=True
        )

    def _record_fallback(self):
        if self.metrics:
            self.metrics.increment_counter("resolution_fallbacks_total", source="employee", policy="closed")
