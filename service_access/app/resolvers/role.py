"""
Role resolution: one coarse role per actor, fail-closed.
"""

from typing import Optional, TYPE_CHECKING

from shared.logging import get_logger
from shared.errors import ResolutionUnavailable
from shared.metrics import MetricsCollector
from .models import ResolvedRole, Role, RoleOutcome

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.store import IdentityStore


class RoleResolver:
    """Maps an authenticated actor to exactly one Role.

    A store error, a missing row or an unrecognised role name all resolve
    to ``RoleOutcome.UNAUTHENTICATED``, which is granted nothing.
    """

    def __init__(self, store: "IdentityStore", metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("access.resolvers.role")

    async def resolve(self, actor_id: str) -> ResolvedRole:
        try:
            role_name = await self.store.get_role(actor_id)
        except ResolutionUnavailable as exc:
            self.logger.error("Role lookup failed, denying", actor_id=actor_id, error=exc.message)
            self._record_fallback()
            return RoleOutcome.UNAUTHENTICATED

        if role_name is None:
            self.logger.info("No role assigned, denying", actor_id=actor_id)
            self._record_fallback()
            return RoleOutcome.UNAUTHENTICATED

        try:
            return Role(role_name)
        except ValueError:
            self.logger.error("Unknown role name, denying", actor_id=actor_id, role=role_name)
            self._record_fallback()
            return RoleOutcome.UNAUTHENTICATED

    def _record_fallback(self):
        if self.metrics:
            self.metrics.increment_counter("resolution_fallbacks_total", source="role", policy="closed")
