"""
Merges resolver outcomes into one immutable permission snapshot.
"""

from datetime import datetime, timezone
from types import MappingProxyType
from typing import Callable, Optional

from ..resolvers.models import (
    Actor, CapabilityOutcome, EffectivePermissionSnapshot, PlanOutcome,
    ResolvedRole,
)
from .table import role_permissions


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PermissionAggregator:
    """Deterministic merge of role, plan and capability outcomes.

    Plan features and role permissions are orthogonal: features always
    come from the plan outcome, named permissions from the role table or,
    for employees, verbatim from the capability record.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or _utcnow

    def aggregate(
        self,
        actor: Actor,
        role: ResolvedRole,
        plan: PlanOutcome,
        capabilities: CapabilityOutcome,
        resolved_at: Optional[datetime] = None,
        revision: int = 0,
    ) -> EffectivePermissionSnapshot:
        granted = role_permissions(role)
        is_waiter = False

        if granted is None:
            # Only employees fall through the role table.
            caps = capabilities.capabilities
            granted = MappingProxyType(caps.as_dict())
            is_waiter = caps.can_use_pos and not caps.can_make_sales and not caps.can_view_products

        return EffectivePermissionSnapshot(
            actor_id=actor.id,
            tenant_id=actor.tenant_id,
            role=role,
            capabilities=granted,
            features=plan.features,
            plan_type=plan.plan_type,
            resolved_at=resolved_at or self._clock(),
            is_waiter=is_waiter,
            revision=revision
        )
