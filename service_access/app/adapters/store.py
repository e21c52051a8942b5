"""
Contract of the identity/tenant data collaborator.

Implementations return ``None`` for "not found" and raise
``shared.errors.ResolutionUnavailable`` when the store cannot be reached.
Resolvers turn both into their documented defaults.
"""

from typing import Dict, Optional, Protocol

from ..resolvers.models import PlanType, TenantSubscription


class IdentityStore(Protocol):
    """Lookups consumed by the resolvers and the POS session lock."""

    async def get_role(self, actor_id: str) -> Optional[str]:
        """Role name for the actor, or None when no row exists."""
        ...

    async def get_active_subscription(self, tenant_id: str) -> Optional[TenantSubscription]:
        """Most recently created active subscription, or None."""
        ...

    async def get_feature_flags(self, plan_type: PlanType) -> Dict[str, bool]:
        """Feature-key flags configured for a plan."""
        ...

    async def get_employee_capabilities(self, actor_id: str) -> Optional[Dict[str, bool]]:
        """Capability row for an employee actor, or None."""
        ...

    async def verify_pin(self, actor_id: str, pin: str) -> bool:
        """Single atomic PIN check; True on success."""
        ...
