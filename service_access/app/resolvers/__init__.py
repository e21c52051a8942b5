"""
Resolvers package.

Each resolver turns one permission source into an outcome and absorbs
its own store failures into a fixed default:

- role: coarse role per actor (fail-closed to Unauthenticated)
- plan: tenant plan to FeatureSet (fail-open to every feature)
- employee: capability record for employee actors (fail-closed)
- models: shared data model for actors, plans, capabilities, snapshots
"""

from .models import (
    Actor, Role, RoleOutcome, PlanType, SubscriptionStatus, FeatureSet,
    EmployeeCapabilities, CapabilityOutcome, PlanOutcome, TenantSubscription,
    EffectivePermissionSnapshot, FEATURE_KEYS,
)
from .role import RoleResolver
from .plan import PlanEntitlementResolver
from .employee import EmployeeCapabilityResolver

__all__ = [
    "Actor",
    "Role",
    "RoleOutcome",
    "PlanType",
    "SubscriptionStatus",
    "FeatureSet",
    "EmployeeCapabilities",
    "CapabilityOutcome",
    "PlanOutcome",
    "TenantSubscription",
    "EffectivePermissionSnapshot",
    "FEATURE_KEYS",
    "RoleResolver",
    "PlanEntitlementResolver",
    "EmployeeCapabilityResolver",
]
