"""
Data models for permission resolution.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Tuple, Union


class Role(str, Enum):
    """Coarse, tenant-independent permission tier."""
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MANAGER = "manager"
    CASHIER = "cashier"
    VIEWER = "viewer"
    EMPLOYEE = "employee"


class RoleOutcome(str, Enum):
    """Non-role results of role resolution."""
    UNAUTHENTICATED = "unauthenticated"


ResolvedRole = Union[Role, RoleOutcome]

# (actor_id, tenant_id)
ContextKey = Tuple[str, str]


class PlanType(str, Enum):
    """Subscription plan tiers."""
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle states."""
    ACTIVE = "active"
    TRIAL = "trial"
    EXPIRED = "expired"


# Known product feature keys; the fail-open set enables all of them.
FEATURE_KEYS = (
    "dashboard",
    "products",
    "sales",
    "purchases",
    "categories",
    "employees",
    "attendance",
    "pos",
    "pos_reports",
    "pos_orders",
    "kitchen_display",
    "bar_display",
    "menu_items",
    "suppliers",
    "demands",
    "tables",
    "settings",
)


class FeatureSet(Mapping[str, bool]):
    """Read-only feature-key to enabled mapping for one plan.

    Lookups never return "unknown": a key absent from the set is enabled,
    so features added after a plan was configured stay available.
    """

    __slots__ = ("_flags",)

    def __init__(self, flags: Optional[Mapping[str, bool]] = None):
        self._flags = MappingProxyType({str(k): bool(v) for k, v in (flags or {}).items()})

    def __getitem__(self, key: str) -> bool:
        return self._flags[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._flags)

    def __len__(self) -> int:
        return len(self._flags)

    def __repr__(self) -> str:
        return f"FeatureSet({dict(self._flags)!r})"

    def is_enabled(self, key: str) -> bool:
        return self._flags.get(key, True)

    @classmethod
    def all_enabled(cls) -> "FeatureSet":
        return cls({key: True for key in FEATURE_KEYS})


@dataclass(frozen=True)
class Actor:
    """An authenticated identity acting within one tenant."""
    id: str
    tenant_id: str
    global_role: Role
    authenticated: bool = True

    @property
    def context_key(self) -> ContextKey:
        return (self.id, self.tenant_id)


@dataclass(frozen=True)
class TenantSubscription:
    """Subscription row as supplied by the billing/tenant collaborator."""
    tenant_id: str
    plan_type: PlanType
    status: SubscriptionStatus


@dataclass(frozen=True)
class PlanOutcome:
    """Result of plan entitlement resolution."""
    plan_type: PlanType
    features: FeatureSet
    subscription_found: bool = True
    fallback: bool = False


@dataclass(frozen=True)
class EmployeeCapabilities:
    """Fine-grained capability flags for an employee actor.

    The first four are the core capabilities; the rest gate POS, kitchen
    and back-office screens. Every flag defaults to False.
    """
    can_make_sales: bool = False
    can_view_products: bool = False
    can_view_reports: bool = False
    can_manage_stock: bool = False
    can_manage_suppliers: bool = False
    can_create_demands: bool = False
    can_manage_attendance: bool = False
    can_use_pos: bool = False
    can_manage_orders: bool = False
    can_process_payments: bool = False
    can_view_kitchen_display: bool = False
    can_view_bar_display: bool = False
    can_access_pos_reports: bool = False

    @classmethod
    def keys(cls) -> tuple:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_record(cls, record: Mapping[str, object]) -> "EmployeeCapabilities":
        """Build from a store row, ignoring unknown columns."""
        return cls(**{key: bool(record.get(key, False)) for key in cls.keys()})

    def as_dict(self) -> Dict[str, bool]:
        return {key: getattr(self, key) for key in self.keys()}


@dataclass(frozen=True)
class CapabilityOutcome:
    """Result of employee capability resolution.

    ``record_found`` False is the CapabilityUnset state: all flags False.
    ``applicable`` False means the resolver was bypassed for a non-employee.
    """
    capabilities: EmployeeCapabilities = field(default_factory=EmployeeCapabilities)
    record_found: bool = False
    applicable: bool = True

    @classmethod
    def not_applicable(cls) -> "CapabilityOutcome":
        return cls(applicable=False)


@dataclass(frozen=True)
class EffectivePermissionSnapshot:
    """Immutable result of one resolution cycle for (actor, tenant)."""
    actor_id: str
    tenant_id: str
    role: ResolvedRole
    capabilities: Mapping[str, bool]
    features: FeatureSet
    plan_type: PlanType
    resolved_at: datetime
    is_waiter: bool = False
    revision: int = 0

    @property
    def context_key(self) -> ContextKey:
        return (self.actor_id, self.tenant_id)
