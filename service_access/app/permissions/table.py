"""
Static role to named-permission table.
"""

from types import MappingProxyType
from typing import Mapping, Optional, Tuple, assert_never

from ..resolvers.models import EmployeeCapabilities, ResolvedRole, Role, RoleOutcome


NAMED_PERMISSIONS: Tuple[str, ...] = (
    "view_dashboard",
    "manage_products",
    "manage_sales",
    "manage_purchases",
    "manage_categories",
    "manage_suppliers",
    "manage_users",
    "view_reports",
)

# Denied while the POS terminal is locked, whatever the snapshot says.
POS_SCOPED_PERMISSIONS = frozenset({
    "manage_sales",
    "can_make_sales",
    "can_use_pos",
    "can_manage_orders",
    "can_process_payments",
    "can_access_pos_reports",
})


def _grant(*granted: str) -> Mapping[str, bool]:
    return MappingProxyType({key: key in granted for key in NAMED_PERMISSIONS})


_ADMIN = MappingProxyType({
    **{key: True for key in NAMED_PERMISSIONS},
    **{key: True for key in EmployeeCapabilities.keys()},
})
_MANAGER = _grant(
    "view_dashboard", "manage_products", "manage_sales", "manage_purchases",
    "manage_categories", "manage_suppliers", "view_reports",
)
_CASHIER = _grant("view_dashboard", "manage_sales")
_VIEWER = _grant("view_dashboard", "view_reports")
_NOTHING = _grant()


def role_permissions(role: ResolvedRole) -> Optional[Mapping[str, bool]]:
    """Named permissions granted structurally by a role.

    Returns None for ``employee``, whose permissions come from its
    capability record instead of this table. Every member of Role and
    RoleOutcome must be handled here; ``assert_never`` makes a type
    checker reject a new member that is not.
    """
    if role is Role.SUPER_ADMIN or role is Role.ADMIN:
        return _ADMIN
    elif role is Role.MANAGER:
        return _MANAGER
    elif role is Role.CASHIER:
        return _CASHIER
    elif role is Role.VIEWER:
        return _VIEWER
    elif role is Role.EMPLOYEE:
        return None
    elif role is RoleOutcome.UNAUTHENTICATED:
        return _NOTHING
    else:
        assert_never(role)
