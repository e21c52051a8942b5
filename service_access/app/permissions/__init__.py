"""
Permissions package.

- table: static role to named-permission table and POS-scoped keys
- aggregator: pure merge of resolver outcomes into a snapshot
- pipeline: concurrent, single-flight resolution of an actor context
- guard: synchronous queries against the published snapshot
"""

from .table import NAMED_PERMISSIONS, POS_SCOPED_PERMISSIONS, role_permissions
from .aggregator import PermissionAggregator
from .guard import Guard, has_permission, has_feature
from .pipeline import ResolutionPipeline

__all__ = [
    "NAMED_PERMISSIONS",
    "POS_SCOPED_PERMISSIONS",
    "role_permissions",
    "PermissionAggregator",
    "Guard",
    "has_permission",
    "has_feature",
    "ResolutionPipeline",
]
