"""
Cache package for the access core.

Holds the in-process plan entitlement cache. It is the only shared
mutable state of the core: written by the plan resolver alone and read
by any number of concurrent resolutions.
"""

from .plan_cache import PlanEntitlementCache

__all__ = ["PlanEntitlementCache"]
