"""
Per-tenant freshness-window cache for plan entitlements.
"""

import asyncio
import time
from typing import Any, Callable, Dict, Optional, Tuple, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..resolvers.models import PlanOutcome


class PlanEntitlementCache:
    """In-process cache of resolved plan outcomes keyed by tenant id.

    Entries are served unchanged (same instance) until ``ttl_seconds``
    have elapsed. Misses for one tenant are serialized through a
    per-tenant lock so concurrent callers trigger a single store query.

    Each load is registered with ``begin_load`` and stores its result
    under the returned id. ``invalidate`` forgets pending loads, so a
    load that read the store before an invalidation cannot put its
    result back into the cache.
    """

    def __init__(self, ttl_seconds: float = 300, clock: Optional[Callable[[], float]] = None):
        self.ttl_seconds = ttl_seconds
        self.logger = get_logger("access.cache.plan")
        self._clock = clock or time.monotonic
        self._entries: Dict[str, Tuple["PlanOutcome", float]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._loads: Dict[str, int] = {}
        self._load_seq = 0
        self._hits = 0
        self._misses = 0

    def lock_for(self, tenant_id: str) -> asyncio.Lock:
        """Lock guarding the refresh of one tenant's entry."""
        lock = self._locks.get(tenant_id)
        if lock is None:
            lock = self._locks[tenant_id] = asyncio.Lock()
        return lock

    def get(self, tenant_id: str) -> Optional["PlanOutcome"]:
        """Get a fresh entry, or None when missing or expired."""
        entry = self._entries.get(tenant_id)
        if entry is None:
            self._misses += 1
            return None

        outcome, stored_at = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[tenant_id]
            self._misses += 1
            self.logger.debug("Plan cache entry expired", tenant_id=tenant_id)
            return None

        self._hits += 1
        return outcome

    def begin_load(self, tenant_id: str) -> int:
        """Register a store read for ``tenant_id`` and return its load id."""
        self._load_seq += 1
        self._loads[tenant_id] = self._load_seq
        return self._load_seq

    def end_load(self, tenant_id: str, load_id: int) -> None:
        if self._loads.get(tenant_id) == load_id:
            del self._loads[tenant_id]

    def set(self, tenant_id: str, outcome: "PlanOutcome", load_id: Optional[int] = None) -> bool:
        """Store an outcome. A load superseded by ``invalidate`` is not stored."""
        if load_id is not None and self._loads.get(tenant_id) != load_id:
            self.logger.debug("Discarding plan entitlements read before invalidation", tenant_id=tenant_id)
            return False
        self._entries[tenant_id] = (outcome, self._clock())
        self.logger.debug("Cached plan entitlements", tenant_id=tenant_id)
        return True

    def invalidate(self, tenant_id: str) -> bool:
        """Drop one tenant's entry, pending loads and lock.

        Returns True if an entry was removed.
        """
        self._loads.pop(tenant_id, None)
        self._locks.pop(tenant_id, None)
        removed = self._entries.pop(tenant_id, None) is not None
        if removed:
            self.logger.info("Invalidated plan entitlements", tenant_id=tenant_id)
        return removed

    def get_cache_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total = self._hits + self._misses
        return {
            "entries": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / total if total else 0.0,
            "ttl_seconds": self.ttl_seconds
        }
