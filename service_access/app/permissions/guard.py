"""
Read-only permission and feature queries against the published snapshot.
"""

from typing import Callable, Optional

from shared.logging import get_logger
from ..resolvers.models import ContextKey, EffectivePermissionSnapshot
from .table import POS_SCOPED_PERMISSIONS


def has_permission(snapshot: Optional[EffectivePermissionSnapshot], key: str) -> bool:
    """Named permission lookup. No snapshot or unknown key means denied."""
    if snapshot is None:
        return False
    return bool(snapshot.capabilities.get(key, False))


def has_feature(snapshot: Optional[EffectivePermissionSnapshot], key: str) -> bool:
    """Plan feature lookup. No snapshot or unknown key means enabled."""
    if snapshot is None:
        return True
    return snapshot.features.is_enabled(key)


class Guard:
    """Serves the most recently published snapshot for one actor context.

    Snapshots are replaced wholesale, never mutated, so readers never see
    a half-updated permission set. While a re-resolution is in flight the
    previous snapshot keeps being served. An optional ``is_locked``
    callable masks POS-scoped permissions while the terminal is locked.
    """

    def __init__(self, is_locked: Optional[Callable[[], bool]] = None):
        self.logger = get_logger("access.permissions.guard")
        self._snapshot: Optional[EffectivePermissionSnapshot] = None
        self._context: Optional[ContextKey] = None
        self._is_locked = is_locked

    @property
    def snapshot(self) -> Optional[EffectivePermissionSnapshot]:
        return self._snapshot

    @property
    def context(self) -> Optional[ContextKey]:
        return self._context

    def attach_lock(self, is_locked: Callable[[], bool]) -> None:
        self._is_locked = is_locked

    def set_context(self, context: Optional[ContextKey]) -> None:
        """Switch the active actor context, dropping a snapshot for another one."""
        if context == self._context:
            return
        self._context = context
        if self._snapshot is not None and self._snapshot.context_key != context:
            self._snapshot = None

    def publish(self, snapshot: EffectivePermissionSnapshot) -> bool:
        """Publish a snapshot if it belongs to the active context and is newer."""
        if snapshot.context_key != self._context:
            self.logger.debug(
                "Discarding snapshot for superseded context",
                actor_id=snapshot.actor_id,
                tenant_id=snapshot.tenant_id
            )
            return False

        current = self._snapshot
        if current is not None and _order(snapshot) < _order(current):
            self.logger.debug("Discarding out-of-order snapshot", actor_id=snapshot.actor_id)
            return False

        self._snapshot = snapshot
        return True

    def clear(self) -> None:
        self._snapshot = None
        self._context = None

    def has_permission(self, key: str) -> bool:
        if key in POS_SCOPED_PERMISSIONS and self._is_locked is not None and self._is_locked():
            return False
        return has_permission(self._snapshot, key)

    def has_feature(self, key: str) -> bool:
        return has_feature(self._snapshot, key)


def _order(snapshot: EffectivePermissionSnapshot):
    return snapshot.revision, snapshot.resolved_at
