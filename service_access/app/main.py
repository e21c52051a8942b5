"""
Access core for the restaurant POS.

Wires the resolvers, the guard, the session lock and the attendance gate
for one terminal and exposes the operations the presentation layer calls.
"""

from typing import Optional

from shared.config import AccessCoreConfig, get_config
from shared.logging import (
    clear_actor_context, configure_logging, get_logger, set_actor_context, set_terminal_context,
)
from shared.metrics import MetricsCollector, get_metrics_collector

from .adapters.identity_client import IdentityServiceClient
from .adapters.store import IdentityStore
from .attendance.gate import (
    AttendanceAction, AttendanceDecision, AttendanceIdentityCheck, AttendanceIdentityGate,
)
from .attendance.probe import NetworkIdentityProbe, NetworkIdentitySample
from .cache.plan_cache import PlanEntitlementCache
from .permissions.aggregator import PermissionAggregator
from .permissions.guard import Guard
from .permissions.pipeline import ResolutionPipeline
from .resolvers.employee import EmployeeCapabilityResolver
from .resolvers.models import Actor, EffectivePermissionSnapshot
from .resolvers.plan import PlanEntitlementResolver
from .resolvers.role import RoleResolver
from .session.lock import SessionLockController, UnlockResult


class AccessCore:
    """Authorization and entitlement state for one POS terminal."""

    def __init__(
        self,
        pipeline: ResolutionPipeline,
        guard: Guard,
        lock: SessionLockController,
        attendance: AttendanceIdentityGate,
    ):
        self.pipeline = pipeline
        self.guard = guard
        self.session_lock = lock
        self.attendance = attendance
        self.logger = get_logger("access.core")
        self._actor: Optional[Actor] = None

        self.guard.attach_lock(self.session_lock.is_locked)

    @property
    def actor(self) -> Optional[Actor]:
        return self._actor

    @property
    def snapshot(self) -> Optional[EffectivePermissionSnapshot]:
        return self.guard.snapshot

    async def resolve_permissions(self, actor: Actor, fresh: bool = False) -> EffectivePermissionSnapshot:
        """Resolve and publish the snapshot for ``actor``.

        Becomes the active context immediately; a snapshot that completes
        after the context moved on is returned but not published. ``fresh``
        starts a new resolution instead of attaching to an in-flight one.
        """
        self._activate(actor)
        snapshot = await self.pipeline.resolve(actor, fresh=fresh)
        if not self.guard.publish(snapshot):
            self.logger.info("Resolved snapshot not published", actor_id=actor.id, tenant_id=actor.tenant_id)
        return snapshot

    async def switch_tenant(self, tenant_id: str) -> EffectivePermissionSnapshot:
        if self._actor is None:
            raise RuntimeError("No active actor to switch tenant for")
        actor = Actor(
            id=self._actor.id,
            tenant_id=tenant_id,
            global_role=self._actor.global_role,
            authenticated=self._actor.authenticated
        )
        return await self.resolve_permissions(actor)

    async def notify_role_changed(self) -> Optional[EffectivePermissionSnapshot]:
        if self._actor is None:
            return None
        return await self.resolve_permissions(self._actor, fresh=True)

    async def notify_plan_changed(self, tenant_id: str) -> Optional[EffectivePermissionSnapshot]:
        """Drop the cached plan outcome and re-resolve if the tenant is active."""
        self.pipeline.plan_resolver.invalidate(tenant_id)
        if self._actor is None or self._actor.tenant_id != tenant_id:
            return None
        return await self.resolve_permissions(self._actor, fresh=True)

    def end_context(self) -> None:
        """Logout: forget the actor and its snapshot and lock the terminal."""
        self.attendance.cancel()
        self.guard.clear()
        self.session_lock.lock(reason="logout")
        self.session_lock.bind_actor(None)
        self._actor = None
        clear_actor_context()

    def has_permission(self, key: str) -> bool:
        return self.guard.has_permission(key)

    def has_feature(self, key: str) -> bool:
        return self.guard.has_feature(key)

    def lock(self) -> None:
        self.session_lock.lock()

    async def unlock(self, pin: str) -> UnlockResult:
        return await self.session_lock.unlock(pin)

    def is_locked(self) -> bool:
        return self.session_lock.is_locked()

    def on_inactivity_timeout(self) -> None:
        self.session_lock.on_inactivity_timeout()

    def begin_attendance_identity_check(
        self, action: AttendanceAction = AttendanceAction.CHECK_IN
    ) -> AttendanceIdentityCheck:
        return self.attendance.begin(action)

    async def confirm_attendance_identity(
        self, sample: NetworkIdentitySample, confirmed: bool = True
    ) -> AttendanceDecision:
        return await self.attendance.confirm(sample, confirmed)

    def cancel_attendance_identity_check(self) -> None:
        self.attendance.cancel()

    def _activate(self, actor: Actor) -> None:
        self._actor = actor
        self.guard.set_context(actor.context_key)
        self.session_lock.bind_actor(actor.id if actor.authenticated else None)
        set_actor_context(actor_id=actor.id, tenant_id=actor.tenant_id)


def create_core(
    terminal_id: str,
    config: Optional[AccessCoreConfig] = None,
    store: Optional[IdentityStore] = None,
    probe: Optional[NetworkIdentityProbe] = None,
    metrics: Optional[MetricsCollector] = None,
) -> AccessCore:
    """Build an AccessCore from configuration.

    ``store`` defaults to the HTTP identity service client and ``probe``
    to an ICE probe against the configured STUN server.
    """
    config = config or get_config()
    configure_logging("access", config.log_level)
    set_terminal_context(terminal_id)

    metrics = metrics or get_metrics_collector("access")
    store = store or IdentityServiceClient(
        config.identity_service_url,
        timeout=config.identity_request_timeout_seconds
    )

    plan_resolver = PlanEntitlementResolver(
        store,
        cache=PlanEntitlementCache(ttl_seconds=config.plan_cache_ttl_seconds),
        metrics=metrics
    )
    pipeline = ResolutionPipeline(
        RoleResolver(store, metrics),
        plan_resolver,
        EmployeeCapabilityResolver(store, metrics),
        aggregator=PermissionAggregator(),
        metrics=metrics
    )

    guard = Guard()
    lock = SessionLockController(
        store,
        terminal_id,
        max_failed_attempts=config.pin_max_failed_attempts,
        cooldown_seconds=config.pin_cooldown_seconds,
        max_pin_length=config.pin_max_length,
        metrics=metrics
    )
    probe = probe or NetworkIdentityProbe(
        timeout=config.network_probe_timeout_seconds,
        stun_server=config.stun_address(),
        metrics=metrics
    )
    attendance = AttendanceIdentityGate(
        probe,
        guard=guard,
        network_label=config.network_label,
        metrics=metrics
    )

    get_logger("access.core").info("Access core created", terminal_id=terminal_id, env=config.env)
    return AccessCore(pipeline, guard, lock, attendance)
