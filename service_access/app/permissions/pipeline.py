"""
Single-flight permission resolution pipeline.
"""

import asyncio
import functools
from typing import Any, Dict, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..resolvers.models import (
    Actor, CapabilityOutcome, ContextKey, EffectivePermissionSnapshot,
    FeatureSet, PlanOutcome, PlanType, ResolvedRole, RoleOutcome,
)
from ..resolvers.role import RoleResolver
from ..resolvers.plan import PlanEntitlementResolver
from ..resolvers.employee import EmployeeCapabilityResolver
from .aggregator import PermissionAggregator


class ResolutionPipeline:
    """Resolves an actor context from the three resolvers concurrently.

    Role, plan and capability lookups run as parallel tasks; the
    capability task waits on the role task only to decide whether the
    actor is an employee. Concurrent calls for the same (actor, tenant)
    share one in-flight task.
    """

    def __init__(
        self,
        role_resolver: RoleResolver,
        plan_resolver: PlanEntitlementResolver,
        capability_resolver: EmployeeCapabilityResolver,
        aggregator: Optional[PermissionAggregator] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.role_resolver = role_resolver
        self.plan_resolver = plan_resolver
        self.capability_resolver = capability_resolver
        self.aggregator = aggregator or PermissionAggregator()
        self.metrics = metrics
        self.logger = get_logger("access.permissions.pipeline")
        self._inflight: Dict[ContextKey, asyncio.Task] = {}
        self._revision = 0

    async def resolve(self, actor: Actor, fresh: bool = False) -> EffectivePermissionSnapshot:
        """Resolve the snapshot for ``actor``.

        With ``fresh`` a new resolution is started even when one is in
        flight for the same context; the new one gets a higher revision,
        so the guard prefers it over the superseded result.
        """
        key = actor.context_key
        task = None if fresh else self._inflight.get(key)

        if task is None:
            self._revision += 1
            task = asyncio.create_task(
                self._run(actor, self._revision),
                name=f"resolve-permissions:{actor.id}:{actor.tenant_id}"
            )
            self._inflight[key] = task
            task.add_done_callback(functools.partial(self._forget, key))
        else:
            self.logger.debug("Attaching to in-flight resolution", actor_id=actor.id, tenant_id=actor.tenant_id)

        # A cancelled caller must not cancel the resolution other callers share.
        return await asyncio.shield(task)

    def is_in_flight(self, actor: Actor) -> bool:
        return actor.context_key in self._inflight

    def _forget(self, key: ContextKey, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _run(self, actor: Actor, revision: int) -> EffectivePermissionSnapshot:
        if self.metrics:
            with self.metrics.time_operation("permission_resolution_duration_seconds"):
                snapshot = await self._resolve_concurrently(actor, revision)
            self.metrics.increment_counter("permission_resolutions_total", role=snapshot.role.value)
        else:
            snapshot = await self._resolve_concurrently(actor, revision)

        self.logger.info(
            "Permissions resolved",
            actor_id=actor.id,
            tenant_id=actor.tenant_id,
            role=snapshot.role.value,
            plan_type=snapshot.plan_type.value
        )
        return snapshot

    async def _resolve_concurrently(self, actor: Actor, revision: int) -> EffectivePermissionSnapshot:
        role_task = asyncio.create_task(self._resolve_role(actor))
        plan_task = asyncio.create_task(self.plan_resolver.resolve(actor.tenant_id))
        capability_task = asyncio.create_task(self._resolve_capabilities(actor, role_task))

        role, plan, capabilities = await asyncio.gather(
            role_task, plan_task, capability_task, return_exceptions=True
        )

        role = self._absorb(role, "role", RoleOutcome.UNAUTHENTICATED)
        plan = self._absorb(
            plan, "plan",
            PlanOutcome(
                plan_type=PlanType.ENTERPRISE,
                features=FeatureSet.all_enabled(),
                subscription_found=False,
                fallback=True
            )
        )
        capabilities = self._absorb(capabilities, "employee", CapabilityOutcome())

        return self.aggregator.aggregate(actor, role, plan, capabilities, revision=revision)

    async def _resolve_role(self, actor: Actor) -> ResolvedRole:
        if not actor.authenticated:
            return RoleOutcome.UNAUTHENTICATED
        return await self.role_resolver.resolve(actor.id)

    async def _resolve_capabilities(self, actor: Actor, role_task: "asyncio.Task[ResolvedRole]") -> CapabilityOutcome:
        role = await role_task
        return await self.capability_resolver.resolve(actor.id, role)

    def _absorb(self, result: Any, source: str, default: Any) -> Any:
        """Replace an unexpected resolver exception with the source's default."""
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            self.logger.error(
                "Resolver raised unexpectedly, applying default",
                source=source,
                error=repr(result)
            )
            if self.metrics:
                self.metrics.record_error(f"{source}_resolver")
            return default
        return result
