"""
Unit tests for the role table, aggregation, guard and resolution pipeline.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from shared.test_helpers import FakeIdentityStore, SeedDataFactory
from service_access.app.cache.plan_cache import PlanEntitlementCache
from service_access.app.permissions.aggregator import PermissionAggregator
from service_access.app.permissions.guard import Guard, has_feature, has_permission
from service_access.app.permissions.pipeline import ResolutionPipeline
from service_access.app.permissions.table import (
    NAMED_PERMISSIONS, POS_SCOPED_PERMISSIONS, role_permissions,
)
from service_access.app.resolvers.employee import EmployeeCapabilityResolver
from service_access.app.resolvers.models import (
    CapabilityOutcome, EmployeeCapabilities, FeatureSet, PlanOutcome,
    PlanType, Role, RoleOutcome,
)
from service_access.app.resolvers.plan import PlanEntitlementResolver
from service_access.app.resolvers.role import RoleResolver

RESOLVED_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def granted(role):
    return {key for key, value in role_permissions(role).items() if value}


class TestRoleTable:
    """Test cases for the static role table."""

    def test_admin_and_super_admin_grant_everything(self):
        for role in (Role.ADMIN, Role.SUPER_ADMIN):
            assert set(NAMED_PERMISSIONS) <= granted(role)
            assert set(EmployeeCapabilities.keys()) <= granted(role)

    def test_manager(self):
        assert granted(Role.MANAGER) == set(NAMED_PERMISSIONS) - {"manage_users"}

    def test_cashier(self):
        assert granted(Role.CASHIER) == {"view_dashboard", "manage_sales"}

    def test_viewer(self):
        assert granted(Role.VIEWER) == {"view_dashboard", "view_reports"}

    def test_unauthenticated_grants_nothing(self):
        assert granted(RoleOutcome.UNAUTHENTICATED) == set()

    def test_employee_is_not_in_table(self):
        assert role_permissions(Role.EMPLOYEE) is None

    def test_higher_roles_include_lower_ones(self):
        assert granted(Role.MANAGER) <= granted(Role.ADMIN)
        assert granted(Role.CASHIER) <= granted(Role.MANAGER)
        assert granted(Role.VIEWER) <= granted(Role.MANAGER)

    def test_pos_scoped_keys_are_known(self):
        known = set(NAMED_PERMISSIONS) | set(EmployeeCapabilities.keys())
        assert POS_SCOPED_PERMISSIONS <= known


class TestPermissionAggregator:
    """Test cases for PermissionAggregator."""

    @pytest.fixture
    def aggregator(self):
        return PermissionAggregator(clock=lambda: RESOLVED_AT)

    @pytest.fixture
    def plan(self):
        return PlanOutcome(plan_type=PlanType.BASIC, features=FeatureSet({"kitchen_display": False}))

    def test_is_deterministic(self, aggregator, plan):
        actor = SeedDataFactory.create_actor("manager-1", role=Role.MANAGER)

        first = aggregator.aggregate(actor, Role.MANAGER, plan, CapabilityOutcome.not_applicable())
        second = aggregator.aggregate(actor, Role.MANAGER, plan, CapabilityOutcome.not_applicable())

        assert first == second
        assert first.resolved_at == RESOLVED_AT

    def test_features_come_from_plan_only(self, aggregator, plan):
        actor = SeedDataFactory.create_actor("admin-1", role=Role.ADMIN)

        snapshot = aggregator.aggregate(actor, Role.ADMIN, plan, CapabilityOutcome.not_applicable())

        assert snapshot.features is plan.features
        assert snapshot.plan_type is PlanType.BASIC
        assert has_feature(snapshot, "kitchen_display") is False

    def test_employee_capabilities_verbatim(self, aggregator, plan):
        actor = SeedDataFactory.create_actor("employee-1", role=Role.EMPLOYEE)
        caps = EmployeeCapabilities(can_make_sales=True, can_manage_stock=True)

        snapshot = aggregator.aggregate(
            actor, Role.EMPLOYEE, plan, CapabilityOutcome(capabilities=caps, record_found=True)
        )

        assert dict(snapshot.capabilities) == caps.as_dict()
        assert snapshot.is_waiter is False
        assert has_permission(snapshot, "manage_sales") is False

    def test_waiter_detection(self, aggregator, plan):
        actor = SeedDataFactory.create_actor("waiter-1", role=Role.EMPLOYEE)
        caps = EmployeeCapabilities(can_use_pos=True, can_manage_orders=True)

        snapshot = aggregator.aggregate(
            actor, Role.EMPLOYEE, plan, CapabilityOutcome(capabilities=caps, record_found=True)
        )

        assert snapshot.is_waiter is True

    def test_employee_without_record_has_nothing(self, aggregator, plan):
        actor = SeedDataFactory.create_actor("orphan-1", role=Role.EMPLOYEE)

        snapshot = aggregator.aggregate(actor, Role.EMPLOYEE, plan, CapabilityOutcome())

        assert not any(snapshot.capabilities.values())

    def test_snapshot_capabilities_are_read_only(self, aggregator, plan):
        actor = SeedDataFactory.create_actor("cashier-1")

        snapshot = aggregator.aggregate(actor, Role.CASHIER, plan, CapabilityOutcome.not_applicable())

        with pytest.raises(TypeError):
            snapshot.capabilities["manage_users"] = True  # type: ignore[index]


class TestGuard:
    """Test cases for Guard."""

    @pytest.fixture
    def aggregator(self):
        return PermissionAggregator(clock=lambda: RESOLVED_AT)

    @pytest.fixture
    def snapshot(self, aggregator):
        actor = SeedDataFactory.create_actor("cashier-1")
        plan = PlanOutcome(plan_type=PlanType.PRO, features=FeatureSet({"bar_display": False}))
        return aggregator.aggregate(actor, Role.CASHIER, plan, CapabilityOutcome.not_applicable())

    @pytest.fixture
    def guard(self, snapshot):
        guard = Guard()
        guard.set_context(snapshot.context_key)
        guard.publish(snapshot)
        return guard

    def test_before_resolution(self):
        guard = Guard()

        assert guard.has_permission("view_dashboard") is False
        assert guard.has_feature("kitchen_display") is True

    def test_queries_snapshot(self, guard):
        assert guard.has_permission("manage_sales") is True
        assert guard.has_permission("manage_users") is False
        assert guard.has_feature("bar_display") is False
        assert guard.has_feature("pos") is True

    def test_unknown_permission_is_denied(self, guard):
        assert guard.has_permission("launch_rockets") is False

    def test_lock_masks_pos_permissions(self, guard):
        locked = True
        guard.attach_lock(lambda: locked)

        assert guard.has_permission("manage_sales") is False
        assert guard.has_permission("view_dashboard") is True

        locked = False
        assert guard.has_permission("manage_sales") is True

    def test_rejects_snapshot_for_other_context(self, guard, aggregator, snapshot):
        other = aggregator.aggregate(
            SeedDataFactory.create_actor("cashier-1", tenant_id="tenant-basic"),
            Role.CASHIER,
            PlanOutcome(plan_type=PlanType.BASIC, features=FeatureSet()),
            CapabilityOutcome.not_applicable()
        )

        assert guard.publish(other) is False
        assert guard.snapshot is snapshot

    def test_rejects_out_of_order_snapshot(self, guard, snapshot):
        older = PermissionAggregator(clock=lambda: RESOLVED_AT - timedelta(seconds=5)).aggregate(
            SeedDataFactory.create_actor("cashier-1"),
            RoleOutcome.UNAUTHENTICATED,
            PlanOutcome(plan_type=PlanType.PRO, features=FeatureSet()),
            CapabilityOutcome.not_applicable()
        )

        assert guard.publish(older) is False
        assert guard.snapshot is snapshot

    def test_lower_revision_loses_to_published(self, aggregator):
        actor = SeedDataFactory.create_actor("cashier-1")
        plan = PlanOutcome(plan_type=PlanType.PRO, features=FeatureSet())
        guard = Guard()
        guard.set_context(actor.context_key)
        newer = aggregator.aggregate(actor, Role.CASHIER, plan, CapabilityOutcome.not_applicable(), revision=2)
        superseded = PermissionAggregator(clock=lambda: RESOLVED_AT + timedelta(seconds=5)).aggregate(
            actor, Role.VIEWER, plan, CapabilityOutcome.not_applicable(), revision=1
        )

        assert guard.publish(newer) is True
        assert guard.publish(superseded) is False
        assert guard.snapshot.role is Role.CASHIER

    def test_context_switch_drops_snapshot(self, guard):
        guard.set_context(("cashier-1", "tenant-basic"))

        assert guard.snapshot is None
        assert guard.has_permission("manage_sales") is False

    def test_clear(self, guard):
        guard.clear()

        assert guard.snapshot is None
        assert guard.context is None


class TestResolutionPipeline:
    """Test cases for ResolutionPipeline."""

    def build(self, store, metrics=None):
        return ResolutionPipeline(
            RoleResolver(store),
            PlanEntitlementResolver(store, PlanEntitlementCache()),
            EmployeeCapabilityResolver(store),
            metrics=metrics
        )

    @pytest.mark.asyncio
    async def test_resolves_cashier(self, store, metrics):
        pipeline = self.build(store, metrics)

        snapshot = await pipeline.resolve(SeedDataFactory.create_actor("cashier-1"))

        assert snapshot.role is Role.CASHIER
        assert snapshot.plan_type is PlanType.PRO
        assert has_permission(snapshot, "manage_sales") is True
        assert metrics.get_sample_value("permission_resolutions_total", {"role": "cashier"}) == 1.0

    @pytest.mark.asyncio
    async def test_resolves_employee_capabilities(self, store):
        pipeline = self.build(store)

        snapshot = await pipeline.resolve(SeedDataFactory.create_actor("employee-1", role=Role.EMPLOYEE))

        assert snapshot.role is Role.EMPLOYEE
        assert has_permission(snapshot, "can_make_sales") is True
        assert has_permission(snapshot, "can_manage_stock") is False

    @pytest.mark.asyncio
    async def test_role_and_plan_run_concurrently(self, store):
        plan_started = asyncio.Event()

        class GatedStore(FakeIdentityStore):
            async def get_role(self, actor_id):
                # Deadlocks unless the plan lookup starts while this one waits.
                await plan_started.wait()
                return "cashier"

            async def get_active_subscription(self, tenant_id):
                plan_started.set()
                return await super().get_active_subscription(tenant_id)

        gated = GatedStore()
        pipeline = self.build(gated)

        snapshot = await asyncio.wait_for(
            pipeline.resolve(SeedDataFactory.create_actor("cashier-1")), timeout=1.0
        )

        assert snapshot.role is Role.CASHIER

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_resolution(self, store):
        store.delay = 0.01
        pipeline = self.build(store)
        actor = SeedDataFactory.create_actor("cashier-1")

        first, second = await asyncio.gather(pipeline.resolve(actor), pipeline.resolve(actor))

        assert first is second
        assert store.call_count("get_role") == 1
        assert not pipeline.is_in_flight(actor)

    @pytest.mark.asyncio
    async def test_fresh_resolution_does_not_attach(self, store):
        store.delay = 0.01
        pipeline = self.build(store)
        actor = SeedDataFactory.create_actor("cashier-1")

        first, second = await asyncio.gather(pipeline.resolve(actor), pipeline.resolve(actor, fresh=True))

        assert first is not second
        assert second.revision > first.revision
        assert store.call_count("get_role") == 2

    @pytest.mark.asyncio
    async def test_different_contexts_resolve_separately(self, store):
        pipeline = self.build(store)

        first, second = await asyncio.gather(
            pipeline.resolve(SeedDataFactory.create_actor("cashier-1", tenant_id="tenant-pro")),
            pipeline.resolve(SeedDataFactory.create_actor("cashier-1", tenant_id="tenant-basic")),
        )

        assert first.plan_type is PlanType.PRO
        assert second.plan_type is PlanType.BASIC
        assert store.call_count("get_role") == 2

    @pytest.mark.asyncio
    async def test_unauthenticated_actor_skips_role_lookup(self, store):
        pipeline = self.build(store)

        snapshot = await pipeline.resolve(
            SeedDataFactory.create_actor("admin-1", role=Role.ADMIN, authenticated=False)
        )

        assert snapshot.role is RoleOutcome.UNAUTHENTICATED
        assert not any(snapshot.capabilities.values())
        assert store.call_count("get_role") == 0

    @pytest.mark.asyncio
    async def test_role_outage_fails_closed_plan_outage_fails_open(self, store):
        store.failing.update({"get_role", "get_active_subscription"})
        pipeline = self.build(store)

        snapshot = await pipeline.resolve(SeedDataFactory.create_actor("admin-1", role=Role.ADMIN))

        assert snapshot.role is RoleOutcome.UNAUTHENTICATED
        assert has_permission(snapshot, "view_dashboard") is False
        assert has_feature(snapshot, "kitchen_display") is True

    @pytest.mark.asyncio
    async def test_unexpected_resolver_error_is_absorbed(self, store, metrics):
        role_resolver = RoleResolver(store)
        role_resolver.resolve = AsyncMock(side_effect=RuntimeError("boom"))
        pipeline = ResolutionPipeline(
            role_resolver,
            PlanEntitlementResolver(store),
            EmployeeCapabilityResolver(store),
            metrics=metrics
        )

        snapshot = await pipeline.resolve(SeedDataFactory.create_actor("admin-1", role=Role.ADMIN))

        assert snapshot.role is RoleOutcome.UNAUTHENTICATED
        assert snapshot.plan_type is PlanType.PRO
        assert metrics.get_sample_value(
            "errors_total", {"error_type": "role_resolver", "service": "access-test"}
        ) == 1.0
