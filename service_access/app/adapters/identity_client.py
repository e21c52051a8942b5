"""
HTTP client for the identity/tenant data collaborator.
"""

from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError as PayloadError

from shared.logging import get_logger
from shared.errors import ResolutionUnavailable
from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.retry import retry_on_exception, RetryConfig, RetryError
from ..resolvers.models import PlanType, SubscriptionStatus, TenantSubscription


class RolePayload(BaseModel):
    """Role row returned by the collaborator."""
    role: str


class SubscriptionPayload(BaseModel):
    """Active subscription returned by the collaborator."""
    tenant_id: str
    plan_type: PlanType
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE


class PlanFeatureRow(BaseModel):
    """One plan feature flag."""
    feature_key: str
    is_enabled: bool


class PlanFeaturesPayload(BaseModel):
    """Feature flags configured for a plan."""
    plan_type: PlanType
    features: List[PlanFeatureRow] = Field(default_factory=list)


class PinVerificationPayload(BaseModel):
    """Outcome of a PIN verification request."""
    valid: bool


class IdentityServiceClient:
    """IdentityStore implementation backed by the collaborator's HTTP API."""

    def __init__(
        self,
        identity_service_url: str,
        timeout: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.base_url = identity_service_url.rstrip('/')
        self.timeout = timeout
        self.logger = get_logger("access.adapters.identity_client")
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=3,
            recovery_timeout=30.0,
            name="identity_service"
        )

        # Lookups are idempotent and retried; PIN verification is not.
        self.retry_config = retry_config or RetryConfig(
            max_attempts=3,
            base_delay=0.5,
            max_delay=5.0,
            exponential_base=2.0,
            jitter=True
        )
        self._get_with_retry = retry_on_exception((httpx.HTTPError,), config=self.retry_config)(self._get)

    async def _get(self, path: str) -> Optional[Any]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(f"{self.base_url}{path}")

        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    async def _lookup(self, operation: str, path: str) -> Optional[Any]:
        """GET with retry and circuit breaker; failures become ResolutionUnavailable."""
        try:
            return await self.circuit_breaker.call(self._get_with_retry, path)
        except (RetryError, CircuitBreakerOpenException, httpx.HTTPError, ValueError) as exc:
            self.logger.error("Identity service lookup failed", operation=operation, error=str(exc))
            raise ResolutionUnavailable(operation, details={"error": str(exc)}) from exc

    def _parse(self, operation: str, model: type, data: Any) -> Any:
        try:
            return model.model_validate(data)
        except PayloadError as exc:
            self.logger.error("Identity service returned malformed payload", operation=operation, error=str(exc))
            raise ResolutionUnavailable(operation, "Malformed payload", {"error": str(exc)}) from exc

    async def get_role(self, actor_id: str) -> Optional[str]:
        """Get the actor's role name."""
        data = await self._lookup("get_role", f"/identity/actors/{actor_id}/role")
        if data is None:
            return None
        return self._parse("get_role", RolePayload, data).role

    async def get_active_subscription(self, tenant_id: str) -> Optional[TenantSubscription]:
        """Get the tenant's most recently created active subscription."""
        data = await self._lookup("get_active_subscription", f"/tenants/{tenant_id}/subscriptions/active")
        if data is None:
            return None
        payload = self._parse("get_active_subscription", SubscriptionPayload, data)
        return TenantSubscription(
            tenant_id=payload.tenant_id,
            plan_type=payload.plan_type,
            status=payload.status
        )

    async def get_feature_flags(self, plan_type: PlanType) -> Dict[str, bool]:
        """Get feature flags for a plan."""
        data = await self._lookup("get_feature_flags", f"/plans/{plan_type.value}/features")
        if data is None:
            return {}
        payload = self._parse("get_feature_flags", PlanFeaturesPayload, data)
        return {row.feature_key: row.is_enabled for row in payload.features}

    async def get_employee_capabilities(self, actor_id: str) -> Optional[Dict[str, bool]]:
        """Get the capability row for an employee actor."""
        data = await self._lookup("get_employee_capabilities", f"/employees/{actor_id}/capabilities")
        if data is None:
            return None
        if not isinstance(data, dict):
            raise ResolutionUnavailable("get_employee_capabilities", "Malformed payload")
        return {key: bool(value) for key, value in data.items() if isinstance(value, bool)}

    async def verify_pin(self, actor_id: str, pin: str) -> bool:
        """Verify a PIN in one request. The PIN is never logged."""
        async def _verify():
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/identity/actors/{actor_id}/verify-pin",
                    json={"pin": pin}
                )

            if response.status_code in (401, 403):
                return False
            response.raise_for_status()
            return self._parse("verify_pin", PinVerificationPayload, response.json()).valid

        try:
            return await self.circuit_breaker.call(_verify)
        except ResolutionUnavailable:
            raise
        except (CircuitBreakerOpenException, httpx.HTTPError, ValueError) as exc:
            self.logger.error("PIN verification request failed", error=str(exc))
            raise ResolutionUnavailable("verify_pin", details={"error": str(exc)}) from exc
