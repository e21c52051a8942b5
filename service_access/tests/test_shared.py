"""
Unit tests for the shared config, error, retry and circuit breaker helpers.
"""

from unittest.mock import AsyncMock

import pytest

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException, CircuitBreakerState
from shared.config import get_config
from shared.errors import PinCooldownActive, ResolutionUnavailable
from shared.retry import RetryConfig, RetryError, retry_on_exception


class TestCircuitBreaker:
    """Test cases for CircuitBreaker."""

    @pytest.fixture
    def breaker(self, clock):
        return CircuitBreaker(failure_threshold=2, recovery_timeout=30.0, name="test", clock=clock)

    @pytest.mark.asyncio
    async def test_passes_results_through(self, breaker):
        assert await breaker.call(AsyncMock(return_value="ok")) == "ok"
        assert breaker.get_state()["state"] == CircuitBreakerState.CLOSED.value

    @pytest.mark.asyncio
    async def test_opens_at_threshold(self, breaker):
        failing = AsyncMock(side_effect=ConnectionError("down"))

        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.call(failing)

        assert breaker.is_open() is True
        with pytest.raises(CircuitBreakerOpenException):
            await breaker.call(failing)
        assert failing.call_count == 2

    @pytest.mark.asyncio
    async def test_half_open_success_closes(self, breaker, clock):
        failing = AsyncMock(side_effect=ConnectionError("down"))
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.call(failing)

        clock.advance(30)
        assert await breaker.call(AsyncMock(return_value="ok")) == "ok"

        assert breaker.is_open() is False
        assert breaker.get_state()["failure_count"] == 0

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, breaker, clock):
        failing = AsyncMock(side_effect=ConnectionError("down"))
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.call(failing)

        clock.advance(30)
        with pytest.raises(ConnectionError):
            await breaker.call(failing)

        assert breaker.is_open() is True


class TestRetry:
    """Test cases for retry_on_exception."""

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        func = AsyncMock(side_effect=[ConnectionError("blip"), "ok"])
        func.__name__ = "lookup"
        wrapped = retry_on_exception((ConnectionError,), RetryConfig(max_attempts=3, base_delay=0.0, jitter=False))(func)

        assert await wrapped() == "ok"
        assert func.call_count == 2

    @pytest.mark.asyncio
    async def test_exhaustion_raises_retry_error(self):
        func = AsyncMock(side_effect=ConnectionError("down"))
        func.__name__ = "lookup"
        wrapped = retry_on_exception((ConnectionError,), RetryConfig(max_attempts=2, base_delay=0.0, jitter=False))(func)

        with pytest.raises(RetryError) as exc_info:
            await wrapped()

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_exception, ConnectionError)

    @pytest.mark.asyncio
    async def test_other_exceptions_are_not_retried(self):
        func = AsyncMock(side_effect=KeyError("bad"))
        func.__name__ = "lookup"
        wrapped = retry_on_exception((ConnectionError,), RetryConfig(max_attempts=3, base_delay=0.0))(func)

        with pytest.raises(KeyError):
            await wrapped()

        assert func.call_count == 1


class TestConfig:
    """Test cases for AccessCoreConfig."""

    def test_defaults(self):
        config = get_config()

        assert config.plan_cache_ttl_seconds == 300
        assert config.pin_max_failed_attempts == 3
        assert config.pin_cooldown_seconds == 30
        assert config.network_label == "Wi-Fi du restaurant"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("ACCESS_PIN_COOLDOWN_SECONDS", "45")

        assert get_config().pin_cooldown_seconds == 45

    @pytest.mark.parametrize("value,expected", [
        ("stun.l.google.com:19302", ("stun.l.google.com", 19302)),
        ("stun.example.org", ("stun.example.org", 3478)),
        (None, None),
    ])
    def test_stun_address(self, value, expected):
        assert get_config(stun_server=value).stun_address() == expected


class TestErrors:
    """Test cases for the error taxonomy."""

    def test_to_response(self):
        response = PinCooldownActive(retry_after_seconds=12).to_response()

        assert response.code == "PIN_COOLDOWN_ACTIVE"
        assert response.details == {"retry_after_seconds": 12}

    def test_resolution_unavailable(self):
        error = ResolutionUnavailable("get_role")

        assert error.code == "RESOLUTION_UNAVAILABLE"
        assert error.operation == "get_role"
        assert error.to_response().message == "identity_store: Store unavailable"
