"""
POS terminal session lock with PIN re-authentication.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

from shared.logging import get_logger
from shared.errors import (
    AccessCoreException, AuthenticationError, PinCooldownActive,
    PinFormatInvalid, PinRejected, ResolutionUnavailable,
)
from shared.metrics import MetricsCollector

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.store import IdentityStore


class LockState(str, Enum):
    """Session lock states."""
    UNLOCKED = "unlocked"
    LOCKED = "locked"


@dataclass(frozen=True)
class UnlockResult:
    """Outcome of one unlock attempt, shown to the operator."""
    success: bool
    state: LockState
    error: Optional[AccessCoreException] = None

    @property
    def code(self) -> Optional[str]:
        return self.error.code if self.error else None


class SessionLockController:
    """Gates every POS operation of one terminal behind a PIN challenge.

    The terminal starts Locked. Only a PIN accepted by the identity
    collaborator moves it to Unlocked; a lock request or an inactivity
    timeout moves it back. Unlock attempts are serialized so the
    consecutive-failure count is exact. After ``max_failed_attempts``
    consecutive rejections, attempts are refused for ``cooldown_seconds``
    without contacting the collaborator.
    """

    def __init__(
        self,
        verifier: "IdentityStore",
        terminal_id: str,
        actor_id: Optional[str] = None,
        max_failed_attempts: int = 3,
        cooldown_seconds: float = 30,
        max_pin_length: int = 6,
        clock: Optional[Callable[[], float]] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.verifier = verifier
        self.terminal_id = terminal_id
        self.actor_id = actor_id
        self.max_failed_attempts = max_failed_attempts
        self.cooldown_seconds = cooldown_seconds
        self.max_pin_length = max_pin_length
        self.metrics = metrics
        self.logger = get_logger("access.session.lock")
        self._clock = clock or time.monotonic

        self._state = LockState.LOCKED
        self._attempt_lock = asyncio.Lock()
        self._failed_attempts = 0
        self._cooldown_until: Optional[float] = None
        self.unlocked_by: Optional[str] = None
        self.unlocked_at: Optional[datetime] = None

    @property
    def state(self) -> LockState:
        return self._state

    @property
    def failed_attempts(self) -> int:
        return self._failed_attempts

    def is_locked(self) -> bool:
        return self._state == LockState.LOCKED

    def bind_actor(self, actor_id: Optional[str]) -> None:
        """Set the actor whose PIN unlocks this terminal; rebinding locks it."""
        if actor_id != self.actor_id:
            self.actor_id = actor_id
            self.lock(reason="actor_changed")

    def lock(self, reason: str = "request") -> None:
        if self._state == LockState.LOCKED:
            return
        self._state = LockState.LOCKED
        self.unlocked_by = None
        self.unlocked_at = None
        self.logger.info("Terminal locked", terminal_id=self.terminal_id, reason=reason)

    def on_inactivity_timeout(self) -> None:
        """Called by the terminal's idle timer."""
        self.lock(reason="inactivity_timeout")

    def cooldown_remaining(self) -> float:
        if self._cooldown_until is None:
            return 0.0
        return max(0.0, self._cooldown_until - self._clock())

    async def unlock(self, pin: str) -> UnlockResult:
        async with self._attempt_lock:
            if self._state == LockState.UNLOCKED:
                return UnlockResult(success=True, state=self._state)

            remaining = self.cooldown_remaining()
            if remaining > 0:
                self._count("cooldown")
                return self._fail(PinCooldownActive(math.ceil(remaining)))
            if self._cooldown_until is not None:
                # Cooldown served; start a fresh series of attempts.
                self._cooldown_until = None
                self._failed_attempts = 0

            normalized = pin.strip() if isinstance(pin, str) else ""
            if not self._well_formed(normalized):
                self._count("invalid_format")
                return self._fail(PinFormatInvalid(
                    f"PIN must be 1 to {self.max_pin_length} digits",
                    {"max_length": self.max_pin_length}
                ))

            if self.actor_id is None:
                return self._fail(AuthenticationError("No actor is bound to this terminal"))

            try:
                verified = await self.verifier.verify_pin(self.actor_id, normalized)
            except ResolutionUnavailable as exc:
                self.logger.warning("PIN verification unavailable", terminal_id=self.terminal_id, error=exc.message)
                self._count("unavailable")
                return self._fail(exc)

            if verified:
                self._state = LockState.UNLOCKED
                self._failed_attempts = 0
                self.unlocked_by = self.actor_id
                self.unlocked_at = datetime.now(timezone.utc)
                self._count("accepted")
                self.logger.info("Terminal unlocked", terminal_id=self.terminal_id, actor_id=self.actor_id)
                return UnlockResult(success=True, state=self._state)

            self._failed_attempts += 1
            self._count("rejected")
            self.logger.warning(
                "PIN rejected",
                terminal_id=self.terminal_id,
                failed_attempts=self._failed_attempts
            )
            if self._failed_attempts >= self.max_failed_attempts:
                self._cooldown_until = self._clock() + self.cooldown_seconds
                self.logger.warning(
                    "PIN cooldown started",
                    terminal_id=self.terminal_id,
                    cooldown_seconds=self.cooldown_seconds
                )

            return self._fail(PinRejected(
                failed_attempts=self._failed_attempts,
                remaining_attempts=max(0, self.max_failed_attempts - self._failed_attempts)
            ))

    def get_state(self) -> Dict[str, Any]:
        """Get current lock state for diagnostics."""
        return {
            "terminal_id": self.terminal_id,
            "state": self._state.value,
            "failed_attempts": self._failed_attempts,
            "max_failed_attempts": self.max_failed_attempts,
            "cooldown_remaining_seconds": math.ceil(self.cooldown_remaining()),
            "unlocked_by": self.unlocked_by,
        }

    def _well_formed(self, pin: str) -> bool:
        return 0 < len(pin) <= self.max_pin_length and pin.isascii() and pin.isdigit()

    def _fail(self, error: AccessCoreException) -> UnlockResult:
        return UnlockResult(success=False, state=self._state, error=error)

    def _count(self, result: str):
        if self.metrics:
            self.metrics.increment_counter("pin_attempts_total", result=result)
