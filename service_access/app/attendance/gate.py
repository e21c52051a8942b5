"""
Human-in-the-loop network identity gate for attendance events.
"""

import asyncio
import dataclasses
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, TYPE_CHECKING

from shared.logging import get_logger
from shared.errors import (
    AccessCoreException, AuthorizationError, IdentityUndetected,
    IdentityUnconfirmed, ValidationError,
)
from shared.metrics import MetricsCollector
from .probe import NetworkIdentityProbe, NetworkIdentitySample

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..permissions.guard import Guard


class AttendanceAction(str, Enum):
    """Time-and-attendance event types."""
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"


@dataclass(frozen=True)
class AttendanceEvidence:
    """Evidentiary attributes handed to the attendance write."""
    action: AttendanceAction
    ip_address: str
    network_label: str
    detected_at: datetime
    confirmed: bool = True


@dataclass(frozen=True)
class AttendanceDecision:
    """Accepted with evidence, or rejected with an operator-facing error."""
    accepted: bool
    evidence: Optional[AttendanceEvidence] = None
    error: Optional[AccessCoreException] = None

    @property
    def code(self) -> Optional[str]:
        return self.error.code if self.error else None


class AttendanceIdentityCheck:
    """Handle on one in-progress identity probe."""

    def __init__(self, check_id: str, action: AttendanceAction, task: "asyncio.Task[NetworkIdentitySample]"):
        self.check_id = check_id
        self.action = action
        self._task = task

    async def sample(self) -> NetworkIdentitySample:
        """Wait for the probe; raises CancelledError if the check was cancelled."""
        return await asyncio.shield(self._task)

    def done(self) -> bool:
        return self._task.done()

    def cancelled(self) -> bool:
        return self._task.cancelled()

    def cancel(self) -> None:
        self._task.cancel()


class AttendanceIdentityGate:
    """One-shot workflow: probe, then operator confirmation.

    The gate does not match the address against any authoritative
    network range; it requires the operator to acknowledge the detected
    network and carries the address forward as evidence. At most one
    check is active per gate; beginning another cancels the first.
    """

    def __init__(
        self,
        probe: NetworkIdentityProbe,
        guard: Optional["Guard"] = None,
        network_label: str = "Wi-Fi du restaurant",
        metrics: Optional[MetricsCollector] = None,
    ):
        self.probe = probe
        self.guard = guard
        self.network_label = network_label
        self.metrics = metrics
        self.logger = get_logger("access.attendance.gate")
        self._active: Optional[AttendanceIdentityCheck] = None

    @property
    def active_check(self) -> Optional[AttendanceIdentityCheck]:
        return self._active

    def begin(self, action: AttendanceAction = AttendanceAction.CHECK_IN) -> AttendanceIdentityCheck:
        """Start probing; must be called from a running event loop."""
        if self.guard is not None and not self.guard.has_feature("attendance"):
            raise AuthorizationError(
                "Attendance is not included in the current plan",
                details={"feature": "attendance"}
            )

        if self._active is not None:
            self.logger.info("Replacing active identity check", check_id=self._active.check_id)
            self._active.cancel()

        check_id = uuid.uuid4().hex
        task = asyncio.create_task(self.probe.detect(check_id=check_id), name=f"attendance-probe:{check_id}")
        self._active = AttendanceIdentityCheck(check_id, AttendanceAction(action), task)
        self.logger.debug("Identity check started", check_id=check_id, action=self._active.action.value)
        return self._active

    async def confirm(self, sample: NetworkIdentitySample, confirmed: bool = True) -> AttendanceDecision:
        """Apply the operator's answer to a sample from the active check.

        The check is consumed whatever the outcome; a rejected operator
        may begin a new one.
        """
        check = self._active
        if check is None or sample.check_id != check.check_id:
            raise ValidationError(
                "Sample does not belong to the active identity check",
                details={"check_id": sample.check_id}
            )
        self._active = None

        if not sample.found:
            return self._decide(AttendanceDecision(accepted=False, error=IdentityUndetected()), check)

        if not confirmed:
            return self._decide(AttendanceDecision(accepted=False, error=IdentityUnconfirmed()), check)

        confirmed_sample = dataclasses.replace(sample, confirmed=True)
        evidence = AttendanceEvidence(
            action=check.action,
            ip_address=confirmed_sample.ip_address,
            network_label=self.network_label,
            detected_at=confirmed_sample.detected_at,
            confirmed=confirmed_sample.confirmed
        )
        return self._decide(AttendanceDecision(accepted=True, evidence=evidence), check)

    def cancel(self) -> None:
        """Abort the active check and discard its sample."""
        check = self._active
        if check is None:
            return
        self._active = None
        check.cancel()
        self.logger.info("Identity check cancelled", check_id=check.check_id)
        if self.metrics:
            self.metrics.increment_counter("attendance_decisions_total", result="cancelled")

    def _decide(self, decision: AttendanceDecision, check: AttendanceIdentityCheck) -> AttendanceDecision:
        result = "accepted" if decision.accepted else decision.code.lower()
        self.logger.info(
            "Attendance identity decision",
            check_id=check.check_id,
            action=check.action.value,
            result=result
        )
        if self.metrics:
            self.metrics.increment_counter("attendance_decisions_total", result=result)
        return decision
