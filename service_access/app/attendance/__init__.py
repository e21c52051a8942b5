"""
Attendance identity package.

- probe: ICE candidate gathering bounded by a timeout
- gate: operator confirmation of the detected network before an
  attendance event is written
"""

from .probe import NetworkIdentityProbe, NetworkIdentitySample, pick_best_address
from .gate import (
    AttendanceAction, AttendanceDecision, AttendanceEvidence,
    AttendanceIdentityCheck, AttendanceIdentityGate,
)

__all__ = [
    "NetworkIdentityProbe",
    "NetworkIdentitySample",
    "pick_best_address",
    "AttendanceAction",
    "AttendanceDecision",
    "AttendanceEvidence",
    "AttendanceIdentityCheck",
    "AttendanceIdentityGate",
]
