"""
POS session package.

Provides the per-terminal lock state machine. Locking is a session-level
gate layered over the permission snapshot, not a permission itself.
"""

from .lock import LockState, SessionLockController, UnlockResult

__all__ = ["LockState", "SessionLockController", "UnlockResult"]
