"""
Adapters package for the access core.

Contains the collaborator contract and its HTTP implementation:

- store: ``IdentityStore`` protocol (roles, subscriptions, plan features,
  employee capabilities, PIN verification)
- identity_client: httpx client with retry and circuit breaker that maps
  transport failures to ``ResolutionUnavailable``
"""

from .store import IdentityStore
from .identity_client import IdentityServiceClient

__all__ = [
    "IdentityStore",
    "IdentityServiceClient",
]
