"""
Shared fixtures for access core tests.
"""

import pytest

from shared.metrics import MetricsCollector
from shared.test_helpers import FakeClock, SeedDataFactory


@pytest.fixture
def clock():
    """Hand-driven monotonic clock."""
    return FakeClock()


@pytest.fixture
def metrics():
    """Metrics collector with its own registry."""
    return MetricsCollector("access-test")


@pytest.fixture
def store():
    """Seeded in-memory identity store."""
    return SeedDataFactory.create_store()
