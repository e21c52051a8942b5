"""
Shared utilities for the restaurant access core.

This package aggregates common building blocks consumed by the core:

- config: Settings via pydantic-settings
- logging: Structured logging with actor/tenant/terminal correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorator for idempotent lookups
- circuit_breaker: Resilient collaborator call protection
- test_helpers: In-memory fakes for tests

Runtime modules here must not import from service_* packages; only
test_helpers does, to build fixtures.
"""
