"""
Access core package for the restaurant POS.

This package decides what an authenticated actor may do at a terminal,
for the tenant they are operating in. It provides:

- app.main: per-terminal facade and its factory.
- app.resolvers: role, plan entitlement and employee capability resolution.
- app.permissions: role table, aggregation, single-flight pipeline and guard.
- app.session: PIN-gated terminal lock.
- app.attendance: network identity probe and confirmation gate.

Guidelines:
- Resolution never raises to callers; store failures apply a documented
  default (closed for role and capabilities, open for plan features).
- Snapshots are immutable and replaced wholesale.
"""
