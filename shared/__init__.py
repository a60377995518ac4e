"""
Shared utilities for the course access edge.

Common building blocks consumed by the edge service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- circuit_breaker: Resilient external call protection
- base_service: FastAPI application scaffolding

Do not import from service_* packages into shared/.
"""
