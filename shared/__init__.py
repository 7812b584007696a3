"""
Shared utilities for the SonarQube exporter.

This package aggregates common building blocks consumed by exporter services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Self-instrumentation Prometheus metrics
- errors: Canonical error types and responses
- base_service: FastAPI application scaffolding

Do not import from service_* packages into shared/.
"""
