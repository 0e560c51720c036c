"""
Shared utilities for the Jenkins attestation provider.

This package aggregates common building blocks consumed by the provider:

- config: Provider configuration via pydantic-settings, dynamic settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical rejection types and responses

Do not import from service_* packages into shared/.
"""
