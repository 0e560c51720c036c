"""
Shared metrics configuration for the Jenkins attestation provider.
"""

from typing import Dict, Any, Optional
import time
import threading
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, CollectorRegistry


class ProviderMetrics:
    """Centralized metrics collector for the provider."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up the provider metrics."""

        self._metrics["instance_confirmations_total"] = Counter(
            "instance_confirmations_total",
            "Total instance confirmation decisions",
            ["result"],
            registry=self.registry
        )

        self._metrics["instance_confirmation_duration_seconds"] = Histogram(
            "instance_confirmation_duration_seconds",
            "Instance confirmation duration in seconds",
            registry=self.registry
        )

        self._metrics["token_verifications_total"] = Counter(
            "token_verifications_total",
            "Total attestation token signature verifications",
            ["source", "status"],
            registry=self.registry
        )

        self._metrics["jwks_refresh_total"] = Counter(
            "jwks_refresh_total",
            "Total JWKS refreshes",
            ["source", "status"],
            registry=self.registry
        )

        self._metrics["issuer_discovery_total"] = Counter(
            "issuer_discovery_total",
            "Total issuer discovery lookups",
            ["status"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_confirmation(self, result: str):
        self._metrics["instance_confirmations_total"].labels(result=result).inc()

    def record_token_verification(self, source: str, status: str):
        self._metrics["token_verifications_total"].labels(source=source, status=status).inc()

    def record_jwks_refresh(self, source: str, status: str):
        self._metrics["jwks_refresh_total"].labels(source=source, status=status).inc()

    def record_discovery(self, status: str):
        self._metrics["issuer_discovery_total"].labels(status=status).inc()

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Context manager to time an operation."""
        start_time = time.time()
        try:
            yield
        finally:
            duration = time.time() - start_time
            metric = self._metrics.get(operation_name)
            if metric is not None:
                (metric.labels(**labels) if labels else metric).observe(duration)


_default_metrics: Optional[ProviderMetrics] = None
_default_lock = threading.Lock()


def get_metrics_collector(service_name: str = "jenkins", registry: Optional[CollectorRegistry] = None) -> ProviderMetrics:
    """Get a metrics collector; without a registry a shared unregistered one is returned."""
    global _default_metrics
    if registry is not None:
        return ProviderMetrics(service_name, registry)
    with _default_lock:
        if _default_metrics is None:
            _default_metrics = ProviderMetrics(service_name)
        return _default_metrics
