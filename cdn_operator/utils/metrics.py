"""Prometheus metrics for the CDN operator."""

import logging
from typing import Optional
from prometheus_client import Counter, Gauge, Histogram
from prometheus_client.core import CollectorRegistry

logger = logging.getLogger(__name__)


class OperatorMetrics:
    """
    Prometheus metrics collector for the CDN operator.

    Tracks reconciliation throughput, failures, duration and the
    readiness of every Distribution.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics with optional custom registry."""
        self.registry = registry or CollectorRegistry()

        self.reconciliation_total = Counter(
            'cdn_reconciliation_total',
            'Total number of Distribution reconciliations',
            ['namespace', 'name', 'phase'],
            registry=self.registry
        )

        self.reconciliation_errors = Counter(
            'cdn_reconciliation_errors_total',
            'Total reconciliation errors',
            ['namespace', 'name', 'error_type'],
            registry=self.registry
        )

        self.reconciliation_duration = Histogram(
            'cdn_reconciliation_duration_seconds',
            'Reconciliation duration in seconds',
            ['phase'],
            registry=self.registry
        )

        self.distribution_ready = Gauge(
            'cdn_distribution_ready',
            'Distribution readiness (1=ready, 0=not ready)',
            ['namespace', 'name'],
            registry=self.registry
        )

    def record_reconciliation(
        self,
        namespace: str,
        name: str,
        phase: str,
        duration: float
    ) -> None:
        """Record a reconciliation pass."""
        self.reconciliation_total.labels(
            namespace=namespace,
            name=name,
            phase=phase
        ).inc()

        self.reconciliation_duration.labels(phase=phase).observe(duration)

    def record_error(
        self,
        namespace: str,
        name: str,
        error_type: str
    ) -> None:
        """Record a reconciliation error."""
        self.reconciliation_errors.labels(
            namespace=namespace,
            name=name,
            error_type=error_type
        ).inc()

    def update_ready(
        self,
        namespace: str,
        name: str,
        is_ready: bool
    ) -> None:
        """Update distribution readiness."""
        self.distribution_ready.labels(
            namespace=namespace,
            name=name
        ).set(1 if is_ready else 0)

    def forget(self, namespace: str, name: str) -> None:
        """Drop the readiness series of a Distribution that is gone."""
        try:
            self.distribution_ready.remove(namespace, name)
        except KeyError:
            logger.debug(f"No readiness series for {namespace}/{name}")


# Global metrics instance
_metrics: Optional[OperatorMetrics] = None


def get_metrics() -> OperatorMetrics:
    """Get or create global metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = OperatorMetrics()
    return _metrics
