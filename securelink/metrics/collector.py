"""
Prometheus metrics integration for securelink.

Each collector owns a private CollectorRegistry so several applications
(and test cases) can live in one process without duplicate-metric errors.
"""

import logging
from dataclasses import dataclass
from typing import Dict

from prometheus_client import (
    Counter, Histogram, Gauge, CollectorRegistry,
    generate_latest, CONTENT_TYPE_LATEST
)


logger = logging.getLogger(__name__)


@dataclass
class MetricConfig:
    """Configuration for metrics collection."""

    enabled: bool = True
    namespace: str = "securelink"


class MetricsCollector:
    """Main metrics collector for securelink operations."""

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, config: MetricConfig = None):
        """
        Initialize metrics collector.

        Args:
            config: Metrics configuration
        """
        self.config = config or MetricConfig()
        self.registry = CollectorRegistry()
        self._counts: Dict[str, int] = {}

        self._init_prometheus_metrics()

        if not self.config.enabled:
            logger.info("Metrics collection disabled")

    def _init_prometheus_metrics(self):
        """Initialize all Prometheus metrics."""
        ns = self.config.namespace

        # Link metrics
        self.links_created = Counter(
            f'{ns}_links_created_total',
            'Total number of delivery links created',
            registry=self.registry
        )

        self.redemptions = Counter(
            f'{ns}_redemptions_total',
            'Total number of redemption attempts by outcome',
            ['outcome'],
            registry=self.registry
        )

        self.links_reclaimed = Counter(
            f'{ns}_links_reclaimed_total',
            'Total number of link records deleted, by reason',
            ['reason'],
            registry=self.registry
        )

        self.active_links = Gauge(
            f'{ns}_active_links',
            'Number of link records remaining after the last sweep',
            registry=self.registry
        )

        self.sweep_duration = Histogram(
            f'{ns}_sweep_duration_seconds',
            'Reclamation sweep duration in seconds',
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
            registry=self.registry
        )

        # License binding metrics
        self.binding_operations = Counter(
            f'{ns}_binding_operations_total',
            'Total number of binding operations',
            ['operation', 'result'],
            registry=self.registry
        )

        # HTTP metrics
        self.http_requests_total = Counter(
            f'{ns}_http_requests_total',
            'Total number of HTTP requests',
            ['handler', 'method', 'status'],
            registry=self.registry
        )

        self.http_request_duration = Histogram(
            f'{ns}_http_request_duration_seconds',
            'HTTP request duration in seconds',
            ['handler', 'method'],
            buckets=[0.001, 0.002, 0.005, 0.01, 0.02, 0.05, 0.1, 0.2, 0.5, 1.0, 5.0],
            registry=self.registry
        )

        self.active_requests = Gauge(
            f'{ns}_http_active_requests',
            'Number of currently active HTTP requests',
            ['handler'],
            registry=self.registry
        )

    def _bump(self, key: str, amount: int = 1) -> None:
        self._counts[key] = self._counts.get(key, 0) + amount

    def count(self, key: str) -> int:
        """Value of an internal counter, e.g. ``redemptions.success``."""
        return self._counts.get(key, 0)

    # Link metrics methods
    async def record_link_created(self) -> None:
        """Record a link creation."""
        if not self.config.enabled:
            return

        self._bump("links_created")
        self.links_created.inc()

    async def record_redemption(self, outcome: str) -> None:
        """Record a redemption attempt outcome (success, expired, exhausted, ...)."""
        if not self.config.enabled:
            return

        self._bump(f"redemptions.{outcome}")
        self.redemptions.labels(outcome=outcome).inc()

        logger.debug(f"Recorded redemption: {outcome}")

    async def record_reclaimed(self, reason: str, count: int = 1) -> None:
        """Record deleted link records."""
        if not self.config.enabled or count <= 0:
            return

        self._bump(f"reclaimed.{reason}", count)
        self.links_reclaimed.labels(reason=reason).inc(count)

    async def observe_sweep(self, duration: float, remaining: int) -> None:
        """Record a finished sweep."""
        if not self.config.enabled:
            return

        self.sweep_duration.observe(duration)
        self.active_links.set(remaining)

    # Binding metrics methods
    async def record_binding_operation(self, operation: str, result: str) -> None:
        """Record a bind or verify call."""
        if not self.config.enabled:
            return

        self._bump(f"bindings.{operation}.{result}")
        self.binding_operations.labels(operation=operation, result=result).inc()

    # HTTP metrics methods
    async def record_http_request(self, handler: str, method: str,
                                  status: str, duration: float) -> None:
        """Record an HTTP request."""
        if not self.config.enabled:
            return

        self.http_requests_total.labels(handler=handler, method=method, status=status).inc()
        self.http_request_duration.labels(handler=handler, method=method).observe(duration)

    async def inc_active_requests(self, handler: str) -> None:
        if self.config.enabled:
            self.active_requests.labels(handler=handler).inc()

    async def dec_active_requests(self, handler: str) -> None:
        if self.config.enabled:
            self.active_requests.labels(handler=handler).dec()

    def export_prometheus_metrics(self) -> bytes:
        """Render the registry in the Prometheus text exposition format."""
        return generate_latest(self.registry)


def create_metrics_collector(enabled: bool = True) -> MetricsCollector:
    """Create a new metrics collector."""
    return MetricsCollector(MetricConfig(enabled=enabled))
