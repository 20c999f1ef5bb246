"""
Prometheus metrics for securelink.

Provides the MetricsCollector used by the engine, binding manager and
sweeper, and an aiohttp middleware recording HTTP request metrics.
"""

from .collector import MetricConfig, MetricsCollector, create_metrics_collector
from .middleware import AioHttpMetricsMiddleware, create_aiohttp_middleware, route_label

__all__ = [
    "MetricConfig",
    "MetricsCollector",
    "create_metrics_collector",
    "AioHttpMetricsMiddleware",
    "create_aiohttp_middleware",
    "route_label",
]
