"""
aiohttp middleware that records request counts, latency and in-flight
requests into a MetricsCollector.
"""

import time
import logging
from typing import Callable

from aiohttp import web

from .collector import MetricsCollector


logger = logging.getLogger(__name__)


def route_label(request: web.Request) -> str:
    """
    Metrics label for the matched route.

    Uses the route template (``/{programID}/{accountLogin}/{tokenID}``)
    rather than the concrete path so token IDs never become label values.
    """
    match_info = request.match_info
    route = getattr(match_info, "route", None)
    resource = getattr(route, "resource", None)
    if resource is None:
        return "unmatched"
    return resource.canonical


class AioHttpMetricsMiddleware:
    """Metrics middleware for aiohttp applications."""

    def __init__(self, collector: MetricsCollector):
        """
        Initialize aiohttp middleware.

        Args:
            collector: Metrics collector instance
        """
        self.collector = collector

    @web.middleware
    async def middleware(self, request: web.Request, handler: Callable) -> web.StreamResponse:
        """aiohttp middleware handler."""
        start_time = time.monotonic()
        handler_name = route_label(request)

        await self.collector.inc_active_requests(handler_name)

        status = "500"
        try:
            response = await handler(request)
            status = str(response.status)
            return response

        except web.HTTPException as e:
            status = str(e.status)
            raise

        finally:
            duration = time.monotonic() - start_time
            await self.collector.record_http_request(handler_name, request.method, status, duration)
            await self.collector.dec_active_requests(handler_name)


def create_aiohttp_middleware(collector: MetricsCollector) -> Callable:
    """Create the aiohttp metrics middleware for ``collector``."""
    return AioHttpMetricsMiddleware(collector).middleware
