"""
HTTP server for secure delivery links.
"""

from .app import DeliveryService, SERVICE_KEY, create_app

__all__ = ["DeliveryService", "SERVICE_KEY", "create_app"]
