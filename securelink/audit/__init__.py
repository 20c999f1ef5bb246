"""
Access logging for delivery links.
"""

from .access_log import AccessLogger, log_key

__all__ = ["AccessLogger", "log_key"]
