"""
Upstream content delivery.
"""

from .proxy import UpstreamFetcher, stream_to_client, DEFAULT_CONTENT_TYPE

__all__ = ["UpstreamFetcher", "stream_to_client", "DEFAULT_CONTENT_TYPE"]
