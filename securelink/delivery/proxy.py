"""
Upstream fetch and streaming of delivered content.

The upstream body is relayed to the client in chunks as it arrives and is
never buffered whole. Bodies are passed through still encoded, so the
upstream Content-Length and Content-Encoding stay accurate.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from aiohttp import web, ClientSession, ClientTimeout, ClientResponse, ClientError

from ..errors import UpstreamFailureError


logger = logging.getLogger(__name__)


DEFAULT_CONTENT_TYPE = "application/octet-stream"

_FORWARDED_HEADERS = ("Content-Length", "Content-Encoding", "Last-Modified", "ETag")


class UpstreamFetcher:
    """Fetches target resources over one shared aiohttp ClientSession."""

    def __init__(self,
                 connect_timeout: float = 10.0,
                 read_timeout: float = 60.0,
                 chunk_size: int = 65536,
                 session: Optional[ClientSession] = None):
        """
        Initialize the fetcher.

        Args:
            connect_timeout: Seconds allowed to establish the upstream connection
            read_timeout: Seconds allowed between two reads from upstream
            chunk_size: Bytes per chunk relayed to the client
            session: Existing session to use; it is not closed by ``close()``
        """
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.chunk_size = chunk_size
        self._session = session
        self._owns_session = session is None

    async def start(self) -> None:
        if self._session is None:
            self._session = ClientSession(
                timeout=ClientTimeout(
                    total=None,
                    sock_connect=self.connect_timeout,
                    sock_read=self.read_timeout,
                ),
                auto_decompress=False,
            )
            logger.debug("Upstream client session opened")

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            logger.debug("Upstream client session closed")
        self._session = None

    @asynccontextmanager
    async def open(self, url: str) -> AsyncIterator[ClientResponse]:
        """
        GET ``url`` and yield the response with its body unread.

        Raises:
            UpstreamFailureError: On connection errors, timeouts or a non-2xx status
        """
        if self._session is None:
            await self.start()

        try:
            async with self._session.get(url) as response:
                if not 200 <= response.status < 300:
                    logger.warning(f"Upstream answered {response.status} for {url}")
                    raise UpstreamFailureError(status=response.status)
                yield response
        except (ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Upstream fetch of {url} failed: {e!r}")
            raise UpstreamFailureError(cause=e) from e


async def stream_to_client(request: web.Request, upstream: ClientResponse,
                           chunk_size: int = 65536) -> web.StreamResponse:
    """
    Relay an upstream response body to the client as an attachment.

    Once headers are sent a failure can no longer become an error response;
    the client connection is closed instead so the download is visibly cut
    short.
    """
    response = web.StreamResponse(status=200)
    response.headers["Content-Type"] = upstream.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE
    response.headers["Content-Disposition"] = "attachment"
    for name in _FORWARDED_HEADERS:
        if name in upstream.headers:
            response.headers[name] = upstream.headers[name]

    await response.prepare(request)

    try:
        async for chunk in upstream.content.iter_chunked(chunk_size):
            await response.write(chunk)
    except (ClientError, asyncio.TimeoutError) as e:
        logger.error(f"Upstream stream interrupted after headers were sent: {e!r}")
        response.force_close()
        if request.transport is not None:
            request.transport.close()
        return response

    await response.write_eof()
    return response
