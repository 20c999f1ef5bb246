"""
aiohttp application for the secure delivery service.

Routes:
    POST /create                               create a delivery link
    POST /bind                                 bind an account to a program
    POST /mql5/verify                          check a binding
    GET  /logs/{programID}/{accountLogin}/{tokenID}
    GET  /health
    GET  /metrics                              (when metrics are enabled)
    GET  /{programID}/{accountLogin}/{tokenID} redeem and download
"""

import logging
import math
from typing import Any, Callable, Dict, Optional

from aiohttp import web

from ..audit.access_log import AccessLogger
from ..common.utils import current_millis, generate_request_id, get_current_time, validate_required_fields
from ..core.config import Config
from ..delivery.proxy import UpstreamFetcher, stream_to_client
from ..errors import SecureLinkError, BusyError, InvalidArgumentError, wrap_exception
from ..licensing.bindings import BindingManager
from ..links.engine import LinkEngine
from ..links.sweeper import ReclamationSweeper
from ..metrics.collector import MetricsCollector, create_metrics_collector
from ..metrics.middleware import create_aiohttp_middleware
from ..store.factory import create_store
from ..store.types import RecordStore


logger = logging.getLogger(__name__)


REQUEST_ID_HEADER = "X-Request-ID"


class DeliveryService:
    """Wires the components together and implements the HTTP handlers."""

    def __init__(self,
                 config: Config,
                 store: RecordStore,
                 fetcher: UpstreamFetcher,
                 clock: Callable[[], int] = current_millis,
                 metrics: Optional[MetricsCollector] = None):
        self.config = config
        self.store = store
        self.fetcher = fetcher
        self.metrics = metrics
        self.engine = LinkEngine(store, base_url=config.server.base_url, clock=clock, metrics=metrics)
        self.bindings = BindingManager(store, clock=clock, metrics=metrics)
        self.access_log = AccessLogger(store, clock=clock)
        self.sweeper = ReclamationSweeper(self.engine, interval=config.sweep.interval, metrics=metrics)

    # -- lifecycle --------------------------------------------------------

    async def start(self) -> None:
        await self.fetcher.start()
        if self.config.sweep.enabled:
            await self.sweeper.start()
        logger.info(f"Secure delivery service started ({self.store.backend_name} store)")

    async def stop(self) -> None:
        await self.sweeper.stop()
        await self.fetcher.close()
        await self.store.close()
        logger.info("Secure delivery service stopped")

    # -- helpers ----------------------------------------------------------

    def client_ip(self, request: web.Request) -> Optional[str]:
        if self.config.server.trust_proxy:
            forwarded_for = request.headers.get("X-Forwarded-For")
            if forwarded_for:
                return forwarded_for.split(",")[0].strip()
        return request.remote

    # -- handlers ---------------------------------------------------------

    async def create_handler(self, request: web.Request) -> web.Response:
        body = await read_json_object(request)
        if not body.get("originalLink") and body.get("target"):
            body["originalLink"] = body["target"]
        require_fields(body, ["originalLink", "programID", "expiryTimeInMins", "maxLinkUse", "accountLogin"])

        created = await self.engine.create(
            target=identifier_field(body, "originalLink"),
            program_id=identifier_field(body, "programID"),
            expiry_minutes=number_field(body, "expiryTimeInMins"),
            max_uses=number_field(body, "maxLinkUse"),
            account_login=identifier_field(body, "accountLogin"),
        )
        return web.json_response({"secureLink": created.secure_link})

    async def bind_handler(self, request: web.Request) -> web.Response:
        body = await read_json_object(request)
        require_fields(body, ["programID", "accountLogin", "days"])

        result = await self.bindings.bind(
            identifier_field(body, "programID"),
            identifier_field(body, "accountLogin"),
            number_field(body, "days"),
            is_demo=bool(body.get("isDemo", False)),
        )
        return web.json_response({"success": result})

    async def verify_handler(self, request: web.Request) -> web.Response:
        body = await read_json_object(request)
        require_fields(body, ["programID", "accountLogin"])

        status = await self.bindings.verify(identifier_field(body, "programID"),
                                            identifier_field(body, "accountLogin"))
        return web.json_response(status.to_dict())

    async def logs_handler(self, request: web.Request) -> web.Response:
        info = request.match_info
        entries = await self.access_log.entries(info["programID"], info["accountLogin"], info["tokenID"])
        return web.json_response({"logs": entries})

    async def download_handler(self, request: web.Request) -> web.StreamResponse:
        info = request.match_info
        program_id, account_login, token_id = info["programID"], info["accountLogin"], info["tokenID"]

        # the use is committed before any upstream traffic
        redemption = await self.engine.redeem(token_id, program_id, account_login)

        async with self.fetcher.open(redemption.target) as upstream:
            await self.access_log.append(program_id, account_login, token_id, {
                "ip": self.client_ip(request),
                "userAgent": request.headers.get("User-Agent"),
            })
            return await stream_to_client(request, upstream, self.config.server.chunk_size)

    async def health_handler(self, request: web.Request) -> web.Response:
        return web.json_response({
            "status": "healthy",
            "timestamp": get_current_time().isoformat(),
            "store": self.store.backend_name,
            "sweeper_running": self.sweeper.running,
        })

    async def metrics_handler(self, request: web.Request) -> web.Response:
        return web.Response(
            body=self.metrics.export_prometheus_metrics(),
            headers={"Content-Type": MetricsCollector.content_type, "Cache-Control": "no-cache"},
        )


SERVICE_KEY = web.AppKey("securelink_service", DeliveryService)


async def read_json_object(request: web.Request) -> Dict[str, Any]:
    """Parse the request body, which must be a JSON object."""
    try:
        body = await request.json()
    except ValueError:
        raise InvalidArgumentError("Request body must be a JSON object")
    if not isinstance(body, dict):
        raise InvalidArgumentError("Request body must be a JSON object")
    return body


def require_fields(body: Dict[str, Any], fields: list) -> None:
    missing = validate_required_fields(body, fields)
    if missing:
        raise InvalidArgumentError("Missing required parameters", field=missing[0])


def number_field(body: Dict[str, Any], name: str) -> float:
    """Numeric body field; numeric strings are accepted."""
    value = body.get(name)
    if isinstance(value, bool):
        raise InvalidArgumentError(f"{name} must be a number", field=name)
    if isinstance(value, int):
        return value
    try:
        number = value if isinstance(value, float) else float(str(value).strip())
    except ValueError:
        raise InvalidArgumentError(f"{name} must be a number", field=name)
    if not math.isfinite(number):
        raise InvalidArgumentError(f"{name} must be a number", field=name)
    return number


def identifier_field(body: Dict[str, Any], name: str) -> str:
    """String body field; integers are accepted and converted."""
    value = body.get(name)
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if not isinstance(value, str):
        raise InvalidArgumentError(f"{name} must be a string", field=name)
    return value


@web.middleware
async def error_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
    """Turn errors into JSON bodies; unexpected ones become a generic 500."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
    try:
        response = await handler(request)
    except web.HTTPException:
        raise
    except SecureLinkError as e:
        error = e
    except Exception as e:
        logger.exception(f"Unhandled error on {request.method} {request.path} [{request_id}]")
        error = wrap_exception(e)
    else:
        if not response.prepared:
            response.headers[REQUEST_ID_HEADER] = request_id
        return response

    summary = f"{request.method} {request.path} -> {error.http_status} {error.code.value}: {error.message}"
    if error.is_client_error():
        logger.debug(summary)
    elif error.is_retryable():
        logger.warning(summary)
    else:
        logger.error(f"{summary} ({error.cause!r})" if error.cause else summary)

    error.context.request_id = request_id
    headers = {REQUEST_ID_HEADER: request_id}
    if isinstance(error, BusyError):
        headers["Retry-After"] = str(max(1, math.ceil(error.retry_after)))
    return web.json_response(error.to_dict(), status=error.http_status, headers=headers)


@web.middleware
async def cors_preflight_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
    """Answer CORS preflight requests; origin headers are added on prepare."""
    if request.method == "OPTIONS" and "Access-Control-Request-Method" in request.headers:
        response = web.Response(status=204)
        response.headers["Access-Control-Allow-Methods"] = "GET,HEAD,POST"
        requested = request.headers.get("Access-Control-Request-Headers")
        if requested:
            response.headers["Access-Control-Allow-Headers"] = requested
        return response
    return await handler(request)


def cors_headers(origins: list) -> Callable:
    """on_response_prepare hook adding Access-Control-Allow-Origin."""

    async def add_headers(request: web.Request, response: web.StreamResponse) -> None:
        origin = request.headers.get("Origin")
        if "*" in origins:
            response.headers["Access-Control-Allow-Origin"] = "*"
        elif origin and origin in origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"

    return add_headers


def create_app(config: Optional[Config] = None,
               store: Optional[RecordStore] = None,
               fetcher: Optional[UpstreamFetcher] = None,
               clock: Callable[[], int] = current_millis) -> web.Application:
    """
    Build the aiohttp application.

    Args:
        config: Service configuration (defaults if omitted)
        store: Record store; built from ``config.store`` if omitted
        fetcher: Upstream fetcher; built from ``config.server`` if omitted
        clock: Epoch-millisecond clock shared by all components
    """
    config = config or Config()
    config.validate()

    store = store or create_store(config.store)
    fetcher = fetcher or UpstreamFetcher(
        connect_timeout=config.server.upstream_connect_timeout,
        read_timeout=config.server.upstream_read_timeout,
        chunk_size=config.server.chunk_size,
    )
    metrics = create_metrics_collector(config.metrics.enabled) if config.metrics.enabled else None

    service = DeliveryService(config, store, fetcher, clock=clock, metrics=metrics)

    middlewares = []
    if metrics:
        middlewares.append(create_aiohttp_middleware(metrics))
    middlewares.append(error_middleware)
    middlewares.append(cors_preflight_middleware)

    app = web.Application(middlewares=middlewares)
    app[SERVICE_KEY] = service
    app.on_response_prepare.append(cors_headers(config.server.cors_origins))

    app.router.add_post("/create", service.create_handler)
    app.router.add_post("/bind", service.bind_handler)
    app.router.add_post("/mql5/verify", service.verify_handler)
    app.router.add_get("/logs/{programID}/{accountLogin}/{tokenID}", service.logs_handler)
    app.router.add_get("/health", service.health_handler)
    if metrics:
        app.router.add_get("/metrics", service.metrics_handler)
    # GET only: a HEAD must never redeem a use
    app.router.add_get("/{programID}/{accountLogin}/{tokenID}", service.download_handler,
                       allow_head=False)

    async def service_ctx(app: web.Application):
        await service.start()
        yield
        await service.stop()

    app.cleanup_ctx.append(service_ctx)
    return app
