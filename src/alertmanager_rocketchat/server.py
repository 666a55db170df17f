"""HTTP listener for Alertmanager webhook deliveries.

Exposes:
    POST /webhook  Alertmanager webhook receiver
    GET  /metrics  Prometheus metrics
    GET  /health   Rocket.Chat session check
    GET  /live     Liveness probe
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web
from prometheus_client import Counter, Histogram, generate_latest

from alertmanager_rocketchat.relay.errors import DeliveryError, InvalidPayloadError
from alertmanager_rocketchat.relay.models import AlertBatch

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from alertmanager_rocketchat.relay.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 9876


# Prometheus metrics
WEBHOOK_REQUESTS = Counter(
    "rocketchat_webhook_requests_total",
    "Webhook requests by response status code",
    ["code"],
)

WEBHOOK_LATENCY = Histogram(
    "rocketchat_webhook_request_duration_seconds",
    "Time spent handling a webhook request",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)


def json_response(status: int, message: str) -> web.Response:
    """Build the webhook's JSON response body."""
    WEBHOOK_REQUESTS.labels(code=str(status)).inc()
    return web.json_response({"Status": status, "Message": message}, status=status)


class WebhookServer:
    """aiohttp server that feeds webhook batches to the dispatcher.

    Example:
        ```python
        server = WebhookServer(dispatcher, health_check=transport.check_session)
        await server.start("0.0.0.0", 9876)
        ...
        await server.stop()
        ```
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        *,
        health_check: Callable[[], Awaitable[bool]] | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            dispatcher: Dispatcher receiving decoded alert batches.
            health_check: Optional coroutine reporting whether the chat
                session is usable. /health reports healthy when absent.
        """
        self.dispatcher = dispatcher
        self._health_check = health_check

        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    async def _handle_webhook(self, request: web.Request) -> web.Response:
        """Handle POST /webhook."""
        try:
            data = await request.json()
            batch = AlertBatch.from_dict(data)
        except ValueError as e:
            return json_response(400, f"cannot decode request body: {e}")
        except InvalidPayloadError as e:
            return json_response(400, str(e))

        with WEBHOOK_LATENCY.time():
            try:
                await self.dispatcher.send_notification(batch)
            except DeliveryError as e:
                logger.error("Cannot send notification: %s", e)
                return json_response(500, f"cannot send notification: {e}")

        return json_response(200, "Success")

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle /metrics endpoint (Prometheus format)."""
        return web.Response(
            body=generate_latest(),
            content_type="text/plain",
            charset="utf-8",
        )

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle /health endpoint."""
        healthy = True
        if self._health_check is not None:
            healthy = await self._health_check()

        body: dict[str, Any] = {"status": "healthy" if healthy else "unhealthy"}
        return web.json_response(body, status=200 if healthy else 503)

    async def _handle_live(self, _request: web.Request) -> web.Response:
        """Handle /live endpoint for k8s liveness probe."""
        return web.json_response({"live": True}, status=200)

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_post("/webhook", self._handle_webhook)
        app.router.add_get("/metrics", self._handle_metrics)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/live", self._handle_live)
        return app

    async def start(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
        """Start listening.

        Args:
            host: Interface to bind.
            port: Port to listen on.
        """
        if self._runner:
            logger.warning("HTTP server already running")
            return

        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, host, port)
        await site.start()

        logger.info("Listening on %s:%d", host, port)

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._app = None
            logger.info("HTTP server stopped")

    async def __aenter__(self) -> WebhookServer:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()
