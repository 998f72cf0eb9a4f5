"""
Metrics Exposition Server
==========================

Pull endpoint for the metrics adapter: a FastAPI app served by uvicorn on
a daemon thread, so the host's own event loop (if any) is never touched.

    GET /metrics  -> 200, Prometheus text exposition
    anything else -> 200, empty body
"""

from __future__ import annotations

import threading
import time

import uvicorn
from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST

from hypertrace.core.config import settings
from hypertrace.core.exceptions import MetricsTargetError
from hypertrace.metrics.adapter import MetricsAdapter
from hypertrace.telemetry.logger import get_logger

logger = get_logger(__name__)

def create_metrics_app(adapter: MetricsAdapter) -> FastAPI:
    """Build the ASGI app exposing ``adapter``."""
    app = FastAPI(
        title="hypertrace metrics",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Prometheus metrics endpoint."""
        return Response(content=adapter.exposition(), media_type=CONTENT_TYPE_LATEST)

    @app.api_route(
        "/{path:path}",
        methods=["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        include_in_schema=False,
    )
    async def fallback(path: str) -> Response:
        return Response(status_code=200)

    return app

class _ThreadedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the host process."""

    def install_signal_handlers(self) -> None:
        pass

class MetricsServer:
    """Runs the metrics app on a background thread."""

    def __init__(
        self,
        adapter: MetricsAdapter,
        *,
        port: int,
        host: str | None = None,
        startup_timeout: float | None = None,
        shutdown_timeout: float | None = None,
    ):
        self._adapter = adapter
        self._host = host or settings.METRICS_HOST
        self._port = port
        self._startup_timeout = startup_timeout or settings.METRICS_STARTUP_TIMEOUT
        self._shutdown_timeout = shutdown_timeout or settings.METRICS_SHUTDOWN_TIMEOUT
        self._server: _ThreadedServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        """Bound port; resolves port 0 to the OS-assigned one once running."""
        if self._server is not None and self._server.started:
            for server in getattr(self._server, "servers", []):
                for sock in server.sockets:
                    return sock.getsockname()[1]
        return self._port

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return

        config = uvicorn.Config(
            create_metrics_app(self._adapter),
            host=self._host,
            port=self._port,
            log_level="warning",
            access_log=False,
            lifespan="off",
        )
        self._server = _ThreadedServer(config)
        self._thread = threading.Thread(
            target=self._server.run,
            name=f"hypertrace-metrics-{self._port}",
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + self._startup_timeout
        while not self._server.started:
            if not self._thread.is_alive():
                self._server = None
                self._thread = None
                raise MetricsTargetError(self._host, self._port, "server exited during startup")
            if time.monotonic() > deadline:
                self.stop()
                raise MetricsTargetError(self._host, self._port, "startup timed out")
            time.sleep(0.01)

        logger.info("metrics_server_started", host=self._host, port=self.port)

    def stop(self) -> None:
        if self._server is None or self._thread is None:
            return
        self._server.should_exit = True
        self._thread.join(timeout=self._shutdown_timeout)
        if self._thread.is_alive():
            logger.warning("metrics_server_stop_timeout", host=self._host, port=self._port)
        else:
            logger.info("metrics_server_stopped", host=self._host, port=self._port)
        self._server = None
        self._thread = None
