"""
HTTP exposition for the Kamailio exporter
FastAPI application serving a landing page, a health check and the Prometheus endpoint
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, Response
from prometheus_client import REGISTRY, CollectorRegistry
from prometheus_client.exposition import choose_encoder

from . import __version__
from .metrics.collector import StatsCollector
from .utils.logging import get_logger

logger = get_logger(__name__)

LANDING_PAGE = """<html>
<head><title>Kamailio Exporter</title></head>
<body>
<h1>Kamailio Exporter</h1>
<p><a href="{metrics_path}">Metrics</a></p>
</body>
</html>
"""


def create_app(
    collector: StatsCollector,
    registry: Optional[CollectorRegistry] = None,
    metrics_path: str = "/metrics",
) -> FastAPI:
    """Create the FastAPI application and register the collector.

    Without an explicit registry the collector goes into prometheus_client's
    default REGISTRY, next to the exporter's own RPC metrics.
    """
    if registry is None:
        registry = REGISTRY
    registry.register(collector)

    app = FastAPI(
        title="Kamailio Exporter",
        description="Prometheus exporter for Kamailio statistics",
        version=__version__,
    )

    @app.get("/", response_class=HTMLResponse)
    async def landing_page():
        return LANDING_PAGE.format(metrics_path=metrics_path)

    @app.get("/health")
    async def health_check():
        """Liveness of the exporter itself, Kamailio is not contacted"""
        return {
            "status": "healthy",
            "version": __version__,
            "kamailio": collector.client.endpoint,
        }

    @app.get(metrics_path)
    async def metrics(request: Request):
        """Prometheus exposition, collected in a worker thread"""
        encoder, content_type = choose_encoder(request.headers.get("accept"))
        # the collection cycle blocks on the ctl socket
        output = await run_in_threadpool(encoder, registry)
        return Response(content=output, media_type=content_type)

    logger.debug("HTTP application created", metrics_path=metrics_path)
    return app
