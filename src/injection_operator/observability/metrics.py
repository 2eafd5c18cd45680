"""
Prometheus metrics for the injection operator.

This module provides metrics collection for monitoring the pod mutation
webhook: admission outcomes, latency, soft failures and reinvocation repairs.
"""

import logging

from aiohttp.web import Application, AppRunner, Request, Response, TCPSite
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Global metrics registry
_metrics_registry: CollectorRegistry | None = None

ADMISSION_REQUESTS_TOTAL = Counter(
    "injection_operator_admission_requests_total",
    "Total number of pod admission requests handled by the mutation webhook",
    ["outcome"],
    registry=None,
)

ADMISSION_DURATION = Histogram(
    "injection_operator_admission_duration_seconds",
    "Time spent handling pod admission requests",
    ["outcome"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=None,
)

SOFT_FAILURES_TOTAL = Counter(
    "injection_operator_soft_failures_total",
    "Total number of pods admitted without injection because of an error",
    ["error_type"],
    registry=None,
)

REPAIRED_CONTAINERS_TOTAL = Counter(
    "injection_operator_repaired_containers_total",
    "Total number of containers instrumented on webhook reinvocation",
    [],
    registry=None,
)

_ALL_METRICS = (
    ADMISSION_REQUESTS_TOTAL,
    ADMISSION_DURATION,
    SOFT_FAILURES_TOTAL,
    REPAIRED_CONTAINERS_TOTAL,
)


def get_metrics_registry() -> CollectorRegistry:
    """Get or create the global metrics registry."""
    global _metrics_registry

    if _metrics_registry is None:
        _metrics_registry = CollectorRegistry()
        for metric in _ALL_METRICS:
            _metrics_registry.register(metric)

    return _metrics_registry


class MetricsCollector:
    """Collects and manages metrics for the pod mutation webhook."""

    def __init__(self):
        self.registry = get_metrics_registry()

    def record_admission(self, outcome: str, duration: float) -> None:
        """
        Record a handled admission request.

        Args:
            outcome: injected, reinvoked, skipped or soft_failed
            duration: Handling time in seconds
        """
        ADMISSION_REQUESTS_TOTAL.labels(outcome=outcome).inc()
        ADMISSION_DURATION.labels(outcome=outcome).observe(duration)

    def record_soft_failure(self, error: Exception) -> None:
        SOFT_FAILURES_TOTAL.labels(error_type=type(error).__name__).inc()

    def record_repaired_containers(self, count: int) -> None:
        if count > 0:
            REPAIRED_CONTAINERS_TOTAL.inc(count)


class MetricsServer:
    """HTTP server for exposing Prometheus metrics."""

    def __init__(self, port: int = 8081, host: str = "0.0.0.0"):
        """
        Initialize metrics server.

        Args:
            port: Port to serve metrics on
            host: Host interface to bind to
        """
        self.port = port
        self.host = host
        self.app = Application()
        self.runner: AppRunner | None = None
        self.site: TCPSite | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        self.app.router.add_get("/metrics", self._metrics_handler)
        self.app.router.add_get("/healthz", self._healthz_handler)

    async def _metrics_handler(self, request: Request) -> Response:
        """Handle /metrics endpoint for Prometheus scraping."""
        try:
            metrics_data = generate_latest(get_metrics_registry())
            return Response(
                body=metrics_data, headers={"Content-Type": CONTENT_TYPE_LATEST}
            )
        except Exception as e:
            logger.error(f"Failed to generate metrics: {e}")
            return Response(
                text=f"Error generating metrics: {type(e).__name__}. Check logs for details.",
                status=500,
            )

    async def _healthz_handler(self, request: Request) -> Response:
        return Response(text="ok")

    async def start(self) -> None:
        """Start the metrics server."""
        try:
            self.runner = AppRunner(self.app)
            await self.runner.setup()

            self.site = TCPSite(self.runner, self.host, self.port)
            await self.site.start()

            logger.info(f"Metrics available at http://{self.host}:{self.port}/metrics")
        except Exception as e:
            logger.error(f"Failed to start metrics server: {e}")
            raise

    async def stop(self) -> None:
        """Stop the metrics server."""
        try:
            if self.site:
                await self.site.stop()
                self.site = None

            if self.runner:
                await self.runner.cleanup()
                self.runner = None

            logger.info("Metrics server stopped")
        except Exception as e:
            logger.error(f"Error stopping metrics server: {e}")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
