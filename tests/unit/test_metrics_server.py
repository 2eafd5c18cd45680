"""
Unit tests for MetricsServer HTTP endpoints.

Uses ``aiohttp.test_utils`` to drive the server's aiohttp application
in-process.
"""

from unittest.mock import patch

import pytest
from aiohttp.test_utils import TestClient, TestServer

from injection_operator.observability.metrics import MetricsCollector, MetricsServer


@pytest.fixture
def metrics_server():
    """Create a fresh MetricsServer instance per test."""
    return MetricsServer(port=0)  # port doesn't matter for test_utils


@pytest.fixture
async def client(metrics_server):
    """Create an aiohttp TestClient from the MetricsServer app."""
    server = TestServer(metrics_server.app)
    async with TestClient(server) as cli:
        yield cli


class TestMetricsEndpoint:
    """Tests for ``GET /metrics``."""

    @pytest.mark.asyncio
    async def test_metrics_returns_200(self, client):
        """Prometheus scrape endpoint returns 200 with metric data."""
        MetricsCollector().record_admission("injected", 0.01)

        resp = await client.get("/metrics")

        assert resp.status == 200
        assert resp.headers["Content-Type"].startswith("text/plain")
        body = await resp.text()
        assert "injection_operator_admission_requests_total" in body

    @pytest.mark.asyncio
    async def test_metrics_error_returns_500(self, client):
        """When generate_latest raises, the handler returns 500."""
        with patch(
            "injection_operator.observability.metrics.generate_latest",
            side_effect=RuntimeError("boom"),
        ):
            resp = await client.get("/metrics")
        assert resp.status == 500
        body = await resp.text()
        assert "RuntimeError" in body


class TestHealthzEndpoint:
    """Tests for ``GET /healthz`` (K8s liveness probe)."""

    @pytest.mark.asyncio
    async def test_healthz_returns_200_ok(self, client):
        """/healthz should always return 200 'ok'."""
        resp = await client.get("/healthz")
        assert resp.status == 200
        body = await resp.text()
        assert body == "ok"
