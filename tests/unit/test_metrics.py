"""
Unit tests for Prometheus metrics
"""

import aiohttp.test_utils
import pytest
from aiohttp import web
from prometheus_client import CollectorRegistry, generate_latest

from solana_arbitrage.metrics import ScannerMetrics, get_metrics, initialize_metrics


@pytest.fixture
def test_registry():
    """Create a test-specific registry"""
    return CollectorRegistry()


@pytest.fixture
def metrics(test_registry):
    """Create ScannerMetrics instance with test registry"""
    return ScannerMetrics(test_registry)


class TestScannerMetrics:
    """Test ScannerMetrics functionality"""

    def test_initialization(self, metrics):
        assert metrics.registry is not None
        assert hasattr(metrics, "scans_total")
        assert hasattr(metrics, "quote_requests_total")
        assert hasattr(metrics, "synthetic_mode")

    def test_record_scan(self, metrics, test_registry):
        metrics.record_scan(
            "live", 1.5, opportunity_count=2, error_count=1, best_profit_usd=6.67
        )

        assert test_registry.get_sample_value(
            "solana_arbitrage_scans_total", {"source": "live"}
        ) == 1.0
        assert test_registry.get_sample_value("solana_arbitrage_opportunities") == 2.0
        assert test_registry.get_sample_value("solana_arbitrage_pair_errors_total") == 1.0
        assert test_registry.get_sample_value(
            "solana_arbitrage_best_profit_usd"
        ) == pytest.approx(6.67)

    def test_record_quote_request(self, metrics, test_registry):
        endpoint = "https://quote-api.jup.ag/v6"
        metrics.record_quote_request(endpoint, "error")
        metrics.record_quote_request(endpoint, "error")
        metrics.record_quote_request(endpoint, "success")

        assert test_registry.get_sample_value(
            "solana_arbitrage_quote_requests_total",
            {"endpoint": endpoint, "outcome": "error"},
        ) == 2.0

    def test_update_degradation(self, metrics, test_registry):
        metrics.update_degradation(3, synthetic=True)

        assert test_registry.get_sample_value("solana_arbitrage_consecutive_failures") == 3.0
        assert test_registry.get_sample_value("solana_arbitrage_synthetic_mode") == 1.0

        summary = metrics.get_metrics_summary()
        assert summary["synthetic_mode"] is True
        assert summary["consecutive_failures"] == 3

    def test_record_execution(self, metrics):
        metrics.record_execution("confirmed")
        metrics.record_execution("skipped")

        output = generate_latest(metrics.registry).decode("utf-8")
        assert 'solana_arbitrage_executions_total{outcome="confirmed"} 1.0' in output

    @pytest.mark.asyncio
    async def test_metrics_server(self, metrics):
        """Test metrics HTTP server"""
        success = await metrics.start_server(port=0, host="127.0.0.1")

        if success:
            assert metrics._app is not None
            assert metrics._runner is not None
            await metrics.stop_server()


class TestMetricsGlobal:
    """Test global metrics functionality"""

    def test_initialize_metrics(self, test_registry):
        metrics = initialize_metrics(test_registry)

        assert metrics.registry is test_registry
        assert get_metrics() is metrics
        assert get_metrics() is get_metrics()


@pytest.mark.asyncio
async def test_metrics_server_endpoints():
    """Test metrics server HTTP endpoints"""
    metrics = ScannerMetrics(CollectorRegistry())
    metrics.record_scan("synthetic", 0.2, opportunity_count=1)

    app = web.Application()
    app.router.add_get("/metrics", metrics._metrics_handler)
    app.router.add_get("/health", metrics._health_handler)

    async with aiohttp.test_utils.TestClient(aiohttp.test_utils.TestServer(app)) as client:
        resp = await client.get("/metrics")
        assert resp.status == 200
        text = await resp.text()
        assert "solana_arbitrage_scans_total" in text

        resp = await client.get("/health")
        assert resp.status == 200
        json_data = await resp.json()
        assert json_data["status"] == "healthy"
