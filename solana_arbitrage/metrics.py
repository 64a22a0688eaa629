"""
Prometheus Metrics Server for the Solana Arbitrage Scanner

Exposes scan, quote and execution metrics for monitoring and alerting.
"""

import logging
import time
from typing import Any, Dict, Optional

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)


class ScannerMetrics:
    """
    Scanner metrics collection and exposure

    Provides Prometheus-compatible metrics for:
    - Scan cycles and their duration
    - Upstream quote requests per endpoint
    - Degraded (synthetic) mode and the live failure counter
    - Execution attempts
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics with custom registry or default"""
        self.registry = registry or REGISTRY
        self._initialize_metrics()

        self._app = None
        self._runner = None
        self._site = None

    def _initialize_metrics(self):
        """Initialize all Prometheus metrics"""

        # === SCAN METRICS ===
        self.scans_total = Counter(
            "solana_arbitrage_scans_total",
            "Total number of completed scan cycles",
            ["source"],
            registry=self.registry,
        )

        self.scan_duration_seconds = Histogram(
            "solana_arbitrage_scan_duration_seconds",
            "Wall-clock duration of a scan cycle",
            buckets=[0.5, 1, 2, 5, 10, 20, 30, 60],
            registry=self.registry,
        )

        self.opportunities = Gauge(
            "solana_arbitrage_opportunities",
            "Opportunities surfaced by the most recent scan cycle",
            registry=self.registry,
        )

        self.best_profit_usd = Gauge(
            "solana_arbitrage_best_profit_usd",
            "Estimated USD profit of the best opportunity in the last cycle",
            registry=self.registry,
        )

        self.pair_errors_total = Counter(
            "solana_arbitrage_pair_errors_total",
            "Total per-pair errors recorded during scans",
            registry=self.registry,
        )

        # === UPSTREAM METRICS ===
        self.quote_requests_total = Counter(
            "solana_arbitrage_quote_requests_total",
            "Quote requests sent to upstream endpoints",
            ["endpoint", "outcome"],
            registry=self.registry,
        )

        self.consecutive_failures = Gauge(
            "solana_arbitrage_consecutive_failures",
            "Current consecutive live-path failure count",
            registry=self.registry,
        )

        self.synthetic_mode = Gauge(
            "solana_arbitrage_synthetic_mode",
            "1 when the scanner has degraded to synthetic quotes",
            registry=self.registry,
        )

        # === EXECUTION METRICS ===
        self.executions_total = Counter(
            "solana_arbitrage_executions_total",
            "Execution attempts by outcome",
            ["outcome"],
            registry=self.registry,
        )

        self.last_activity_timestamp = Gauge(
            "solana_arbitrage_last_activity_timestamp",
            "Unix timestamp of the last completed scan",
            registry=self.registry,
        )

    # === METRIC RECORDING METHODS ===

    def record_scan(
        self,
        source: str,
        duration_seconds: float,
        opportunity_count: int,
        error_count: int = 0,
        best_profit_usd: float = 0.0,
    ):
        """Record a completed scan cycle"""
        self.scans_total.labels(source=source).inc()
        self.scan_duration_seconds.observe(duration_seconds)
        self.opportunities.set(opportunity_count)
        self.best_profit_usd.set(best_profit_usd)
        if error_count:
            self.pair_errors_total.inc(error_count)
        self.last_activity_timestamp.set(time.time())

    def record_quote_request(self, endpoint: str, outcome: str):
        """Record one upstream quote attempt ("success", "error", "malformed")"""
        self.quote_requests_total.labels(endpoint=endpoint, outcome=outcome).inc()

    def update_degradation(self, consecutive_failures: int, synthetic: bool):
        """Update live failure counter and synthetic mode gauges"""
        self.consecutive_failures.set(consecutive_failures)
        self.synthetic_mode.set(1 if synthetic else 0)

    def record_execution(self, outcome: str):
        """Record an execution attempt ("confirmed", "failed", "skipped")"""
        self.executions_total.labels(outcome=outcome).inc()

    # === SERVER MANAGEMENT ===

    async def start_server(
        self, port: int = 8000, host: str = "0.0.0.0", path: str = "/metrics"
    ):
        """Start Prometheus metrics HTTP server"""
        try:
            self._app = web.Application()
            self._app.router.add_get(path, self._metrics_handler)
            self._app.router.add_get("/health", self._health_handler)

            self._runner = web.AppRunner(self._app)
            await self._runner.setup()

            self._site = web.TCPSite(self._runner, host, port)
            await self._site.start()

            logger.info(f"Prometheus metrics server started on http://{host}:{port}{path}")
            return True

        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False

    async def stop_server(self):
        """Stop the metrics server"""
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        logger.info("Metrics server stopped")

    async def _metrics_handler(self, request):
        """Handle metrics endpoint requests"""
        metrics_output = generate_latest(self.registry)
        # aiohttp rejects a charset inside content_type
        content_type = CONTENT_TYPE_LATEST.split(";")[0]
        return web.Response(
            text=metrics_output.decode("utf-8"), content_type=content_type
        )

    async def _health_handler(self, request):
        """Handle health check endpoint"""
        return web.json_response(
            {"status": "healthy", "service": "solana_arbitrage_metrics"}
        )

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get current metrics summary"""
        return {
            "metrics_available": True,
            "synthetic_mode": bool(self.synthetic_mode._value.get()),
            "consecutive_failures": int(self.consecutive_failures._value.get()),
            "timestamp": time.time(),
        }


# Global metrics instance (singleton pattern)
_global_metrics: Optional[ScannerMetrics] = None


def get_metrics() -> ScannerMetrics:
    """Get or create global metrics instance"""
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = ScannerMetrics()
    return _global_metrics


def initialize_metrics(registry: Optional[CollectorRegistry] = None) -> ScannerMetrics:
    """Initialize global metrics with custom registry"""
    global _global_metrics
    _global_metrics = ScannerMetrics(registry)
    return _global_metrics
