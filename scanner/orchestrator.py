"""
Scan orchestration: the periodic scan loop and its run state.

One cycle walks the configured pairs strictly in order, picks live or
synthetic rates per pair, runs detection and publishes a ScanResult. The loop
keeps running when the upstream API misbehaves: after ``failure_threshold``
consecutive live failures it switches to synthetic data for the rest of the
process lifetime.
"""

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

import aiohttp

from solana_arbitrage.exceptions import ConfigurationError, FatalStartupError
from solana_arbitrage.utils import format_duration, format_usd, get_logger

from .config import ScannerConfig
from .detector import detect, filter_for_display, is_fresh, sort_by_profitability
from .events import ScannerEvents
from .gateway import QuoteGateway
from .price_service import PriceService
from .synthetic import SyntheticQuoteSource
from .tokens import TokenRegistry
from .types import ArbitrageOpportunity, Confidence, DirectionalRates, ScanResult, Token

logger = get_logger(__name__)

SOURCE_LIVE = "live"
SOURCE_SYNTHETIC = "synthetic"
SOURCE_MIXED = "mixed"


@dataclass(frozen=True)
class RunState:
    """
    Read-only snapshot of the orchestrator's run state.

    Attributes:
        is_running: Whether the scan loop is active
        scan_count: Completed scan cycles
        consecutive_failure_count: Live-path failures since the last live success
        using_synthetic_source: Whether the scanner is in synthetic (degraded or demo) mode
        last_opportunities: Opportunities of the most recent non-empty cycle
        last_scan_at: Timestamp of the last completed cycle
    """

    is_running: bool = False
    scan_count: int = 0
    consecutive_failure_count: int = 0
    using_synthetic_source: bool = False
    last_opportunities: Tuple[ArbitrageOpportunity, ...] = ()
    last_scan_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isRunning": self.is_running,
            "scanCount": self.scan_count,
            "consecutiveFailures": self.consecutive_failure_count,
            "usingSyntheticSource": self.using_synthetic_source,
            "lastOpportunityCount": len(self.last_opportunities),
            "lastScanAt": self.last_scan_at,
        }


class ScanOrchestrator:
    """
    Drives the scan loop.

    Collaborators are created from the config unless injected, which keeps the
    orchestrator testable without network access.

    Raises:
        FatalStartupError: If the scanner cannot be assembled
    """

    def __init__(
        self,
        config: ScannerConfig,
        gateway: Optional[QuoteGateway] = None,
        price_service: Optional[PriceService] = None,
        synthetic: Optional[SyntheticQuoteSource] = None,
        tokens: Optional[TokenRegistry] = None,
        events: Optional[ScannerEvents] = None,
        metrics=None,
        execution_gate=None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        if not isinstance(config, ScannerConfig):
            raise FatalStartupError(
                f"Expected ScannerConfig, got {type(config).__name__}"
            )
        if config.execution.enabled and execution_gate is None:
            raise FatalStartupError("Execution is enabled but no execution gate was provided")

        self.config = config
        self.tokens = tokens or TokenRegistry()
        self.rng = rng or random.Random()
        self.events = events or ScannerEvents()
        self.metrics = metrics
        self.execution_gate = execution_gate
        self._sleep = sleep
        self._clock = clock

        try:
            self.gateway = gateway or QuoteGateway(
                config.endpoints,
                timeout_sec=config.request_timeout_sec,
                backoff_sec=config.retry_backoff_sec,
                metrics=metrics,
            )
            self.price_service = price_service or PriceService(
                self.gateway,
                self.tokens,
                usd_reference_mint=config.usd_reference_mint,
                slippage_bps=config.slippage_bps,
            )
        except (ValueError, ConfigurationError) as e:
            raise FatalStartupError(f"Failed to initialize quote pipeline: {e}") from e

        self.synthetic = synthetic or SyntheticQuoteSource(
            venues=config.priority_venues, rng=self.rng
        )

        # Run state, single writer
        self._is_running = False
        self._scan_count = 0
        self._consecutive_failures = 0
        self._using_synthetic = config.demo_mode
        self._last_opportunities: Tuple[ArbitrageOpportunity, ...] = ()
        self._last_scan_at: Optional[float] = None
        self._last_result: Optional[ScanResult] = None
        self._stop_event = asyncio.Event()
        # Held for the whole loop, so a restart cannot overlap a stopping loop
        self._loop_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def last_result(self) -> Optional[ScanResult]:
        return self._last_result

    def snapshot(self) -> RunState:
        """Frozen copy of the current run state."""
        return RunState(
            is_running=self._is_running,
            scan_count=self._scan_count,
            consecutive_failure_count=self._consecutive_failures,
            using_synthetic_source=self._using_synthetic,
            last_opportunities=self._last_opportunities,
            last_scan_at=self._last_scan_at,
        )

    def get_last_opportunities(
        self, window_sec: Optional[float] = None
    ) -> List[ArbitrageOpportunity]:
        """Opportunities of the last non-empty cycle that are still fresh."""
        window = self.config.freshness_window_sec if window_sec is None else window_sec
        now = self._clock()
        return [opp for opp in self._last_opportunities if is_fresh(opp, window, now)]

    def get_stats(self) -> Dict[str, Any]:
        stats = self.snapshot().to_dict()
        stats.update(
            {
                "pairsMonitored": len(self.config.pairs),
                "scanInterval": self.config.scan_interval_sec,
                "minProfitUSD": self.config.min_profit_usd,
                "minProfitPercentage": self.config.min_profit_percent,
                "testVolume": self.config.test_volume_usd,
                "freshOpportunityCount": len(self.get_last_opportunities()),
            }
        )
        return stats

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    async def start(self):
        """Run scan cycles until stop() is called. No-op if already running."""
        if self._is_running:
            logger.info("Scanner is already running")
            return
        if self._loop_lock.locked():
            logger.info("Scanner is still finishing its last cycle, start ignored")
            return

        async with self._loop_lock:
            await self._run_loop()

    async def _run_loop(self):
        self._is_running = True
        self._stop_event.clear()
        started_at = self._clock()
        self._publish_status("started")

        logger.info("Starting Solana arbitrage scanner")
        if self._using_synthetic:
            logger.info("DEMO MODE: using synthetic quotes")
        logger.info(f"Monitoring {len(self.config.pairs)} pairs")
        logger.info(f"Scan interval: {self.config.scan_interval_sec:g}s")
        logger.info(
            f"Min profit: ${self.config.min_profit_usd:g} "
            f"({self.config.min_profit_percent:g}%)"
        )
        logger.info(f"Test volume: ${self.config.test_volume_usd:g}")

        try:
            while self._is_running:
                await self.run_cycle()
                if not self._is_running:
                    break
                await self._wait_for_next_cycle(self.config.scan_interval_sec)
        finally:
            self._is_running = False
            self._publish_status("stopped")
            logger.info(
                f"Scanner stopped after {format_duration(self._clock() - started_at)} "
                f"({self._scan_count} scans)"
            )

    def stop(self):
        """Stop after the in-flight cycle; interrupts the inter-cycle wait."""
        if not self._is_running:
            return
        self._is_running = False
        self._stop_event.set()

    async def _wait_for_next_cycle(self, seconds: float):
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def update_config(self, overrides: Mapping[str, Any]) -> ScannerConfig:
        """
        Apply runtime overrides and return the new effective config.

        Raises:
            ConfigurationError: If the overrides do not validate
        """
        new_config = self.config.with_overrides(overrides)

        self.config = new_config
        self.price_service.slippage_bps = new_config.slippage_bps
        self.price_service.usd_reference_mint = new_config.usd_reference_mint
        self.synthetic.venues = list(new_config.priority_venues)
        if isinstance(self.gateway, QuoteGateway):
            self.gateway.endpoints = list(new_config.endpoints)
            self.gateway.backoff_sec = new_config.retry_backoff_sec
            self.gateway.timeout = aiohttp.ClientTimeout(
                total=new_config.request_timeout_sec
            )
        if new_config.demo_mode:
            self._using_synthetic = True

        logger.info(f"Configuration updated: {sorted(overrides)}")
        self._publish_status("config_updated")
        return new_config

    async def close(self):
        self.stop()
        await self.gateway.close()

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    async def run_cycle(self) -> Optional[ScanResult]:
        """
        Run one scan cycle and fold it into the run state.

        Cycle-level errors are logged and swallowed so the loop keeps going.
        """
        try:
            result = await self.perform_scan()
        except Exception as e:
            logger.error(f"Error during scan: {e}", exc_info=True)
            return None

        if result.opportunities:
            self._last_opportunities = result.opportunities
        self._scan_count += 1
        self._last_scan_at = result.timestamp
        self._last_result = result

        try:
            self._record_metrics(result)
            self._display(result)
            self.events.emit("scan_complete", result.to_dict())
            if result.opportunities:
                self.events.emit(
                    "opportunities", [opp.to_dict() for opp in result.opportunities]
                )

            if self.execution_gate is not None and self.config.execution.enabled:
                await self.execution_gate.auto_execute(result.opportunities)
        except Exception as e:
            logger.error(f"Error after scan {self._scan_count}: {e}", exc_info=True)

        return result

    async def perform_scan(self) -> ScanResult:
        """Scan every configured pair once."""
        started = self._clock()
        pairs = self.config.pairs
        self.events.emit(
            "scan_start", {"scan": self._scan_count + 1, "pairs": len(pairs)}
        )

        opportunities: List[ArbitrageOpportunity] = []
        errors: List[str] = []
        sources = set()

        for index, pair in enumerate(pairs):
            try:
                token_a, token_b = self.tokens.resolve_pair(pair.token_a, pair.token_b)
                rates, source = await self._rates_for_pair(token_a, token_b)
                sources.add(source)
                opportunities.extend(
                    detect(
                        token_a,
                        token_b,
                        rates.forward,
                        rates.reverse,
                        self.config,
                        now=self._clock(),
                    )
                )
            except Exception as e:
                errors.append(f"{pair.token_a}/{pair.token_b}: {e}")
                logger.error(f"Error scanning pair {pair.label}: {e}")

            if index < len(pairs) - 1 and self.config.pair_delay_sec > 0:
                await self._sleep(self.config.pair_delay_sec)

        visible = filter_for_display(
            sort_by_profitability(opportunities),
            min_confidence=Confidence.LOW,
            max_price_impact=self.config.max_price_impact,
        )

        if len(sources) > 1:
            source = SOURCE_MIXED
        elif sources:
            source = sources.pop()
        else:
            source = SOURCE_SYNTHETIC if self._using_synthetic else SOURCE_LIVE

        finished = self._clock()
        return ScanResult(
            timestamp=finished,
            opportunities=tuple(visible),
            total_pairs_scanned=len(pairs),
            duration_ms=(finished - started) * 1000,
            errors=tuple(errors),
            source=source,
        )

    async def _rates_for_pair(
        self, token_a: Token, token_b: Token
    ) -> Tuple[DirectionalRates, str]:
        probe_usd = self.config.test_volume_usd

        if self._using_synthetic or self._consecutive_failures >= self.config.failure_threshold:
            if not self._using_synthetic:
                self._enter_synthetic_mode()
            if self.rng.random() < self.config.synthetic_opportunity_probability:
                return self.synthetic.force_opportunity(token_a, token_b, probe_usd), SOURCE_SYNTHETIC
            return self.synthetic.get_synthetic_rates(token_a, token_b, probe_usd), SOURCE_SYNTHETIC

        try:
            rates = await self.price_service.get_directional_rates(token_a, token_b, probe_usd)
        except Exception as e:
            reason = str(e) or type(e).__name__
        else:
            if not rates.is_empty:
                self._consecutive_failures = 0
                self._update_degradation_metrics()
                return rates, SOURCE_LIVE
            reason = "; ".join(rates.errors) or "no quotes returned"

        self._consecutive_failures += 1
        self._update_degradation_metrics()
        logger.warning(
            f"API failure {self._consecutive_failures}/{self.config.failure_threshold} "
            f"for {token_a.symbol}/{token_b.symbol}, using synthetic data: {reason}"
        )
        return self.synthetic.get_synthetic_rates(token_a, token_b, probe_usd), SOURCE_SYNTHETIC

    def _enter_synthetic_mode(self):
        self._using_synthetic = True
        logger.warning("Switching to synthetic quotes due to consecutive API failures")
        self._update_degradation_metrics()
        self._publish_status("degraded")

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _publish_status(self, reason: str):
        payload = self.snapshot().to_dict()
        payload["reason"] = reason
        self.events.emit("status", payload)

    def _update_degradation_metrics(self):
        if self.metrics is not None:
            self.metrics.update_degradation(
                self._consecutive_failures, self._using_synthetic
            )

    def _record_metrics(self, result: ScanResult):
        if self.metrics is None:
            return
        best = result.opportunities[0].profit_usd if result.opportunities else 0.0
        self.metrics.record_scan(
            result.source,
            result.duration_ms / 1000,
            len(result.opportunities),
            error_count=len(result.errors),
            best_profit_usd=best,
        )

    def _display(self, result: ScanResult):
        logger.info(
            f"Scan #{self._scan_count} complete: {len(result.opportunities)} opportunities "
            f"across {result.total_pairs_scanned} pairs in {result.duration_ms:.0f}ms "
            f"({result.source})"
        )
        for rank, opp in enumerate(result.opportunities[:5], 1):
            logger.info(
                f"  {rank}. {opp.pair_symbol}: buy {opp.buy_side.venue} @ "
                f"{opp.buy_side.price:.6g}, sell {opp.sell_side.venue} @ "
                f"{opp.sell_side.price:.6g} -> {format_usd(opp.profit_usd)} "
                f"({opp.profit_percent:.2f}%) [{opp.confidence.name}]"
            )
        for error in result.errors:
            logger.warning(f"  Pair error: {error}")
