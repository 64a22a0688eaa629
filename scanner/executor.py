"""
Execution gate: decides whether an opportunity is still actionable and hands
it to a transaction submitter.

Transaction construction, signing and submission live behind the
TransactionSubmitter protocol; this module only builds the instruction
payload and applies the eligibility and batching rules.
"""

import asyncio
import time
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Protocol

from solana_arbitrage.exceptions import ExecutionError
from solana_arbitrage.utils import (
    basis_points_to_percent,
    format_usd,
    get_logger,
    to_raw_amount,
)

from .config import ExecutionSettings
from .types import ArbitrageOpportunity, Confidence

logger = get_logger(__name__)

# Profit guards are expressed in USDC base units (6 decimals)
USD_GUARD_DECIMALS = 6


@dataclass(frozen=True)
class ComputeBudget:
    """Compute-budget preamble prepended to every swap transaction."""

    unit_limit: int = 1_400_000
    unit_price_micro_lamports: int = 50_000


@dataclass(frozen=True)
class SwapInstructionPayload:
    """
    Everything a submitter needs to build the swap.

    Attributes:
        input_mint: Mint sold on the buy leg
        output_mint: Mint received on the buy leg
        amount: Raw input amount
        min_out_amount: Minimum raw output accepted (quoted output minus slippage)
        slippage_bps: Slippage tolerance used for the guard
        min_profit_usd: Minimum acceptable profit
        min_profit_raw: ``min_profit_usd`` in USDC base units
        compute_budget: Compute unit limit and price
        pair: Pair symbol, for logging
        expected_profit_usd: Profit estimated at detection time
    """

    input_mint: str
    output_mint: str
    amount: int
    min_out_amount: int
    slippage_bps: int
    min_profit_usd: float
    min_profit_raw: int
    compute_budget: ComputeBudget
    pair: str
    expected_profit_usd: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TransactionSubmitter(Protocol):
    async def build_and_submit(self, payload: SwapInstructionPayload, signer: Any) -> str:
        """Build, sign, submit and confirm; return the transaction signature."""
        ...


class ExecutionGate:
    """
    Eligibility rules and the batch execution driver.

    Args:
        settings: Execution thresholds and compute budget
        submitter: Transaction-building capability
        signer: Opaque signer passed through to the submitter
        slippage_bps: Slippage used to derive ``min_out_amount``
        metrics: Optional ScannerMetrics
    """

    def __init__(
        self,
        settings: ExecutionSettings,
        submitter: TransactionSubmitter,
        signer: Any = None,
        slippage_bps: int = 50,
        metrics=None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.submitter = submitter
        self.signer = signer
        self.slippage_bps = slippage_bps
        self.metrics = metrics
        self._sleep = sleep
        self._clock = clock

    def is_eligible(self, opportunity: ArbitrageOpportunity, now: Optional[float] = None) -> bool:
        """False when profit is below the minimum, confidence is LOW, or the quote is too old."""
        if opportunity.profit_usd < self.settings.min_profit_usd:
            return False
        if opportunity.confidence == Confidence.LOW:
            return False

        if now is None:
            now = self._clock()
        if now - opportunity.observed_at > self.settings.max_age_sec:
            return False
        return True

    def build_payload(
        self, opportunity: ArbitrageOpportunity, min_profit_usd: float
    ) -> SwapInstructionPayload:
        buy = opportunity.buy_side
        min_out = buy.output_amount * (10_000 - self.slippage_bps) // 10_000

        return SwapInstructionPayload(
            input_mint=buy.input_mint,
            output_mint=buy.output_mint,
            amount=buy.input_amount,
            min_out_amount=min_out,
            slippage_bps=self.slippage_bps,
            min_profit_usd=min_profit_usd,
            min_profit_raw=to_raw_amount(min_profit_usd, USD_GUARD_DECIMALS),
            compute_budget=ComputeBudget(
                unit_limit=self.settings.compute_unit_limit,
                unit_price_micro_lamports=self.settings.compute_unit_price_micro_lamports,
            ),
            pair=opportunity.pair_symbol,
            expected_profit_usd=opportunity.profit_usd,
        )

    async def execute(
        self, opportunity: ArbitrageOpportunity, min_acceptable_profit_usd: float
    ) -> str:
        """
        Submit a swap for ``opportunity`` and wait for confirmation.

        Returns:
            Transaction signature

        Raises:
            ExecutionError: If building, submission or confirmation fails
        """
        payload = self.build_payload(opportunity, min_acceptable_profit_usd)
        logger.info(
            f"Executing {payload.pair}: {payload.amount} raw {payload.input_mint[:4]} "
            f"-> min {payload.min_out_amount} raw "
            f"(slippage {basis_points_to_percent(payload.slippage_bps):g}%), "
            f"guard {format_usd(min_acceptable_profit_usd)}"
        )

        try:
            signature = await self.submitter.build_and_submit(payload, self.signer)
        except ExecutionError:
            self._record("failed")
            raise
        except Exception as e:
            self._record("failed")
            raise ExecutionError(
                f"Submission failed for {payload.pair}: {e}",
                opportunity=payload.pair,
            ) from e

        if not signature:
            self._record("failed")
            raise ExecutionError(
                f"Submitter returned no signature for {payload.pair}",
                opportunity=payload.pair,
            )

        self._record("confirmed")
        logger.info(f"Confirmed {payload.pair}: {signature}")
        return signature

    async def auto_execute(
        self, opportunities: Iterable[ArbitrageOpportunity]
    ) -> List[str]:
        """
        Execute eligible opportunities one at a time.

        Failures are logged and skipped so one bad opportunity does not block
        the rest.
        """
        signatures = []
        for opportunity in opportunities:
            if not self.is_eligible(opportunity):
                self._record("skipped")
                continue

            try:
                signature = await self.execute(
                    opportunity, opportunity.profit_usd * self.settings.profit_guard_ratio
                )
            except ExecutionError as e:
                logger.warning(f"Execution skipped for {opportunity.pair_symbol}: {e}")
                continue

            signatures.append(signature)
            await self._sleep(self.settings.inter_submission_delay_sec)

        return signatures

    def _record(self, outcome: str):
        if self.metrics is not None:
            self.metrics.record_execution(outcome)
