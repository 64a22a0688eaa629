"""
Tests for the execution gate: eligibility, payload construction and the
batch driver.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from scanner.config import SOL_MINT, USDC_MINT, ExecutionSettings, ScannerConfig
from scanner.detector import build_opportunity
from scanner.executor import ComputeBudget, ExecutionGate
from scanner.types import Confidence, DirectionalQuote, Token
from solana_arbitrage.exceptions import ExecutionError

SOL = Token(SOL_MINT, "SOL", "Solana", 9)
USDC = Token(USDC_MINT, "USDC", "USD Coin", 6)


def quote(price, venue, impact=0.1):
    return DirectionalQuote(
        venue=venue,
        price=price,
        input_mint=SOL_MINT,
        output_mint=USDC_MINT,
        input_amount=1_000_000_000,
        output_amount=int(price * 1_000_000),
        price_impact_pct=impact,
        route=(venue,),
        observed_at=1000.0,
    )


def opportunity(sell_price=160.0, impact=0.1, observed_at=1000.0):
    return build_opportunity(
        SOL,
        USDC,
        quote(150.0, "Orca", impact),
        quote(sell_price, "Raydium", impact),
        ScannerConfig(),
        now=observed_at,
    )


@pytest.fixture
def submitter():
    submitter = Mock()
    submitter.build_and_submit = AsyncMock(return_value="5igSig")
    return submitter


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def gate(submitter, sleep):
    return ExecutionGate(
        ExecutionSettings(enabled=True),
        submitter,
        signer="signer",
        slippage_bps=50,
        sleep=sleep,
        clock=lambda: 1010.0,
    )


class TestEligibility:
    def test_medium_recent_opportunity(self, gate):
        assert gate.is_eligible(opportunity())

    def test_low_confidence_rejected(self, gate):
        opp = opportunity(impact=1.5)
        assert opp.confidence is Confidence.LOW
        assert not gate.is_eligible(opp)

    def test_below_min_profit_rejected(self, gate):
        assert not gate.is_eligible(opportunity(sell_price=157.0))

    def test_age_boundary(self, gate):
        opp = opportunity()
        assert gate.is_eligible(opp, now=1060.0)
        assert not gate.is_eligible(opp, now=1060.1)


class TestPayload:
    def test_min_out_and_guard(self, gate):
        payload = gate.build_payload(opportunity(), min_profit_usd=6.0)

        assert payload.input_mint == SOL_MINT
        assert payload.output_mint == USDC_MINT
        assert payload.amount == 1_000_000_000
        # 150 USDC out minus 0.5% slippage
        assert payload.min_out_amount == 149_250_000
        assert payload.min_profit_raw == 6_000_000
        assert payload.compute_budget == ComputeBudget(1_400_000, 50_000)
        assert payload.pair == "SOL/USDC"
        assert payload.to_dict()["compute_budget"]["unit_limit"] == 1_400_000

    def test_compute_budget_from_settings(self, submitter):
        settings = ExecutionSettings(
            compute_unit_limit=200_000, compute_unit_price_micro_lamports=1_000
        )
        gate = ExecutionGate(settings, submitter)

        payload = gate.build_payload(opportunity(), 1.0)

        assert payload.compute_budget == ComputeBudget(200_000, 1_000)


class TestExecute:
    @pytest.mark.asyncio
    async def test_returns_signature(self, gate, submitter):
        signature = await gate.execute(opportunity(), 6.0)

        assert signature == "5igSig"
        payload, signer = submitter.build_and_submit.await_args.args
        assert payload.min_profit_usd == 6.0
        assert signer == "signer"

    @pytest.mark.asyncio
    async def test_submitter_failure_wrapped(self, gate, submitter):
        submitter.build_and_submit.side_effect = RuntimeError("blockhash expired")

        with pytest.raises(ExecutionError) as exc_info:
            await gate.execute(opportunity(), 6.0)

        assert "blockhash expired" in str(exc_info.value)
        assert exc_info.value.opportunity == "SOL/USDC"

    @pytest.mark.asyncio
    async def test_empty_signature_is_failure(self, gate, submitter):
        submitter.build_and_submit.return_value = ""

        with pytest.raises(ExecutionError):
            await gate.execute(opportunity(), 6.0)

    @pytest.mark.asyncio
    async def test_outcomes_recorded(self, submitter):
        metrics = Mock()
        gate = ExecutionGate(ExecutionSettings(), submitter, metrics=metrics)

        await gate.execute(opportunity(), 6.0)

        metrics.record_execution.assert_called_once_with("confirmed")


class TestAutoExecute:
    @pytest.mark.asyncio
    async def test_guard_and_delay(self, gate, submitter, sleep):
        opp = opportunity()

        signatures = await gate.auto_execute([opp])

        assert signatures == ["5igSig"]
        payload = submitter.build_and_submit.await_args.args[0]
        assert payload.min_profit_usd == pytest.approx(opp.profit_usd * 0.9)
        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_failures_do_not_block_batch(self, gate, submitter, sleep):
        submitter.build_and_submit.side_effect = [
            ExecutionError("simulation failed"),
            "secondSig",
        ]

        signatures = await gate.auto_execute([opportunity(170.0), opportunity(160.0)])

        assert signatures == ["secondSig"]
        assert submitter.build_and_submit.await_count == 2
        assert sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_ineligible_skipped(self, submitter, sleep):
        metrics = Mock()
        gate = ExecutionGate(
            ExecutionSettings(), submitter, metrics=metrics, sleep=sleep, clock=lambda: 1010.0
        )

        signatures = await gate.auto_execute([opportunity(impact=1.5)])

        assert signatures == []
        submitter.build_and_submit.assert_not_awaited()
        metrics.record_execution.assert_called_once_with("skipped")
