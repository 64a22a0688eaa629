"""
Tests for the Jupiter quote gateway: endpoint fallback, backoff and
response validation.
"""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import aiohttp
import pytest

from scanner.config import SOL_MINT, USDC_MINT
from scanner.gateway import QuoteGateway
from scanner.types import Quote
from solana_arbitrage.exceptions import MalformedResponse, UpstreamUnavailable

PRIMARY = "https://quote-api.jup.ag/v6"
MIRROR = "https://jupiter-swap-api.quiknode.pro/v6"


def quote_payload(out_amount="150000000", labels=("Orca",), **extra):
    payload = {
        "inputMint": SOL_MINT,
        "outputMint": USDC_MINT,
        "inAmount": "1000000000",
        "outAmount": out_amount,
        "priceImpactPct": "0.1",
        "routePlan": [
            {"swapInfo": {"label": label, "ammKey": f"amm{i}"}, "percent": 100}
            for i, label in enumerate(labels)
        ],
    }
    payload.update(extra)
    return payload


@pytest.fixture
def no_sleep():
    return AsyncMock()


@pytest.fixture
def gateway(no_sleep):
    return QuoteGateway([PRIMARY, MIRROR], timeout_sec=10, backoff_sec=1.0, sleep=no_sleep)


class TestGetQuote:
    @pytest.mark.asyncio
    async def test_second_endpoint_succeeds_after_timeout(self, gateway, no_sleep):
        request = AsyncMock(side_effect=[asyncio.TimeoutError(), quote_payload()])

        with patch.object(gateway, "_request_json", request):
            quote = await gateway.get_quote(SOL_MINT, USDC_MINT, 1_000_000_000)

        assert isinstance(quote, Quote)
        assert quote.endpoint == MIRROR
        assert quote.in_amount == 1_000_000_000
        assert quote.out_amount == 150_000_000
        assert quote.price_impact_pct == pytest.approx(0.1)
        assert quote.route_labels == ("Orca",)

        assert request.await_count == 2
        assert request.await_args_list[0].args[1] == f"{PRIMARY}/quote"
        assert request.await_args_list[1].args[1] == f"{MIRROR}/quote"
        no_sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_first_success_short_circuits(self, gateway, no_sleep):
        request = AsyncMock(return_value=quote_payload())

        with patch.object(gateway, "_request_json", request):
            quote = await gateway.get_quote(SOL_MINT, USDC_MINT, 1_000_000_000)

        assert quote.endpoint == PRIMARY
        assert request.await_count == 1
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_all_endpoints_fail(self, gateway, no_sleep):
        last = aiohttp.ClientConnectionError("connection refused")
        request = AsyncMock(side_effect=[asyncio.TimeoutError(), last])

        with patch.object(gateway, "_request_json", request):
            with pytest.raises(UpstreamUnavailable) as exc_info:
                await gateway.get_quote(SOL_MINT, USDC_MINT, 1_000_000_000)

        assert exc_info.value.last_error is last
        assert exc_info.value.endpoints == [PRIMARY, MIRROR]
        # Backoff between endpoints only, never after the last one
        assert no_sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_request_params(self, gateway, no_sleep):
        request = AsyncMock(return_value=quote_payload())

        with patch.object(gateway, "_request_json", request):
            await gateway.get_quote(SOL_MINT, USDC_MINT, 1_000_000_000, slippage_bps=75)

        params = request.await_args.kwargs["params"]
        assert params == {
            "inputMint": SOL_MINT,
            "outputMint": USDC_MINT,
            "amount": "1000000000",
            "slippageBps": "75",
            "onlyDirectRoutes": "false",
            "asLegacyTransaction": "false",
        }

    @pytest.mark.asyncio
    async def test_non_positive_amount_rejected(self, gateway):
        with pytest.raises(ValueError):
            await gateway.get_quote(SOL_MINT, USDC_MINT, 0)


class TestResponseValidation:
    @pytest.mark.asyncio
    async def test_missing_route_plan_is_retried(self, gateway, no_sleep):
        bad = quote_payload()
        del bad["routePlan"]
        request = AsyncMock(side_effect=[bad, quote_payload()])

        with patch.object(gateway, "_request_json", request):
            quote = await gateway.get_quote(SOL_MINT, USDC_MINT, 1_000_000_000)

        assert quote.endpoint == MIRROR

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            quote_payload(out_amount="abc"),
            quote_payload(out_amount="0"),
            quote_payload(labels=()),
            {"error": "Could not find any route"},
            ["not", "an", "object"],
        ],
    )
    async def test_malformed_everywhere(self, gateway, no_sleep, payload):
        request = AsyncMock(return_value=payload)

        with patch.object(gateway, "_request_json", request):
            with pytest.raises(UpstreamUnavailable) as exc_info:
                await gateway.get_quote(SOL_MINT, USDC_MINT, 1_000_000_000)

        assert isinstance(exc_info.value.last_error, MalformedResponse)

    @pytest.mark.asyncio
    async def test_optional_fields_default(self, gateway):
        payload = quote_payload()
        del payload["inAmount"]
        del payload["priceImpactPct"]
        del payload["inputMint"]
        request = AsyncMock(return_value=payload)

        with patch.object(gateway, "_request_json", request):
            quote = await gateway.get_quote(SOL_MINT, USDC_MINT, 2_000_000_000)

        assert quote.in_amount == 2_000_000_000
        assert quote.price_impact_pct == 0.0
        assert quote.input_mint == SOL_MINT
        assert quote.raw == payload

    @pytest.mark.asyncio
    async def test_multi_hop_route_preserved(self, gateway):
        request = AsyncMock(return_value=quote_payload(labels=("Orca", "Raydium")))

        with patch.object(gateway, "_request_json", request):
            quote = await gateway.get_quote(SOL_MINT, USDC_MINT, 1_000_000_000)

        assert quote.route_labels == ("Orca", "Raydium")
        assert quote.route[1].amm_key == "amm1"


class TestMetricsAndSwapInstructions:
    @pytest.mark.asyncio
    async def test_quote_requests_recorded(self, no_sleep):
        metrics = Mock()
        gateway = QuoteGateway(
            [PRIMARY, MIRROR], backoff_sec=1.0, metrics=metrics, sleep=no_sleep
        )
        request = AsyncMock(side_effect=[asyncio.TimeoutError(), quote_payload()])

        with patch.object(gateway, "_request_json", request):
            await gateway.get_quote(SOL_MINT, USDC_MINT, 1_000_000_000)

        metrics.record_quote_request.assert_any_call(PRIMARY, "error")
        metrics.record_quote_request.assert_any_call(MIRROR, "success")

    @pytest.mark.asyncio
    async def test_get_swap_instructions_posts_raw_quote(self, gateway):
        raw = quote_payload()
        quote_request = AsyncMock(return_value=raw)
        with patch.object(gateway, "_request_json", quote_request):
            quote = await gateway.get_quote(SOL_MINT, USDC_MINT, 1_000_000_000)

        instructions = {"swapInstruction": {"programId": "JUP", "accounts": [], "data": ""}}
        request = AsyncMock(return_value=instructions)
        with patch.object(gateway, "_request_json", request):
            result = await gateway.get_swap_instructions(quote, "Wallet1111")

        assert result == instructions
        method, url = request.await_args.args[:2]
        assert method == "POST"
        assert url == f"{PRIMARY}/swap-instructions"
        body = request.await_args.kwargs["json"]
        assert body["quoteResponse"] == raw
        assert body["userPublicKey"] == "Wallet1111"

    @pytest.mark.asyncio
    async def test_close_without_session(self, gateway):
        await gateway.close()

    def test_default_endpoints(self):
        gateway = QuoteGateway(None)
        assert gateway.endpoints[0] == PRIMARY

    def test_empty_endpoint_list_rejected(self):
        with pytest.raises(ValueError):
            QuoteGateway([])
