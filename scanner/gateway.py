"""
Jupiter quote gateway with ordered endpoint fallback.

Each call makes one pass over the configured endpoints (primary first, then
mirrors). A failed attempt waits a fixed backoff before the next endpoint; the
first success short-circuits the rest.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import aiohttp

from solana_arbitrage.exceptions import MalformedResponse, UpstreamUnavailable
from solana_arbitrage.utils import get_logger, short_mint

from .config import DEFAULT_ENDPOINTS
from .schemas import parse_quote
from .types import Quote

logger = get_logger(__name__)


class QuoteGateway:
    """
    Async client for the Jupiter v6 quote API.

    Usage:
        async with QuoteGateway(endpoints) as gateway:
            quote = await gateway.get_quote(SOL_MINT, USDC_MINT, 1_000_000_000)
    """

    def __init__(
        self,
        endpoints: Optional[Sequence[str]] = None,
        timeout_sec: float = 10.0,
        backoff_sec: float = 1.0,
        session: Optional[aiohttp.ClientSession] = None,
        metrics=None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.endpoints: List[str] = [
            e.rstrip("/") for e in (DEFAULT_ENDPOINTS if endpoints is None else endpoints)
        ]
        if not self.endpoints:
            raise ValueError("QuoteGateway requires at least one endpoint")

        self.timeout = aiohttp.ClientTimeout(total=timeout_sec)
        self.backoff_sec = backoff_sec
        self.metrics = metrics
        self._sleep = sleep
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "QuoteGateway":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self):
        """Close the underlying session if this gateway created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request_json(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        session = await self._get_session()
        async with session.request(
            method, url, params=params, json=json, timeout=self.timeout
        ) as response:
            response.raise_for_status()
            return await response.json(content_type=None)

    async def _try_endpoints(
        self, description: str, attempt: Callable[[str], Awaitable[Any]]
    ) -> Any:
        last_error: Optional[BaseException] = None

        for index, endpoint in enumerate(self.endpoints):
            try:
                result = await attempt(endpoint)
            except (
                aiohttp.ClientError,
                asyncio.TimeoutError,
                MalformedResponse,
                ValueError,
            ) as e:
                last_error = e
                self._record(endpoint, "malformed" if isinstance(e, MalformedResponse) else "error")
                logger.warning(f"{description} failed on {endpoint}: {e!r}")
                if index < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                    if self.backoff_sec > 0:
                        await self._sleep(self.backoff_sec)
                continue

            self._record(endpoint, "success")
            return result

        raise UpstreamUnavailable(
            f"{description} failed on all {len(self.endpoints)} endpoints. "
            f"Last error: {last_error!r}",
            endpoints=self.endpoints,
            last_error=last_error,
        )

    def _record(self, endpoint: str, outcome: str):
        if self.metrics is not None:
            self.metrics.record_quote_request(endpoint, outcome)

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = 50,
    ) -> Quote:
        """
        Get a swap quote for ``amount`` raw units of ``input_mint``.

        Args:
            input_mint: Mint being sold
            output_mint: Mint being bought
            amount: Raw input amount (must be positive)
            slippage_bps: Slippage tolerance in basis points

        Returns:
            Validated Quote from the first endpoint that answered

        Raises:
            UpstreamUnavailable: If every endpoint failed or returned bad data
        """
        if amount <= 0:
            raise ValueError(f"Quote amount must be positive, got {amount}")

        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(int(amount)),
            "slippageBps": str(int(slippage_bps)),
            "onlyDirectRoutes": "false",
            "asLegacyTransaction": "false",
        }

        async def attempt(endpoint: str) -> Quote:
            payload = await self._request_json("GET", f"{endpoint}/quote", params=params)
            return parse_quote(
                payload, input_mint, output_mint, amount, slippage_bps, endpoint
            )

        description = f"Quote {short_mint(input_mint)}->{short_mint(output_mint)}"
        return await self._try_endpoints(description, attempt)

    async def get_swap_instructions(
        self, quote: Quote, user_public_key: str
    ) -> Dict[str, Any]:
        """
        Fetch the swap instructions for a previously obtained quote.

        The quote's raw upstream JSON is sent back unchanged.

        Raises:
            UpstreamUnavailable: If every endpoint failed
        """
        body = {
            "quoteResponse": quote.raw,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": False,
        }

        async def attempt(endpoint: str) -> Dict[str, Any]:
            payload = await self._request_json(
                "POST", f"{endpoint}/swap-instructions", json=body
            )
            if not isinstance(payload, dict):
                raise MalformedResponse(
                    f"Swap instructions from {endpoint} are not a JSON object",
                    endpoint=endpoint,
                )
            if "error" in payload:
                raise MalformedResponse(
                    f"Swap instructions rejected by {endpoint}: {payload['error']}",
                    endpoint=endpoint,
                )
            return payload

        return await self._try_endpoints("Swap instructions", attempt)
