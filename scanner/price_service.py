"""
Rate normalization: turns gateway quotes into comparable directional prices.
"""

import time
from typing import Callable, List, Optional, Sequence, Tuple

from solana_arbitrage.exceptions import ArbitrageScannerError
from solana_arbitrage.utils import get_logger, to_raw_amount

from .config import USDC_MINT
from .tokens import TokenRegistry
from .types import DirectionalQuote, DirectionalRates, Quote, Token

logger = get_logger(__name__)

UNKNOWN_VENUE = "Unknown"


def calculate_price(
    input_amount: int, output_amount: int, input_decimals: int, output_decimals: int
) -> float:
    """
    Decimal-adjusted unit price: output tokens received per input token.

    Raises:
        ValueError: If the input amount is not positive
    """
    if input_amount <= 0:
        raise ValueError(f"Input amount must be positive, got {input_amount}")
    return (output_amount / 10**output_decimals) / (input_amount / 10**input_decimals)


def extract_venue(labels: Sequence[str]) -> str:
    """
    Attribute a route to a venue label.

    A single hop, or several hops on one venue, map to that venue. Routes
    crossing venues get a composite "<first>+<N>more" label where N counts
    the other distinct venues.
    """
    if not labels:
        return UNKNOWN_VENUE
    if len(labels) == 1:
        return labels[0]

    distinct = list(dict.fromkeys(labels))
    if len(distinct) == 1:
        return distinct[0]
    return f"{distinct[0]}+{len(distinct) - 1}more"


def is_price_reliable(quote: DirectionalQuote, max_price_impact: float) -> bool:
    """Check a quote has a usable price and price impact within the cap."""
    return quote.price > 0 and quote.price_impact_pct <= max_price_impact


class PriceService:
    """
    Fetches forward and reverse quotes for a pair and normalizes them.

    Both directions are expressed in the same unit (token B per token A):
    reverse quotes store the inverted rate.
    """

    def __init__(
        self,
        gateway,
        tokens: Optional[TokenRegistry] = None,
        usd_reference_mint: str = USDC_MINT,
        slippage_bps: int = 50,
        clock: Callable[[], float] = time.time,
    ):
        self.gateway = gateway
        self.tokens = tokens or TokenRegistry()
        self.usd_reference_mint = usd_reference_mint
        self.slippage_bps = slippage_bps
        self._clock = clock

    async def get_token_amount_for_usd(self, token: Token, usd_amount: float) -> int:
        """
        Raw amount of ``token`` worth roughly ``usd_amount``.

        Falls back to a unit USD price when the reference quote fails.
        """
        if token.mint == self.usd_reference_mint:
            return to_raw_amount(usd_amount, token.decimals)

        try:
            reference = self.tokens.resolve(self.usd_reference_mint)
            quote = await self.gateway.get_quote(
                reference.mint,
                token.mint,
                to_raw_amount(usd_amount, reference.decimals),
                self.slippage_bps,
            )
            return quote.out_amount
        except (ArbitrageScannerError, ValueError) as e:
            logger.warning(
                f"USD price lookup for {token.symbol} failed, assuming $1: {e}"
            )
            return to_raw_amount(usd_amount, token.decimals)

    def to_directional(
        self, quote: Quote, token_in: Token, token_out: Token, invert: bool = False
    ) -> DirectionalQuote:
        """Build a DirectionalQuote; ``invert`` stores 1/price for reverse quotes."""
        price = calculate_price(
            quote.in_amount, quote.out_amount, token_in.decimals, token_out.decimals
        )
        if price <= 0:
            raise ValueError(f"Non-positive price from {quote.endpoint}")
        if invert:
            price = 1.0 / price

        labels = quote.route_labels
        return DirectionalQuote(
            venue=extract_venue(labels),
            price=price,
            input_mint=quote.input_mint,
            output_mint=quote.output_mint,
            input_amount=quote.in_amount,
            output_amount=quote.out_amount,
            price_impact_pct=quote.price_impact_pct,
            route=labels or (UNKNOWN_VENUE,),
            observed_at=self._clock(),
        )

    async def _fetch_direction(
        self,
        token_in: Token,
        token_out: Token,
        amount: int,
        invert: bool,
        errors: List[str],
    ) -> Tuple[DirectionalQuote, ...]:
        direction = "reverse" if invert else "forward"
        try:
            quote = await self.gateway.get_quote(
                token_in.mint, token_out.mint, amount, self.slippage_bps
            )
            return (self.to_directional(quote, token_in, token_out, invert=invert),)
        except (ArbitrageScannerError, ValueError, ZeroDivisionError) as e:
            message = f"{direction} {token_in.symbol}->{token_out.symbol}: {e}"
            logger.debug(f"Directional quote failed: {message}")
            errors.append(message)
            return ()

    async def get_directional_rates(
        self, token_a: Token, token_b: Token, probe_usd: float
    ) -> DirectionalRates:
        """
        Get forward (A->B) and reverse (B->A) rates at the probe notional.

        Each direction fails independently; a failed direction comes back
        empty with its message in ``errors``.
        """
        errors: List[str] = []

        amount_a = await self.get_token_amount_for_usd(token_a, probe_usd)
        amount_b = await self.get_token_amount_for_usd(token_b, probe_usd)

        forward = await self._fetch_direction(token_a, token_b, amount_a, False, errors)
        reverse = await self._fetch_direction(token_b, token_a, amount_b, True, errors)

        return DirectionalRates(forward=forward, reverse=reverse, errors=tuple(errors))
