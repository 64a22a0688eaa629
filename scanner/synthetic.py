"""
Synthetic quote source used in demo mode and when the live API is degraded.

Produces DirectionalRates shaped exactly like PriceService output, without
any network I/O.
"""

import random
import time
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from solana_arbitrage.utils import from_raw_amount, to_raw_amount

from .config import (
    BONK_MINT,
    DEFAULT_PRIORITY_VENUES,
    JTO_MINT,
    MSOL_MINT,
    SOL_MINT,
    USDC_MINT,
    USDT_MINT,
)
from .types import DirectionalQuote, DirectionalRates, Token

# Approximate USD reference prices; unknown tokens are priced at $1
REFERENCE_PRICES_USD: Dict[str, float] = {
    SOL_MINT: 150.0,
    USDC_MINT: 1.0,
    USDT_MINT: 1.0,
    MSOL_MINT: 170.0,
    JTO_MINT: 3.0,
    BONK_MINT: 0.00002,
}

PRICE_NOISE = 0.003
IMPACT_RANGE = (0.01, 0.3)
FORCED_SPREAD_RANGE = (0.06, 0.12)
FORCED_IMPACT_RANGE = (0.01, 0.1)


class SyntheticQuoteSource:
    """
    Generates plausible quotes around reference USD prices.

    Args:
        venues: Venue labels to attribute synthetic quotes to
        rng: Random generator (seed it for reproducible output)
        reference_prices: USD price per mint
    """

    def __init__(
        self,
        venues: Optional[Sequence[str]] = None,
        rng: Optional[random.Random] = None,
        reference_prices: Optional[Mapping[str, float]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.venues: List[str] = list(venues or DEFAULT_PRIORITY_VENUES)
        self.rng = rng or random.Random()
        self.reference_prices = dict(reference_prices or REFERENCE_PRICES_USD)
        self._clock = clock

    def usd_price(self, token: Token) -> float:
        return self.reference_prices.get(token.mint, 1.0)

    def base_rate(self, token_a: Token, token_b: Token) -> float:
        """Units of token B per unit of token A at reference prices."""
        return self.usd_price(token_a) / self.usd_price(token_b)

    def _pick_venues(self, count: int) -> List[str]:
        if not self.venues:
            return ["Synthetic"] * count
        return self.rng.sample(self.venues, min(count, len(self.venues)))

    def _quote(
        self,
        token_in: Token,
        token_out: Token,
        raw_price: float,
        probe_usd: float,
        venue: str,
        impact: float,
        invert: bool,
    ) -> DirectionalQuote:
        input_amount = max(1, to_raw_amount(probe_usd / self.usd_price(token_in), token_in.decimals))
        ui_out = from_raw_amount(input_amount, token_in.decimals) * raw_price
        output_amount = max(1, to_raw_amount(ui_out, token_out.decimals))

        return DirectionalQuote(
            venue=venue,
            price=1.0 / raw_price if invert else raw_price,
            input_mint=token_in.mint,
            output_mint=token_out.mint,
            input_amount=input_amount,
            output_amount=output_amount,
            price_impact_pct=impact,
            route=(venue,),
            observed_at=self._clock(),
        )

    def _noisy_quotes(
        self, token_in: Token, token_out: Token, probe_usd: float, count: int, invert: bool
    ) -> Tuple[DirectionalQuote, ...]:
        rate = self.base_rate(token_in, token_out)
        quotes = []
        for venue in self._pick_venues(count):
            raw_price = rate * (1 + self.rng.uniform(-PRICE_NOISE, PRICE_NOISE))
            impact = self.rng.uniform(*IMPACT_RANGE)
            quotes.append(
                self._quote(token_in, token_out, raw_price, probe_usd, venue, impact, invert)
            )
        return tuple(quotes)

    def get_synthetic_rates(
        self, token_a: Token, token_b: Token, probe_usd: float
    ) -> DirectionalRates:
        """2-3 forward and 1-2 reverse quotes with small noise around reference prices."""
        forward = self._noisy_quotes(token_a, token_b, probe_usd, self.rng.randint(2, 3), False)
        reverse = self._noisy_quotes(token_b, token_a, probe_usd, self.rng.randint(1, 2), True)
        return DirectionalRates(forward=forward, reverse=reverse)

    def force_opportunity(
        self, token_a: Token, token_b: Token, probe_usd: float = 100.0
    ) -> DirectionalRates:
        """
        Rates with a guaranteed detectable spread.

        The reverse quote's (inverted) price sits 6-12% above the forward rate.
        """
        rate = self.base_rate(token_a, token_b)
        buy_venue, sell_venue = (self._pick_venues(2) + ["Synthetic", "Synthetic"])[:2]
        spread = self.rng.uniform(*FORCED_SPREAD_RANGE)

        forward = self._quote(
            token_a,
            token_b,
            rate,
            probe_usd,
            buy_venue,
            self.rng.uniform(*FORCED_IMPACT_RANGE),
            invert=False,
        )
        reverse = self._quote(
            token_b,
            token_a,
            1.0 / (rate * (1 + spread)),
            probe_usd,
            sell_venue,
            self.rng.uniform(*FORCED_IMPACT_RANGE),
            invert=True,
        )
        return DirectionalRates(forward=(forward,), reverse=(reverse,))
