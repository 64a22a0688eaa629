"""
Arbitrage opportunity detection, scoring and filtering.

Forward and reverse quotes for a pair share one unit (token B per token A),
so any two quotes in the pooled set can be compared directly: buying at the
lower price and selling at the higher one yields the spread.
"""

import time
from itertools import permutations
from typing import Iterable, List, Optional, Sequence

from solana_arbitrage.utils import get_logger

from .config import ScannerConfig
from .price_service import is_price_reliable
from .types import ArbitrageOpportunity, Confidence, DirectionalQuote, Token

logger = get_logger(__name__)


def assign_confidence(
    buy_side: DirectionalQuote,
    sell_side: DirectionalQuote,
    profit_usd: float,
    config: ScannerConfig,
) -> Confidence:
    """
    Assign a confidence tier.

    HIGH: both impacts <= half the impact cap and profit >= 2x min profit.
    MEDIUM: both impacts <= the impact cap and profit >= min profit.
    LOW: everything else.
    """
    worst_impact = max(buy_side.price_impact_pct, sell_side.price_impact_pct)

    if (
        worst_impact <= config.max_price_impact / 2
        and profit_usd >= 2 * config.min_profit_usd
    ):
        return Confidence.HIGH
    if worst_impact <= config.max_price_impact and profit_usd >= config.min_profit_usd:
        return Confidence.MEDIUM
    return Confidence.LOW


def build_opportunity(
    token_a: Token,
    token_b: Token,
    buy_side: DirectionalQuote,
    sell_side: DirectionalQuote,
    config: ScannerConfig,
    now: Optional[float] = None,
) -> ArbitrageOpportunity:
    """Price a buy/sell pairing at the configured probe notional."""
    profit_percent = (sell_side.price - buy_side.price) / buy_side.price * 100
    profit_usd = profit_percent / 100 * config.test_volume_usd

    return ArbitrageOpportunity(
        token_a=token_a,
        token_b=token_b,
        buy_side=buy_side,
        sell_side=sell_side,
        profit_usd=profit_usd,
        profit_percent=profit_percent,
        confidence=assign_confidence(buy_side, sell_side, profit_usd, config),
        volume=config.test_volume_usd,
        observed_at=time.time() if now is None else now,
    )


def _passes(opp: ArbitrageOpportunity, config: ScannerConfig) -> bool:
    if opp.profit_usd < config.min_profit_usd:
        return False
    if opp.profit_percent < config.min_profit_percent:
        return False
    return is_price_reliable(
        opp.buy_side, config.max_price_impact
    ) and is_price_reliable(opp.sell_side, config.max_price_impact)


def filter_opportunities(
    opportunities: Iterable[ArbitrageOpportunity], config: ScannerConfig
) -> List[ArbitrageOpportunity]:
    """Keep opportunities that clear the profit thresholds and impact cap."""
    return [opp for opp in opportunities if _passes(opp, config)]


def filter_for_display(
    opportunities: Iterable[ArbitrageOpportunity],
    min_confidence: Confidence = Confidence.LOW,
    max_price_impact: Optional[float] = None,
) -> List[ArbitrageOpportunity]:
    """Viewing filter: confidence floor and optional impact cap only."""
    result = []
    for opp in opportunities:
        if opp.confidence < min_confidence:
            continue
        if max_price_impact is not None and not (
            is_price_reliable(opp.buy_side, max_price_impact)
            and is_price_reliable(opp.sell_side, max_price_impact)
        ):
            continue
        result.append(opp)
    return result


def sort_by_profitability(
    opportunities: Iterable[ArbitrageOpportunity],
) -> List[ArbitrageOpportunity]:
    """Most profitable first; ties by percent, then pair symbol."""
    return sorted(
        opportunities,
        key=lambda opp: (-opp.profit_usd, -opp.profit_percent, opp.pair_symbol),
    )


def is_fresh(
    opportunity: ArbitrageOpportunity, window_sec: float, now: Optional[float] = None
) -> bool:
    """True while the opportunity is at most ``window_sec`` old."""
    if now is None:
        now = time.time()
    return (now - opportunity.observed_at) <= window_sec


def detect(
    token_a: Token,
    token_b: Token,
    forward: Sequence[DirectionalQuote],
    reverse: Sequence[DirectionalQuote],
    config: ScannerConfig,
    now: Optional[float] = None,
) -> List[ArbitrageOpportunity]:
    """
    Find buy/sell pairings across the pooled forward and reverse quotes.

    Args:
        token_a: First token of the pair
        token_b: Second token of the pair
        forward: A->B quotes
        reverse: B->A quotes, already inverted to B-per-A
        config: Thresholds and probe notional
        now: Detection timestamp (defaults to current time)

    Returns:
        Accepted opportunities, most profitable first
    """
    pool = [q for q in list(forward) + list(reverse) if q.price > 0]
    if len(pool) < 2:
        return []

    if now is None:
        now = time.time()

    candidates = [
        build_opportunity(token_a, token_b, buy, sell, config, now)
        for buy, sell in permutations(pool, 2)
        if sell.price > buy.price
    ]

    accepted = filter_opportunities(candidates, config)
    if candidates:
        logger.debug(
            f"{token_a.symbol}/{token_b.symbol}: {len(candidates)} candidates, "
            f"{len(accepted)} accepted"
        )
    return sort_by_profitability(accepted)
