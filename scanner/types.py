"""
Core data types for Solana arbitrage scanning.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class Token:
    """
    A resolved SPL token.

    Attributes:
        mint: Base58 mint address
        symbol: Ticker (e.g., "SOL")
        name: Display name
        decimals: Number of decimals of the raw amount
        logo_uri: Optional logo URL from the token list
    """

    mint: str
    symbol: str
    name: str
    decimals: int
    logo_uri: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mint": self.mint,
            "symbol": self.symbol,
            "name": self.name,
            "decimals": self.decimals,
            "logoURI": self.logo_uri,
        }


@dataclass(frozen=True)
class RouteHop:
    """One venue hop of a quoted route."""

    label: str
    amm_key: Optional[str] = None
    percent: Optional[float] = None


@dataclass(frozen=True)
class Quote:
    """
    Validated upstream quote.

    Attributes:
        input_mint: Mint being sold
        output_mint: Mint being bought
        in_amount: Raw input amount
        out_amount: Raw output amount
        price_impact_pct: Price impact as reported upstream
        route: Ordered venue hops (never empty)
        slippage_bps: Slippage tolerance used for the request
        endpoint: Endpoint that produced the quote
        raw: Upstream JSON, passed back verbatim to swap endpoints
    """

    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    price_impact_pct: float
    route: Tuple[RouteHop, ...]
    slippage_bps: int = 50
    endpoint: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def route_labels(self) -> Tuple[str, ...]:
        return tuple(hop.label for hop in self.route)


@dataclass(frozen=True)
class DirectionalQuote:
    """
    A quote expressed as a decimal-adjusted unit price for one direction.

    Reverse-direction quotes store the inverted rate so forward and reverse
    records for a pair share the same unit.

    Attributes:
        venue: Dominant venue label of the route
        price: Decimal-adjusted unit price (always > 0)
        input_mint: Mint sold by the underlying quote
        output_mint: Mint bought by the underlying quote
        input_amount: Raw input amount
        output_amount: Raw output amount
        price_impact_pct: Price impact of the underlying quote
        route: Ordered venue labels
        observed_at: Unix timestamp of capture
    """

    venue: str
    price: float
    input_mint: str
    output_mint: str
    input_amount: int
    output_amount: int
    price_impact_pct: float
    route: Tuple[str, ...]
    observed_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "venue": self.venue,
            "price": self.price,
            "inputMint": self.input_mint,
            "outputMint": self.output_mint,
            "inputAmount": str(self.input_amount),
            "outputAmount": str(self.output_amount),
            "priceImpact": self.price_impact_pct,
            "route": list(self.route),
            "timestamp": self.observed_at,
        }


@dataclass(frozen=True)
class DirectionalRates:
    """Forward (A->B) and reverse (B->A, inverted) quotes for a pair."""

    forward: Tuple[DirectionalQuote, ...] = ()
    reverse: Tuple[DirectionalQuote, ...] = ()
    errors: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.forward and not self.reverse


class Confidence(enum.IntEnum):
    """Ordinal confidence tier of an opportunity."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """
    A detected forward/reverse rate discrepancy.

    Attributes:
        token_a: First token of the configured pair
        token_b: Second token of the configured pair
        buy_side: Quote with the lower price
        sell_side: Quote with the higher price
        profit_usd: Estimated profit at the probe notional
        profit_percent: (sell - buy) / buy * 100
        confidence: Confidence tier
        volume: USD probe notional the prices were fetched at
        observed_at: Unix timestamp of detection
    """

    token_a: Token
    token_b: Token
    buy_side: DirectionalQuote
    sell_side: DirectionalQuote
    profit_usd: float
    profit_percent: float
    confidence: Confidence
    volume: float
    observed_at: float

    @property
    def pair_symbol(self) -> str:
        return f"{self.token_a.symbol}/{self.token_b.symbol}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert opportunity to dictionary for JSON serialization"""
        return {
            "tokenA": self.token_a.to_dict(),
            "tokenB": self.token_b.to_dict(),
            "buyDEX": self.buy_side.to_dict(),
            "sellDEX": self.sell_side.to_dict(),
            "profitUSD": self.profit_usd,
            "profitPercentage": self.profit_percent,
            "confidence": self.confidence.name,
            "volume": self.volume,
            "timestamp": self.observed_at,
        }


@dataclass(frozen=True)
class ScanResult:
    """Outcome of one scan cycle."""

    timestamp: float
    opportunities: Tuple[ArbitrageOpportunity, ...]
    total_pairs_scanned: int
    duration_ms: float
    errors: Tuple[str, ...] = ()
    source: str = "live"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "opportunities": [opp.to_dict() for opp in self.opportunities],
            "totalScanned": self.total_pairs_scanned,
            "scanDuration": self.duration_ms,
            "errors": list(self.errors),
            "source": self.source,
        }
