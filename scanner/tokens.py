"""
Static token registry and token resolution.
"""

import re
from typing import Dict, Mapping, Optional

from solana_arbitrage.exceptions import ConfigurationError
from solana_arbitrage.utils import get_logger

from .config import BONK_MINT, JTO_MINT, MSOL_MINT, SOL_MINT, USDC_MINT, USDT_MINT
from .types import Token

logger = get_logger(__name__)

_LOGO_BASE = (
    "https://raw.githubusercontent.com/solana-labs/token-list/main/assets/mainnet"
)

TOKEN_REGISTRY: Dict[str, Dict] = {
    SOL_MINT: {
        "symbol": "SOL",
        "name": "Solana",
        "decimals": 9,
        "logoURI": f"{_LOGO_BASE}/{SOL_MINT}/logo.png",
    },
    USDC_MINT: {
        "symbol": "USDC",
        "name": "USD Coin",
        "decimals": 6,
        "logoURI": f"{_LOGO_BASE}/{USDC_MINT}/logo.png",
    },
    USDT_MINT: {
        "symbol": "USDT",
        "name": "Tether USD",
        "decimals": 6,
        "logoURI": f"{_LOGO_BASE}/{USDT_MINT}/logo.png",
    },
    MSOL_MINT: {"symbol": "mSOL", "name": "Marinade Staked SOL", "decimals": 9},
    JTO_MINT: {"symbol": "JTO", "name": "Jito", "decimals": 9},
    BONK_MINT: {"symbol": "BONK", "name": "Bonk", "decimals": 5},
}

# Placeholder tokens are assumed to use SOL-like precision
DEFAULT_DECIMALS = 9

# Base58 alphabet, 32-44 characters for a 32-byte public key
_MINT_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def is_valid_mint(mint: str) -> bool:
    """Check if string looks like a base58-encoded Solana public key."""
    return isinstance(mint, str) and bool(_MINT_RE.match(mint))


class TokenRegistry:
    """
    Resolves mint addresses to Token records.

    Known mints come from the static registry; unknown but well-formed mints
    resolve to an "unknown token" placeholder.
    """

    def __init__(self, registry: Optional[Mapping[str, Mapping]] = None):
        self._registry = dict(TOKEN_REGISTRY if registry is None else registry)
        self._cache: Dict[str, Token] = {}

    def __contains__(self, mint: str) -> bool:
        return mint in self._registry

    def resolve(self, mint: str) -> Token:
        """
        Look up a token by mint, synthesizing a placeholder when unknown.

        Raises:
            ConfigurationError: If the mint is not a valid address
        """
        if not is_valid_mint(mint):
            raise ConfigurationError(f"Invalid token mint: {mint!r}")

        token = self._cache.get(mint)
        if token is None:
            token = self._build(mint)
            self._cache[mint] = token
        return token

    def resolve_pair(self, token_a: str, token_b: str):
        """Resolve both sides of a pair; a pair must name two distinct mints."""
        if token_a == token_b:
            raise ConfigurationError(f"Pair uses the same mint on both sides: {token_a}")
        return self.resolve(token_a), self.resolve(token_b)

    def _build(self, mint: str) -> Token:
        if mint not in self:
            logger.warning(f"Unknown mint {mint}, assuming {DEFAULT_DECIMALS} decimals")
            return Token(
                mint=mint,
                symbol=f"TOKEN_{mint[:4]}",
                name=f"Unknown Token {mint[:8]}...",
                decimals=DEFAULT_DECIMALS,
            )

        info = self._registry[mint]
        return Token(
            mint=mint,
            symbol=info["symbol"],
            name=info["name"],
            decimals=int(info["decimals"]),
            logo_uri=info.get("logoURI"),
        )
