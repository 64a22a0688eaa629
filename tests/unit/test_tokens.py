"""Tests for token registry and resolution."""

import pytest

from scanner.config import BONK_MINT, SOL_MINT, USDC_MINT
from scanner.tokens import DEFAULT_DECIMALS, TokenRegistry, is_valid_mint
from solana_arbitrage.exceptions import ConfigurationError

UNKNOWN_MINT = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


@pytest.fixture
def registry():
    return TokenRegistry()


def test_resolve_known_token(registry):
    sol = registry.resolve(SOL_MINT)
    usdc = registry.resolve(USDC_MINT)
    bonk = registry.resolve(BONK_MINT)

    assert sol.symbol == "SOL"
    assert sol.decimals == 9
    assert usdc.symbol == "USDC"
    assert usdc.decimals == 6
    assert bonk.decimals == 5


def test_resolve_unknown_token_placeholder(registry):
    token = registry.resolve(UNKNOWN_MINT)

    assert token.mint == UNKNOWN_MINT
    assert token.symbol == "TOKEN_7xKX"
    assert token.name == "Unknown Token 7xKXtg2C..."
    assert token.decimals == DEFAULT_DECIMALS
    assert UNKNOWN_MINT not in registry


def test_resolve_is_cached(registry):
    assert registry.resolve(UNKNOWN_MINT) is registry.resolve(UNKNOWN_MINT)


@pytest.mark.parametrize("mint", ["", "not-a-mint", "0OIl" * 10, None])
def test_invalid_mint_rejected(registry, mint):
    assert not is_valid_mint(mint)
    with pytest.raises(ConfigurationError):
        registry.resolve(mint)


def test_resolve_pair_rejects_identical_mints(registry):
    with pytest.raises(ConfigurationError, match="same mint"):
        registry.resolve_pair(SOL_MINT, SOL_MINT)


def test_resolve_pair(registry):
    token_a, token_b = registry.resolve_pair(SOL_MINT, USDC_MINT)
    assert (token_a.symbol, token_b.symbol) == ("SOL", "USDC")


def test_custom_registry():
    registry = TokenRegistry({UNKNOWN_MINT: {"symbol": "FOO", "name": "Foo", "decimals": 4}})
    assert registry.resolve(UNKNOWN_MINT).symbol == "FOO"
    # Default entries are not merged into a custom registry
    assert registry.resolve(SOL_MINT).symbol == "TOKEN_So11"
