"""
Solana Arbitrage Scanner.

Polls the Jupiter quote API for configured token pairs, normalizes the quotes
into comparable rates and surfaces forward/reverse spreads that clear the
configured profitability thresholds. Keeps running on an unreliable upstream by
retrying across mirrors and degrading to synthetic data.
"""

PROJECT_NAME = "Solana-Arbitrage-Scanner"

from solana_arbitrage.version import __version__ as VERSION  # noqa: E402
from solana_arbitrage.exceptions import (  # noqa: E402
    ArbitrageScannerError,
    ConfigurationError,
    ExecutionError,
    FatalStartupError,
    MalformedResponse,
    UpstreamUnavailable,
)

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "ArbitrageScannerError",
    "ConfigurationError",
    "ExecutionError",
    "FatalStartupError",
    "MalformedResponse",
    "UpstreamUnavailable",
]
