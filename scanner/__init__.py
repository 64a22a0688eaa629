"""
Solana arbitrage scanner: quote gateway, rate normalization, detection,
orchestration and the execution gate.
"""

from .config import ScannerConfig, load_config, parse_config
from .orchestrator import RunState, ScanOrchestrator
from .types import ArbitrageOpportunity, Confidence, DirectionalQuote, ScanResult, Token

__all__ = [
    "ArbitrageOpportunity",
    "Confidence",
    "DirectionalQuote",
    "RunState",
    "ScanOrchestrator",
    "ScanResult",
    "ScannerConfig",
    "Token",
    "load_config",
    "parse_config",
]
