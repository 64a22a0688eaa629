"""
Common utilities and helper functions for the Solana arbitrage scanner.

This module provides centralized helper functions for timestamps, JSON
serialization, raw token amount conversion and structured logging.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Union


# Timestamp utilities
def timestamp_to_iso(timestamp: float) -> str:
    """Convert Unix timestamp to ISO 8601 string."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.2f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


# JSON utilities
def safe_json_dump(data: Any, **kwargs) -> str:
    """
    Safely serialize data to JSON with sensible defaults.

    Args:
        data: Data to serialize
        **kwargs: Additional arguments to json.dumps

    Returns:
        JSON string
    """
    defaults = {"ensure_ascii": False, "indent": 2, "default": _json_default_handler}
    defaults.update(kwargs)
    return json.dumps(data, **defaults)


def _json_default_handler(obj: Any) -> Any:
    """Default JSON serialization handler for custom types."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    elif hasattr(obj, "to_dict"):
        return obj.to_dict()
    elif hasattr(obj, "__dict__"):
        return obj.__dict__
    else:
        return str(obj)


# Dictionary utilities
def deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        update: Dictionary to merge into base

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in update.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


# Token amount utilities
def to_raw_amount(ui_amount: float, decimals: int) -> int:
    """Convert a human-readable token amount to integer base units."""
    return int(ui_amount * (10**decimals))


def from_raw_amount(raw_amount: int, decimals: int) -> float:
    """Convert integer base units to a human-readable token amount."""
    return raw_amount / (10**decimals)


def basis_points_to_percent(bps: float) -> float:
    """Convert basis points to percent (50 bps = 0.5%)."""
    return bps / 100.0


def percent_to_basis_points(pct: float) -> int:
    """Convert percent to whole basis points (0.5% = 50 bps)."""
    return int(round(pct * 100.0))


def short_mint(mint: str, length: int = 4) -> str:
    """Abbreviate a base58 mint address for log output."""
    if len(mint) <= length * 2:
        return mint
    return f"{mint[:length]}..{mint[-length:]}"


# Logging utilities
def get_logger(name: str, level: Union[str, int] = logging.INFO) -> logging.Logger:
    """
    Get a structured logger with consistent formatting.

    Args:
        name: Logger name (typically __name__)
        level: Logging level

    Returns:
        Configured logger with structured output
    """
    logger = logging.getLogger(name)

    # Set level if not already set
    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    # Add structured formatter if no handlers exist
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
            datefmt="%H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def format_usd(amount: float) -> str:
    """Format a USD amount with sign and two decimals (e.g. "+$6.67")."""
    sign = "+" if amount >= 0 else "-"
    return f"{sign}${abs(amount):,.2f}"
