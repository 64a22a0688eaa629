"""
Exception hierarchy for the Solana arbitrage scanner.

Provides specific exception types for the failure categories of the
scan-detect-decide pipeline so callers can decide what is recoverable.
"""

from typing import Any, Dict, List, Optional


class ArbitrageScannerError(Exception):
    """Base exception for all scanner related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class UpstreamUnavailable(ArbitrageScannerError):
    """Raised when every quote endpoint failed for a single request."""

    def __init__(
        self,
        message: str,
        endpoints: Optional[List[str]] = None,
        last_error: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.endpoints = list(endpoints or [])
        self.last_error = last_error


class MalformedResponse(UpstreamUnavailable):
    """Raised when an endpoint answered with data the scanner cannot use."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message, endpoints=[endpoint] if endpoint else None, details=details
        )
        self.endpoint = endpoint


class ConfigurationError(ArbitrageScannerError):
    """Raised for invalid configuration, pair or token references."""

    pass


class ExecutionError(ArbitrageScannerError):
    """Raised when building, submitting or confirming a swap fails."""

    def __init__(
        self,
        message: str,
        signature: Optional[str] = None,
        opportunity: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.signature = signature
        self.opportunity = opportunity


class FatalStartupError(ArbitrageScannerError):
    """Raised when the scanner cannot be constructed; aborts the process."""

    pass
