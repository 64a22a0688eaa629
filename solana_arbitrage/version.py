"""Version information for the Solana arbitrage scanner."""

__version__ = "0.4.0"


def get_version() -> str:
    """Get the current version string."""
    return __version__
