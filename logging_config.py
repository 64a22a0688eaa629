"""
Logging configuration for cleaner scanner output.

Usage:
    import logging_config
    logging_config.setup()
"""

import logging
import sys


def setup(level=logging.INFO):
    """
    Configure root logging for the scanner CLI and web server.

    - Short timestamps (HH:MM:SS)
    - Quiet HTTP access logs from uvicorn and aiohttp
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"
        )
    )
    root.addHandler(console)

    # Suppress noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    for name in ("__main__", "scanner", "solana_arbitrage"):
        logging.getLogger(name).setLevel(level)

    # Module loggers from get_logger() carry their own handler; route them
    # through the root handler instead so output is not duplicated.
    for name in list(logging.root.manager.loggerDict):
        if name.startswith(("scanner", "solana_arbitrage")):
            logger = logging.getLogger(name)
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)


def setup_minimal():
    """Only warnings and errors."""
    setup(level=logging.WARNING)


def setup_debug():
    """Verbose logging, including HTTP access logs."""
    setup(level=logging.DEBUG)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
