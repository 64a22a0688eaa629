#!/usr/bin/env python3
"""
Solana arbitrage scanner CLI.

Polls Jupiter for the configured pairs and logs forward/reverse spreads.

Usage:
    python3 run_scanner.py
    python3 run_scanner.py --config configs/scanner.yaml
    python3 run_scanner.py --demo --once
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Any, Dict, Optional

from dotenv import load_dotenv

import logging_config
from scanner.config import ScannerConfig, load_config
from scanner.executor import ExecutionGate
from scanner.gateway import QuoteGateway
from scanner.orchestrator import ScanOrchestrator
from scanner.submitter import JupiterSwapSubmitter, load_keypair
from solana_arbitrage.exceptions import ConfigurationError, FatalStartupError
from solana_arbitrage.metrics import get_metrics
from solana_arbitrage.utils import format_usd, safe_json_dump, timestamp_to_iso
from solana_arbitrage.version import get_version


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Solana arbitrage scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with built-in defaults
  python3 run_scanner.py

  # Use custom config
  python3 run_scanner.py --config configs/scanner.yaml

  # Synthetic data, single scan (for testing/CI)
  python3 run_scanner.py --demo --once

  # Single scan, machine-readable result
  python3 run_scanner.py --once --json
        """,
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to config YAML file (default: built-in configuration)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single scan and exit",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Use synthetic quotes instead of the Jupiter API",
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Submit eligible opportunities on-chain (requires RPC URL and keypair)",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the last scan result as JSON on exit",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    parser.add_argument(
        "--quiet", action="store_true", help="Only log warnings and errors"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {get_version()}"
    )

    return parser.parse_args(argv)


def cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Config overrides implied by command line flags."""
    overrides: Dict[str, Any] = {}
    if args.demo:
        overrides["demo_mode"] = True
    if args.execute:
        overrides["execution"] = {"enabled": True}
    if args.metrics_port is not None:
        overrides["metrics"] = {"enabled": True, "port": args.metrics_port}
    return overrides


def resolve_config(args: argparse.Namespace) -> ScannerConfig:
    """
    Load the config file (or defaults) and apply CLI flags.

    Raises:
        ConfigurationError: If the config is invalid
    """
    config = load_config(args.config) if args.config else ScannerConfig()
    overrides = cli_overrides(args)
    return config.with_overrides(overrides) if overrides else config


def build_execution_gate(config: ScannerConfig, gateway: QuoteGateway, metrics):
    """
    Build the execution gate when execution is enabled.

    RPC URL and keypair path fall back to SOLANA_RPC_URL and SOLANA_KEYPAIR_PATH.

    Raises:
        FatalStartupError: If RPC URL or keypair are missing or unreadable
    """
    if not config.execution.enabled:
        return None, None

    rpc_url = config.execution.rpc_url or os.getenv("SOLANA_RPC_URL")
    keypair_path = config.execution.keypair_path or os.getenv("SOLANA_KEYPAIR_PATH")
    if not rpc_url or not keypair_path:
        raise FatalStartupError(
            "Execution requires an RPC URL and keypair "
            "(set SOLANA_RPC_URL and SOLANA_KEYPAIR_PATH)"
        )

    try:
        signer = load_keypair(keypair_path)
    except ConfigurationError as e:
        raise FatalStartupError(str(e)) from e

    submitter = JupiterSwapSubmitter(gateway, rpc_url)
    gate = ExecutionGate(
        config.execution,
        submitter,
        signer=signer,
        slippage_bps=config.slippage_bps,
        metrics=metrics,
    )
    return gate, submitter


def print_final_stats(orchestrator: ScanOrchestrator):
    state = orchestrator.snapshot()
    print("\nFinal statistics")
    print(f"  Total scans: {state.scan_count}")
    print(f"  Last opportunities: {len(state.last_opportunities)}")
    if state.last_scan_at is not None:
        print(f"  Last scan: {timestamp_to_iso(state.last_scan_at)}")
    if state.using_synthetic_source:
        print("  Data source: synthetic")
    for opp in state.last_opportunities[:3]:
        print(
            f"    {opp.pair_symbol}: {format_usd(opp.profit_usd)} "
            f"({opp.profit_percent:.2f}%) [{opp.confidence.name}]"
        )


async def run(config: ScannerConfig, once: bool = False) -> ScanOrchestrator:
    """Assemble the scanner and run it until stopped (or for one cycle)."""
    metrics = get_metrics()
    metrics_started = False
    if config.metrics.enabled:
        metrics_started = await metrics.start_server(
            port=config.metrics.port, host=config.metrics.host
        )

    gateway = QuoteGateway(
        config.endpoints,
        timeout_sec=config.request_timeout_sec,
        backoff_sec=config.retry_backoff_sec,
        metrics=metrics,
    )
    submitter: Optional[JupiterSwapSubmitter] = None

    try:
        gate, submitter = build_execution_gate(config, gateway, metrics)
        orchestrator = ScanOrchestrator(
            config, gateway=gateway, metrics=metrics, execution_gate=gate
        )

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, orchestrator.stop)
            except NotImplementedError:
                # Windows event loops do not support signal handlers
                pass

        if once:
            await orchestrator.run_cycle()
        else:
            await orchestrator.start()
        return orchestrator
    finally:
        await gateway.close()
        if submitter is not None:
            await submitter.close()
        if metrics_started:
            await metrics.stop_server()


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    load_dotenv()
    args = parse_args(argv)

    if args.debug:
        logging_config.setup_debug()
    elif args.quiet:
        logging_config.setup_minimal()
    else:
        logging_config.setup(logging.INFO)

    try:
        config = resolve_config(args)
    except ConfigurationError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return 1

    try:
        orchestrator = asyncio.run(run(config, once=args.once))
    except FatalStartupError as e:
        print(f"❌ Initialization failed: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\n⏸ Stopped by user")
        return 0

    print_final_stats(orchestrator)
    if args.json and orchestrator.last_result is not None:
        print(safe_json_dump(orchestrator.last_result.to_dict()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
