"""
Tests for the scanner CLI: argument handling and startup validation.
"""

from pathlib import Path

import pytest

import run_scanner
from scanner.config import ScannerConfig
from solana_arbitrage.exceptions import ConfigurationError, FatalStartupError

CONFIG_PATH = Path(__file__).parents[1] / "configs" / "scanner.yaml"


@pytest.fixture
def quiet_logging(monkeypatch):
    monkeypatch.setattr(run_scanner.logging_config, "setup", lambda *a, **k: None)
    monkeypatch.setattr(run_scanner.logging_config, "setup_debug", lambda: None)
    monkeypatch.setattr(run_scanner.logging_config, "setup_minimal", lambda: None)


class TestArguments:
    def test_defaults(self):
        args = run_scanner.parse_args([])

        assert args.config is None
        assert not args.once
        assert not args.demo
        assert not args.json
        assert not args.quiet
        assert run_scanner.cli_overrides(args) == {}

    def test_flags_become_overrides(self):
        args = run_scanner.parse_args(["--demo", "--execute", "--metrics-port", "9100"])

        assert run_scanner.cli_overrides(args) == {
            "demo_mode": True,
            "execution": {"enabled": True},
            "metrics": {"enabled": True, "port": 9100},
        }

    def test_resolve_config_from_file(self):
        args = run_scanner.parse_args(["--config", str(CONFIG_PATH), "--demo"])

        config = run_scanner.resolve_config(args)

        assert isinstance(config, ScannerConfig)
        assert config.demo_mode is True

    def test_resolve_missing_config(self, tmp_path):
        args = run_scanner.parse_args(["--config", str(tmp_path / "missing.yaml")])

        with pytest.raises(ConfigurationError):
            run_scanner.resolve_config(args)


class TestExecutionGate:
    def test_disabled(self):
        assert run_scanner.build_execution_gate(ScannerConfig(), None, None) == (None, None)

    def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv("SOLANA_RPC_URL", raising=False)
        monkeypatch.delenv("SOLANA_KEYPAIR_PATH", raising=False)
        config = ScannerConfig(execution={"enabled": True})

        with pytest.raises(FatalStartupError):
            run_scanner.build_execution_gate(config, None, None)

    def test_unreadable_keypair(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SOLANA_RPC_URL", "https://api.mainnet-beta.solana.com")
        monkeypatch.setenv("SOLANA_KEYPAIR_PATH", str(tmp_path / "missing.json"))
        config = ScannerConfig(execution={"enabled": True})

        with pytest.raises(FatalStartupError):
            run_scanner.build_execution_gate(config, None, None)


class TestMain:
    def test_config_error_exit_code(self, tmp_path, quiet_logging, capsys):
        bad = tmp_path / "bad.yaml"
        bad.write_text("minProfitUSD: -1\n")

        assert run_scanner.main(["--config", str(bad)]) == 1
        assert "Config error" in capsys.readouterr().err

    def test_fatal_startup_exit_code(self, monkeypatch, quiet_logging, capsys):
        monkeypatch.delenv("SOLANA_RPC_URL", raising=False)
        monkeypatch.delenv("SOLANA_KEYPAIR_PATH", raising=False)
        monkeypatch.setattr(run_scanner, "load_dotenv", lambda: None)

        assert run_scanner.main(["--demo", "--once", "--execute"]) == 1
        assert "Initialization failed" in capsys.readouterr().err
