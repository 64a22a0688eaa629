"""
Configuration loading and validation for the Solana arbitrage scanner.
"""

import os
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from solana_arbitrage.exceptions import ConfigurationError
from solana_arbitrage.utils import deep_merge, percent_to_basis_points

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
MSOL_MINT = "mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So"
JTO_MINT = "J1toso1uCk3RLmjorhTtrVwY9HJ7X8V9yYac6Y7kGCPn"
BONK_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"

# Primary Jupiter endpoint first, mirrors after it
DEFAULT_ENDPOINTS = [
    "https://quote-api.jup.ag/v6",
    "https://jupiter-swap-api.quiknode.pro/v6",
    "https://lite-api.jup.ag/swap/v1",
]

DEFAULT_PRIORITY_VENUES = [
    "Orca",
    "Raydium",
    "Jupiter",
    "Meteora",
    "Lifinity",
    "Serum",
    "Saber",
]


class PairConfig(BaseModel):
    """A token pair to monitor, by mint address."""

    token_a: str = Field(alias="tokenA")
    token_b: str = Field(alias="tokenB")

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    @property
    def label(self) -> str:
        return f"{self.token_a}/{self.token_b}"


DEFAULT_PAIRS = [
    PairConfig(token_a=SOL_MINT, token_b=USDC_MINT),
    PairConfig(token_a=SOL_MINT, token_b=USDT_MINT),
    PairConfig(token_a=USDC_MINT, token_b=USDT_MINT),
    PairConfig(token_a=MSOL_MINT, token_b=USDC_MINT),
    PairConfig(token_a=JTO_MINT, token_b=USDC_MINT),
    PairConfig(token_a=BONK_MINT, token_b=USDC_MINT),
]


class ExecutionSettings(BaseModel):
    """Execution gate configuration"""

    enabled: bool = False
    min_profit_usd: float = Field(5.0, ge=0, description="Minimum profit to act on")
    max_age_sec: float = Field(
        60.0, gt=0, description="Opportunities older than this are not executed"
    )
    profit_guard_ratio: float = Field(
        0.9, gt=0, le=1.0, description="Share of estimated profit required on-chain"
    )
    inter_submission_delay_sec: float = Field(2.0, ge=0)
    compute_unit_limit: int = Field(1_400_000, gt=0, le=1_400_000)
    compute_unit_price_micro_lamports: int = Field(50_000, ge=0)
    rpc_url: Optional[str] = None
    keypair_path: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class MetricsSettings(BaseModel):
    """Prometheus exporter configuration"""

    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = Field(8000, ge=1, le=65535)

    model_config = ConfigDict(frozen=True, extra="forbid")


class ScannerConfig(BaseModel):
    """
    Validated scanner configuration.

    Field aliases follow the dashboard's camelCase names so overrides coming
    from the control surface validate directly. ``scanInterval`` is accepted
    in milliseconds and converted to ``scan_interval_sec``.
    """

    pairs: List[PairConfig] = Field(
        default_factory=lambda: list(DEFAULT_PAIRS), min_length=1
    )

    # Profit thresholds
    min_profit_usd: float = Field(5.0, ge=0, alias="minProfitUSD")
    min_profit_percent: float = Field(
        0.5,
        ge=0,
        alias="minProfitPercentage",
        validation_alias=AliasChoices("minProfitPercentage", "minProfitPercent"),
    )

    # Probe notional used for price discovery
    test_volume_usd: float = Field(100.0, gt=0, alias="testVolume")

    scan_interval_sec: float = Field(30.0, gt=0)
    priority_venues: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PRIORITY_VENUES), alias="priorityDEXes"
    )

    # Risk caps, in percent
    max_price_impact: float = Field(1.0, gt=0, alias="maxPriceImpact")
    max_slippage: float = Field(0.5, ge=0, le=50, alias="maxSlippage")

    # Upstream
    usd_reference_mint: str = USDC_MINT
    endpoints: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ENDPOINTS), min_length=1
    )
    request_timeout_sec: float = Field(10.0, gt=0)
    retry_backoff_sec: float = Field(1.0, ge=0)
    pair_delay_sec: float = Field(0.1, ge=0)

    # Orchestration
    freshness_window_sec: float = Field(120.0, gt=0)
    failure_threshold: int = Field(3, ge=1)
    synthetic_opportunity_probability: float = Field(0.3, ge=0, le=1.0)
    demo_mode: bool = False

    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def convert_scan_interval_ms(cls, data: Any) -> Any:
        if isinstance(data, dict) and "scanInterval" in data:
            data = dict(data)
            data["scan_interval_sec"] = float(data.pop("scanInterval")) / 1000.0
        return data

    @field_validator("endpoints")
    @classmethod
    def validate_endpoints(cls, v):
        cleaned = []
        for url in v:
            url = url.strip()
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"Invalid endpoint URL format: {url}")
            cleaned.append(url.rstrip("/"))
        return cleaned

    @property
    def slippage_bps(self) -> int:
        """Slippage tolerance in basis points for quote requests."""
        return percent_to_basis_points(self.max_slippage)

    def with_overrides(self, overrides: Mapping[str, Any]) -> "ScannerConfig":
        """
        Return a new validated config with ``overrides`` applied.

        Keys may be field names or their camelCase aliases. Nested sections
        (``execution``, ``metrics``) are merged rather than replaced.

        Raises:
            ConfigurationError: If a key is unknown or a value is invalid
        """
        updates: Dict[str, Any] = {}
        for key, value in overrides.items():
            updates[_FIELD_BY_ALIAS.get(key, key)] = value
        return parse_config(deep_merge(self.model_dump(), updates))


def _input_aliases(info) -> List[str]:
    if isinstance(info.validation_alias, AliasChoices):
        return [c for c in info.validation_alias.choices if isinstance(c, str)]
    return [info.alias] if info.alias else []


_FIELD_BY_ALIAS = {
    alias: name
    for name, info in ScannerConfig.model_fields.items()
    for alias in _input_aliases(info)
}


def parse_config(config_dict: Mapping[str, Any]) -> ScannerConfig:
    """
    Validate a configuration dictionary.

    Raises:
        ConfigurationError: If the dictionary does not describe a valid config
    """
    try:
        return ScannerConfig.model_validate(dict(config_dict))
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid scanner configuration: {e}",
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e


def load_config(config_path: str) -> ScannerConfig:
    """
    Load and validate config from YAML file.

    Args:
        config_path: Path to config YAML file

    Returns:
        Validated ScannerConfig instance

    Raises:
        ConfigurationError: If config invalid or file not found
    """
    if not os.path.exists(config_path):
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML: {e}") from e

    if config_dict is None:
        raise ConfigurationError(f"Empty configuration file: {config_path}")
    if not isinstance(config_dict, dict):
        raise ConfigurationError("Config file must contain a YAML dictionary")

    return parse_config(config_dict)
