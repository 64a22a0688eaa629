"""
Pydantic models for upstream (Jupiter v6) quote and swap payloads.

Upstream JSON is validated here and turned into the typed models in
``scanner.types`` before it reaches the rest of the scanner.
"""

from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from solana_arbitrage.exceptions import MalformedResponse

from .types import Quote, RouteHop


class SwapInfo(BaseModel):
    """One hop of a route plan."""

    label: str = Field(min_length=1)
    amm_key: Optional[str] = Field(None, alias="ammKey")
    input_mint: Optional[str] = Field(None, alias="inputMint")
    output_mint: Optional[str] = Field(None, alias="outputMint")
    in_amount: Optional[int] = Field(None, alias="inAmount")
    out_amount: Optional[int] = Field(None, alias="outAmount")
    fee_amount: Optional[int] = Field(None, alias="feeAmount")
    fee_mint: Optional[str] = Field(None, alias="feeMint")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RoutePlanStep(BaseModel):
    swap_info: SwapInfo = Field(alias="swapInfo")
    percent: Optional[float] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class QuoteResponse(BaseModel):
    """
    Response of ``GET /quote``.

    ``outAmount`` and a non-empty ``routePlan`` are required; everything else
    is optional. Amounts arrive as decimal strings.
    """

    input_mint: Optional[str] = Field(None, alias="inputMint")
    output_mint: Optional[str] = Field(None, alias="outputMint")
    in_amount: Optional[int] = Field(None, alias="inAmount", gt=0)
    out_amount: int = Field(alias="outAmount", gt=0)
    other_amount_threshold: Optional[int] = Field(None, alias="otherAmountThreshold")
    swap_mode: Optional[str] = Field(None, alias="swapMode")
    slippage_bps: Optional[int] = Field(None, alias="slippageBps")
    price_impact_pct: float = Field(0.0, alias="priceImpactPct")
    route_plan: List[RoutePlanStep] = Field(alias="routePlan", min_length=1)
    context_slot: Optional[int] = Field(None, alias="contextSlot")
    time_taken: Optional[float] = Field(None, alias="timeTaken")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("price_impact_pct", mode="before")
    @classmethod
    def default_missing_impact(cls, v):
        return 0.0 if v is None or v == "" else v

    def to_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int,
        endpoint: str,
        raw: Mapping[str, Any],
    ) -> Quote:
        """Convert to the scanner's Quote model, filling request-side defaults."""
        return Quote(
            input_mint=self.input_mint or input_mint,
            output_mint=self.output_mint or output_mint,
            in_amount=self.in_amount or amount,
            out_amount=self.out_amount,
            price_impact_pct=self.price_impact_pct,
            route=tuple(
                RouteHop(
                    label=step.swap_info.label,
                    amm_key=step.swap_info.amm_key,
                    percent=step.percent,
                )
                for step in self.route_plan
            ),
            slippage_bps=self.slippage_bps if self.slippage_bps is not None else slippage_bps,
            endpoint=endpoint,
            raw=dict(raw),
        )


def parse_quote(
    payload: Any,
    input_mint: str,
    output_mint: str,
    amount: int,
    slippage_bps: int,
    endpoint: str,
) -> Quote:
    """
    Validate a raw quote payload.

    Raises:
        MalformedResponse: If the payload is not a usable quote
    """
    if not isinstance(payload, Mapping):
        raise MalformedResponse(
            f"Quote response from {endpoint} is not a JSON object", endpoint=endpoint
        )
    try:
        model = QuoteResponse.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponse(
            f"Malformed quote from {endpoint}: {e.error_count()} validation error(s)",
            endpoint=endpoint,
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e
    return model.to_quote(input_mint, output_mint, amount, slippage_bps, endpoint, payload)


class AccountMetaModel(BaseModel):
    pubkey: str
    is_signer: bool = Field(alias="isSigner")
    is_writable: bool = Field(alias="isWritable")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class InstructionModel(BaseModel):
    """Serialized instruction: program id, account metas, base64 data."""

    program_id: str = Field(alias="programId")
    accounts: List[AccountMetaModel] = Field(default_factory=list)
    data: str = ""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SwapInstructionsResponse(BaseModel):
    """Response of ``POST /swap-instructions``."""

    token_ledger_instruction: Optional[InstructionModel] = Field(
        None, alias="tokenLedgerInstruction"
    )
    compute_budget_instructions: List[InstructionModel] = Field(
        default_factory=list, alias="computeBudgetInstructions"
    )
    setup_instructions: List[InstructionModel] = Field(
        default_factory=list, alias="setupInstructions"
    )
    swap_instruction: InstructionModel = Field(alias="swapInstruction")
    cleanup_instruction: Optional[InstructionModel] = Field(
        None, alias="cleanupInstruction"
    )
    address_lookup_table_addresses: List[str] = Field(
        default_factory=list, alias="addressLookupTableAddresses"
    )

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def parse_swap_instructions(payload: Any, endpoint: str) -> SwapInstructionsResponse:
    """
    Validate a swap-instructions payload.

    Raises:
        MalformedResponse: If required instructions are missing
    """
    try:
        return SwapInstructionsResponse.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponse(
            f"Malformed swap instructions from {endpoint}: {e.error_count()} validation error(s)",
            endpoint=endpoint,
        ) from e
