"""
Jupiter swap submitter.

Re-quotes the buy leg, checks it against the payload's minimum output, fetches
swap instructions from Jupiter and submits a signed v0 transaction through a
Solana RPC node.
"""

import base64
import json
import os
from typing import List, Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.address_lookup_table_account import (
    AddressLookupTable,
    AddressLookupTableAccount,
)
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from solana_arbitrage.exceptions import ConfigurationError, ExecutionError, UpstreamUnavailable
from solana_arbitrage.utils import get_logger

from .executor import SwapInstructionPayload
from .gateway import QuoteGateway
from .schemas import InstructionModel, SwapInstructionsResponse, parse_swap_instructions

logger = get_logger(__name__)


def load_keypair(path: str) -> Keypair:
    """
    Load a keypair from a Solana CLI JSON file (array of 64 byte values).

    Raises:
        ConfigurationError: If the file cannot be read or is not a keypair
    """
    try:
        with open(os.path.expanduser(path), "r") as f:
            secret = json.load(f)
        return Keypair.from_bytes(bytes(secret))
    except (OSError, ValueError, TypeError) as e:
        raise ConfigurationError(f"Failed to load keypair from {path}: {e}") from e


def to_instruction(model: InstructionModel) -> Instruction:
    """Convert a Jupiter JSON instruction into a solders Instruction."""
    return Instruction(
        program_id=Pubkey.from_string(model.program_id),
        accounts=[
            AccountMeta(
                pubkey=Pubkey.from_string(meta.pubkey),
                is_signer=meta.is_signer,
                is_writable=meta.is_writable,
            )
            for meta in model.accounts
        ],
        data=base64.b64decode(model.data),
    )


class JupiterSwapSubmitter:
    """
    TransactionSubmitter backed by Jupiter swap-instructions and solana-py.

    Args:
        gateway: Quote gateway used for re-quoting and swap instructions
        rpc_url: Solana RPC endpoint
        client: Optional pre-built AsyncClient
    """

    def __init__(
        self,
        gateway: QuoteGateway,
        rpc_url: Optional[str] = None,
        client: Optional[AsyncClient] = None,
    ):
        if client is None and not rpc_url:
            raise ConfigurationError("JupiterSwapSubmitter requires an RPC URL")
        self.gateway = gateway
        self.client = client or AsyncClient(rpc_url, commitment=Confirmed)

    async def close(self):
        await self.client.close()

    def build_instructions(
        self, payload: SwapInstructionPayload, swap: SwapInstructionsResponse
    ) -> List[Instruction]:
        """Compute-budget preamble followed by Jupiter's setup, swap and cleanup."""
        budget = payload.compute_budget
        instructions = [
            set_compute_unit_limit(budget.unit_limit),
            set_compute_unit_price(budget.unit_price_micro_lamports),
        ]
        if swap.token_ledger_instruction is not None:
            instructions.append(to_instruction(swap.token_ledger_instruction))
        instructions.extend(to_instruction(ix) for ix in swap.setup_instructions)
        instructions.append(to_instruction(swap.swap_instruction))
        if swap.cleanup_instruction is not None:
            instructions.append(to_instruction(swap.cleanup_instruction))
        return instructions

    async def resolve_lookup_tables(
        self, addresses: List[str]
    ) -> List[AddressLookupTableAccount]:
        if not addresses:
            return []

        keys = [Pubkey.from_string(address) for address in addresses]
        response = await self.client.get_multiple_accounts(keys)

        tables = []
        for key, account in zip(keys, response.value):
            if account is None:
                logger.warning(f"Address lookup table {key} not found, skipping")
                continue
            table = AddressLookupTable.deserialize(bytes(account.data))
            tables.append(AddressLookupTableAccount(key=key, addresses=table.addresses))
        return tables

    async def build_and_submit(self, payload: SwapInstructionPayload, signer: Keypair) -> str:
        """
        Build, sign, submit and confirm the buy leg of ``payload``.

        Raises:
            ExecutionError: If the re-quote misses the guard, the upstream is
                unavailable, or the transaction fails to confirm
        """
        try:
            quote = await self.gateway.get_quote(
                payload.input_mint,
                payload.output_mint,
                payload.amount,
                payload.slippage_bps,
            )
            if quote.out_amount < payload.min_out_amount:
                raise ExecutionError(
                    f"Re-quote for {payload.pair} returned {quote.out_amount}, "
                    f"below minimum {payload.min_out_amount}",
                    opportunity=payload.pair,
                )

            raw_instructions = await self.gateway.get_swap_instructions(
                quote, str(signer.pubkey())
            )
        except UpstreamUnavailable as e:
            raise ExecutionError(
                f"Upstream unavailable while preparing {payload.pair}: {e}",
                opportunity=payload.pair,
            ) from e

        swap = parse_swap_instructions(raw_instructions, quote.endpoint)
        instructions = self.build_instructions(payload, swap)
        lookup_tables = await self.resolve_lookup_tables(
            swap.address_lookup_table_addresses
        )

        latest_blockhash = (await self.client.get_latest_blockhash()).value.blockhash
        message = MessageV0.try_compile(
            payer=signer.pubkey(),
            instructions=instructions,
            address_lookup_table_accounts=lookup_tables,
            recent_blockhash=latest_blockhash,
        )
        transaction = VersionedTransaction(message, [signer])

        response = await self.client.send_transaction(
            transaction,
            opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed),
        )
        signature = response.value
        logger.info(f"Submitted {payload.pair}: {signature}")

        confirmation = await self.client.confirm_transaction(signature, commitment=Confirmed)
        statuses = confirmation.value or []
        status = statuses[0] if statuses else None
        if status is not None and status.err is not None:
            raise ExecutionError(
                f"Transaction {signature} failed: {status.err}",
                signature=str(signature),
                opportunity=payload.pair,
            )

        return str(signature)
