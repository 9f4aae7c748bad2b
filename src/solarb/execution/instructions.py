"""
Swap instruction builders.

An arbitrage trade is one transaction with two swap legs: SOL into the
token on the buy venue, then the token back into SOL on the sell venue.
The Jupiter builder restricts each leg's route to a single venue so the
trade really crosses the two markets.
"""

import base64
import binascii
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Protocol

import aiohttp
import orjson
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from solarb.config.constants import (
    DEFAULT_RPC_TIMEOUT_SECONDS,
    ENDPOINT_JUPITER_QUOTE,
    ENDPOINT_JUPITER_SWAP_INSTRUCTIONS,
    JUPITER_API_URL,
    WSOL_MINT,
)
from solarb.core.errors import SubmissionError
from solarb.core.types import Venue


logger = logging.getLogger(__name__)

# Route labels understood by the aggregator's `dexes` filter
JUPITER_DEX_LABELS: dict[Venue, str] = {
    Venue.RAYDIUM: "Raydium",
    Venue.PUMPFUN: "Pump.fun",
}


class InstructionBuilder(Protocol):
    """Protocol for swap instruction builders."""

    async def build(
        self,
        token_mint: str,
        buy_venue: Venue,
        sell_venue: Venue,
        payer: Pubkey,
        amount_lamports: int,
    ) -> list[Instruction]:
        """Build the instructions for one round trip."""
        ...


def parse_instruction(raw: dict[str, Any]) -> Instruction:
    """
    Convert an aggregator instruction payload into a solders Instruction.

    Payload shape:
        {"programId": str, "accounts": [{"pubkey", "isSigner", "isWritable"}],
         "data": base64}
    """
    try:
        accounts = [
            AccountMeta(
                Pubkey.from_string(account["pubkey"]),
                bool(account["isSigner"]),
                bool(account["isWritable"]),
            )
            for account in raw["accounts"]
        ]
        return Instruction(
            Pubkey.from_string(raw["programId"]),
            base64.b64decode(raw["data"], validate=True),
            accounts,
        )
    except (KeyError, TypeError, ValueError, binascii.Error) as e:
        raise SubmissionError(f"Malformed swap instruction: {e}") from e


class JupiterInstructionBuilder:
    """
    Builds round-trip swap instructions through the Jupiter aggregator.

    Each leg is quoted with `dexes` pinned to one venue and
    `onlyDirectRoutes`, then converted into raw instructions via
    /swap-instructions. Compute-budget instructions are taken from the
    first leg only.
    """

    def __init__(
        self,
        base_url: str = JUPITER_API_URL,
        timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS,
        slippage_bps: int = 200,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._slippage_bps = slippage_bps
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"Accept": "application/json"},
                json_serialize=lambda x: orjson.dumps(x).decode(),
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    @asynccontextmanager
    async def _request_context(self) -> AsyncIterator[aiohttp.ClientSession]:
        session = await self._get_session()
        try:
            yield session
        except (aiohttp.ClientError, TimeoutError) as e:
            raise SubmissionError(f"Aggregator network error: {e}") from e

    async def _handle_response(self, response: aiohttp.ClientResponse) -> dict[str, Any]:
        text = await response.text()
        if response.status >= 400:
            raise SubmissionError(f"Aggregator HTTP {response.status}: {text[:200]}")
        try:
            data = orjson.loads(text)
        except orjson.JSONDecodeError as e:
            raise SubmissionError(f"Aggregator returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise SubmissionError("Aggregator returned an unexpected payload")
        return data

    async def _quote(self, input_mint: str, output_mint: str, amount: int, venue: Venue) -> dict[str, Any]:
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": str(self._slippage_bps),
            "dexes": JUPITER_DEX_LABELS[venue],
            "onlyDirectRoutes": "true",
        }
        async with self._request_context() as session:
            async with session.get(f"{self._base_url}{ENDPOINT_JUPITER_QUOTE}", params=params) as response:
                return await self._handle_response(response)

    async def _swap_instructions(self, quote: dict[str, Any], payer: Pubkey) -> dict[str, Any]:
        body = {
            "quoteResponse": quote,
            "userPublicKey": str(payer),
            "wrapAndUnwrapSol": True,
        }
        url = f"{self._base_url}{ENDPOINT_JUPITER_SWAP_INSTRUCTIONS}"
        async with self._request_context() as session:
            async with session.post(url, json=body) as response:
                return await self._handle_response(response)

    @staticmethod
    def _leg_instructions(payload: dict[str, Any], include_compute_budget: bool) -> list[Instruction]:
        raw: list[dict[str, Any]] = []
        if include_compute_budget:
            raw.extend(payload.get("computeBudgetInstructions") or [])
        raw.extend(payload.get("setupInstructions") or [])
        swap = payload.get("swapInstruction")
        if not swap:
            raise SubmissionError("Aggregator response has no swap instruction")
        raw.append(swap)
        if payload.get("cleanupInstruction"):
            raw.append(payload["cleanupInstruction"])
        return [parse_instruction(item) for item in raw]

    async def build(
        self,
        token_mint: str,
        buy_venue: Venue,
        sell_venue: Venue,
        payer: Pubkey,
        amount_lamports: int,
    ) -> list[Instruction]:
        """
        Build SOL -> token (buy venue) -> SOL (sell venue) instructions.

        Raises:
            SubmissionError: If either venue cannot route the leg or the
                aggregator response is malformed.
        """
        buy_quote = await self._quote(WSOL_MINT, token_mint, amount_lamports, buy_venue)
        try:
            token_amount = int(buy_quote.get("otherAmountThreshold") or 0)
        except (TypeError, ValueError) as e:
            raise SubmissionError(f"Malformed {buy_venue.value} quote for {token_mint}") from e
        if token_amount <= 0:
            raise SubmissionError(f"No {buy_venue.value} route for {token_mint}")

        sell_quote = await self._quote(token_mint, WSOL_MINT, token_amount, sell_venue)

        buy_leg = await self._swap_instructions(buy_quote, payer)
        sell_leg = await self._swap_instructions(sell_quote, payer)

        instructions = self._leg_instructions(buy_leg, include_compute_budget=True)
        instructions.extend(self._leg_instructions(sell_leg, include_compute_budget=False))

        logger.debug(
            f"Built {len(instructions)} instructions for {token_mint}: "
            f"{buy_venue.value} -> {sell_venue.value}, {amount_lamports} lamports in"
        )
        return instructions
