"""
Async Solana JSON-RPC client.

Thin client for the handful of RPC methods the executor needs:
- Connection pooling and keep-alive
- Fast JSON parsing with orjson
- Explicit timeout on every call
"""

import base64
import itertools
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiohttp
import orjson

from solarb.config.constants import (
    COMMITMENT_CONFIRMED,
    DEFAULT_RPC_TIMEOUT_SECONDS,
    RPC_GET_BALANCE,
    RPC_GET_LATEST_BLOCKHASH,
    RPC_GET_SIGNATURE_STATUSES,
    RPC_SEND_TRANSACTION,
    SOLANA_RPC_URL,
)
from solarb.core.errors import ChainClientError
from solarb.core.types import SignatureStatus


class SolanaRpcClient:
    """
    Async Solana JSON-RPC client.

    Example:
        >>> async with SolanaRpcClient(settings.rpc_url) as rpc:
        ...     blockhash = await rpc.get_latest_blockhash()
    """

    def __init__(
        self,
        rpc_url: str = SOLANA_RPC_URL,
        timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS,
        commitment: str = COMMITMENT_CONFIRMED,
    ) -> None:
        """
        Initialize the client.

        Args:
            rpc_url: JSON-RPC endpoint.
            timeout_seconds: Total timeout for one call.
            commitment: Commitment level for reads.
        """
        self._rpc_url = rpc_url
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._commitment = commitment
        self._session: aiohttp.ClientSession | None = None
        self._ids = itertools.count(1)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=20,
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
                json_serialize=lambda x: orjson.dumps(x).decode(),
            )
        return self._session

    async def close(self) -> None:
        """Close the client session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    @asynccontextmanager
    async def _request_context(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Context manager for making requests."""
        session = await self._get_session()
        try:
            yield session
        except (aiohttp.ClientError, TimeoutError) as e:
            raise ChainClientError(f"Network error: {e}") from e

    async def _call(self, method: str, params: list[Any] | None = None) -> Any:
        """
        Make a JSON-RPC call.

        Returns:
            The `result` member of the response.

        Raises:
            ChainClientError: On network errors, HTTP errors, invalid
                JSON or an RPC error object.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }

        async with self._request_context() as session:
            async with session.post(self._rpc_url, json=payload, timeout=self._timeout) as response:
                return await self._handle_response(method, response)

    async def _handle_response(self, method: str, response: aiohttp.ClientResponse) -> Any:
        """Parse and validate response."""
        text = await response.text()

        if response.status >= 400:
            raise ChainClientError(f"{method}: HTTP {response.status}", code=response.status)

        try:
            data = orjson.loads(text)
        except orjson.JSONDecodeError as e:
            raise ChainClientError(f"{method}: invalid JSON response: {e}") from e

        if not isinstance(data, dict):
            raise ChainClientError(f"{method}: unexpected response shape")

        error = data.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message", error) if isinstance(error, dict) else error
            raise ChainClientError(f"{method}: RPC error: {message}", code=code)

        return data.get("result")

    # =========================================================================
    # RPC Methods
    # =========================================================================

    async def get_latest_blockhash(self) -> str:
        """Get the most recent blockhash."""
        result = await self._call(RPC_GET_LATEST_BLOCKHASH, [{"commitment": self._commitment}])
        value = result.get("value") if isinstance(result, dict) else None
        blockhash = value.get("blockhash") if isinstance(value, dict) else None
        if not isinstance(blockhash, str) or not blockhash:
            raise ChainClientError(f"{RPC_GET_LATEST_BLOCKHASH}: missing blockhash")
        return blockhash

    async def get_balance(self, pubkey: str) -> int:
        """Get account balance in lamports."""
        result = await self._call(RPC_GET_BALANCE, [pubkey, {"commitment": self._commitment}])
        value = result.get("value") if isinstance(result, dict) else None
        if isinstance(value, bool) or not isinstance(value, int):
            raise ChainClientError(f"{RPC_GET_BALANCE}: missing balance")
        return value

    async def send_transaction(self, raw_transaction: bytes) -> str:
        """
        Send a signed, serialized transaction.

        Returns:
            Transaction signature (base58).
        """
        encoded = base64.b64encode(raw_transaction).decode("ascii")
        result = await self._call(
            RPC_SEND_TRANSACTION,
            [
                encoded,
                {
                    "encoding": "base64",
                    "skipPreflight": False,
                    "preflightCommitment": self._commitment,
                    "maxRetries": 0,
                },
            ],
        )
        if not isinstance(result, str) or not result:
            raise ChainClientError(f"{RPC_SEND_TRANSACTION}: missing signature")
        return result

    async def get_signature_status(self, signature: str) -> SignatureStatus | None:
        """
        Get the status of a submitted transaction.

        Returns:
            SignatureStatus, or None if the cluster has not seen it.
        """
        result = await self._call(
            RPC_GET_SIGNATURE_STATUSES,
            [[signature], {"searchTransactionHistory": True}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, list) or not value:
            raise ChainClientError(f"{RPC_GET_SIGNATURE_STATUSES}: unexpected payload")

        entry = value[0]
        if entry is None:
            return None

        return SignatureStatus(
            signature=signature,
            confirmation_status=entry.get("confirmationStatus"),
            error=entry.get("err"),
        )

    async def __aenter__(self) -> "SolanaRpcClient":
        await self._get_session()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
