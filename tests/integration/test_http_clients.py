"""
Integration tests for the HTTP clients.

Runs the Solana RPC client, the venue price sources and the Jupiter
instruction builder against a local aiohttp server.
"""

import base64
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from solders.hash import Hash
from solders.keypair import Keypair

from solarb.core.errors import ChainClientError, OracleUnavailable, SubmissionError, UnknownToken
from solarb.core.types import Venue
from solarb.execution.chain import SolanaRpcClient
from solarb.execution.instructions import JupiterInstructionBuilder
from solarb.oracle.sources import PumpFunPriceSource, RaydiumPriceSource
from tests.mocks import RAY_MINT


@asynccontextmanager
async def serve(routes: list[web.RouteDef]) -> AsyncIterator[str]:
    """Run an aiohttp app on a free local port and yield its base URL."""
    app = web.Application()
    app.add_routes(routes)
    server = TestServer(app)
    await server.start_server()
    try:
        yield f"http://{server.host}:{server.port}"
    finally:
        await server.close()


def rpc_result(request_body: dict[str, Any], result: Any) -> web.Response:
    return web.json_response({"jsonrpc": "2.0", "id": request_body["id"], "result": result})


class TestSolanaRpcClient:
    """Tests for SolanaRpcClient."""

    @pytest.mark.asyncio
    async def test_rpc_methods(self) -> None:
        """Test blockhash, balance, send and status round trips."""
        blockhash = str(Hash.new_unique())
        calls: list[dict[str, Any]] = []

        async def handler(request: web.Request) -> web.Response:
            body = await request.json()
            calls.append(body)
            method = body["method"]
            if method == "getLatestBlockhash":
                return rpc_result(body, {"context": {"slot": 1}, "value": {"blockhash": blockhash}})
            if method == "getBalance":
                return rpc_result(body, {"context": {"slot": 1}, "value": 1_500_000_000})
            if method == "sendTransaction":
                return rpc_result(body, "5VERYsig")
            return rpc_result(
                body,
                {"context": {"slot": 1}, "value": [{"confirmationStatus": "finalized", "err": None}]},
            )

        async with serve([web.post("/", handler)]) as url:
            async with SolanaRpcClient(url) as rpc:
                assert await rpc.get_latest_blockhash() == blockhash
                assert await rpc.get_balance(str(Keypair().pubkey())) == 1_500_000_000
                assert await rpc.send_transaction(b"\x01\x02") == "5VERYsig"
                status = await rpc.get_signature_status("5VERYsig")

        assert status is not None
        assert status.is_confirmed is True
        send = calls[2]
        assert send["params"][0] == base64.b64encode(b"\x01\x02").decode()
        assert send["params"][1]["encoding"] == "base64"
        assert send["params"][1]["maxRetries"] == 0
        assert [call["id"] for call in calls] == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_unseen_signature(self) -> None:
        """Test that a null status entry means the cluster has not seen it."""

        async def handler(request: web.Request) -> web.Response:
            return rpc_result(await request.json(), {"context": {"slot": 1}, "value": [None]})

        async with serve([web.post("/", handler)]) as url:
            async with SolanaRpcClient(url) as rpc:
                assert await rpc.get_signature_status("sig") is None

    @pytest.mark.asyncio
    async def test_rpc_error_object(self) -> None:
        """Test that JSON-RPC errors carry their code."""

        async def handler(request: web.Request) -> web.Response:
            body = await request.json()
            return web.json_response(
                {
                    "jsonrpc": "2.0",
                    "id": body["id"],
                    "error": {"code": -32002, "message": "Transaction simulation failed"},
                }
            )

        async with serve([web.post("/", handler)]) as url:
            async with SolanaRpcClient(url) as rpc:
                with pytest.raises(ChainClientError, match="simulation failed") as exc_info:
                    await rpc.send_transaction(b"\x00")

        assert exc_info.value.code == -32002

    @pytest.mark.asyncio
    async def test_http_error(self) -> None:
        """Test that HTTP failures are reported with the status."""

        async def handler(request: web.Request) -> web.Response:
            return web.Response(status=503, text="overloaded")

        async with serve([web.post("/", handler)]) as url:
            async with SolanaRpcClient(url) as rpc:
                with pytest.raises(ChainClientError) as exc_info:
                    await rpc.get_latest_blockhash()

        assert exc_info.value.code == 503

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        """Test that a non-JSON body is a chain client error."""

        async def handler(request: web.Request) -> web.Response:
            return web.Response(text="<html>gateway</html>")

        async with serve([web.post("/", handler)]) as url:
            async with SolanaRpcClient(url) as rpc:
                with pytest.raises(ChainClientError, match="invalid JSON"):
                    await rpc.get_balance("x")


class TestPriceSources:
    """Tests for the Raydium and Pump.fun price sources."""

    @pytest.mark.asyncio
    async def test_raydium_price(self) -> None:
        """Test reading a mint price."""
        seen: list[str] = []

        async def handler(request: web.Request) -> web.Response:
            seen.append(request.query["mints"])
            return web.json_response({"success": True, "data": {RAY_MINT: "1.8731"}})

        async with serve([web.get("/mint/price", handler)]) as url:
            async with RaydiumPriceSource(url) as source:
                price = await source.fetch_price(RAY_MINT)

        assert price == 1.8731
        assert seen == [RAY_MINT]

    @pytest.mark.asyncio
    async def test_raydium_unknown_token(self) -> None:
        """Test that a null price means no market."""

        async def handler(request: web.Request) -> web.Response:
            return web.json_response({"success": True, "data": {RAY_MINT: None}})

        async with serve([web.get("/mint/price", handler)]) as url:
            async with RaydiumPriceSource(url) as source:
                with pytest.raises(UnknownToken):
                    await source.fetch_price(RAY_MINT)

    @pytest.mark.asyncio
    async def test_raydium_unsuccessful(self) -> None:
        """Test that an unsuccessful envelope is an outage."""

        async def handler(request: web.Request) -> web.Response:
            return web.json_response({"success": False, "msg": "rate limited"})

        async with serve([web.get("/mint/price", handler)]) as url:
            async with RaydiumPriceSource(url) as source:
                with pytest.raises(OracleUnavailable):
                    await source.fetch_price(RAY_MINT)

    @pytest.mark.asyncio
    async def test_pumpfun_price(self) -> None:
        """Test deriving the price from market cap and supply."""

        async def handler(request: web.Request) -> web.Response:
            assert request.match_info["mint"] == RAY_MINT
            return web.json_response(
                {
                    "mint": RAY_MINT,
                    "usd_market_cap": 50_000.0,
                    "total_supply": 1_000_000_000_000_000,
                }
            )

        async with serve([web.get("/coins/{mint}", handler)]) as url:
            async with PumpFunPriceSource(url) as source:
                price = await source.fetch_price(RAY_MINT)

        assert price == pytest.approx(0.00005)

    @pytest.mark.asyncio
    async def test_pumpfun_not_found(self) -> None:
        """Test that HTTP 404 means no market."""

        async def handler(request: web.Request) -> web.Response:
            return web.Response(status=404)

        async with serve([web.get("/coins/{mint}", handler)]) as url:
            async with PumpFunPriceSource(url) as source:
                with pytest.raises(UnknownToken):
                    await source.fetch_price(RAY_MINT)

    @pytest.mark.asyncio
    async def test_server_error(self) -> None:
        """Test that HTTP 5xx is an outage."""

        async def handler(request: web.Request) -> web.Response:
            return web.Response(status=502)

        async with serve([web.get("/coins/{mint}", handler)]) as url:
            async with PumpFunPriceSource(url) as source:
                with pytest.raises(OracleUnavailable, match="HTTP 502"):
                    await source.fetch_price(RAY_MINT)


class TestJupiterInstructionBuilder:
    """Tests for JupiterInstructionBuilder."""

    @staticmethod
    def instruction(program: str, payer: str, data: bytes) -> dict[str, Any]:
        return {
            "programId": program,
            "accounts": [{"pubkey": payer, "isSigner": True, "isWritable": True}],
            "data": base64.b64encode(data).decode(),
        }

    @pytest.mark.asyncio
    async def test_build_round_trip(self) -> None:
        """Test that each leg is pinned to its venue and chained by amount."""
        payer = Keypair().pubkey()
        program = str(Keypair().pubkey())
        quotes: list[dict[str, str]] = []

        async def quote(request: web.Request) -> web.Response:
            quotes.append(dict(request.query))
            return web.json_response({"inAmount": request.query["amount"], "otherAmountThreshold": "12345"})

        async def swap_instructions(request: web.Request) -> web.Response:
            body = await request.json()
            assert body["userPublicKey"] == str(payer)
            return web.json_response(
                {
                    "computeBudgetInstructions": [self.instruction(program, str(payer), b"\x02")],
                    "setupInstructions": [],
                    "swapInstruction": self.instruction(program, str(payer), b"\x09"),
                    "cleanupInstruction": None,
                }
            )

        routes = [web.get("/quote", quote), web.post("/swap-instructions", swap_instructions)]
        async with serve(routes) as url:
            builder = JupiterInstructionBuilder(url, slippage_bps=150)
            try:
                instructions = await builder.build(
                    RAY_MINT, Venue.RAYDIUM, Venue.PUMPFUN, payer, 100_000_000
                )
            finally:
                await builder.close()

        assert len(instructions) == 3
        assert [q["dexes"] for q in quotes] == ["Raydium", "Pump.fun"]
        assert quotes[0]["amount"] == "100000000"
        assert quotes[1]["amount"] == "12345"
        assert quotes[1]["inputMint"] == RAY_MINT
        assert quotes[0]["slippageBps"] == "150"

    @pytest.mark.asyncio
    async def test_no_route(self) -> None:
        """Test that a venue without liquidity fails the build."""

        async def quote(request: web.Request) -> web.Response:
            return web.json_response({"error": "no route"}, status=400)

        async with serve([web.get("/quote", quote)]) as url:
            builder = JupiterInstructionBuilder(url)
            try:
                with pytest.raises(SubmissionError, match="HTTP 400"):
                    await builder.build(
                        RAY_MINT, Venue.PUMPFUN, Venue.RAYDIUM, Keypair().pubkey(), 1_000
                    )
            finally:
                await builder.close()

    @pytest.mark.asyncio
    async def test_malformed_instruction(self) -> None:
        """Test that an undecodable instruction payload is rejected."""

        async def quote(request: web.Request) -> web.Response:
            return web.json_response({"otherAmountThreshold": "10"})

        program = str(Keypair().pubkey())

        async def swap_instructions(request: web.Request) -> web.Response:
            return web.json_response(
                {"swapInstruction": {"programId": program, "accounts": [], "data": "!!"}}
            )

        routes = [web.get("/quote", quote), web.post("/swap-instructions", swap_instructions)]
        async with serve(routes) as url:
            builder = JupiterInstructionBuilder(url)
            try:
                with pytest.raises(SubmissionError, match="Malformed"):
                    await builder.build(
                        RAY_MINT, Venue.RAYDIUM, Venue.PUMPFUN, Keypair().pubkey(), 1_000
                    )
            finally:
                await builder.close()
