"""
FastAPI control surface.

Every route is rate limited per client; trade and operator routes are
authenticated. Service errors are mapped to HTTP statuses in one place.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

import pydantic
from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

from solarb import __version__
from solarb.config.constants import ACTION_CONTROL, ACTION_STATUS, ACTION_TRADE
from solarb.core.engine import TradingEngine
from solarb.core.errors import (
    AuthenticationError,
    ExecutionError,
    NoFunds,
    OracleError,
    RateLimitError,
    SolarbError,
    UnknownToken,
    ValidationError,
    WithdrawalError,
    WithdrawalReconciliationError,
)
from solarb.core.models import StartRequest, TradeRequest, WithdrawRequest
from solarb.core.types import TradeStatus


logger = logging.getLogger(__name__)

# Most specific class wins (handlers are resolved along the exception MRO)
ERROR_STATUS: dict[type[SolarbError], int] = {
    ValidationError: 400,
    UnknownToken: 400,
    NoFunds: 400,
    AuthenticationError: 401,
    RateLimitError: 429,
    WithdrawalReconciliationError: 500,
    ExecutionError: 502,
    WithdrawalError: 502,
    OracleError: 503,
    SolarbError: 500,
}


def _engine(request: Request) -> TradingEngine:
    return request.app.state.engine


def _client_id(request: Request) -> str:
    return request.client.host if request.client else "anonymous"


async def solarb_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map service errors onto HTTP responses."""
    status_code = next(
        (ERROR_STATUS[cls] for cls in type(exc).__mro__ if cls in ERROR_STATUS),
        500,
    )
    body: dict[str, Any] = {"error": type(exc).__name__, "message": str(exc)}
    headers: dict[str, str] = {}

    if isinstance(exc, RateLimitError):
        body["retryAfter"] = exc.retry_after
        headers["Retry-After"] = str(exc.retry_after)

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {status_code}: {exc}")

    return JSONResponse(status_code=status_code, content=body, headers=headers)


# =============================================================================
# Control Routes
# =============================================================================


async def start_bot(request: Request, body: StartRequest | None = None) -> dict[str, Any]:
    engine = _engine(request)
    await engine.rate_limiter.enforce(_client_id(request), ACTION_CONTROL)

    started = await engine.start(body.wallet if body else None)
    return {"status": "started" if started else "already_running", "running": True}


async def stop_bot(request: Request) -> dict[str, Any]:
    engine = _engine(request)
    await engine.rate_limiter.enforce(_client_id(request), ACTION_CONTROL)

    stopped = await engine.stop()
    return {"status": "stopped" if stopped else "not_running", "running": False}


async def withdraw(request: Request, body: WithdrawRequest | None = None) -> dict[str, Any]:
    engine = _engine(request)
    await engine.rate_limiter.enforce(_client_id(request), ACTION_CONTROL)

    amount, signature = await engine.withdraw(body.wallet if body else None)
    return {"status": "withdrawn", "amount": str(amount), "signature": signature}


# =============================================================================
# Trading Routes
# =============================================================================


async def submit_trade(request: Request) -> JSONResponse:
    engine = _engine(request)
    gate = engine.gate

    try:
        payload = await request.json()
    except ValueError as e:
        raise ValidationError("Request body must be valid JSON") from e
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    # The body ipAddress is client-supplied: logged, never used as the limiter key.
    client = _client_id(request)
    await engine.rate_limiter.enforce(client, ACTION_TRADE)
    raw_address = payload.get("ipAddress")
    source = gate.sanitize_value(str(raw_address)) if raw_address else "-"

    if not gate.authenticate_key(payload.get("apiKey")):
        logger.warning(f"Rejected trade from {client} (source {source}): bad credential")
        raise AuthenticationError("Invalid API key")

    try:
        trade = TradeRequest.model_validate(payload)
    except pydantic.ValidationError as e:
        return JSONResponse(
            status_code=422,
            content={
                "error": "ValidationError",
                "message": "Invalid trade request",
                "details": e.errors(include_url=False, include_input=False, include_context=False),
            },
        )

    if not gate.authenticate(trade):
        raise AuthenticationError("Invalid API key")

    fields = gate.sanitize({"tokenMint": trade.token_mint, "dex": trade.dex.value})
    logger.info(
        f"Trade request from {client} (source {source}): token={fields['tokenMint']} dex={fields['dex']} "
        f"roi={trade.roi:.4f}%"
    )

    record = await engine.executor.submit(trade)
    return JSONResponse(
        content={
            "status": record.status.value,
            "transactionId": record.signature,
            "recordId": record.record_id,
            "reason": record.reason,
        }
    )


# =============================================================================
# Status & Operator Routes
# =============================================================================


async def get_status(request: Request) -> dict[str, Any]:
    engine = _engine(request)
    await engine.rate_limiter.enforce(_client_id(request), ACTION_STATUS)
    return await engine.status()


async def list_trades(
    request: Request,
    status: str | None = None,
    x_api_key: str | None = Header(default=None),
) -> dict[str, Any]:
    engine = _engine(request)
    await engine.rate_limiter.enforce(_client_id(request), ACTION_STATUS)
    if not engine.gate.authenticate_key(x_api_key):
        raise AuthenticationError("Invalid API key")

    selected: TradeStatus | None = None
    if status:
        try:
            selected = TradeStatus(status.strip().upper())
        except ValueError as e:
            raise ValidationError(f"Unknown trade status: {engine.gate.sanitize_value(status)}") from e

    records = engine.trades(selected)
    return {"count": len(records), "trades": [record.to_dict() for record in records]}


async def reconcile_trades(
    request: Request,
    x_api_key: str | None = Header(default=None),
) -> dict[str, Any]:
    engine = _engine(request)
    await engine.rate_limiter.enforce(_client_id(request), ACTION_CONTROL)
    if not engine.gate.authenticate_key(x_api_key):
        raise AuthenticationError("Invalid API key")

    result = await engine.reconcile()
    return result.to_dict()


# =============================================================================
# Application
# =============================================================================


def create_app(engine: TradingEngine) -> FastAPI:
    """
    Build the application around an engine.

    The lifespan runs engine.setup() on startup and engine.shutdown()
    on exit.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
        await engine.setup()
        try:
            yield
        finally:
            await engine.shutdown()

    app = FastAPI(title="solarb", version=__version__, lifespan=lifespan)
    app.state.engine = engine
    app.add_exception_handler(SolarbError, solarb_error_handler)

    app.post("/start")(start_bot)
    app.post("/stop")(stop_bot)
    app.post("/withdraw")(withdraw)
    app.post("/trade")(submit_trade)
    app.get("/status")(get_status)
    app.get("/trades")(list_trades)
    app.post("/trades/reconcile")(reconcile_trades)
    return app
