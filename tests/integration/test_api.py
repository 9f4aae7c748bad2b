"""
Integration tests for the HTTP control surface.

Drives the FastAPI app through TestClient with a real TradingEngine
wired to fake venues and a fake chain.
"""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from solarb.api.server import create_app
from solarb.config.settings import Settings
from solarb.core.engine import TradingEngine
from solarb.core.errors import OracleUnavailable
from solarb.execution.signer import KeyStore
from solarb.oracle.oracle import PriceOracle
from tests.mocks import (
    API_SECRET,
    UNLISTED_MINT,
    FakeChainClient,
    FakeInstructionBuilder,
    FakePriceSource,
    chain_failure,
)
from tests.mocks.data import trade_payload


WALLET = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


def build_client(
    settings: Settings,
    oracle: PriceOracle,
    chain: FakeChainClient,
    instruction_builder: FakeInstructionBuilder,
    key_store: KeyStore,
) -> TestClient:
    engine = TradingEngine(
        settings,
        oracle=oracle,
        chain=chain,
        instruction_builder=instruction_builder,
        key_store=key_store,
    )
    return TestClient(create_app(engine))


@pytest.fixture
def client(
    settings: Settings,
    oracle: PriceOracle,
    chain: FakeChainClient,
    instruction_builder: FakeInstructionBuilder,
    key_store: KeyStore,
) -> Iterator[TestClient]:
    """Dry-run service."""
    with build_client(settings, oracle, chain, instruction_builder, key_store) as test_client:
        yield test_client


@pytest.fixture
def live_client(
    settings: Settings,
    oracle: PriceOracle,
    chain: FakeChainClient,
    instruction_builder: FakeInstructionBuilder,
    key_store: KeyStore,
) -> Iterator[TestClient]:
    """Service that signs and sends to the fake chain."""
    live = settings.model_copy(update={"dry_run": False})
    with build_client(live, oracle, chain, instruction_builder, key_store) as test_client:
        yield test_client


class TestControlRoutes:
    """Tests for /start, /stop and /status."""

    def test_status(self, client: TestClient) -> None:
        """Test the initial status snapshot."""
        response = client.get("/status")

        assert response.status_code == 200
        body = response.json()
        assert body["running"] is False
        assert body["accumulatedProfit"] == "0"
        assert body["dryRun"] is True

    def test_start_requires_wallet(self, client: TestClient) -> None:
        """Test that /start rejects a missing wallet."""
        response = client.post("/start")

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    def test_start_rejects_invalid_wallet(self, client: TestClient) -> None:
        """Test that /start rejects a non-base58 wallet."""
        response = client.post("/start", json={"wallet": "not-a-wallet"})

        assert response.status_code == 400

    def test_start_stop(self, client: TestClient) -> None:
        """Test start/stop transitions and their idempotent repeats."""
        first = client.post("/start", json={"wallet": WALLET})
        second = client.post("/start", json={"wallet": WALLET})

        assert first.json() == {"status": "started", "running": True}
        assert second.json() == {"status": "already_running", "running": True}

        status = client.get("/status").json()
        assert status["running"] is True
        assert status["ownerWallet"] == WALLET

        assert client.post("/stop").json() == {"status": "stopped", "running": False}
        assert client.post("/stop").json() == {"status": "not_running", "running": False}


class TestTradeRoute:
    """Tests for POST /trade."""

    def test_trade_dry_run(self, client: TestClient) -> None:
        """Test a valid request executed in dry-run mode."""
        response = client.post("/trade", json=trade_payload())

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "CONFIRMED"
        assert body["transactionId"].startswith("DRY_")
        assert client.get("/status").json()["accumulatedProfit"] == "0.0054"

    def test_bad_api_key(self, client: TestClient) -> None:
        """Test that a wrong key is rejected before validation."""
        response = client.post("/trade", json=trade_payload(apiKey="wrong"))

        assert response.status_code == 401
        assert response.json()["error"] == "AuthenticationError"

    def test_missing_field(self, client: TestClient) -> None:
        """Test that schema errors are reported field by field."""
        payload = trade_payload()
        del payload["tokenMint"]

        response = client.post("/trade", json=payload)

        assert response.status_code == 422
        details = response.json()["details"]
        assert any(detail["loc"] == ["tokenMint"] for detail in details)

    def test_unknown_field(self, client: TestClient) -> None:
        """Test that unexpected fields are rejected."""
        response = client.post("/trade", json=trade_payload(leverage=10))

        assert response.status_code == 422

    def test_malformed_json(self, client: TestClient) -> None:
        """Test that a non-JSON body is a client error."""
        response = client.post(
            "/trade", content=b"{not json", headers={"content-type": "application/json"}
        )

        assert response.status_code == 400

    def test_unlisted_token(self, client: TestClient) -> None:
        """Test that unapproved tokens are rejected even with a huge ROI."""
        response = client.post("/trade", json=trade_payload(tokenMint=UNLISTED_MINT, roi=9_000))

        assert response.status_code == 400
        assert "not whitelisted" in response.json()["message"]

    def test_oracle_unavailable(self, client: TestClient, pumpfun_source: FakePriceSource) -> None:
        """Test that a venue outage maps to 503."""
        pumpfun_source.error = OracleUnavailable("pumpfun: HTTP 503")

        response = client.post("/trade", json=trade_payload())

        assert response.status_code == 503
        assert response.json()["error"] == "OracleUnavailable"

    def test_rate_limit(self, client: TestClient) -> None:
        """Test that the sixth trade in a window is rejected with a retry hint."""
        for _ in range(5):
            assert client.post("/trade", json=trade_payload()).status_code == 200

        response = client.post("/trade", json=trade_payload())

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) >= 1
        assert response.json()["retryAfter"] >= 1

    def test_rate_limit_ignores_body_address(self, client: TestClient) -> None:
        """Test that rotating the body ipAddress does not reset the trade limit."""
        for i in range(5):
            payload = trade_payload(ipAddress=f"10.0.0.{i}")
            assert client.post("/trade", json=payload).status_code == 200

        response = client.post("/trade", json=trade_payload(ipAddress="10.0.0.99"))

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) >= 1

    def test_live_trade(self, live_client: TestClient, chain: FakeChainClient) -> None:
        """Test that a live trade is sent and its signature returned."""
        response = live_client.post("/trade", json=trade_payload())

        assert response.status_code == 200
        assert response.json()["transactionId"] == str(chain.sent[0].signatures[0])

    def test_live_send_failure(self, live_client: TestClient, chain: FakeChainClient) -> None:
        """Test that a failed send maps to 502."""
        chain.send_error = chain_failure()

        response = live_client.post("/trade", json=trade_payload())

        assert response.status_code == 502
        assert response.json()["error"] == "SubmissionError"


class TestWithdrawRoute:
    """Tests for POST /withdraw."""

    def test_no_funds(self, client: TestClient) -> None:
        """Test that an empty balance is a client error."""
        response = client.post("/withdraw", json={"wallet": WALLET})

        assert response.status_code == 400
        assert response.json()["error"] == "NoFunds"

    def test_no_destination(self, client: TestClient) -> None:
        """Test that a wallet is required when none was given at start."""
        response = client.post("/withdraw")

        assert response.status_code == 400

    def test_withdraw_dry_run(self, client: TestClient) -> None:
        """Test withdrawing the profit of a dry-run trade."""
        client.post("/trade", json=trade_payload())

        response = client.post("/withdraw", json={"wallet": WALLET})

        assert response.status_code == 200
        body = response.json()
        assert body["amount"] == "0.0054"
        assert body["signature"].startswith("DRY_WITHDRAW_")
        assert client.get("/status").json()["accumulatedProfit"] == "0"

    def test_withdraw_live(self, live_client: TestClient, chain: FakeChainClient) -> None:
        """Test that a live withdrawal sends one transfer."""
        live_client.post("/trade", json=trade_payload())

        response = live_client.post("/withdraw", json={"wallet": WALLET})

        assert response.status_code == 200
        assert len(chain.sent) == 2
        assert response.json()["signature"] == str(chain.sent[1].signatures[0])

    def test_withdraw_failure_recredits(
        self, live_client: TestClient, chain: FakeChainClient
    ) -> None:
        """Test that a failed transfer keeps the balance."""
        live_client.post("/trade", json=trade_payload())
        chain.send_error = chain_failure()

        response = live_client.post("/withdraw", json={"wallet": WALLET})

        assert response.status_code == 502
        assert response.json()["error"] == "WithdrawalError"
        assert live_client.get("/status").json()["accumulatedProfit"] == "0.0054"


class TestOperatorRoutes:
    """Tests for /trades and /trades/reconcile."""

    def test_trades_requires_key(self, client: TestClient) -> None:
        """Test that trade history is not public."""
        assert client.get("/trades").status_code == 401

    def test_list_trades(self, client: TestClient) -> None:
        """Test listing and filtering trade records."""
        client.post("/trade", json=trade_payload())
        headers = {"X-API-Key": API_SECRET}

        all_trades = client.get("/trades", headers=headers).json()
        failed = client.get("/trades", params={"status": "failed"}, headers=headers).json()

        assert all_trades["count"] == 1
        assert all_trades["trades"][0]["status"] == "CONFIRMED"
        assert failed["count"] == 0

    def test_list_trades_unknown_status(self, client: TestClient) -> None:
        """Test that an unknown status filter is rejected."""
        response = client.get(
            "/trades", params={"status": "bogus"}, headers={"X-API-Key": API_SECRET}
        )

        assert response.status_code == 400

    def test_reconcile(self, client: TestClient) -> None:
        """Test an empty reconciliation pass."""
        response = client.post("/trades/reconcile", headers={"X-API-Key": API_SECRET})

        assert response.status_code == 200
        assert response.json()["checked"] == 0
