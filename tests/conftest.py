"""
Pytest configuration and shared fixtures.

Provides reusable test fixtures for all test modules.
"""

from collections.abc import Callable

import pytest
from solders.keypair import Keypair

from solarb.config.settings import Settings
from solarb.core.models import TradeRequest
from solarb.core.session import SessionState
from solarb.core.types import Venue
from solarb.execution.executor import ExecutorConfig, TradeExecutor
from solarb.execution.risk import RiskManager
from solarb.execution.signer import KeyStore
from solarb.oracle.oracle import PriceOracle
from solarb.store.memory import InMemoryCounterStore
from solarb.strategy.evaluator import ProfitabilityEvaluator
from solarb.telemetry.metrics import MetricsCollector
from tests.mocks import FakeChainClient, FakeInstructionBuilder, FakePriceSource
from tests.mocks.data import API_SECRET, BONK_MINT, RAY_MINT, ManualClock, make_trade_request


# =============================================================================
# Key Fixtures
# =============================================================================


@pytest.fixture
def keypair() -> Keypair:
    """Fresh custodial keypair."""
    return Keypair()


@pytest.fixture
def secret_key_list(keypair: Keypair) -> str:
    """Custodial key as comma-separated bytes."""
    return ",".join(str(b) for b in bytes(keypair))


@pytest.fixture
def key_store(keypair: Keypair) -> KeyStore:
    return KeyStore(keypair)


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def settings(secret_key_list: str) -> Settings:
    """Dry-run settings with fast timings and two whitelisted tokens."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        api_secret=API_SECRET,
        custodial_secret_key=secret_key_list,
        whitelist=f"{RAY_MINT}, {BONK_MINT}",
        min_profit_pct=5.0,
        fee_rate_round_trip=0.006,
        max_slippage=0.02,
        trade_size_sol=0.1,
        loop_interval_seconds=0.05,
        quote_timeout_seconds=0.5,
        max_quote_skew_ms=500,
        confirm_timeout_seconds=0.2,
        confirm_poll_interval_seconds=0.01,
        dry_run=True,
    )


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store() -> InMemoryCounterStore:
    return InMemoryCounterStore()


@pytest.fixture
def session(store: InMemoryCounterStore) -> SessionState:
    return SessionState(store)


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def evaluator() -> ProfitabilityEvaluator:
    """Evaluator with 5% minimum, 0.6% fees and 2% slippage."""
    return ProfitabilityEvaluator(min_profit_pct=5.0, fee_rate_round_trip=0.006, max_slippage=0.02)


@pytest.fixture
def risk_manager() -> RiskManager:
    return RiskManager(whitelist=[RAY_MINT, BONK_MINT], min_profit_pct=5.0)


@pytest.fixture
def raydium_source() -> FakePriceSource:
    """Raydium quoting RAY at 100 and BONK at 1.0."""
    return FakePriceSource(Venue.RAYDIUM, {RAY_MINT: 100.0, BONK_MINT: 1.0})


@pytest.fixture
def pumpfun_source() -> FakePriceSource:
    """Pump.fun quoting RAY at 108 (5.4% net over Raydium) and BONK at 1.0."""
    return FakePriceSource(Venue.PUMPFUN, {RAY_MINT: 108.0, BONK_MINT: 1.0})


@pytest.fixture
def oracle(
    raydium_source: FakePriceSource,
    pumpfun_source: FakePriceSource,
    metrics: MetricsCollector,
) -> PriceOracle:
    return PriceOracle(
        sources=[raydium_source, pumpfun_source],
        timeout_seconds=0.5,
        max_skew_ms=500,
        metrics=metrics,
    )


@pytest.fixture
def chain() -> FakeChainClient:
    return FakeChainClient()


@pytest.fixture
def instruction_builder() -> FakeInstructionBuilder:
    return FakeInstructionBuilder()


@pytest.fixture
def make_executor(
    key_store: KeyStore,
    chain: FakeChainClient,
    instruction_builder: FakeInstructionBuilder,
    session: SessionState,
    store: InMemoryCounterStore,
    risk_manager: RiskManager,
    oracle: PriceOracle,
    evaluator: ProfitabilityEvaluator,
    metrics: MetricsCollector,
) -> Callable[..., TradeExecutor]:
    """Factory building an executor over the shared fakes."""

    def factory(dry_run: bool = False, **overrides: object) -> TradeExecutor:
        config = ExecutorConfig(
            trade_size_sol=0.1,
            confirm_timeout_seconds=0.2,
            confirm_poll_interval_seconds=0.01,
            dry_run=dry_run,
        )
        for name, value in overrides.items():
            setattr(config, name, value)

        return TradeExecutor(
            key_store=key_store,
            chain=chain,
            instruction_builder=instruction_builder,
            session=session,
            store=store,
            risk_manager=risk_manager,
            oracle=oracle,
            evaluator=evaluator,
            config=config,
            metrics=metrics,
        )

    return factory


# =============================================================================
# Request Fixtures
# =============================================================================


@pytest.fixture
def trade_request() -> TradeRequest:
    return make_trade_request()
