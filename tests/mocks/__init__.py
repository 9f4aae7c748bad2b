"""Mock implementations for testing."""

from tests.mocks.chain import FakeChainClient, FakeInstructionBuilder, build_failure, chain_failure
from tests.mocks.data import API_SECRET, BONK_MINT, RAY_MINT, UNLISTED_MINT
from tests.mocks.venues import FakePriceSource


__all__ = [
    "API_SECRET",
    "BONK_MINT",
    "FakeChainClient",
    "FakeInstructionBuilder",
    "FakePriceSource",
    "RAY_MINT",
    "UNLISTED_MINT",
    "build_failure",
    "chain_failure",
]
