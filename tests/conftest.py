"""
Pytest configuration and fixtures for portfolio-sync tests.
"""

import pytest

from portfolio_sync.cache import CacheStore
from portfolio_sync.sync import EventBus

from tests.mocks import MockResourceClient, make_snapshot


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> CacheStore:
    return CacheStore(clock=clock)


@pytest.fixture
def event_bus():
    bus = EventBus()
    yield bus
    bus.close()


@pytest.fixture
def mock_client() -> MockResourceClient:
    """Client answering with a two-exchange snapshot."""
    return MockResourceClient(make_snapshot("binance", "kraken"))
