# Mock classes for testing
"""Mock resource client and payload builders for testing."""

from .client_mock import MockResourceClient
from .payloads import (
    balances_payload,
    exchange_payload,
    make_exchange,
    make_open_orders,
    make_snapshot,
    open_orders_payload,
)

__all__ = [
    "MockResourceClient",
    "balances_payload",
    "exchange_payload",
    "open_orders_payload",
    "make_exchange",
    "make_snapshot",
    "make_open_orders",
]
