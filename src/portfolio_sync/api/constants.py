"""
Portfolio API constants and endpoint definitions.
"""

from dataclasses import dataclass
from enum import Enum


DEFAULT_BASE_URL = "http://localhost:5000/api/v1"


# =============================================================================
# Endpoint Definition
# =============================================================================


@dataclass(frozen=True)
class Endpoint:
    """
    API endpoint definition.

    Attributes:
        path: Path relative to the base URL, may contain ``{placeholders}``
        method: HTTP method
        timeout_tier: Name of the TimeoutConfig tier for this call
    """

    path: str
    method: str = "GET"
    timeout_tier: str = "standard"

    def format(self, **path_params: str) -> str:
        return self.path.format(**path_params)


# =============================================================================
# Read Endpoints
# =============================================================================


class ReadEndpoints(Enum):
    """Cacheable read endpoints."""

    BALANCES = Endpoint("/balances", "GET", "critical")
    BALANCE_SUMMARY = Endpoint("/balances/summary", "GET", "summary")
    PORTFOLIO_EVOLUTION = Endpoint("/balances/evolution", "GET", "standard")
    EXCHANGE_DETAILS = Endpoint("/exchanges/{exchange_id}/details", "GET", "standard")
    AVAILABLE_EXCHANGES = Endpoint("/exchanges/available", "GET", "fast")
    LINKED_EXCHANGES = Endpoint("/exchanges/linked", "GET", "fast")
    MARKETS = Endpoint("/exchanges/{exchange_id}/markets", "GET", "standard")
    OPEN_ORDERS = Endpoint("/orders/open", "GET", "standard")
    TOKEN_DETAILS = Endpoint("/tokens/{symbol}", "GET", "standard")


# =============================================================================
# Mutation Endpoints (never cached, never retried)
# =============================================================================


class OrderEndpoints(Enum):
    """Order mutation endpoints."""

    BUY = Endpoint("/orders/buy", "POST", "mutation")
    SELL = Endpoint("/orders/sell", "POST", "mutation")
    CANCEL = Endpoint("/orders/cancel", "POST", "mutation")
    CANCEL_ALL = Endpoint("/orders/cancel-all", "POST", "mutation")
    EDIT = Endpoint("/orders/edit", "POST", "mutation")


# HTTP statuses treated as transient besides 5xx
RETRYABLE_STATUSES = frozenset({429})
