"""
Cache keys and TTL table.

Keys are built from resource kind + owner identity + discriminators so that
substring invalidation can drop everything about an exchange and prefix
invalidation everything about a user.
"""

from dataclasses import dataclass, fields
from typing import Any, Optional


@dataclass
class CacheTTL:
    """
    Time-to-live per resource kind, in seconds.

    Open orders have no entry: they are never cached.
    """

    balances: float = 300.0
    balance_summary: float = 300.0
    portfolio_evolution: float = 300.0
    exchange_details: float = 3600.0
    markets: float = 3600.0
    exchanges: float = 300.0
    token_details: float = 60.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheTTL":
        """Create from dictionary, keeping defaults for missing kinds."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: float(v) for k, v in data.items() if k in known})


class CacheKeys:
    """Builders for every cache key used by the resource client."""

    @staticmethod
    def balances(user_id: str) -> str:
        return f"balances_{user_id}"

    @staticmethod
    def balance_summary(user_id: str) -> str:
        return f"balance_summary_{user_id}"

    @staticmethod
    def portfolio_evolution(user_id: str, days: int) -> str:
        return f"portfolio_evolution_{user_id}_{days}"

    @staticmethod
    def exchange_details(
        exchange_id: str,
        include_fees: bool = True,
        include_markets: bool = True,
    ) -> str:
        return f"exchange_details_{exchange_id}_{str(include_fees).lower()}_{str(include_markets).lower()}"

    @staticmethod
    def available_exchanges(user_id: str) -> str:
        return f"available_exchanges_{user_id}"

    @staticmethod
    def linked_exchanges(user_id: str) -> str:
        return f"linked_exchanges_{user_id}"

    @staticmethod
    def markets(
        user_id: str,
        exchange_id: str,
        quote: Optional[str] = None,
        base: Optional[str] = None,
    ) -> str:
        return f"markets_{user_id}_{exchange_id}_{quote or 'any'}_{base or 'any'}"

    @staticmethod
    def token_details(exchange_id: str, symbol: str) -> str:
        return f"token_{exchange_id}_{symbol.upper()}"


# Key prefixes dropped by CacheStore.invalidate_user, per kind. A prefix
# matches a whole key or a key continuing with "_".
USER_INVALIDATION_PATTERNS: dict[str, tuple[str, ...]] = {
    "balances": ("balances_{user}", "balance_summary_{user}"),
    "exchanges": ("linked_exchanges_{user}", "available_exchanges_{user}"),
    "portfolio": ("portfolio_evolution_{user}",),
}
