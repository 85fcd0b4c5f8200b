"""
Timeout tiers.

Every API call belongs to a tier whose budget bounds a single attempt.
"""

import asyncio
from dataclasses import dataclass, fields
from typing import Any, Awaitable, TypeVar

from .exceptions import RequestTimeoutError
from .logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class TimeoutConfig:
    """
    Per-attempt budgets in seconds.

    Attributes:
        critical: Full balance fetch, which fans out to every exchange server-side
        summary: Balance summary
        standard: Evolution, exchange details, markets, open orders, tokens
        fast: Available and linked exchange lists
        mutation: Order create, cancel and edit
        default: Calls without a tier
    """

    critical: float = 120.0
    summary: float = 60.0
    standard: float = 15.0
    fast: float = 10.0
    mutation: float = 30.0
    default: float = 30.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeoutConfig":
        """Tiers from a mapping; unknown names are ignored, missing ones keep defaults."""
        tiers = {f.name for f in fields(cls)}
        return cls(**{name: float(seconds) for name, seconds in data.items() if name in tiers})

    def for_tier(self, tier: str) -> float:
        return getattr(self, tier, self.default)


async def with_timeout(coro: Awaitable[T], timeout: float, operation_name: str) -> T:
    """
    Await ``coro`` for at most ``timeout`` seconds.

    On expiry the underlying task is cancelled, so a late response is never
    observed, and RequestTimeoutError is raised.

    Example:
        >>> payload = await with_timeout(send("GET", "/orders/open"), 15.0, "GET /orders/open")
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        logger.debug(f"{operation_name} gave up after {timeout}s")
        raise RequestTimeoutError(operation_name, timeout) from None
