"""
Resource Client.

Typed operations over the portfolio API. Reads go cache first, then the
executor, then back into the cache. Mutations go straight to the executor
and are never retried.
"""

from copy import deepcopy
from decimal import Decimal
from typing import Any, Optional

from portfolio_sync.cache import CacheKeys, CacheStore, CacheTTL
from portfolio_sync.core import TimeoutConfig, get_logger
from portfolio_sync.core.models import (
    AvailableExchange,
    LinkedExchange,
    OpenOrdersResult,
    OrderAck,
    OrderSide,
    OrderType,
    PortfolioEvolution,
    Snapshot,
)

from .constants import Endpoint, OrderEndpoints, ReadEndpoints
from .executor import RequestExecutor

logger = get_logger(__name__)


def format_decimal(value: Decimal | float | str) -> str:
    """Fixed-point rendering without trailing zeros."""
    d = Decimal(str(value))
    text = f"{d:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


class ResourceClient:
    """
    Cache-aware client for balances, exchanges, orders and tokens.

    Example:
        >>> client = ResourceClient(executor, CacheStore())
        >>> snapshot = await client.get_balances("42")
        >>> snapshot.summary.total_usd
        Decimal('1234.56')
        >>> result = await client.get_open_orders("42", "binance-id")
    """

    def __init__(
        self,
        executor: RequestExecutor,
        cache: CacheStore,
        ttl: Optional[CacheTTL] = None,
        timeouts: Optional[TimeoutConfig] = None,
    ):
        self._executor = executor
        self._cache = cache
        self._ttl = ttl or CacheTTL()
        self._timeouts = timeouts or executor.timeouts

    @property
    def cache(self) -> CacheStore:
        return self._cache

    def _timeout_for(self, endpoint: Endpoint) -> float:
        return self._timeouts.for_tier(endpoint.timeout_tier)

    # =========================================================================
    # Internal Read Path
    # =========================================================================

    async def _cached_fetch(
        self,
        key: str,
        ttl: float,
        endpoint: Endpoint,
        params: dict[str, Any],
        force_refresh: bool = False,
        **path_params: str,
    ) -> dict:
        """
        Cache read, then executor call, then cache write.

        Payloads flagged ``success: false`` are returned but not cached.
        Executor errors propagate unchanged. Callers always get their own
        copy, so mutating a result never alters the cached entry.
        """
        if not force_refresh:
            cached = self._cache.get(key, ttl)
            if cached is not None:
                return deepcopy(cached)

        if force_refresh:
            params = {**params, "force_refresh": True}

        payload = await self._executor.execute(
            endpoint.method,
            endpoint.format(**path_params),
            params=params,
            timeout=self._timeout_for(endpoint),
        )

        if payload.get("success", True) is not False:
            self._cache.set(key, deepcopy(payload))
        else:
            logger.debug(f"Not caching unsuccessful payload for {key}")
        return payload

    # =========================================================================
    # Balances
    # =========================================================================

    async def get_balances(self, user_id: str, force_refresh: bool = False) -> Snapshot:
        """
        Get balances of every connected exchange.

        Args:
            user_id: User identifier
            force_refresh: Skip the cache and ask the server to skip its own

        Returns:
            Snapshot with a locally computed summary
        """
        payload = await self._cached_fetch(
            CacheKeys.balances(user_id),
            self._ttl.balances,
            ReadEndpoints.BALANCES.value,
            {"user_id": user_id},
            force_refresh,
        )
        return Snapshot.from_api(payload)

    async def get_balance_summary(self, user_id: str, force_refresh: bool = False) -> Snapshot:
        """Lightweight balances (per-exchange totals, no token breakdown)."""
        payload = await self._cached_fetch(
            CacheKeys.balance_summary(user_id),
            self._ttl.balance_summary,
            ReadEndpoints.BALANCE_SUMMARY.value,
            {"user_id": user_id},
            force_refresh,
        )
        return Snapshot.from_api(payload)

    async def get_portfolio_evolution(
        self,
        user_id: str,
        days: int = 7,
        force_refresh: bool = False,
    ) -> PortfolioEvolution:
        payload = await self._cached_fetch(
            CacheKeys.portfolio_evolution(user_id, days),
            self._ttl.portfolio_evolution,
            ReadEndpoints.PORTFOLIO_EVOLUTION.value,
            {"user_id": user_id, "days": days},
            force_refresh,
        )
        return PortfolioEvolution.from_api(payload, days)

    # =========================================================================
    # Exchanges
    # =========================================================================

    async def get_exchange_details(
        self,
        exchange_id: str,
        include_fees: bool = True,
        include_markets: bool = True,
        force_refresh: bool = False,
    ) -> dict:
        return await self._cached_fetch(
            CacheKeys.exchange_details(exchange_id, include_fees, include_markets),
            self._ttl.exchange_details,
            ReadEndpoints.EXCHANGE_DETAILS.value,
            {"include_fees": include_fees, "include_markets": include_markets},
            force_refresh,
            exchange_id=exchange_id,
        )

    async def get_available_exchanges(
        self,
        user_id: str,
        force_refresh: bool = False,
    ) -> list[AvailableExchange]:
        payload = await self._cached_fetch(
            CacheKeys.available_exchanges(user_id),
            self._ttl.exchanges,
            ReadEndpoints.AVAILABLE_EXCHANGES.value,
            {"user_id": user_id},
            force_refresh,
        )
        return [AvailableExchange.from_api(e) for e in payload.get("exchanges") or []]

    async def get_linked_exchanges(
        self,
        user_id: str,
        force_refresh: bool = False,
    ) -> list[LinkedExchange]:
        payload = await self._cached_fetch(
            CacheKeys.linked_exchanges(user_id),
            self._ttl.exchanges,
            ReadEndpoints.LINKED_EXCHANGES.value,
            {"user_id": user_id},
            force_refresh,
        )
        return [LinkedExchange.from_api(e) for e in payload.get("exchanges") or []]

    async def get_markets(
        self,
        user_id: str,
        exchange_id: str,
        quote: Optional[str] = None,
        base: Optional[str] = None,
        force_refresh: bool = False,
    ) -> dict:
        return await self._cached_fetch(
            CacheKeys.markets(user_id, exchange_id, quote, base),
            self._ttl.markets,
            ReadEndpoints.MARKETS.value,
            {"user_id": user_id, "quote": quote, "base": base},
            force_refresh,
            exchange_id=exchange_id,
        )

    # =========================================================================
    # Orders and Tokens
    # =========================================================================

    async def get_open_orders(
        self,
        user_id: str,
        exchange_id: str,
        symbol: Optional[str] = None,
    ) -> OpenOrdersResult:
        """
        Get open orders of one exchange. Never cached.

        Server-side failures (bad credentials, unsupported exchange, ...) are
        returned as a degraded result, not raised.
        """
        endpoint = ReadEndpoints.OPEN_ORDERS.value
        payload = await self._executor.execute(
            endpoint.method,
            endpoint.path,
            params={"user_id": user_id, "exchange_id": exchange_id, "symbol": symbol},
            timeout=self._timeout_for(endpoint),
        )
        return OpenOrdersResult.from_api(payload, exchange_id)

    async def get_token_details(
        self,
        user_id: str,
        exchange_id: str,
        symbol: str,
        force_refresh: bool = False,
    ) -> dict:
        return await self._cached_fetch(
            CacheKeys.token_details(exchange_id, symbol),
            self._ttl.token_details,
            ReadEndpoints.TOKEN_DETAILS.value,
            {"user_id": user_id, "exchange_id": exchange_id},
            force_refresh,
            symbol=symbol.upper(),
        )

    # =========================================================================
    # Mutations
    # =========================================================================

    async def _mutate(self, endpoint: Endpoint, body: dict[str, Any]) -> OrderAck:
        # max_retries=0: an order must never be submitted twice
        payload = await self._executor.execute(
            endpoint.method,
            endpoint.path,
            json={k: v for k, v in body.items() if v is not None},
            timeout=self._timeout_for(endpoint),
            max_retries=0,
        )
        ack = OrderAck.from_api(payload)
        logger.info(
            f"{endpoint.path}: success={ack.success} order_id={ack.order_id} {ack.message}".rstrip()
        )
        return ack

    async def create_order(
        self,
        user_id: str,
        exchange_id: str,
        symbol: str,
        side: OrderSide | str,
        amount: Decimal | float | str,
        order_type: OrderType | str = OrderType.MARKET,
        price: Decimal | float | str | None = None,
    ) -> OrderAck:
        """
        Submit a buy or sell order.

        Raises:
            ValueError: Non-positive amount, or limit order without a price
        """
        side = OrderSide(side)
        order_type = OrderType(order_type)

        if Decimal(str(amount)) <= 0:
            raise ValueError(f"Order amount must be positive, got {amount}")
        if order_type == OrderType.LIMIT:
            if price is None:
                raise ValueError("Limit orders require a price")
            if Decimal(str(price)) <= 0:
                raise ValueError(f"Order price must be positive, got {price}")

        endpoint = OrderEndpoints.BUY.value if side == OrderSide.BUY else OrderEndpoints.SELL.value
        return await self._mutate(endpoint, {
            "user_id": user_id,
            "exchange_id": exchange_id,
            "token": symbol,
            "amount": format_decimal(amount),
            "order_type": order_type.value,
            "price": format_decimal(price) if price is not None else None,
        })

    async def create_buy_order(
        self,
        user_id: str,
        exchange_id: str,
        symbol: str,
        amount: Decimal | float | str,
        order_type: OrderType | str = OrderType.MARKET,
        price: Decimal | float | str | None = None,
    ) -> OrderAck:
        return await self.create_order(
            user_id, exchange_id, symbol, OrderSide.BUY, amount, order_type, price
        )

    async def create_sell_order(
        self,
        user_id: str,
        exchange_id: str,
        symbol: str,
        amount: Decimal | float | str,
        order_type: OrderType | str = OrderType.MARKET,
        price: Decimal | float | str | None = None,
    ) -> OrderAck:
        return await self.create_order(
            user_id, exchange_id, symbol, OrderSide.SELL, amount, order_type, price
        )

    async def cancel_order(
        self,
        user_id: str,
        exchange_id: str,
        order_id: str,
        symbol: Optional[str] = None,
    ) -> OrderAck:
        if not order_id:
            raise ValueError("order_id required")
        return await self._mutate(OrderEndpoints.CANCEL.value, {
            "user_id": user_id,
            "exchange_id": exchange_id,
            "order_id": order_id,
            "symbol": symbol,
        })

    async def cancel_all_orders(
        self,
        user_id: str,
        exchange_id: str,
        symbol: Optional[str] = None,
    ) -> OrderAck:
        return await self._mutate(OrderEndpoints.CANCEL_ALL.value, {
            "user_id": user_id,
            "exchange_id": exchange_id,
            "symbol": symbol,
        })

    async def edit_order(
        self,
        user_id: str,
        exchange_id: str,
        order_id: str,
        symbol: str,
        amount: Decimal | float | str | None = None,
        price: Decimal | float | str | None = None,
    ) -> OrderAck:
        """
        Change amount and/or price of an open order.

        Raises:
            ValueError: Nothing to change, or a non-positive value
        """
        if amount is None and price is None:
            raise ValueError("edit_order needs an amount or a price")
        for name, value in (("amount", amount), ("price", price)):
            if value is not None and Decimal(str(value)) <= 0:
                raise ValueError(f"Order {name} must be positive, got {value}")

        return await self._mutate(OrderEndpoints.EDIT.value, {
            "user_id": user_id,
            "exchange_id": exchange_id,
            "order_id": order_id,
            "symbol": symbol,
            "amount": format_decimal(amount) if amount is not None else None,
            "price": format_decimal(price) if price is not None else None,
        })

    # =========================================================================
    # Cache Management
    # =========================================================================

    def invalidate_user(self, user_id: str, kinds: tuple[str, ...] = ("all",)) -> int:
        """Drop cached reads of a user, e.g. after an order mutation."""
        return self._cache.invalidate_user(user_id, kinds)

    def invalidate_exchange(self, exchange_id: str) -> int:
        """Drop every cached entry mentioning an exchange."""
        return self._cache.invalidate(exchange_id)
