"""
Data models for portfolio-sync.

Pydantic v2 models for the balance snapshot, open orders and the other
resources mirrored from the API, plus the per-exchange sync result.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field

from .exceptions import MalformedResponseError


# =============================================================================
# Enums
# =============================================================================


class WarningKind(str, Enum):
    """Classified server-side degradation of a per-exchange call."""

    AUTH = "auth"
    NOT_SUPPORTED = "not_supported"
    NETWORK = "network"
    EXCHANGE = "exchange"


class OrderSide(str, Enum):
    """Order side - buy or sell."""

    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    """Order type accepted by the order endpoints."""

    MARKET = "market"
    LIMIT = "limit"


# =============================================================================
# Helpers
# =============================================================================


def to_decimal(value: Any, default: str = "0") -> Decimal:
    """Convert an API number or numeric string to Decimal."""
    if value is None or value == "":
        return Decimal(default)
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise MalformedResponseError(f"Invalid numeric value: {value!r}") from e


def _require_dict(payload: Any, what: str) -> dict:
    if not isinstance(payload, dict):
        raise MalformedResponseError(f"Expected object for {what}, got {type(payload).__name__}")
    return payload


def _require_list(value: Any, what: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedResponseError(f"Expected list for {what}, got {type(value).__name__}")
    return value


# =============================================================================
# Base Model Configuration
# =============================================================================


class SyncBaseModel(BaseModel):
    """Base model with common configuration for all mirrored resources."""

    model_config = ConfigDict(
        use_enum_values=True,
        from_attributes=True,
        frozen=True,
    )


# =============================================================================
# Balances
# =============================================================================


class TokenBalance(SyncBaseModel):
    """Holding of a single token on one exchange."""

    amount: Decimal
    unit_price_usd: Decimal
    value_usd: Decimal

    @classmethod
    def from_api(cls, data: dict) -> "TokenBalance":
        data = _require_dict(data, "token balance")
        return cls(
            amount=to_decimal(data.get("amount")),
            unit_price_usd=to_decimal(data.get("price_usd")),
            value_usd=to_decimal(data.get("value_usd")),
        )


class ExchangeBalance(SyncBaseModel):
    """Balance of one connected exchange."""

    id: str
    name: str
    ok: bool
    balance_usd: Decimal = Decimal("0")
    token_balances: dict[str, TokenBalance] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict) -> "ExchangeBalance":
        """
        Create ExchangeBalance from an entry of the balances response.

        Args:
            data: ``{"exchange_id", "name", "success", "total_usd", "tokens"}``

        Returns:
            ExchangeBalance instance
        """
        data = _require_dict(data, "exchange balance")
        exchange_id = data.get("exchange_id")
        if not exchange_id:
            raise MalformedResponseError("Exchange balance without exchange_id")

        tokens = data.get("tokens") or {}
        if not isinstance(tokens, dict):
            raise MalformedResponseError("Exchange tokens must be an object")

        ok = data.get("success", False)
        if not isinstance(ok, bool):
            raise MalformedResponseError(f"Exchange success flag must be a boolean, got {ok!r}")

        return cls(
            id=str(exchange_id),
            name=str(data.get("name") or exchange_id),
            ok=ok,
            balance_usd=to_decimal(data.get("total_usd")),
            token_balances={
                symbol: TokenBalance.from_api(token) for symbol, token in tokens.items()
            },
        )


class BalanceSummary(SyncBaseModel):
    """Aggregate over the exchanges of a snapshot."""

    total_usd: Decimal = Decimal("0")
    exchanges_count: int = 0
    ok_count: int = 0


def summarize(items: tuple[ExchangeBalance, ...] | list[ExchangeBalance]) -> BalanceSummary:
    """Aggregate balances; exchanges that failed to load contribute zero."""
    ok_items = [item for item in items if item.ok]
    return BalanceSummary(
        total_usd=sum((item.balance_usd for item in ok_items), Decimal("0")),
        exchanges_count=len(items),
        ok_count=len(ok_items),
    )


class Snapshot(SyncBaseModel):
    """
    Canonical view of the user's balances across exchanges.

    The summary is always derived from the items, never taken from the
    server's own aggregate.
    """

    items: tuple[ExchangeBalance, ...] = ()
    as_of: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    served_from_cache: bool = False

    @computed_field
    @property
    def summary(self) -> BalanceSummary:
        return summarize(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def get_item(self, item_id: str) -> Optional[ExchangeBalance]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def fingerprint(self) -> tuple[tuple[str, int], ...]:
        """Identity of the exchange set and their token counts."""
        return tuple((item.id, len(item.token_balances)) for item in self.items)

    @classmethod
    def from_api(cls, payload: dict) -> "Snapshot":
        """
        Create Snapshot from a balances (or balance summary) response.

        Args:
            payload: ``{"exchanges": [...], "meta": {"from_cache"}, "timestamp"}``

        Returns:
            Snapshot instance

        Raises:
            MalformedResponseError: If the payload does not have the expected shape
        """
        payload = _require_dict(payload, "balances response")
        exchanges = _require_list(payload.get("exchanges"), "exchanges")
        meta = payload.get("meta") or {}

        kwargs: dict[str, Any] = {
            "items": tuple(ExchangeBalance.from_api(e) for e in exchanges),
            "served_from_cache": bool(meta.get("from_cache", False)) if isinstance(meta, dict) else False,
        }
        if payload.get("timestamp"):
            kwargs["as_of"] = payload["timestamp"]

        try:
            return cls(**kwargs)
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid balances response: {e}") from e


# =============================================================================
# Open Orders
# =============================================================================


class Degradation(SyncBaseModel):
    """Server-reported reason a per-exchange call returned no data."""

    kind: WarningKind
    message: str = "Unknown error"

    @classmethod
    def from_flags(cls, payload: dict) -> Optional["Degradation"]:
        """
        Classify the optional error flags of a response.

        Returns:
            Degradation, or None when the response carries no error flag
        """
        flagged = any(
            payload.get(flag)
            for flag in ("auth_error", "exchange_error", "network_error", "not_supported", "rate_limited", "error")
        )
        if not flagged:
            return None

        if payload.get("auth_error"):
            kind = WarningKind.AUTH
        elif payload.get("not_supported"):
            kind = WarningKind.NOT_SUPPORTED
        elif payload.get("network_error") or payload.get("rate_limited"):
            kind = WarningKind.NETWORK
        else:
            kind = WarningKind.EXCHANGE

        message = payload.get("message")
        if not message and isinstance(payload.get("error"), str):
            message = payload["error"]
        message = message or "Unknown error"
        if payload.get("rate_limited"):
            message = f"Rate limited - {message}"

        return cls(kind=kind, message=str(message))


class OpenOrder(SyncBaseModel):
    """Open order on an exchange."""

    id: str
    symbol: str
    type: str
    side: str
    price: Optional[Decimal] = None
    amount: Decimal = Decimal("0")
    filled: Decimal = Decimal("0")
    remaining: Decimal = Decimal("0")
    status: str = "open"
    timestamp: Optional[int] = None

    @classmethod
    def from_api(cls, data: dict) -> "OpenOrder":
        data = _require_dict(data, "open order")
        if data.get("id") is None or not data.get("symbol"):
            raise MalformedResponseError("Open order without id or symbol")
        try:
            return cls(
                id=str(data["id"]),
                symbol=str(data["symbol"]),
                type=str(data.get("type") or "limit"),
                side=str(data.get("side") or ""),
                price=to_decimal(data["price"]) if data.get("price") is not None else None,
                amount=to_decimal(data.get("amount")),
                filled=to_decimal(data.get("filled")),
                remaining=to_decimal(data.get("remaining")),
                status=str(data.get("status") or "open"),
                timestamp=int(data["timestamp"]) if data.get("timestamp") is not None else None,
            )
        except (ValueError, TypeError) as e:
            raise MalformedResponseError(f"Invalid open order {data.get('id')!r}: {e}") from e


class OpenOrdersResult(SyncBaseModel):
    """
    Decoded open-orders response for one exchange.

    Either carries orders, or a degradation explaining why it does not.
    """

    exchange_id: str
    exchange_name: Optional[str] = None
    orders: tuple[OpenOrder, ...] = ()
    from_cache: bool = False
    degradation: Optional[Degradation] = None

    @property
    def is_degraded(self) -> bool:
        return self.degradation is not None

    @property
    def count(self) -> int:
        return len(self.orders)

    @classmethod
    def from_api(cls, payload: dict, exchange_id: str) -> "OpenOrdersResult":
        payload = _require_dict(payload, "open orders response")
        degradation = Degradation.from_flags(payload)
        orders: tuple[OpenOrder, ...] = ()
        if degradation is None:
            orders = tuple(
                OpenOrder.from_api(o) for o in _require_list(payload.get("orders"), "orders")
            )
        try:
            return cls(
                exchange_id=str(payload.get("exchange_id") or exchange_id),
                exchange_name=payload.get("exchange_name") or payload.get("exchange"),
                orders=orders,
                from_cache=bool(payload.get("from_cache", False)),
                degradation=degradation,
            )
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid open orders response: {e}") from e


# =============================================================================
# Portfolio and Exchanges
# =============================================================================


class PortfolioEvolution(SyncBaseModel):
    """Portfolio value history over a number of days."""

    days: int
    timestamps: tuple[datetime, ...] = ()
    values_usd: tuple[Decimal, ...] = ()
    start_value_usd: Decimal = Decimal("0")
    end_value_usd: Decimal = Decimal("0")
    change_usd: Decimal = Decimal("0")
    change_percent: Decimal = Decimal("0")

    @classmethod
    def from_api(cls, payload: dict, days: int) -> "PortfolioEvolution":
        payload = _require_dict(payload, "portfolio evolution response")
        evolution = _require_dict(payload.get("evolution") or {}, "evolution")
        summary = evolution.get("summary") or {}
        timestamps = _require_list(evolution.get("timestamps"), "timestamps")
        values = _require_list(evolution.get("values_usd"), "values_usd")
        if len(timestamps) != len(values):
            raise MalformedResponseError("Evolution timestamps and values differ in length")
        try:
            return cls(
                days=int(payload.get("days") or days),
                timestamps=tuple(timestamps),
                values_usd=tuple(to_decimal(v) for v in values),
                start_value_usd=to_decimal(summary.get("start_value_usd")),
                end_value_usd=to_decimal(summary.get("end_value_usd")),
                change_usd=to_decimal(summary.get("change_usd")),
                change_percent=to_decimal(summary.get("change_percent")),
            )
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid portfolio evolution: {e}") from e


class LinkedExchange(SyncBaseModel):
    """Exchange connected by the user."""

    exchange_id: str
    ccxt_id: str = ""
    name: str = ""
    icon: str = ""
    country: str = ""
    url: str = ""
    status: str = "active"

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @classmethod
    def from_api(cls, data: dict) -> "LinkedExchange":
        data = _require_dict(data, "linked exchange")
        exchange_id = data.get("exchange_id") or data.get("_id")
        if not exchange_id:
            raise MalformedResponseError("Linked exchange without exchange_id")
        return cls(
            exchange_id=str(exchange_id),
            ccxt_id=str(data.get("ccxt_id") or ""),
            name=str(data.get("name") or ""),
            icon=str(data.get("icon") or ""),
            country=str(data.get("country") or ""),
            url=str(data.get("url") or ""),
            status=str(data.get("status") or "active"),
        )


class AvailableExchange(SyncBaseModel):
    """Exchange the user can connect."""

    exchange_id: str
    ccxt_id: str = ""
    name: str = ""
    icon: str = ""
    country: str = ""
    url: str = ""
    requires_passphrase: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "AvailableExchange":
        data = _require_dict(data, "available exchange")
        exchange_id = data.get("_id") or data.get("exchange_id")
        if not exchange_id:
            raise MalformedResponseError("Available exchange without id")
        return cls(
            exchange_id=str(exchange_id),
            ccxt_id=str(data.get("ccxt_id") or ""),
            name=str(data.get("nome") or data.get("name") or ""),
            icon=str(data.get("icon") or ""),
            country=str(data.get("pais_de_origem") or data.get("country") or ""),
            url=str(data.get("url") or ""),
            requires_passphrase=bool(data.get("requires_passphrase", False)),
        )


class OrderAck(SyncBaseModel):
    """Server acknowledgement of an order mutation."""

    success: bool
    order_id: Optional[str] = None
    message: str = ""
    raw: dict = Field(default_factory=dict)

    @classmethod
    def from_api(cls, payload: dict) -> "OrderAck":
        payload = _require_dict(payload, "order response")
        order = payload.get("order") if isinstance(payload.get("order"), dict) else {}
        order_id = order.get("id") or payload.get("order_id")
        return cls(
            success=bool(payload.get("success", False)),
            order_id=str(order_id) if order_id is not None else None,
            message=str(payload.get("message") or payload.get("error") or ""),
            raw=payload,
        )


# =============================================================================
# Sync Result
# =============================================================================


@dataclass
class SyncResult:
    """
    Outcome of syncing one exchange's open orders.

    Attributes:
        item_id: Exchange identifier
        item_name: Exchange display name
        count: Number of open orders found
        success: False only when the call could not be attempted at all
        from_cache: Server answered from its own cache
        elapsed_ms: Wall time of the call in milliseconds
        error: Message of a raised failure
        warning: Classified server-side degradation
    """
    item_id: str
    item_name: str
    count: int = 0
    success: bool = True
    from_cache: bool = False
    elapsed_ms: int = 0
    error: Optional[str] = None
    warning: Optional[WarningKind] = None

    @property
    def has_problem(self) -> bool:
        return self.error is not None or self.warning is not None
