#!/usr/bin/env python3
"""
Universal, venue-agnostic value types.

Every adapter converts its wire data into these. Consumers (orchestrator,
risk engine, presentation layers) never see venue-specific structures.
All types are immutable snapshots; refresh by re-fetching.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from venues import Chain, Protocol


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"

    def opposite(self) -> "Side":
        return Side.SELL if self is Side.BUY else Side.BUY

    @property
    def is_buy(self) -> bool:
        return self is Side.BUY

    @classmethod
    def parse(cls, value: Any) -> "Side":
        raw = str(getattr(value, "value", value) or "").strip().lower()
        if raw in ("buy", "b", "long", "bid"):
            return cls.BUY
        if raw in ("sell", "s", "a", "short", "ask"):
            return cls.SELL
        raise ValueError(f"Unknown side: {value!r}")


class MarketType(str, Enum):
    PERP = "perp"
    SPOT = "spot"
    LENDING = "lending"


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"
    STOP_MARKET = "stop_market"
    STOP_LIMIT = "stop_limit"


class OrderStatus(str, Enum):
    OPEN = "open"
    FILLED = "filled"
    PARTIALLY_FILLED = "partially_filled"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return target in _STATUS_TRANSITIONS.get(self, frozenset())


_TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.FILLED, OrderStatus.CANCELLED, OrderStatus.REJECTED}
)

_STATUS_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.OPEN: frozenset(
        {
            OrderStatus.FILLED,
            OrderStatus.PARTIALLY_FILLED,
            OrderStatus.CANCELLED,
            OrderStatus.REJECTED,
        }
    ),
    # A partial fill may still be cancelled for the unfilled remainder.
    OrderStatus.PARTIALLY_FILLED: frozenset({OrderStatus.FILLED, OrderStatus.CANCELLED}),
}


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


class _Serializable:
    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dict (Decimals as strings, enums as values)."""
        return {f.name: _plain(getattr(self, f.name)) for f in fields(self)}


@dataclass(frozen=True)
class Market(_Serializable):
    symbol: str
    base: str
    quote: str
    venue: Protocol
    chain: Chain
    market_type: MarketType
    mark_price: Optional[Decimal] = None
    index_price: Optional[Decimal] = None
    volume_24h: Optional[Decimal] = None
    open_interest: Optional[Decimal] = None
    funding_rate: Optional[Decimal] = None
    max_leverage: Optional[int] = None
    min_size: Optional[Decimal] = None
    tick_size: Optional[Decimal] = None
    sz_decimals: Optional[int] = None


@dataclass(frozen=True)
class Ticker(_Serializable):
    symbol: str
    venue: Protocol
    mid_price: Decimal
    best_bid: Optional[Decimal] = None
    best_ask: Optional[Decimal] = None
    volume_24h: Optional[Decimal] = None
    change_24h_pct: Optional[Decimal] = None


@dataclass(frozen=True)
class Candle(_Serializable):
    open_time_ms: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    trades: Optional[int] = None


@dataclass(frozen=True)
class FundingRate(_Serializable):
    symbol: str
    venue: Protocol
    rate: Decimal
    timestamp_ms: int
    premium: Optional[Decimal] = None
    next_funding_ms: Optional[int] = None


@dataclass(frozen=True)
class BookLevel(_Serializable):
    price: Decimal
    size: Decimal
    count: Optional[int] = None


@dataclass(frozen=True)
class OrderBook(_Serializable):
    symbol: str
    venue: Protocol
    bids: List[BookLevel]
    asks: List[BookLevel]
    timestamp_ms: Optional[int] = None

    @property
    def best_bid(self) -> Optional[Decimal]:
        return self.bids[0].price if self.bids else None

    @property
    def best_ask(self) -> Optional[Decimal]:
        return self.asks[0].price if self.asks else None


@dataclass(frozen=True)
class Position(_Serializable):
    """Open position. ``size`` is a magnitude; direction lives in ``side``."""

    venue: Protocol
    symbol: str
    side: Side
    size: Decimal
    entry_price: Optional[Decimal] = None
    mark_price: Optional[Decimal] = None
    unrealized_pnl: Optional[Decimal] = None
    leverage: Optional[int] = None
    margin: Optional[Decimal] = None
    liquidation_price: Optional[Decimal] = None

    def __post_init__(self) -> None:
        if self.size < 0:
            raise ValueError(f"Position size must be >= 0 (got {self.size}); use side for direction")

    @property
    def notional(self) -> Optional[Decimal]:
        price = self.mark_price if self.mark_price is not None else self.entry_price
        if price is None:
            return None
        return self.size * price


@dataclass(frozen=True)
class Order(_Serializable):
    venue: Protocol
    symbol: str
    side: Side
    order_type: OrderType
    size: Decimal
    status: OrderStatus
    order_id: str
    timestamp_ms: int
    price: Optional[Decimal] = None
    filled_size: Optional[Decimal] = None


@dataclass(frozen=True)
class OrderResult(_Serializable):
    """Return value of a placement call."""

    venue: Protocol
    order_id: str
    status: OrderStatus
    filled_size: Optional[Decimal] = None
    avg_price: Optional[Decimal] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class Fill(_Serializable):
    """Realized trade. Append-only once persisted."""

    venue: Protocol
    symbol: str
    side: Side
    price: Decimal
    size: Decimal
    fee: Decimal
    order_id: str
    timestamp_ms: int
    realized_pnl: Optional[Decimal] = None
    tx_hash: Optional[str] = None


@dataclass(frozen=True)
class Balance(_Serializable):
    """Account balance.

    ``total == available + locked`` is a venue contract; nothing here
    enforces or reconciles it.
    """

    venue: Protocol
    chain: Chain
    asset: str
    total: Decimal
    available: Decimal
    locked: Decimal

    def is_consistent(self) -> bool:
        return self.total == self.available + self.locked


@dataclass(frozen=True)
class SpotBalance(_Serializable):
    venue: Protocol
    asset: str
    total: Decimal
    hold: Decimal = Decimal(0)


@dataclass(frozen=True)
class LendingMarket(_Serializable):
    venue: Protocol
    chain: Chain
    market_id: str
    collateral_asset: str
    loan_asset: str
    supply_apy: Decimal
    borrow_apy: Decimal
    total_supply: Decimal
    total_borrow: Decimal
    utilization: Decimal
    ltv: Decimal
    lltv: Decimal


@dataclass(frozen=True)
class LendingPosition(_Serializable):
    venue: Protocol
    chain: Chain
    market_id: str
    collateral_asset: str
    loan_asset: str
    supplied: Decimal
    borrowed: Decimal
    health_factor: Optional[Decimal] = None

    @property
    def is_liquidatable(self) -> bool:
        return self.health_factor is not None and self.health_factor < 1


def compute_health_factor(
    collateral_value: Decimal,
    borrow_value: Decimal,
    lltv: Decimal,
) -> Optional[Decimal]:
    """Collateral value weighted by LLTV over borrow value; None without debt."""
    if borrow_value <= 0:
        return None
    return collateral_value * lltv / borrow_value


@dataclass(frozen=True)
class SwapQuote(_Serializable):
    venue: Protocol
    chain: Chain
    sell_token: str
    buy_token: str
    sell_amount: Decimal
    buy_amount: Decimal
    price: Decimal
    estimated_gas: Optional[int] = None
    allowance_target: Optional[str] = None
    tx_data: Optional[str] = None


@dataclass(frozen=True)
class VaultDetails(_Serializable):
    venue: Protocol
    address: str
    name: str
    tvl: Decimal
    apr: Optional[Decimal] = None
    leader: Optional[str] = None


@dataclass(frozen=True)
class VaultDeposit(_Serializable):
    venue: Protocol
    vault_address: str
    equity: Decimal


@dataclass(frozen=True)
class SubAccount(_Serializable):
    venue: Protocol
    address: str
    name: str
