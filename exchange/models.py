"""
Data models for the Binance REST client.
Uses Decimal for all price/quantity values, never float.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Tuple


class HttpMethod(Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class Interval(Enum):
    ONE_MINUTE = "1m"
    FIVE_MINUTES = "5m"
    QUARTER_HOUR = "15m"
    HALF_HOUR = "30m"
    HOUR = "1h"
    DAY = "1d"


class Side(Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderType(Enum):
    LIMIT = "LIMIT"
    MARKET = "MARKET"
    STOP_LOSS = "STOP_LOSS"
    STOP_LOSS_LIMIT = "STOP_LOSS_LIMIT"
    TAKE_PROFIT = "TAKE_PROFIT"
    TAKE_PROFIT_LIMIT = "TAKE_PROFIT_LIMIT"
    LIMIT_MAKER = "LIMIT_MAKER"


class TimeInForce(Enum):
    GTC = "GTC"
    IOC = "IOC"
    FOK = "FOK"


class OrderState(Enum):
    NEW = "NEW"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELED = "CANCELED"
    PENDING_CANCEL = "PENDING_CANCEL"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


# Allowed `limit` values for the depth endpoint
DEPTH_LIMITS: Tuple[int, ...] = (5, 10, 20, 50, 100, 500, 1000)


@dataclass(frozen=True)
class Candle:
    """Standard OHLCV candle (kline)."""
    open_time: int          # Unix ms
    close_time: int         # Unix ms
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    trade_count: int


@dataclass(frozen=True)
class HistorySpan:
    """Pagination target: [start_time, end_time] for one symbol."""
    symbol: str
    start_time: int
    end_time: int


@dataclass(frozen=True)
class Level:
    """One price level of the order book."""
    price: Decimal
    qty: Decimal


@dataclass(frozen=True)
class DepthSnapshot:
    last_update_id: int
    bids: List[Level] = field(default_factory=list)
    asks: List[Level] = field(default_factory=list)


@dataclass(frozen=True)
class Balance:
    asset: str
    free: Decimal
    locked: Decimal


@dataclass(frozen=True)
class AccountInfo:
    maker_commission: int
    taker_commission: int
    buyer_commission: int
    seller_commission: int
    can_trade: bool
    can_withdraw: bool
    can_deposit: bool
    update_time: datetime
    balances: List[Balance] = field(default_factory=list)


@dataclass(frozen=True)
class OrderStatus:
    """Order as reported by the order, openOrders and order-placement endpoints."""
    symbol: str
    order_id: int
    client_order_id: str
    price: Decimal
    orig_qty: Decimal
    executed_qty: Decimal
    status: OrderState
    time_in_force: TimeInForce
    type: OrderType
    side: Side
    time: datetime
    stop_price: Decimal = Decimal("0")
    iceberg_qty: Decimal = Decimal("0")
    is_working: bool = False
