"""
Response decoding.
Classifies (status, body) into a typed success value or a structured API error.
Success schemas are strict: a missing field, a wrong type or a short row is a
DecodeError, never a guess.
"""

from __future__ import annotations
import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, TypeVar

from exchange.errors import ApiError, ClientError, DecodeError, ServerError
from exchange.http_client import RawResponse, is_server_error
from exchange.models import (
    AccountInfo, Balance, Candle, DepthSnapshot, Level, OrderState, OrderStatus,
    OrderType, Side, TimeInForce,
)

T = TypeVar("T")
Schema = Callable[[Any], T]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
KLINE_FIELDS = 9


# ==================== Field Helpers ====================

def _field(obj: Any, name: str) -> Any:
    if not isinstance(obj, dict):
        raise DecodeError(f"expected object, got {type(obj).__name__}")
    if name not in obj:
        raise DecodeError(f"missing field '{name}'")
    return obj[name]


def _int(value: Any, what: str = "value") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(f"{what}: expected integer, got {value!r}")
    return value


def _str(value: Any, what: str = "value") -> str:
    if not isinstance(value, str):
        raise DecodeError(f"{what}: expected string, got {value!r}")
    return value


def _bool(value: Any, what: str = "value") -> bool:
    if not isinstance(value, bool):
        raise DecodeError(f"{what}: expected boolean, got {value!r}")
    return value


def _decimal(value: Any, what: str = "value") -> Decimal:
    """Prices and quantities arrive as strings; plain JSON numbers are accepted too."""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise DecodeError(f"{what}: expected decimal, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise DecodeError(f"{what}: malformed decimal {value!r}") from e
    if not result.is_finite():
        raise DecodeError(f"{what}: non-finite decimal {value!r}")
    return result


def _enum(enum_cls, value: Any, what: str = "value"):
    try:
        return enum_cls(_str(value, what))
    except ValueError as e:
        raise DecodeError(f"{what}: unknown {enum_cls.__name__} {value!r}") from e


def _list(value: Any, what: str = "value") -> List[Any]:
    if not isinstance(value, list):
        raise DecodeError(f"{what}: expected array, got {type(value).__name__}")
    return value


def ms_to_datetime(ms: int) -> datetime:
    return EPOCH + timedelta(milliseconds=ms)


def datetime_to_ms(dt: datetime) -> int:
    return (dt - EPOCH) // timedelta(milliseconds=1)


# ==================== Success Schemas ====================

def decode_symbols(data: Any) -> List[str]:
    """
    Exchange info, shape-tolerant path: only symbols[*].symbol is read.
    Entries without a string symbol are skipped.
    """
    symbols = _list(_field(data, "symbols"), "symbols")
    return [
        entry["symbol"] for entry in symbols
        if isinstance(entry, dict) and isinstance(entry.get("symbol"), str)
    ]


def decode_candle(row: Any) -> Candle:
    """[open_time, open, high, low, close, volume, close_time, quote_volume, trade_count, ...]"""
    row = _list(row, "kline")
    if len(row) < KLINE_FIELDS:
        raise DecodeError(f"kline: expected at least {KLINE_FIELDS} fields, got {len(row)}")
    return Candle(
        open_time=_int(row[0], "open_time"),
        open=_decimal(row[1], "open"),
        high=_decimal(row[2], "high"),
        low=_decimal(row[3], "low"),
        close=_decimal(row[4], "close"),
        volume=_decimal(row[5], "volume"),
        close_time=_int(row[6], "close_time"),
        trade_count=_int(row[8], "trade_count"),
    )


def decode_candles(data: Any) -> List[Candle]:
    return [decode_candle(row) for row in _list(data, "klines")]


def decode_level(row: Any) -> Level:
    row = _list(row, "level")
    if len(row) < 2:
        raise DecodeError(f"level: expected [price, qty, ...], got {row!r}")
    return Level(price=_decimal(row[0], "price"), qty=_decimal(row[1], "qty"))


def decode_depth(data: Any) -> DepthSnapshot:
    return DepthSnapshot(
        last_update_id=_int(_field(data, "lastUpdateId"), "lastUpdateId"),
        bids=[decode_level(r) for r in _list(_field(data, "bids"), "bids")],
        asks=[decode_level(r) for r in _list(_field(data, "asks"), "asks")],
    )


def decode_balance(data: Any) -> Balance:
    return Balance(
        asset=_str(_field(data, "asset"), "asset"),
        free=_decimal(_field(data, "free"), "free"),
        locked=_decimal(_field(data, "locked"), "locked"),
    )


def decode_account_info(data: Any) -> AccountInfo:
    return AccountInfo(
        maker_commission=_int(_field(data, "makerCommission"), "makerCommission"),
        taker_commission=_int(_field(data, "takerCommission"), "takerCommission"),
        buyer_commission=_int(_field(data, "buyerCommission"), "buyerCommission"),
        seller_commission=_int(_field(data, "sellerCommission"), "sellerCommission"),
        can_trade=_bool(_field(data, "canTrade"), "canTrade"),
        can_withdraw=_bool(_field(data, "canWithdraw"), "canWithdraw"),
        can_deposit=_bool(_field(data, "canDeposit"), "canDeposit"),
        update_time=ms_to_datetime(_int(_field(data, "updateTime"), "updateTime")),
        balances=[decode_balance(b) for b in _list(_field(data, "balances"), "balances")],
    )


def _order_base(data: Any) -> Dict[str, Any]:
    return dict(
        symbol=_str(_field(data, "symbol"), "symbol"),
        order_id=_int(_field(data, "orderId"), "orderId"),
        client_order_id=_str(_field(data, "clientOrderId"), "clientOrderId"),
        price=_decimal(_field(data, "price"), "price"),
        orig_qty=_decimal(_field(data, "origQty"), "origQty"),
        executed_qty=_decimal(_field(data, "executedQty"), "executedQty"),
        status=_enum(OrderState, _field(data, "status"), "status"),
        time_in_force=_enum(TimeInForce, _field(data, "timeInForce"), "timeInForce"),
        type=_enum(OrderType, _field(data, "type"), "type"),
        side=_enum(Side, _field(data, "side"), "side"),
    )


def decode_order_status(data: Any) -> OrderStatus:
    """Full order record, as returned by openOrders."""
    return OrderStatus(
        **_order_base(data),
        stop_price=_decimal(_field(data, "stopPrice"), "stopPrice"),
        iceberg_qty=_decimal(_field(data, "icebergQty"), "icebergQty"),
        time=ms_to_datetime(_int(_field(data, "time"), "time")),
        is_working=_bool(_field(data, "isWorking"), "isWorking"),
    )


def decode_order_response(data: Any) -> Optional[OrderStatus]:
    """
    Order placement. The test endpoint answers {} (-> None); a real placement
    answers the base fields plus transactTime.
    """
    if data == {}:
        return None
    return OrderStatus(
        **_order_base(data),
        time=ms_to_datetime(_int(_field(data, "transactTime"), "transactTime")),
    )


def decode_order_list(data: Any) -> List[OrderStatus]:
    return [decode_order_status(o) for o in _list(data, "orders")]


def decode_listen_key(data: Any) -> str:
    return _str(_field(data, "listenKey"), "listenKey")


def decode_empty(data: Any) -> None:
    if data != {}:
        raise DecodeError(f"expected empty object, got {data!r}")
    return None


def encode_order_status(order: OrderStatus) -> Dict[str, Any]:
    """Inverse of decode_order_status: back to the venue's JSON shape."""
    return {
        "symbol": order.symbol,
        "orderId": order.order_id,
        "clientOrderId": order.client_order_id,
        "price": str(order.price),
        "origQty": str(order.orig_qty),
        "executedQty": str(order.executed_qty),
        "status": order.status.value,
        "timeInForce": order.time_in_force.value,
        "type": order.type.value,
        "side": order.side.value,
        "stopPrice": str(order.stop_price),
        "icebergQty": str(order.iceberg_qty),
        "time": datetime_to_ms(order.time),
        "isWorking": order.is_working,
    }


# ==================== Decoder ====================

class ResponseDecoder:
    """Turns a RawResponse into a value or raises ApiError / DecodeError."""

    @staticmethod
    def parse_json(body: bytes) -> Any:
        # UnicodeDecodeError is a ValueError
        try:
            return json.loads(body.decode("utf-8"))
        except (TypeError, ValueError) as e:
            raise DecodeError(f"body is not valid JSON: {body[:200]!r}") from e

    @classmethod
    def decode_error(cls, raw: RawResponse) -> ApiError:
        """Strict {code, msg} envelope for an error status."""
        data = cls.parse_json(raw.body)
        code = _int(_field(data, "code"), "code")
        msg = _str(_field(data, "msg"), "msg")
        error_cls = ServerError if is_server_error(raw.status) else ClientError
        return error_cls(code, msg, status=raw.status)

    @classmethod
    def decode(cls, raw: RawResponse, schema: Schema[T]) -> T:
        if raw.status >= 400:
            raise cls.decode_error(raw)
        return schema(cls.parse_json(raw.body))
