"""
Binance REST API Client.
Endpoint layer on top of the retrying transport and the strict decoder.
"""

from __future__ import annotations
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple
import aiohttp
import logging

from config import ExchangeConfig
from exchange.decoder import (
    ResponseDecoder, Schema, T, decode_account_info, decode_candles, decode_depth,
    decode_empty, decode_listen_key, decode_order_list, decode_order_response,
    decode_symbols,
)
from exchange.errors import ApiError, ValidationError
from exchange.http_client import RetryingHttpClient
from exchange.models import (
    AccountInfo, Candle, DEPTH_LIMITS, DepthSnapshot, HttpMethod, Interval,
    OrderStatus, OrderType, Side, TimeInForce,
)

logger = logging.getLogger(__name__)


def format_decimal(value: Decimal) -> str:
    """Plain (non-scientific) decimal string for order parameters."""
    return format(Decimal(value), "f")


def validate_depth_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit not in DEPTH_LIMITS:
        raise ValidationError(
            f"invalid depth limit {limit!r}, must be one of {list(DEPTH_LIMITS)}"
        )
    return limit


class BinanceRestClient:
    """Async Binance REST API wrapper."""

    def __init__(
        self,
        config: ExchangeConfig,
        session: Optional[aiohttp.ClientSession] = None,
        http: Optional[RetryingHttpClient] = None,
    ):
        self.config = config
        self.http = http or RetryingHttpClient(config, session=session)
        self.decoder = ResponseDecoder()

    async def close(self):
        await self.http.close()

    async def __aenter__(self) -> "BinanceRestClient":
        await self.http.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _require_key(self) -> str:
        if not self.config.api_key:
            raise ValidationError("this endpoint requires an API key")
        return self.config.api_key

    def _require_credentials(self) -> Tuple[str, str]:
        if not self.config.has_credentials:
            raise ValidationError("this endpoint requires an API key and secret")
        return self.config.api_key, self.config.api_secret

    async def _request(
        self,
        method: HttpMethod,
        endpoint: str,
        schema: Schema[T],
        params: Sequence[Tuple[str, str]] = (),
        key: Optional[str] = None,
        secret: Optional[str] = None,
    ) -> T:
        """Make one API call and decode it with the endpoint's schema."""
        raw = await self.http.call(method, endpoint, params, api_key=key, api_secret=secret)
        try:
            return self.decoder.decode(raw, schema)
        except ApiError as e:
            logger.error(
                f"[REST] {method.value} {endpoint} Error: "
                f"status={e.status}, code={e.code}, msg={e.msg}"
            )
            raise

    # ==================== Market Endpoints ====================

    async def get_symbols(self) -> List[str]:
        """List the symbols currently listed on the exchange."""
        return await self._request(HttpMethod.GET, "/api/v1/exchangeInfo", decode_symbols)

    async def get_klines(
        self,
        symbol: str,
        start_time: int,
        interval: Interval = Interval.DAY,
    ) -> List[Candle]:
        """One page of candles starting at start_time (ms), oldest first."""
        params = [
            ("symbol", symbol.upper()),
            ("interval", interval.value),
            ("startTime", str(int(start_time))),
        ]
        return await self._request(HttpMethod.GET, "/api/v1/klines", decode_candles, params)

    async def get_depth(self, symbol: str, limit: int = 100) -> DepthSnapshot:
        """Order book snapshot. limit must be one of DEPTH_LIMITS."""
        validate_depth_limit(limit)
        params = [("symbol", symbol.upper()), ("limit", str(limit))]
        return await self._request(HttpMethod.GET, "/api/v1/depth", decode_depth, params)

    # ==================== Account Endpoints ====================

    async def place_order(
        self,
        symbol: str,
        side: Side,
        order_type: OrderType,
        qty: Decimal,
        price: Optional[Decimal] = None,
        time_in_force: Optional[TimeInForce] = None,
        client_order_id: Optional[str] = None,
        stop_price: Optional[Decimal] = None,
        iceberg_qty: Optional[Decimal] = None,
        dry_run: bool = False,
    ) -> Optional[OrderStatus]:
        """
        Place an order, or validate it against /api/v3/order/test when dry_run is set.
        The test endpoint returns no order, hence None.
        """
        key, secret = self._require_credentials()
        params = [
            ("symbol", symbol),
            ("side", side.value),
            ("type", order_type.value),
        ]
        if time_in_force:
            params.append(("timeInForce", time_in_force.value))
        params.append(("quantity", format_decimal(qty)))
        if price is not None:
            params.append(("price", format_decimal(price)))
        if client_order_id:
            params.append(("newClientOrderId", client_order_id))
        if stop_price is not None:
            params.append(("stopPrice", format_decimal(stop_price)))
        if iceberg_qty is not None:
            params.append(("icebergQty", format_decimal(iceberg_qty)))

        endpoint = "/api/v3/order/test" if dry_run else "/api/v3/order"
        logger.info(
            f"[ORDER] {'Testing' if dry_run else 'Placing'}: {side.value} {qty} {symbol} "
            f"@ {price or 'Market'} ({order_type.value})"
        )
        return await self._request(
            HttpMethod.POST, endpoint, decode_order_response, params, key=key, secret=secret,
        )

    async def get_open_orders(self, symbol: str) -> List[OrderStatus]:
        key, secret = self._require_credentials()
        return await self._request(
            HttpMethod.GET, "/api/v3/openOrders", decode_order_list,
            [("symbol", symbol)], key=key, secret=secret,
        )

    async def get_account_info(self) -> AccountInfo:
        key, secret = self._require_credentials()
        return await self._request(
            HttpMethod.GET, "/api/v3/account", decode_account_info, key=key, secret=secret,
        )

    # ==================== User Data Stream ====================

    async def start_user_stream(self) -> str:
        """Issue a listen key for a new user data stream session."""
        return await self._request(
            HttpMethod.POST, "/api/v1/userDataStream", decode_listen_key, key=self._require_key(),
        )

    async def renew_user_stream(self, listen_key: str) -> None:
        await self._request(
            HttpMethod.PUT, "/api/v1/userDataStream", decode_empty,
            [("listenKey", listen_key)], key=self._require_key(),
        )

    async def close_user_stream(self, listen_key: str) -> None:
        await self._request(
            HttpMethod.DELETE, "/api/v1/userDataStream", decode_empty,
            [("listenKey", listen_key)], key=self._require_key(),
        )
