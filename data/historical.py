"""
Historical Data Module

Responsibilities:
- Assemble a symbol's full candle history from start_time up to "now"
  by walking the klines endpoint one page at a time
- Stop with an explicit error when a page does not move the cursor forward
- Honour cancellation / an overall timeout between page requests
"""

from __future__ import annotations
import asyncio
from typing import Callable, List, Optional, TYPE_CHECKING
import logging

from exchange.errors import FetchCancelledError, PaginationStallError
from exchange.models import Candle, HistorySpan, Interval
from exchange.signer import now_ms

if TYPE_CHECKING:
    from exchange.binance_rest import BinanceRestClient

logger = logging.getLogger(__name__)


class HistoricalData:
    """Sequential kline paginator. One page in flight at a time."""

    def __init__(
        self,
        client: "BinanceRestClient",
        interval: Interval = Interval.DAY,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.client = client
        self.interval = interval
        self._clock = clock or now_ms

    async def fetch(
        self,
        symbol: str,
        start_time: int,
        cancel_event: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
    ) -> List[Candle]:
        """
        Fetch every candle from start_time until the last page reaches "now".
        end_time is captured once, before the first request.
        Raises on the first error; no partial result is returned.
        """
        span = HistorySpan(symbol=symbol.upper(), start_time=int(start_time), end_time=self._clock())
        if timeout:
            return await asyncio.wait_for(self._paginate(span, cancel_event), timeout)
        return await self._paginate(span, cancel_event)

    async def _paginate(self, span: HistorySpan, cancel_event: Optional[asyncio.Event]) -> List[Candle]:
        logger.info(
            f"[HISTORY] {span.symbol} {self.interval.value}: fetching {span.start_time} -> {span.end_time}"
        )
        candles: List[Candle] = []
        cursor = span.start_time
        pages = 0

        while True:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"[HISTORY] {span.symbol}: cancelled after {pages} pages")
                raise FetchCancelledError(f"{span.symbol}: history fetch cancelled at cursor {cursor}")

            page = await self.client.get_klines(span.symbol, cursor, self.interval)
            pages += 1

            if not page:
                raise PaginationStallError(span.symbol, cursor, None)
            last_close = page[-1].close_time
            if last_close <= cursor:
                raise PaginationStallError(span.symbol, cursor, last_close)

            # startTime is inclusive: skip anything already stitched
            if candles:
                last_open = candles[-1].open_time
                page = [c for c in page if c.open_time > last_open]
            candles.extend(page)

            logger.debug(
                f"[HISTORY] {span.symbol}: page {pages} +{len(page)} candles, last close {last_close}"
            )

            if last_close >= span.end_time:
                break
            cursor = last_close

        logger.info(f"[HISTORY] {span.symbol}: {len(candles)} candles in {pages} pages")
        return candles
