"""Shared test fixtures: a fake aiohttp session and candle factories."""

from __future__ import annotations
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, List
from unittest.mock import AsyncMock, patch
import json

import pytest

from config import ExchangeConfig
from exchange.models import Candle


class FakeResponse:
    def __init__(self, status: int, body: bytes):
        self.status = status
        self._body = body

    async def read(self) -> bytes:
        return self._body

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Replays queued (status, body) pairs; exceptions in the queue are raised.
    Bodies may be bytes, str or any JSON-serialisable value."""

    def __init__(self, responses: List[Any]):
        self._responses = list(responses)
        self.requests: List[SimpleNamespace] = []
        self.closed = False

    def request(self, method, url, headers=None, data=None, timeout=None):
        self.requests.append(
            SimpleNamespace(
                method=method, url=url, headers=dict(headers or {}), data=data, timeout=timeout,
            )
        )
        item = self._responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        status, body = item
        if isinstance(body, str):
            body = body.encode("utf-8")
        elif not isinstance(body, bytes):
            body = json.dumps(body).encode("utf-8")
        return FakeResponse(status, body)

    async def close(self):
        self.closed = True


def kline_row(open_time: int, step: int, price: str = "100.0", trades: int = 7) -> list:
    return [
        open_time, price, "101.0", "99.5", "100.5", "12.25",
        open_time + step - 1, "1230.0", trades, "6.0", "600.0", "0",
    ]


def make_candles(start: int, count: int, step: int) -> List[Candle]:
    return [
        Candle(
            open_time=start + i * step,
            close_time=start + (i + 1) * step - 1,
            open=Decimal("100"),
            high=Decimal("101"),
            low=Decimal("99"),
            close=Decimal("100.5"),
            volume=Decimal("3.2"),
            trade_count=10 + i,
        )
        for i in range(count)
    ]


@pytest.fixture
def exchange_config() -> ExchangeConfig:
    return ExchangeConfig(
        api_key="test-key",
        api_secret="test-secret",
        base_url="https://api.test",
        retry_span_sec=1.0,
        max_tries=3,
    )


@pytest.fixture
def fake_session():
    def _factory(*responses: Any) -> FakeSession:
        return FakeSession(list(responses))
    return _factory


@pytest.fixture
def no_sleep():
    with patch("exchange.http_client.asyncio.sleep", new=AsyncMock()) as mock_sleep:
        yield mock_sleep
