"""
Error taxonomy for the Binance REST client.
Every layer raises one of these; only the CLI decides to abort.
"""

from __future__ import annotations
from typing import Optional


class BinanceError(Exception):
    """Base class for everything the client raises."""


class NetworkError(BinanceError):
    """Connection, TLS or timeout failure. Never retried by the HTTP layer."""


class ApiError(BinanceError):
    """Structured {code, msg} error envelope returned by the venue."""

    def __init__(self, code: int, msg: str, status: Optional[int] = None):
        super().__init__(f"code={code}, msg={msg}")
        self.code = code
        self.msg = msg
        self.status = status

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code}, msg={self.msg!r}, status={self.status})"


class ClientError(ApiError):
    """4xx response (429 included). Never retried."""


class ServerError(ApiError):
    """5xx response still failing after the retry budget was spent."""


class DecodeError(BinanceError):
    """Body does not match the expected schema."""


class ValidationError(BinanceError, ValueError):
    """Invalid static argument, rejected before any network call."""


class PaginationStallError(BinanceError):
    """A history page did not move the cursor forward."""

    def __init__(self, symbol: str, cursor: int, last_close_time: Optional[int]):
        if last_close_time is None:
            detail = "empty page"
        else:
            detail = f"last close_time {last_close_time} <= cursor"
        super().__init__(f"{symbol}: non-advancing page at cursor {cursor} ({detail})")
        self.symbol = symbol
        self.cursor = cursor
        self.last_close_time = last_close_time


class FetchCancelledError(BinanceError):
    """History fetch was cancelled between two page requests."""
