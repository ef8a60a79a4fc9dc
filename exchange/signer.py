"""
Request signing for authenticated Binance endpoints.
signature = hex(HMAC-SHA256(secret, urlencode(timestamp, recvWindow, *params)))
"""

from __future__ import annotations
import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple
from urllib.parse import urlencode

from exchange.models import HttpMethod

Params = List[Tuple[str, str]]


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class SignedRequest:
    """One signed call. Built per request, never reused."""
    method: HttpMethod
    path: str
    params: Tuple[Tuple[str, str], ...]     # caller params, in order
    timestamp: int
    recv_window: int
    signature: str

    @property
    def encoded_params(self) -> Params:
        """Wire order: timestamp, recvWindow, caller params, signature."""
        return [
            ("timestamp", str(self.timestamp)),
            ("recvWindow", str(self.recv_window)),
            *self.params,
            ("signature", self.signature),
        ]


class RequestSigner:
    """HMAC-SHA256 signer. Pure apart from reading the clock."""

    def __init__(
        self,
        api_secret: str,
        recv_window_ms: int = 1000,
        clock: Optional[Callable[[], int]] = None,
    ):
        if not api_secret:
            raise ValueError("RequestSigner requires a non-empty API secret")
        self._secret = api_secret.encode("utf-8")
        self.recv_window_ms = recv_window_ms
        self._clock = clock or now_ms

    def signature(self, payload: str) -> str:
        return hmac.new(self._secret, payload.encode("utf-8"), hashlib.sha256).hexdigest()

    def sign(
        self,
        method: HttpMethod,
        path: str,
        params: Sequence[Tuple[str, str]] = (),
        timestamp: Optional[int] = None,
    ) -> SignedRequest:
        ts = self._clock() if timestamp is None else timestamp
        ordered = tuple((str(k), str(v)) for k, v in params)
        prefixed = [("timestamp", str(ts)), ("recvWindow", str(self.recv_window_ms)), *ordered]
        return SignedRequest(
            method=method,
            path=path,
            params=ordered,
            timestamp=ts,
            recv_window=self.recv_window_ms,
            signature=self.signature(urlencode(prefixed)),
        )
