"""
Retrying HTTP transport for the Binance REST API.
One logical call = up to max_tries attempts; only 5xx responses are retried.
"""

from __future__ import annotations
import asyncio
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple
from urllib.parse import urlencode
import aiohttp
import logging

from config import ExchangeConfig
from exchange.errors import NetworkError
from exchange.models import HttpMethod
from exchange.signer import RequestSigner

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-MBX-APIKEY"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def is_server_error(status: int) -> bool:
    return 500 <= status <= 599


@dataclass(frozen=True)
class RawResponse:
    """Status and undecoded body of the last attempt."""
    status: int
    body: bytes
    attempts: int = 1


class RetryingHttpClient:
    """Async HTTP client with bounded retry on server errors."""

    def __init__(
        self,
        config: ExchangeConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.config = config
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout_sec),
            )
            self._owns_session = True
        return self._session

    async def close(self):
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "RetryingHttpClient":
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _build(
        self,
        method: HttpMethod,
        path: str,
        params: Sequence[Tuple[str, str]],
        api_key: Optional[str],
        api_secret: Optional[str],
    ) -> Tuple[str, Dict[str, str], Optional[str]]:
        """Return (url, headers, body) for one attempt."""
        url = f"{self.config.base_url}{path}"
        headers: Dict[str, str] = {}
        if api_key:
            headers[API_KEY_HEADER] = api_key

        encoded = list(params)
        if api_secret:
            signer = RequestSigner(api_secret, recv_window_ms=self.config.recv_window_ms)
            encoded = signer.sign(method, path, encoded).encoded_params

        query = urlencode(encoded)
        if method is HttpMethod.GET:
            return (f"{url}?{query}" if query else url), headers, None

        # POST / PUT / DELETE carry params as a form body
        if query:
            headers["Content-Type"] = FORM_CONTENT_TYPE
        return url, headers, query

    async def _send(self, method: HttpMethod, url: str, headers: Dict[str, str], body: Optional[str]) -> Tuple[int, bytes]:
        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout_sec)
        try:
            async with session.request(
                method.value, url, headers=headers, data=body, timeout=timeout,
            ) as resp:
                payload = await resp.read()
                return resp.status, payload
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"[HTTP] {method.value} {url} Network failure: {e!r}")
            raise NetworkError(f"{method.value} {url}: {e!r}") from e

    async def call(
        self,
        method: HttpMethod,
        path: str,
        params: Sequence[Tuple[str, str]] = (),
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
    ) -> RawResponse:
        """
        Execute one logical call.
        5xx responses are retried after a fixed delay until max_tries attempts were made;
        the last response is then returned as-is for the decoder to classify.
        Signed calls get a fresh timestamp on every attempt.
        """
        max_tries = max(1, int(self.config.max_tries))
        span = float(self.config.retry_span_sec)

        status, payload = 0, b""
        for attempt in range(1, max_tries + 1):
            url, headers, body = self._build(method, path, params, api_key, api_secret)
            status, payload = await self._send(method, url, headers, body)
            logger.debug(f"[HTTP] {method.value} {path} -> {status} {payload[:200]!r}")

            if not is_server_error(status):
                return RawResponse(status=status, body=payload, attempts=attempt)

            logger.error(
                f"[HTTP] {method.value} {path}: server error {status} "
                f"(attempt {attempt}/{max_tries})"
            )
            if attempt < max_tries:
                await asyncio.sleep(span)

        logger.warning(f"[HTTP] {method.value} {path}: giving up after {max_tries} attempts")
        return RawResponse(status=status, body=payload, attempts=max_tries)
