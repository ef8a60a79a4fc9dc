"""
Unit tests for the HMAC-SHA256 request signer.

Signatures are checked deterministically with a fixed clock.
"""

import hashlib
import hmac
from urllib.parse import parse_qsl, urlencode

import pytest

from exchange.models import HttpMethod
from exchange.signer import RequestSigner

FIXED_TS = 1499827319559
PARAMS = [("symbol", "LTCBTC"), ("side", "BUY"), ("type", "LIMIT"), ("quantity", "1"), ("price", "0.1")]


def _signer(secret: str = "secret") -> RequestSigner:
    return RequestSigner(secret, recv_window_ms=1000, clock=lambda: FIXED_TS)


class TestSignature:
    def test_matches_published_binance_vector(self) -> None:
        secret = "NhqPtmdSJYdKjVHjA7PZj4Mge3R5YNiP1e3UZjInClVN65XAbvqqM6A7H5fATj0j"
        payload = (
            "symbol=LTCBTC&side=BUY&type=LIMIT&timeInForce=GTC&quantity=1&price=0.1"
            "&recvWindow=5000&timestamp=1499827319559"
        )
        sig = RequestSigner(secret).signature(payload)
        assert sig == "c8db56825ae71d6d79447849e617115f4a920fa2acdcab2b053c4b2838bd6b71"

    def test_signs_timestamp_and_recv_window_first(self) -> None:
        req = _signer().sign(HttpMethod.GET, "/api/v3/openOrders", PARAMS)
        payload = "timestamp=1499827319559&recvWindow=1000&symbol=LTCBTC&side=BUY&type=LIMIT&quantity=1&price=0.1"
        expected = hmac.new(b"secret", payload.encode(), hashlib.sha256).hexdigest()
        assert req.signature == expected

    def test_encoded_params_order(self) -> None:
        req = _signer().sign(HttpMethod.GET, "/api/v3/account", PARAMS)
        names = [k for k, _ in req.encoded_params]
        assert names == ["timestamp", "recvWindow", "symbol", "side", "type", "quantity", "price", "signature"]
        assert req.encoded_params[0] == ("timestamp", str(FIXED_TS))
        assert req.encoded_params[1] == ("recvWindow", "1000")

    def test_signature_is_64_hex_chars(self) -> None:
        sig = _signer().sign(HttpMethod.GET, "/api/v3/account").signature
        assert len(sig) == 64
        int(sig, 16)


class TestDeterminism:
    def test_same_inputs_same_signature(self) -> None:
        a = _signer().sign(HttpMethod.POST, "/api/v3/order", PARAMS)
        b = _signer().sign(HttpMethod.POST, "/api/v3/order", PARAMS)
        assert a.signature == b.signature
        assert a == b

    @pytest.mark.parametrize("index", range(len(PARAMS)))
    def test_changing_any_value_changes_signature(self, index: int) -> None:
        altered = list(PARAMS)
        name, value = altered[index]
        altered[index] = (name, value + "0")
        base = _signer().sign(HttpMethod.POST, "/api/v3/order", PARAMS)
        other = _signer().sign(HttpMethod.POST, "/api/v3/order", altered)
        assert base.signature != other.signature

    def test_changing_order_changes_signature(self) -> None:
        swapped = [PARAMS[1], PARAMS[0], *PARAMS[2:]]
        base = _signer().sign(HttpMethod.POST, "/api/v3/order", PARAMS)
        other = _signer().sign(HttpMethod.POST, "/api/v3/order", swapped)
        assert base.signature != other.signature

    def test_changing_secret_changes_signature(self) -> None:
        a = _signer("secret1").sign(HttpMethod.GET, "/api/v3/account", PARAMS)
        b = _signer("secret2").sign(HttpMethod.GET, "/api/v3/account", PARAMS)
        assert a.signature != b.signature

    def test_changing_timestamp_changes_signature(self) -> None:
        a = _signer().sign(HttpMethod.GET, "/api/v3/account", PARAMS, timestamp=FIXED_TS)
        b = _signer().sign(HttpMethod.GET, "/api/v3/account", PARAMS, timestamp=FIXED_TS + 1)
        assert a.signature != b.signature

    def test_encoded_query_round_trips(self) -> None:
        req = _signer().sign(HttpMethod.GET, "/api/v3/openOrders", [("symbol", "BTC USDT")])
        assert parse_qsl(urlencode(req.encoded_params))[2] == ("symbol", "BTC USDT")


def test_empty_secret_is_rejected() -> None:
    with pytest.raises(ValueError):
        RequestSigner("")
