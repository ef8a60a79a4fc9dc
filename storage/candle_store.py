"""
JSON Storage Layer.
Persists a symbol's candle history as <output_dir>/<SYMBOL>.json.
All decimal values stored as strings to preserve Decimal precision.
"""

from __future__ import annotations
import json
import os
from decimal import Decimal
from typing import Any, Dict, List
import logging

from exchange.models import Candle

logger = logging.getLogger(__name__)


def candle_to_dict(candle: Candle) -> Dict[str, Any]:
    return {
        "open_time": candle.open_time,
        "close_time": candle.close_time,
        "open": str(candle.open),
        "high": str(candle.high),
        "low": str(candle.low),
        "close": str(candle.close),
        "volume": str(candle.volume),
        "trade_count": candle.trade_count,
    }


def candle_from_dict(row: Dict[str, Any]) -> Candle:
    return Candle(
        open_time=int(row["open_time"]),
        close_time=int(row["close_time"]),
        open=Decimal(row["open"]),
        high=Decimal(row["high"]),
        low=Decimal(row["low"]),
        close=Decimal(row["close"]),
        volume=Decimal(row["volume"]),
        trade_count=int(row["trade_count"]),
    )


class CandleStore:
    """One JSON file per symbol."""

    def __init__(self, output_dir: str):
        self.output_dir = output_dir

    def path_for(self, symbol: str) -> str:
        return os.path.join(self.output_dir, f"{symbol.upper()}.json")

    def save(self, symbol: str, candles: List[Candle]) -> str:
        """Write the history atomically and return the file path."""
        os.makedirs(self.output_dir or ".", exist_ok=True)
        path = self.path_for(symbol)
        tmp = path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump([candle_to_dict(c) for c in candles], f, indent=1)
        os.replace(tmp, path)
        logger.info(f"[STORE] {symbol.upper()}: wrote {len(candles)} candles to {path}")
        return path

    def load(self, symbol: str) -> List[Candle]:
        with open(self.path_for(symbol), "r", encoding="utf-8") as f:
            rows = json.load(f)
        return [candle_from_dict(r) for r in rows]

    def exists(self, symbol: str) -> bool:
        return os.path.exists(self.path_for(symbol))
