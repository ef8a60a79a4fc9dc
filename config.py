"""
Binance History Client: configuration
All tunable parameters in one place.
"""

import os
from dataclasses import dataclass, field

from exchange.models import Interval


@dataclass(frozen=True)
class ExchangeConfig:
    api_key: str = ""
    api_secret: str = ""
    base_url: str = "https://api.binance.com"
    recv_window_ms: int = 1000          # Signed request validity window
    request_timeout_sec: float = 10.0   # Per HTTP attempt
    retry_span_sec: float = 1.0         # Fixed delay between 5xx retries
    max_tries: int = 3                  # Total attempts, first one included

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key) and bool(self.api_secret)


@dataclass
class HistoryConfig:
    interval: Interval = Interval.DAY
    output_dir: str = "./history"
    timeout_sec: float = 0.0            # Whole-fetch bound, 0 => unbounded


@dataclass
class AppConfig:
    exchange: ExchangeConfig = field(default_factory=ExchangeConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    log_level: str = "INFO"
    log_file: str = ""

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load config with environment variable overrides."""
        defaults = ExchangeConfig()
        exchange = ExchangeConfig(
            api_key=os.getenv("BINANCE_API_KEY", ""),
            api_secret=os.getenv("BINANCE_API_SECRET", ""),
            base_url=os.getenv("BINANCE_BASE_URL", defaults.base_url),
            recv_window_ms=int(os.getenv("BINANCE_RECV_WINDOW_MS", str(defaults.recv_window_ms))),
            request_timeout_sec=float(os.getenv("BINANCE_TIMEOUT_SEC", str(defaults.request_timeout_sec))),
            retry_span_sec=float(os.getenv("BINANCE_RETRY_SPAN_SEC", str(defaults.retry_span_sec))),
            max_tries=int(os.getenv("BINANCE_MAX_TRIES", str(defaults.max_tries))),
        )
        config = cls(exchange=exchange)
        config.history.interval = Interval(os.getenv("HISTORY_INTERVAL", Interval.DAY.value))
        config.history.output_dir = os.getenv("HISTORY_OUTPUT_DIR", "./history")
        config.history.timeout_sec = float(os.getenv("HISTORY_TIMEOUT_SEC", "0"))
        config.log_level = os.getenv("LOG_LEVEL", "INFO")
        config.log_file = os.getenv("LOG_FILE", "")
        return config
