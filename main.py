"""
Binance History Tool: main entry point.
Lists symbols, prints depth snapshots, runs signed account queries and
downloads full candle histories to JSON.
"""

from __future__ import annotations
import argparse
import asyncio
import os
import signal
import sys
from datetime import datetime, timezone
from typing import List, Optional
import logging

from dotenv import load_dotenv

from config import AppConfig
from data.historical import HistoricalData
from exchange.binance_rest import BinanceRestClient
from exchange.errors import BinanceError, ValidationError
from exchange.models import DEPTH_LIMITS, Interval
from storage.candle_store import CandleStore

logger = logging.getLogger(__name__)

# 2017-01-01T03:59:59Z
DEFAULT_START_MS = 1483243199000


def setup_logging(level: str = "INFO", log_file: str = ""):
    """Configure root logging: stdout, plus a file when log_file is set."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )


def parse_start(value: str) -> int:
    """Accept epoch milliseconds or a YYYY-MM-DD date (UTC midnight)."""
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        dt = datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid start {value!r}: use epoch ms or YYYY-MM-DD")
    return int(dt.timestamp() * 1000)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Binance REST history tool")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("symbols", help="List tradable symbols")

    depth = sub.add_parser("depth", help="Print an order book snapshot")
    depth.add_argument("symbol")
    depth.add_argument("--limit", type=int, default=10, choices=DEPTH_LIMITS)

    history = sub.add_parser("history", help="Download a symbol's candle history to JSON")
    history.add_argument("symbol")
    history.add_argument("--start", type=parse_start, default=DEFAULT_START_MS)
    history.add_argument("--interval", choices=[i.value for i in Interval], default=None)
    history.add_argument("--output-dir", default=None)
    history.add_argument("--timeout", type=float, default=None, help="Seconds for the whole fetch")

    sub.add_parser("account", help="Show account balances (signed)")

    orders = sub.add_parser("open-orders", help="List open orders for a symbol (signed)")
    orders.add_argument("symbol")

    return parser


class HistoryTool:
    """Runs one CLI command against a shared REST client."""

    def __init__(self, config: AppConfig, client: Optional[BinanceRestClient] = None):
        self.config = config
        self.client = client or BinanceRestClient(config.exchange)
        self.cancel_event = asyncio.Event()

    def request_stop(self, sig=None):
        logger.info(f"[CLI] Received signal {sig}. Stopping after the current page...")
        self.cancel_event.set()

    async def list_symbols(self):
        symbols = await self.client.get_symbols()
        for symbol in symbols:
            print(symbol)
        logger.info(f"[CLI] {len(symbols)} symbols")

    async def show_depth(self, symbol: str, limit: int):
        depth = await self.client.get_depth(symbol, limit=limit)
        print(f"{symbol.upper()} depth (lastUpdateId={depth.last_update_id})")
        for level in depth.bids:
            print(f"  bid {level.price} - {level.qty}")
        for level in depth.asks:
            print(f"  ask {level.price} - {level.qty}")

    async def download_history(
        self,
        symbol: str,
        start_ms: int,
        interval: Optional[str] = None,
        output_dir: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> str:
        symbol = symbol.upper()
        symbols = await self.client.get_symbols()
        if symbol not in symbols:
            raise ValidationError(f"symbol {symbol} does not exist")

        fetcher = HistoricalData(
            self.client,
            interval=Interval(interval) if interval else self.config.history.interval,
        )
        candles = await fetcher.fetch(
            symbol,
            start_ms,
            cancel_event=self.cancel_event,
            timeout=timeout if timeout is not None else (self.config.history.timeout_sec or None),
        )
        store = CandleStore(output_dir or self.config.history.output_dir)
        return store.save(symbol, candles)

    async def show_account(self):
        info = await self.client.get_account_info()
        print(f"canTrade={info.can_trade} canWithdraw={info.can_withdraw} canDeposit={info.can_deposit}")
        for balance in info.balances:
            if balance.free or balance.locked:
                print(f"  {balance.asset}: free={balance.free} locked={balance.locked}")

    async def show_open_orders(self, symbol: str):
        orders = await self.client.get_open_orders(symbol.upper())
        for o in orders:
            print(
                f"  #{o.order_id} {o.side.value} {o.type.value} {o.orig_qty} @ {o.price} "
                f"[{o.status.value}] filled={o.executed_qty}"
            )
        logger.info(f"[CLI] {len(orders)} open orders on {symbol.upper()}")

    async def run(self, args: argparse.Namespace):
        try:
            if args.command == "symbols":
                await self.list_symbols()
            elif args.command == "depth":
                await self.show_depth(args.symbol, args.limit)
            elif args.command == "history":
                path = await self.download_history(
                    args.symbol, args.start, args.interval, args.output_dir, args.timeout,
                )
                print(path)
            elif args.command == "account":
                await self.show_account()
            elif args.command == "open-orders":
                await self.show_open_orders(args.symbol)
        finally:
            await self.client.close()


def install_signal_handlers(tool: "HistoryTool", command: str) -> bool:
    """Route SIGINT/SIGTERM to the tool's cancel event for long-running commands."""
    if command != "history" or sys.platform == "win32":
        return False
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: tool.request_stop(s))
    return True


async def main(argv: Optional[List[str]] = None) -> int:
    """Entry point. Returns the process exit code."""
    load_dotenv()
    config = AppConfig.from_env()
    setup_logging(config.log_level, config.log_file)
    args = build_arg_parser().parse_args(argv)

    if args.command in ("account", "open-orders") and not config.exchange.has_credentials:
        logger.critical("BINANCE_API_KEY and BINANCE_API_SECRET must be set!")
        return 1

    tool = HistoryTool(config)

    # Graceful shutdown: only the history fetch checks the cancel event
    install_signal_handlers(tool, args.command)

    try:
        await tool.run(args)
    except BinanceError as e:
        logger.error(f"[CLI] {args.command} failed: {e}")
        return 1
    except asyncio.TimeoutError:
        logger.error(f"[CLI] {args.command} timed out")
        return 1
    return 0


def cli():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
