"""Tests for the command line entry point."""

import argparse
import asyncio
import json
import signal
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from config import AppConfig, HistoryConfig
from exchange.errors import ValidationError
from exchange.models import Interval
from main import (
    DEFAULT_START_MS, HistoryTool, build_arg_parser, install_signal_handlers, main, parse_start,
)

from conftest import make_candles

STEP = 86_400_000


def test_parse_start_accepts_epoch_ms():
    assert parse_start("1483243199000") == 1483243199000


def test_parse_start_accepts_date():
    assert parse_start("2017-01-01") == 1483228800000


def test_parse_start_rejects_garbage():
    with pytest.raises(argparse.ArgumentTypeError):
        parse_start("yesterday")


def test_history_defaults():
    args = build_arg_parser().parse_args(["history", "ETHBTC"])
    assert args.start == DEFAULT_START_MS
    assert args.interval is None
    assert args.timeout is None


def test_depth_limit_choices():
    with pytest.raises(SystemExit):
        build_arg_parser().parse_args(["depth", "ETHBTC", "--limit", "7"])


def _tool(tmp_path, symbols, pages):
    client = MagicMock()
    client.get_symbols = AsyncMock(return_value=symbols)
    client.get_klines = AsyncMock(side_effect=pages)
    client.close = AsyncMock()
    config = AppConfig(history=HistoryConfig(interval=Interval.DAY, output_dir=str(tmp_path)))
    return HistoryTool(config, client=client), client


async def test_download_history_stores_json(tmp_path, monkeypatch):
    monkeypatch.setattr("data.historical.now_ms", lambda: 3 * STEP)
    tool, client = _tool(tmp_path, ["ETHBTC"], [make_candles(0, 2, STEP), make_candles(2 * STEP, 2, STEP)])

    path = await tool.download_history("ethbtc", 0, interval="1d")

    rows = json.loads(open(path).read())
    assert [r["open_time"] for r in rows] == [0, STEP, 2 * STEP, 3 * STEP]
    assert client.get_klines.await_count == 2


async def test_download_history_unknown_symbol(tmp_path):
    tool, client = _tool(tmp_path, ["ETHBTC"], [])

    with pytest.raises(ValidationError):
        await tool.download_history("NOPE", 0)

    client.get_klines.assert_not_awaited()


async def test_main_requires_credentials_for_account(monkeypatch):
    monkeypatch.setenv("BINANCE_API_KEY", "")
    monkeypatch.setenv("BINANCE_API_SECRET", "")
    assert await main(["account"]) == 1


@pytest.mark.parametrize("command", ["symbols", "depth", "account", "open-orders"])
async def test_short_commands_leave_signals_alone(command):
    tool = HistoryTool(AppConfig(), client=MagicMock())
    loop = asyncio.get_running_loop()

    with patch.object(loop, "add_signal_handler") as add_handler:
        assert install_signal_handlers(tool, command) is False

    add_handler.assert_not_called()


@pytest.mark.skipif(sys.platform == "win32", reason="loop signal handlers are POSIX only")
async def test_history_signals_set_cancel_event():
    tool = HistoryTool(AppConfig(), client=MagicMock())
    loop = asyncio.get_running_loop()

    with patch.object(loop, "add_signal_handler") as add_handler:
        assert install_signal_handlers(tool, "history") is True

    assert [c.args[0] for c in add_handler.call_args_list] == [signal.SIGINT, signal.SIGTERM]
    add_handler.call_args_list[0].args[1]()
    assert tool.cancel_event.is_set()
