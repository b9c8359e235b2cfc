from __future__ import annotations

from datetime import datetime

import pytest

from papertrader.models import ConnectionState, PriceEntry, TradeSide, Transaction
from papertrader.ui.common import (
    _fmt_money,
    _parse_trade_command,
    _price_row,
    _status_line,
    _transaction_row,
)


def test_parse_trade_command_normalizes_symbol() -> None:
    assert _parse_trade_command("buy ethusd 0.5") == (TradeSide.BUY, "ETH/USD", 0.5)
    assert _parse_trade_command("  SELL BTC/EUR 2 ") == (TradeSide.SELL, "BTC/EUR", 2.0)


def test_parse_trade_command_without_side_fills_ticket_only() -> None:
    assert _parse_trade_command("xbtusd 0.25") == (None, "XBT/USD", 0.25)


@pytest.mark.parametrize(
    "raw", ["", "BTC/USD", "hold BTC/USD 1", "buy BTC/USD lots", "buy BTC/USD 1 2"]
)
def test_parse_trade_command_rejects_bad_input(raw: str) -> None:
    with pytest.raises(ValueError):
        _parse_trade_command(raw)


def test_price_row_shows_loading_placeholder() -> None:
    row = _price_row(PriceEntry("XXBT/ZUSD"))
    assert row[0] == "XXBT/ZUSD"
    assert row[1] == "BTC"
    assert row[2].plain == "…"

    row = _price_row(PriceEntry("ETH/USD", 1234.5, -1.25))
    assert row[2].plain == "1,234.50"
    assert row[3].plain == "-1.25%"


def test_transaction_row_shows_profit_only_for_sells() -> None:
    when = datetime(2024, 5, 1, 12, 0, 0)
    buy = Transaction(when, TradeSide.BUY, "ETH/USD", 1.0, 100.0, 100.0)
    sell = Transaction(when, TradeSide.SELL, "ETH/USD", 1.0, 120.0, 120.0, 20.0)
    assert _transaction_row(buy)[-1].plain == "-"
    assert _transaction_row(sell)[-1].plain == "20.00"
    assert _transaction_row(sell)[0] == "2024-05-01 12:00:00"


def test_status_line_mentions_retries_and_drops() -> None:
    text = _status_line(ConnectionState.DISCONNECTED, 2, 5, 3).plain
    assert "Disconnected" in text
    assert "retry 2/5" in text
    assert "dropped frames: 3" in text
    assert "retry" not in _status_line(ConnectionState.CONNECTED, 0, 5, 0).plain


def test_fmt_money_handles_missing_values() -> None:
    assert _fmt_money(None) == "-"
    assert _fmt_money(10000) == "10,000.00"
