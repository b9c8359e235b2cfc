from __future__ import annotations

import pytest

from papertrader.symbols import (
    COMMON_PAIRS,
    base_currency,
    format_currency_code,
    match_score,
    normalize_symbol,
    search_pairs,
    subscribe_frame,
    unsubscribe_frame,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("btc/usd", "BTC/USD"),
        ("  eth/eur ", "ETH/EUR"),
        ("BTCUSD", "BTC/USD"),
        ("xbteur", "XBT/EUR"),
        ("ADAGBP", "ADA/GBP"),
        ("XRPJPY", "XRP/JPY"),
        ("DOTCHF", "DOT/CHF"),
        ("BTCUSDT", "BTC/USDT"),
        ("EURT", "EURT/EUR"),
        ("eurusd", "EUR/USD"),
        ("GBPEUR", "GBP/EUR"),
    ],
)
def test_normalize_symbol_known_forms(raw: str, expected: str) -> None:
    assert normalize_symbol(raw) == expected


def test_normalize_symbol_passes_unknown_tokens_through() -> None:
    assert normalize_symbol("XBTCAD") == "XBTCAD"
    assert normalize_symbol("doge") == "DOGE"


def test_normalize_symbol_short_token_is_not_split() -> None:
    # Five characters ending in USD is too short to be BASE/QUOTE.
    assert normalize_symbol("ABUSD") == "ABUSD"


def test_normalize_symbol_rejects_blank() -> None:
    with pytest.raises(ValueError):
        normalize_symbol("   ")


def test_feed_frames_carry_ticker_subscription() -> None:
    assert subscribe_frame("BTC/USD") == {
        "event": "subscribe",
        "pair": ["BTC/USD"],
        "subscription": {"name": "ticker"},
    }
    assert unsubscribe_frame("BTC/USD")["event"] == "unsubscribe"
    assert unsubscribe_frame("BTC/USD")["pair"] == ["BTC/USD"]


def test_currency_aliases_for_display() -> None:
    assert format_currency_code("XXBT") == "BTC"
    assert format_currency_code("ZUSD") == "USD"
    assert format_currency_code("SOL") == "SOL"
    assert base_currency("XXBT/ZEUR") == "BTC"


def test_match_score_weights_exact_base_highest() -> None:
    assert match_score("ETH/USD", "eth") == 10 + 6 + 3 + 1
    assert match_score("USDT/EUR", "eur") == 8 + 5 + 2 + 1
    assert match_score("ADA/USD", "zzz") == 0


def test_search_pairs_ranks_and_limits() -> None:
    pairs = ["ETH/USD", "USDT/ETH", "XBT/USD", "SETH/EUR"]
    assert search_pairs(pairs, "eth") == ["ETH/USD", "USDT/ETH", "SETH/EUR"]
    assert search_pairs(pairs, "e") == []
    assert len(search_pairs(COMMON_PAIRS, "usd")) == 10
