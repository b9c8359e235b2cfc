"""Pair symbol normalization, feed frames and pair search."""

from __future__ import annotations

from typing import Iterable

_QUOTE_SUFFIXES = ("USD", "EUR", "GBP", "JPY", "CHF")

# Raw exchange tokens that do not split on a known suffix.
_SPECIAL_PAIRS: dict[str, str] = {
    "EURT": "EURT/EUR",
    "EUREUR": "EUR/EUR",
    "USDEUR": "USD/EUR",
    "GBPEUR": "GBP/EUR",
    "EURUSD": "EUR/USD",
}

_CURRENCY_ALIASES: dict[str, str] = {
    "XXBT": "BTC",
    "XETH": "ETH",
    "ZEUR": "EUR",
    "ZUSD": "USD",
    "ZGBP": "GBP",
    "ZJPY": "JPY",
}

COMMON_PAIRS: tuple[str, ...] = (
    # Major crypto/fiat
    "XBT/USD",
    "XBT/EUR",
    "ETH/USD",
    "ETH/EUR",
    "XRP/USD",
    "XRP/EUR",
    "ADA/USD",
    "ADA/EUR",
    # Major forex
    "EUR/USD",
    "GBP/USD",
    "USD/JPY",
    "USD/CAD",
    # Stablecoins
    "USDT/USD",
    "USDC/USD",
    "DAI/USD",
    "USDT/EUR",
    "USDC/EUR",
    "DAI/EUR",
)

SEARCH_LIMIT = 10
MIN_SEARCH_LEN = 2


def normalize_symbol(raw: str) -> str:
    """Return the slash-delimited form of a user or exchange pair token.

    Tokens that match no rule are returned uppercased and otherwise untouched
    so the backend can apply its own validation.
    """
    symbol = (raw or "").strip().upper()
    if not symbol:
        raise ValueError("symbol is required")
    if "/" in symbol:
        return symbol
    special = _SPECIAL_PAIRS.get(symbol)
    if special:
        return special
    if len(symbol) >= 6:
        quote = symbol[-3:]
        if quote in _QUOTE_SUFFIXES:
            return f"{symbol[:-3]}/{quote}"
        if symbol.endswith("USDT"):
            return f"{symbol[:-4]}/USDT"
    return symbol


def format_currency_code(code: str) -> str:
    return _CURRENCY_ALIASES.get(code, code)


def base_currency(symbol: str) -> str:
    return format_currency_code(symbol.split("/", 1)[0])


def subscribe_frame(symbol: str) -> dict:
    return {"event": "subscribe", "pair": [symbol], "subscription": {"name": "ticker"}}


def unsubscribe_frame(symbol: str) -> dict:
    return {"event": "unsubscribe", "pair": [symbol], "subscription": {"name": "ticker"}}


def match_score(pair: str, term: str) -> int:
    term = term.lower()
    key = pair.lower()
    base, _, quote = key.partition("/")
    score = 0
    if base == term:
        score += 10
    if quote == term:
        score += 8
    if base.startswith(term):
        score += 6
    if quote.startswith(term):
        score += 5
    if term in base:
        score += 3
    if term in quote:
        score += 2
    if term in key:
        score += 1
    return score


def search_pairs(pairs: Iterable[str], term: str, *, limit: int = SEARCH_LIMIT) -> list[str]:
    """Rank `pairs` against `term`, best first; short terms match nothing."""
    term = (term or "").strip()
    if len(term) < MIN_SEARCH_LEN:
        return []
    scored = [(match_score(pair, term), pair) for pair in pairs]
    ranked = sorted(
        (item for item in scored if item[0] > 0),
        key=lambda item: item[0],
        reverse=True,
    )
    return [pair for _score, pair in ranked[:limit]]
