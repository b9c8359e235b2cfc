"""Formatting and input parsing shared by the TUI screens."""

from __future__ import annotations

from rich.text import Text

from ..models import ConnectionState, PriceEntry, TradeSide, Transaction
from ..symbols import base_currency, normalize_symbol

_STATE_STYLES = {
    ConnectionState.CONNECTED: "bold #4ec27a",
    ConnectionState.CONNECTING: "bold #e0b341",
    ConnectionState.DISCONNECTED: "bold #e05d5d",
    ConnectionState.ERROR: "bold #e05d5d",
}

_LOADING = "…"


def _fmt_money(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:,.2f}"


def _fmt_amount(value: float) -> str:
    return f"{value:.6f}"


def _change_text(change: float | None) -> Text:
    if change is None:
        return Text(_LOADING, style="dim")
    style = "#4ec27a" if change >= 0 else "#e05d5d"
    return Text(f"{change:.2f}%", style=style)


def _price_row(entry: PriceEntry) -> tuple:
    price = Text(_LOADING, style="dim") if entry.loading else Text(_fmt_money(entry.price))
    return (
        entry.symbol,
        base_currency(entry.symbol),
        price,
        _change_text(entry.change24h),
    )


def _transaction_row(txn: Transaction) -> tuple:
    when = txn.timestamp.strftime("%Y-%m-%d %H:%M:%S") if txn.timestamp else "-"
    if txn.side is TradeSide.SELL and txn.profit_loss is not None:
        style = "#4ec27a" if txn.profit_loss > 0 else "#e05d5d" if txn.profit_loss < 0 else ""
        pnl = Text(_fmt_money(txn.profit_loss), style=style)
    else:
        pnl = Text("-")
    return (
        when,
        txn.side.value,
        txn.symbol,
        _fmt_amount(txn.amount),
        _fmt_money(txn.price),
        _fmt_money(txn.total),
        pnl,
    )


def _status_line(
    state: ConnectionState, attempts: int, max_attempts: int, dropped: int
) -> Text:
    text = Text("● ", style=_STATE_STYLES[state])
    text.append(state.label)
    if state is not ConnectionState.CONNECTED and attempts:
        text.append(f"  retry {attempts}/{max_attempts}", style="dim")
    if dropped:
        text.append(f"  dropped frames: {dropped}", style="dim")
    return text


def _parse_trade_command(raw: str) -> tuple[TradeSide | None, str, float]:
    """Parse `BTC/USD 0.5` or `sell ethusd 2`; side is None when omitted."""
    parts = (raw or "").split()
    if len(parts) not in (2, 3):
        raise ValueError("Use: [buy|sell] SYMBOL AMOUNT")
    side = None
    if len(parts) == 3:
        side_raw = parts.pop(0)
        try:
            side = TradeSide(side_raw.upper())
        except ValueError as exc:
            raise ValueError(f"Unknown side {side_raw!r}; use buy or sell") from exc
    symbol_raw, amount_raw = parts
    try:
        amount = float(amount_raw)
    except ValueError as exc:
        raise ValueError(f"Invalid amount {amount_raw!r}") from exc
    return side, normalize_symbol(symbol_raw), amount
