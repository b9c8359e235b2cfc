"""Paper-trading TUI: live prices, holdings, transactions and trade entry."""

from __future__ import annotations

import asyncio

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.timer import Timer
from textual.widgets import DataTable, Footer, Header, Input, Static

from ..config import ClientConfig, load_config
from ..models import ConnectionState, Notice, TradeSide
from ..session import SyncSession
from .common import (
    _fmt_amount,
    _fmt_money,
    _parse_trade_command,
    _price_row,
    _status_line,
    _transaction_row,
)

# Textual has no "never expire" flag; a day is long enough to need a manual reload.
_STICKY_TIMEOUT_SEC = 24 * 60 * 60.0


class PaperTradeApp(App):
    BINDINGS = [
        ("q", "quit", "Quit"),
        ("b", "buy", "Buy"),
        ("s", "sell", "Sell"),
        ("x", "remove_pair", "Remove pair"),
        ("ctrl+r", "reset", "Reset account"),
        ("f5", "refresh_prices", "Refresh prices"),
        ("j", "cursor_down", "Down"),
        ("k", "cursor_up", "Up"),
    ]

    CSS = """
    Screen {
        layout: vertical;
    }

    #status {
        height: 1;
        padding: 0 1;
    }

    #account {
        height: 1;
        padding: 0 1;
    }

    #body {
        height: 1fr;
        layout: horizontal;
    }

    #prices {
        width: 3fr;
        border: solid #1b3650;
    }

    #holdings {
        width: 2fr;
        border: solid #1b3650;
    }

    #prices:focus,
    #holdings:focus,
    #transactions:focus {
        border: solid #2c82c9;
    }

    #transactions {
        height: 12;
        border: solid #003054;
    }

    #entry {
        height: auto;
    }

    #suggestions {
        height: 2;
        padding: 0 1;
    }
    """

    def __init__(
        self, config: ClientConfig | None = None, session: SyncSession | None = None
    ) -> None:
        super().__init__()
        self._config = config or load_config()
        self._session = session or SyncSession(self._config)
        self._dirty = False
        self._dirty_task: asyncio.Task | None = None
        self._search_timer: Timer | None = None
        self._price_keys: list[str] = []

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield Static("", id="status")
        yield Static("", id="account")
        with Horizontal(id="body"):
            yield DataTable(id="prices", zebra_stripes=True)
            yield DataTable(id="holdings", zebra_stripes=True)
        yield DataTable(id="transactions", zebra_stripes=True)
        with Vertical(id="entry"):
            yield Input(placeholder="Add pair (e.g. BTC/USD, ethusd)", id="add-pair")
            yield Static("", id="suggestions")
            yield Input(placeholder="SYMBOL AMOUNT (b buy, s sell)", id="trade")
        yield Footer()

    async def on_mount(self) -> None:
        self._prices = self.query_one("#prices", DataTable)
        self._holdings = self.query_one("#holdings", DataTable)
        self._transactions = self.query_one("#transactions", DataTable)
        self._status = self.query_one("#status", Static)
        self._account = self.query_one("#account", Static)
        self._suggestions = self.query_one("#suggestions", Static)
        self._prices.cursor_type = "row"
        self._prices.add_columns("Pair", "Base", "Price", "24h")
        self._holdings.add_columns("Pair", "Amount", "Value")
        self._transactions.add_columns(
            "Time", "Type", "Pair", "Amount", "Price", "Total", "P/L"
        )
        self._session.set_notify_callback(self._show_notice)
        self._session.set_update_callback(self._mark_dirty)
        self._session.connection.add_state_listener(self._on_connection_state)
        self._session.start()
        self.run_worker(self._session.load_available_pairs(), group="pairs")
        self._render_all()
        self._prices.focus()

    async def on_unmount(self) -> None:
        await self._session.stop()

    # region Actions
    def action_cursor_down(self) -> None:
        self._prices.action_cursor_down()

    def action_cursor_up(self) -> None:
        self._prices.action_cursor_up()

    def action_remove_pair(self) -> None:
        symbol = self._selected_symbol()
        if symbol:
            self._session.unwatch(symbol)

    def action_buy(self) -> None:
        self.run_worker(self._submit_trade(TradeSide.BUY), group="backend")

    def action_sell(self) -> None:
        self.run_worker(self._submit_trade(TradeSide.SELL), group="backend")

    def action_reset(self) -> None:
        self.run_worker(self._session.reset_account(), group="backend")

    def action_refresh_prices(self) -> None:
        self.run_worker(self._session.refresh_prices(), group="backend")

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        if event.data_table is not self._prices:
            return
        symbol = event.row_key.value
        if symbol:
            trade_input = self.query_one("#trade", Input)
            trade_input.value = f"{symbol} "
            trade_input.focus()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "add-pair":
            return
        if self._search_timer is not None:
            self._search_timer.stop()
        term = event.value
        self._search_timer = self.set_timer(
            self._config.search_debounce_sec, lambda: self._show_suggestions(term)
        )

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "add-pair":
            value = event.value.strip()
            event.input.value = ""
            self._suggestions.update("")
            if value:
                self.run_worker(self._session.watch(value), group="backend")
        elif event.input.id == "trade":
            try:
                side, symbol, amount = _parse_trade_command(event.value)
            except ValueError as exc:
                self._show_notice(Notice(str(exc), "warning"))
                return
            self._session.ticket.symbol = symbol
            self._session.ticket.amount = amount
            if side is None:
                self._prices.focus()
                self._show_notice(
                    Notice(f"Ticket: {_fmt_amount(amount)} {symbol}; b to buy, s to sell")
                )
                return
            self.run_worker(self._submit_trade(side), group="backend")

    # endregion

    async def _submit_trade(self, side: TradeSide) -> None:
        if await self._session.trade(side):
            self.query_one("#trade", Input).value = ""

    def _show_suggestions(self, term: str) -> None:
        matches = self._session.search_pairs(term)
        if not matches:
            self._suggestions.update("")
            return
        text = Text()
        for pair in matches:
            if text:
                text.append("  ")
            watched = pair in self._session.subscriptions
            text.append(pair, style="dim" if watched else "bold")
            if watched:
                text.append(" (subscribed)", style="dim")
        self._suggestions.update(text)

    def _show_notice(self, notice: Notice) -> None:
        timeout = _STICKY_TIMEOUT_SEC if notice.sticky else self._config.notice_sec
        self.notify(notice.message, severity=notice.severity, timeout=timeout)

    def _on_connection_state(self, _state: ConnectionState) -> None:
        self._render_status()

    def _selected_symbol(self) -> str | None:
        row = self._prices.cursor_coordinate.row
        if row < 0 or row >= len(self._price_keys):
            return None
        return self._price_keys[row]

    def _mark_dirty(self) -> None:
        self._dirty = True
        if self._dirty_task and not self._dirty_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._dirty_task = loop.create_task(self._flush_dirty())

    async def _flush_dirty(self) -> None:
        while True:
            await asyncio.sleep(self._config.refresh_sec)
            if not self._dirty:
                break
            self._dirty = False
            self._render_all()

    def _render_all(self) -> None:
        self._render_status()
        self._render_account()
        self._render_prices()
        self._render_holdings()
        self._render_transactions()

    def _render_status(self) -> None:
        conn = self._session.connection
        self._status.update(
            _status_line(
                conn.state,
                conn.reconnect_attempts,
                self._config.max_reconnect_attempts,
                conn.dropped_frames,
            )
        )

    def _render_account(self) -> None:
        account = self._session.account
        self._account.update(
            f"Balance {_fmt_money(account.balance)}    "
            f"Portfolio value {_fmt_money(account.total_value)}"
        )

    def _render_prices(self) -> None:
        cursor = self._prices.cursor_coordinate.row
        self._prices.clear()
        self._price_keys = []
        for entry in self._session.prices.entries():
            self._prices.add_row(*_price_row(entry), key=entry.symbol)
            self._price_keys.append(entry.symbol)
        if self._price_keys:
            self._prices.move_cursor(row=min(max(cursor, 0), len(self._price_keys) - 1))

    def _render_holdings(self) -> None:
        self._holdings.clear()
        for symbol, amount, value in self._session.reconciler.holding_rows():
            self._holdings.add_row(symbol, _fmt_amount(amount), _fmt_money(value))

    def _render_transactions(self) -> None:
        self._transactions.clear()
        for txn in self._session.account.transactions:
            self._transactions.add_row(*_transaction_row(txn))
