"""In-memory price cache and account state for one client session.

The cache is the only source of truth for prices; the UI reads rows from here
and never the other way round.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from .models import (
    PriceEntry,
    Transaction,
    decode_holdings,
    decode_number,
    decode_transactions,
)


class PriceCache:
    def __init__(self) -> None:
        self._entries: dict[str, PriceEntry] = {}

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def placeholder(self, symbol: str) -> PriceEntry:
        entry = self._entries.get(symbol)
        if entry is None:
            entry = PriceEntry(symbol)
            self._entries[symbol] = entry
        return entry

    def update(self, symbol: str, price: float, change24h: float) -> float | None:
        """Overwrite the entry for `symbol`; returns the previous price."""
        entry = self._entries.get(symbol)
        if entry is None:
            self._entries[symbol] = PriceEntry(symbol, price, change24h)
            return None
        previous = entry.price
        entry.price = price
        entry.change24h = change24h
        return previous

    def price(self, symbol: str) -> float | None:
        entry = self._entries.get(symbol)
        return entry.price if entry else None

    def get(self, symbol: str) -> PriceEntry | None:
        return self._entries.get(symbol)

    def remove(self, symbol: str) -> bool:
        return self._entries.pop(symbol, None) is not None

    def symbols(self) -> list[str]:
        return list(self._entries)

    def entries(self) -> list[PriceEntry]:
        return list(self._entries.values())


@dataclass
class AccountState:
    balance: float
    holdings: dict[str, float] = field(default_factory=dict)
    total_value: float = 0.0
    transactions: list[Transaction] = field(default_factory=list)
    updated_at: datetime | None = None


class PortfolioReconciler:
    """Merges server snapshots and price ticks into `AccountState`.

    Snapshots always replace the local view wholesale. Ticks only nudge the
    displayed balance for held symbols, as an estimate until the next
    snapshot arrives.
    """

    def __init__(self, prices: PriceCache, initial_balance: float) -> None:
        self._prices = prices
        self.state = AccountState(balance=initial_balance)

    @property
    def prices(self) -> PriceCache:
        return self._prices

    def held_amount(self, symbol: str) -> float:
        return self.state.holdings.get(symbol, 0.0)

    def apply_price_tick(self, symbol: str, price: float, change24h: float) -> None:
        previous = self._prices.update(symbol, price, change24h)
        amount = self.held_amount(symbol)
        if amount > 0:
            delta = price - (previous if previous is not None else price)
            self.state.balance += amount * delta
        self.recompute_total()

    def apply_portfolio_snapshot(
        self, holdings: dict[str, float], balance: float | None = None
    ) -> None:
        self.state.holdings = dict(holdings)
        if balance is not None:
            self.state.balance = balance
        self.recompute_total()
        self._touch()

    def apply_transaction_snapshot(self, transactions: list[Transaction]) -> None:
        self.state.transactions = list(transactions)
        self._touch()

    def apply_account_snapshot(self, payload: dict) -> None:
        """Apply a backend account payload (initial-data, trade or reset)."""
        holdings = decode_holdings(payload.get("portfolio"))
        transactions = decode_transactions(payload.get("transactions"))
        raw_balance = payload.get("balance")
        balance = None if raw_balance is None else decode_number(raw_balance, "balance")
        self.state.total_value = 0.0
        self.apply_portfolio_snapshot(holdings, balance=balance)
        self.apply_transaction_snapshot(transactions)

    def recompute_total(self) -> float:
        total = 0.0
        for symbol, amount in self.state.holdings.items():
            if amount <= 0:
                continue
            total += amount * (self._prices.price(symbol) or 0.0)
        self.state.total_value = total
        return total

    def holding_rows(self) -> list[tuple[str, float, float]]:
        rows = []
        for symbol, amount in self.state.holdings.items():
            if amount <= 0:
                continue
            rows.append((symbol, amount, amount * (self._prices.price(symbol) or 0.0)))
        return rows

    def _touch(self) -> None:
        self.state.updated_at = datetime.now(timezone.utc)
