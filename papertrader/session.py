"""One client session: feed connection, caches, backend calls and trades.

Everything mutable lives on a `SyncSession` instance; the UI holds one and
reads from it.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

import requests

from .api import BackendClient
from .config import ClientConfig
from .connection import ConnectionManager, Connector
from .errors import FrameError, RequestError
from .models import (
    Notice,
    PriceTick,
    TradeSide,
    TradeTicket,
    decode_holdings,
    decode_number,
    decode_transactions,
)
from .store import AccountState, PortfolioReconciler, PriceCache
from .subscriptions import SubscriptionRegistry
from .symbols import COMMON_PAIRS, normalize_symbol, search_pairs
from .trade import TradeExecutor

log = logging.getLogger(__name__)

INITIAL_DATA_FAILED = "Failed to load initial data. Please refresh the page."
RESET_FAILED = "Failed to reset account. Please try again."
PAIRS_FAILED = "Error fetching currency pairs"


class SyncSession:
    def __init__(
        self,
        config: ClientConfig,
        *,
        connector: Connector | None = None,
        http: requests.Session | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._notify: Callable[[Notice], None] | None = None
        self._update_callback: Callable[[], None] | None = None
        self._initial_task: asyncio.Task | None = None
        self.prices = PriceCache()
        self.reconciler = PortfolioReconciler(self.prices, config.initial_balance)
        self.connection = ConnectionManager(
            config,
            self.handle_message,
            notify=self._emit,
            connector=connector,
            clock=clock,
        )
        self.subscriptions = SubscriptionRegistry(self.connection)
        self.connection.add_open_listener(self.subscriptions.resubscribe_all)
        self.api = BackendClient(config, http)
        self.trades = TradeExecutor(self.api, self.reconciler, self._emit)
        self.ticket = TradeTicket()
        self._available_pairs: dict[str, None] = dict.fromkeys(COMMON_PAIRS)

    @property
    def account(self) -> AccountState:
        return self.reconciler.state

    def set_notify_callback(self, callback: Callable[[Notice], None]) -> None:
        self._notify = callback

    def set_update_callback(self, callback: Callable[[], None]) -> None:
        self._update_callback = callback

    def start(self) -> None:
        self.connection.connect()
        if self._initial_task and not self._initial_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._initial_task = loop.create_task(self.load_initial_data())

    async def stop(self) -> None:
        if self._initial_task and not self._initial_task.done():
            self._initial_task.cancel()
        self._initial_task = None
        await self.connection.disconnect()

    # region Feed dispatch
    def handle_message(self, frame: dict) -> None:
        kind = frame.get("type")
        if kind == "SUBSCRIPTION_CONFIRMED":
            log.info("subscription confirmed: %s", frame.get("message", ""))
            return
        if kind == "PRICE_UPDATE":
            tick = PriceTick.from_payload(frame)
            self.reconciler.apply_price_tick(tick.symbol, tick.price, tick.change24h)
        elif kind == "PORTFOLIO_UPDATE":
            if "portfolio" not in frame:
                raise FrameError("portfolio update without portfolio")
            holdings = decode_holdings(frame["portfolio"])
            balance = frame.get("balance")
            self.reconciler.apply_portfolio_snapshot(
                holdings,
                balance=None if balance is None else decode_number(balance, "balance"),
            )
        elif kind == "TRANSACTION_UPDATE":
            if "transactions" not in frame:
                raise FrameError("transaction update without transactions")
            self.reconciler.apply_transaction_snapshot(
                decode_transactions(frame["transactions"])
            )
        elif kind == "ERROR":
            self._emit(Notice(str(frame.get("message") or "Unknown feed error"), "error"))
            return
        else:
            log.debug("ignoring feed frame of type %r", kind)
            return
        self._mark_updated()

    # endregion

    # region Backend flows
    async def load_initial_data(self) -> bool:
        retries = self._config.initial_data_retries
        attempt = 0
        while True:
            try:
                payload = await self.api.initial_data()
                self._apply_initial(payload)
                return True
            except (RequestError, FrameError) as exc:
                if attempt >= retries:
                    log.error("initial data load failed: %s", exc)
                    break
                attempt += 1
                log.warning(
                    "initial data load failed (%s), retrying (%d/%d)", exc, attempt, retries
                )
                await asyncio.sleep(self._config.initial_data_retry_sec)
        idle = self.connection.seconds_since_last_message()
        if idle is None or idle > self._config.stale_after_sec:
            self._emit(Notice(INITIAL_DATA_FAILED, "error"))
        else:
            log.info("feed is live (%.1fs since last frame); not reporting load failure", idle)
        return False

    async def refresh_prices(self) -> int:
        try:
            prices = await self.api.crypto_prices()
        except RequestError as exc:
            self._emit(Notice(exc.message, "error"))
            return 0
        applied = self._apply_prices(prices)
        self._mark_updated()
        return applied

    async def watch(self, symbol: str) -> bool:
        try:
            normalized = normalize_symbol(symbol)
        except ValueError:
            self._emit(Notice("Enter a currency pair to add", "warning"))
            return False
        if normalized in self.subscriptions:
            self._emit(Notice("Currency already added", "warning"))
            return False
        self.subscriptions.add(normalized)
        self.prices.placeholder(normalized)
        self._mark_updated()
        try:
            await self.api.subscribe(normalized)
        except RequestError as exc:
            self._emit(Notice(f"Failed to subscribe to {symbol}: {exc.message}", "error"))
            return False
        self._emit(Notice(f"Successfully subscribed to {normalized}"))
        return True

    def unwatch(self, symbol: str) -> bool:
        try:
            normalized = normalize_symbol(symbol)
        except ValueError:
            return False
        tracked = self.subscriptions.remove(normalized)
        cached = self.prices.remove(normalized)
        if not (tracked or cached):
            return False
        self.reconciler.recompute_total()
        self._mark_updated()
        self._emit(Notice(f"Removed {normalized} from watchlist"))
        return True

    async def trade(self, side: TradeSide) -> bool:
        applied = await self.trades.submit(side, self.ticket)
        if applied:
            self._mark_updated()
        return applied

    async def reset_account(self) -> bool:
        visible = set(self.subscriptions.symbols()) | set(self.prices.symbols())
        try:
            payload = await self.api.reset()
            self.reconciler.apply_account_snapshot(payload)
        except (RequestError, FrameError) as exc:
            log.error("account reset failed: %s", exc)
            self._emit(Notice(RESET_FAILED, "error"))
            return False
        sent = self.subscriptions.resubscribe(visible)
        log.info("account reset; %d pairs kept, %d subscriptions re-issued", len(visible), sent)
        self._mark_updated()
        return True

    async def load_available_pairs(self) -> int:
        try:
            pairs = await self.api.asset_pairs()
        except RequestError as exc:
            log.error("pair listing failed: %s", exc.message)
            self._emit(Notice(PAIRS_FAILED, "error"))
            return len(self._available_pairs)
        merged = dict.fromkeys(pairs)
        for pair in COMMON_PAIRS:
            merged.setdefault(pair)
        self._available_pairs = merged
        return len(merged)

    def search_pairs(self, term: str) -> list[str]:
        return search_pairs(self._available_pairs, term)

    # endregion

    def _apply_initial(self, payload: dict) -> None:
        self.reconciler.apply_account_snapshot(payload)
        self._apply_prices(payload.get("prices") or [])
        self._mark_updated()

    def _apply_prices(self, prices: list) -> int:
        applied = 0
        for item in prices:
            try:
                tick = PriceTick.from_payload(item) if isinstance(item, dict) else None
            except FrameError as exc:
                log.warning("skipping price entry: %s", exc)
                continue
            if tick is None:
                continue
            self.reconciler.apply_price_tick(tick.symbol, tick.price, tick.change24h)
            applied += 1
        return applied

    def _mark_updated(self) -> None:
        if self._update_callback:
            self._update_callback()

    def _emit(self, notice: Notice) -> None:
        log.log(
            logging.ERROR if notice.severity == "error" else logging.INFO,
            "notice: %s",
            notice.message,
        )
        if self._notify:
            self._notify(notice)
