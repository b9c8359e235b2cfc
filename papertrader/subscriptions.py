"""Watched pair bookkeeping, replayed to the feed on every (re)connect."""
from __future__ import annotations

import logging
from typing import Iterable, Protocol

from .symbols import normalize_symbol, subscribe_frame, unsubscribe_frame

log = logging.getLogger(__name__)


class FeedSender(Protocol):
    @property
    def is_connected(self) -> bool: ...

    def send(self, payload: dict) -> bool: ...


class SubscriptionRegistry:
    def __init__(self, feed: FeedSender) -> None:
        self._feed = feed
        self._symbols: set[str] = set()

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._symbols

    def __len__(self) -> int:
        return len(self._symbols)

    def symbols(self) -> list[str]:
        return sorted(self._symbols)

    def add(self, symbol: str) -> bool:
        """Track `symbol`; False when it was already tracked.

        The feed frame is only sent while connected. Otherwise the next open
        replays it through `resubscribe_all`.
        """
        normalized = normalize_symbol(symbol)
        if normalized in self._symbols:
            return False
        self._symbols.add(normalized)
        if self._feed.is_connected:
            self._feed.send(subscribe_frame(normalized))
        else:
            log.info("queued subscription for %s until the feed reconnects", normalized)
        return True

    def remove(self, symbol: str) -> bool:
        normalized = normalize_symbol(symbol)
        if normalized not in self._symbols:
            return False
        self._symbols.discard(normalized)
        if self._feed.is_connected:
            self._feed.send(unsubscribe_frame(normalized))
        return True

    def resubscribe_all(self) -> int:
        return self.resubscribe(self.symbols())

    def resubscribe(self, symbols: Iterable[str]) -> int:
        """Track every symbol and send a subscribe frame for each, tracked or not."""
        normalized = sorted({normalize_symbol(symbol) for symbol in symbols})
        self._symbols.update(normalized)
        if not self._feed.is_connected:
            return 0
        sent = 0
        for symbol in normalized:
            if self._feed.send(subscribe_frame(symbol)):
                sent += 1
        if sent:
            log.info("re-issued %d subscriptions", sent)
        return sent
