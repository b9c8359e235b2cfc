from __future__ import annotations

from papertrader.subscriptions import SubscriptionRegistry
from papertrader.symbols import subscribe_frame, unsubscribe_frame


class _FakeFeed:
    def __init__(self, connected: bool = True) -> None:
        self.is_connected = connected
        self.sent: list[dict] = []

    def send(self, payload: dict) -> bool:
        self.sent.append(payload)
        return True


def test_add_is_idempotent_and_sends_once() -> None:
    feed = _FakeFeed()
    registry = SubscriptionRegistry(feed)
    assert registry.add("btcusd")
    assert not registry.add("BTC/USD")
    assert registry.symbols() == ["BTC/USD"]
    assert feed.sent == [subscribe_frame("BTC/USD")]


def test_add_while_disconnected_only_tracks() -> None:
    feed = _FakeFeed(connected=False)
    registry = SubscriptionRegistry(feed)
    assert registry.add("ETH/USD")
    assert "ETH/USD" in registry
    assert feed.sent == []


def test_remove_sends_unsubscribe() -> None:
    feed = _FakeFeed()
    registry = SubscriptionRegistry(feed)
    registry.add("ETH/USD")
    assert registry.remove("ethusd")
    assert not registry.remove("ETH/USD")
    assert feed.sent[-1] == unsubscribe_frame("ETH/USD")
    assert len(registry) == 0


def test_resubscribe_all_replays_every_symbol() -> None:
    feed = _FakeFeed(connected=False)
    registry = SubscriptionRegistry(feed)
    registry.add("XBT/USD")
    registry.add("ETH/EUR")

    feed.is_connected = True
    assert registry.resubscribe_all() == 2
    assert feed.sent == [subscribe_frame("ETH/EUR"), subscribe_frame("XBT/USD")]


def test_resubscribe_tracks_new_symbols() -> None:
    feed = _FakeFeed()
    registry = SubscriptionRegistry(feed)
    registry.add("BTC/USD")
    feed.sent.clear()

    assert registry.resubscribe(["BTC/USD", "adaeur"]) == 2
    assert registry.symbols() == ["ADA/EUR", "BTC/USD"]
    assert subscribe_frame("BTC/USD") in feed.sent


def test_resubscribe_while_disconnected_sends_nothing() -> None:
    feed = _FakeFeed(connected=False)
    registry = SubscriptionRegistry(feed)
    assert registry.resubscribe(["BTC/USD"]) == 0
    assert "BTC/USD" in registry
