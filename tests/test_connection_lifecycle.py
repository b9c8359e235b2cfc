from __future__ import annotations

import asyncio
import json
from dataclasses import replace

from papertrader.config import ClientConfig
from papertrader.connection import (
    ERROR_NOTICE,
    GIVE_UP_NOTICE,
    SUBSCRIBE_INTENT,
    ConnectionManager,
)
from papertrader.errors import FrameError
from papertrader.models import ConnectionState


class _FakeSocket:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, frame: str) -> None:
        self.sent.append(json.loads(frame))

    async def close(self) -> None:
        self.closed = True
        self._inbox.put_nowait(None)

    def feed(self, raw: str) -> None:
        self._inbox.put_nowait(raw)

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        item = await self._inbox.get()
        if item is None:
            raise StopAsyncIteration
        return item


class _Connector:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls = 0
        self.sockets: list[_FakeSocket] = []

    async def __call__(self, url: str) -> _FakeSocket:
        self.calls += 1
        if self.fail:
            raise OSError("connection refused")
        ws = _FakeSocket()
        self.sockets.append(ws)
        return ws


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _config(**overrides) -> ClientConfig:
    base = ClientConfig(reconnect_interval_sec=60.0, health_check_sec=60.0)
    return replace(base, **overrides)


async def _drain(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def test_open_sends_subscribe_intent_and_resets_attempts() -> None:
    async def scenario() -> None:
        connector = _Connector()
        opened: list[bool] = []
        mgr = ConnectionManager(_config(), lambda frame: None, connector=connector)
        mgr.add_open_listener(lambda: opened.append(True))
        mgr._reconnect_attempts = 3

        mgr.connect()
        assert mgr.state is ConnectionState.CONNECTING
        await _drain()

        assert mgr.state is ConnectionState.CONNECTED
        assert mgr.reconnect_attempts == 0
        assert opened == [True]
        assert connector.sockets[0].sent == [SUBSCRIBE_INTENT]
        await mgr.disconnect()
        assert mgr.state is ConnectionState.DISCONNECTED
        assert connector.sockets[0].closed

    asyncio.run(scenario())


def test_frames_reach_handler_and_bad_ones_are_counted() -> None:
    async def scenario() -> None:
        connector = _Connector()
        frames: list[dict] = []

        def on_message(frame: dict) -> None:
            if frame.get("type") == "BROKEN":
                raise FrameError("missing fields")
            frames.append(frame)

        mgr = ConnectionManager(_config(), on_message, connector=connector)
        mgr.connect()
        await _drain()
        ws = connector.sockets[0]
        ws.feed(json.dumps({"type": "PRICE_UPDATE", "symbol": "BTC/USD", "price": 1}))
        ws.feed("not json")
        ws.feed("[1, 2]")
        ws.feed(json.dumps({"type": "BROKEN"}))
        await _drain()

        assert frames == [{"type": "PRICE_UPDATE", "symbol": "BTC/USD", "price": 1}]
        assert mgr.dropped_frames == 3
        assert mgr.state is ConnectionState.CONNECTED
        await mgr.disconnect()

    asyncio.run(scenario())


def test_send_while_disconnected_is_refused() -> None:
    mgr = ConnectionManager(_config(), lambda frame: None, connector=_Connector())
    assert mgr.send({"event": "subscribe"}) is False


def test_connect_failure_reports_error_and_schedules_reconnect() -> None:
    async def scenario() -> None:
        notices = []
        states = []
        mgr = ConnectionManager(
            _config(),
            lambda frame: None,
            notify=notices.append,
            connector=_Connector(fail=True),
        )
        mgr.add_state_listener(states.append)
        mgr.connect()
        await _drain()

        assert [n.message for n in notices] == [ERROR_NOTICE]
        assert ConnectionState.ERROR in states
        assert mgr.state is ConnectionState.DISCONNECTED
        assert mgr.reconnect_attempts == 1
        assert mgr.reconnect_pending
        await mgr.disconnect()
        assert not mgr.reconnect_pending

    asyncio.run(scenario())


def test_server_close_schedules_reconnect() -> None:
    async def scenario() -> None:
        connector = _Connector()
        mgr = ConnectionManager(_config(), lambda frame: None, connector=connector)
        mgr.connect()
        await _drain()
        await connector.sockets[0].close()
        await _drain()

        assert mgr.state is ConnectionState.DISCONNECTED
        assert mgr.reconnect_attempts == 1
        assert mgr.reconnect_pending
        assert mgr.send({"event": "subscribe"}) is False
        await mgr.disconnect()

    asyncio.run(scenario())


def test_reconnects_are_bounded_then_sticky_notice() -> None:
    notices = []
    scheduled: list[int] = []
    mgr = ConnectionManager(_config(), lambda frame: None, notify=notices.append)
    mgr._schedule_reconnect = lambda: scheduled.append(mgr.reconnect_attempts)

    for _ in range(7):
        mgr._handle_close()

    assert scheduled == [1, 2, 3, 4, 5]
    assert mgr.reconnect_attempts == 5
    assert [n.message for n in notices] == [GIVE_UP_NOTICE, GIVE_UP_NOTICE]
    assert all(n.sticky for n in notices)


def test_failing_feed_is_retried_five_times_on_the_loop() -> None:
    async def scenario() -> None:
        connector = _Connector(fail=True)
        notices = []
        mgr = ConnectionManager(
            _config(reconnect_interval_sec=0.0),
            lambda frame: None,
            notify=notices.append,
            connector=connector,
        )
        mgr.connect()
        await _drain(rounds=100)

        assert connector.calls == 6
        assert notices[-1].message == GIVE_UP_NOTICE
        assert notices[-1].sticky
        assert not mgr.reconnect_pending

    asyncio.run(scenario())


def test_silent_feed_is_force_reconnected_without_using_an_attempt() -> None:
    async def scenario() -> None:
        clock = _Clock()
        connector = _Connector()
        mgr = ConnectionManager(
            _config(), lambda frame: None, connector=connector, clock=clock
        )
        mgr.connect()
        await _drain()
        first = connector.sockets[0]

        clock.now += 9.0
        assert mgr.check_health() is False
        first.feed(json.dumps({"type": "SUBSCRIPTION_CONFIRMED"}))
        await _drain()
        clock.now += 10.0
        assert mgr.check_health() is False

        clock.now += 1.0
        assert mgr.seconds_since_last_message() == 11.0
        assert mgr.check_health() is True
        assert mgr.state is ConnectionState.CONNECTING
        await _drain()

        assert first.closed
        assert connector.calls == 2
        assert mgr.reconnect_attempts == 0
        assert not mgr.reconnect_pending
        assert mgr.state is ConnectionState.CONNECTED
        assert connector.sockets[1].sent == [SUBSCRIBE_INTENT]
        await mgr.disconnect()

    asyncio.run(scenario())


def test_health_check_without_any_message_is_a_noop() -> None:
    mgr = ConnectionManager(_config(), lambda frame: None, connector=_Connector())
    assert mgr.seconds_since_last_message() is None
    assert mgr.check_health() is False
