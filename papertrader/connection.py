"""Streaming price-feed connection with bounded reconnects and a liveness check."""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException

from .config import ClientConfig
from .errors import FrameError
from .models import ConnectionState, Notice

log = logging.getLogger(__name__)

SUBSCRIBE_INTENT = {"type": "SUBSCRIBE", "message": "Subscribing to price updates"}
ERROR_NOTICE = "WebSocket connection error. Please try again later."
GIVE_UP_NOTICE = "Unable to maintain connection. Please refresh the page."

Connector = Callable[[str], Awaitable[Any]]


class ConnectionManager:
    """Owns the single feed socket; every outbound frame goes through `send`.

    Each connection attempt gets a generation number. Bumping it detaches the
    running attempt, so a force-closed socket never runs the close handling
    (and never consumes a reconnect attempt).
    """

    def __init__(
        self,
        config: ClientConfig,
        on_message: Callable[[dict], None],
        *,
        notify: Callable[[Notice], None] | None = None,
        connector: Connector | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._on_message = on_message
        self._notify = notify
        self._connector = connector or ws_connect
        self._clock = clock
        self._state = ConnectionState.DISCONNECTED
        self._ws: Any = None
        self._generation = 0
        self._conn_task: asyncio.Task | None = None
        self._writer_task: asyncio.Task | None = None
        self._outbox: asyncio.Queue[str] | None = None
        self._health_task: asyncio.Task | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._closing: set[asyncio.Task] = set()
        self._reconnect_attempts = 0
        self._last_message_at: float | None = None
        self._open_listeners: list[Callable[[], None]] = []
        self._state_listeners: list[Callable[[ConnectionState], None]] = []
        self.dropped_frames = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def last_message_at(self) -> float | None:
        return self._last_message_at

    def seconds_since_last_message(self) -> float | None:
        if self._last_message_at is None:
            return None
        return self._clock() - self._last_message_at

    def add_open_listener(self, listener: Callable[[], None]) -> None:
        self._open_listeners.append(listener)

    def add_state_listener(self, listener: Callable[[ConnectionState], None]) -> None:
        self._state_listeners.append(listener)

    def connect(self) -> None:
        if self._state is ConnectionState.CONNECTED:
            return
        if self._conn_task and not self._conn_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._generation += 1
        self._set_state(ConnectionState.CONNECTING)
        self._conn_task = loop.create_task(self._run(self._generation))

    async def disconnect(self) -> None:
        """Close for good: no reconnect, no health check."""
        self._cancel_reconnect()
        ws = self._abandon()
        self._set_state(ConnectionState.DISCONNECTED)
        if ws is not None:
            await _close_quietly(ws)

    def send(self, payload: dict) -> bool:
        if self._state is not ConnectionState.CONNECTED or self._outbox is None:
            log.warning(
                "dropping outbound %s: feed not connected",
                payload.get("type") or payload.get("event"),
            )
            return False
        self._outbox.put_nowait(json.dumps(payload))
        return True

    def check_health(self) -> bool:
        """Reconnect if the feed has been silent too long; True when it did."""
        idle = self.seconds_since_last_message()
        if idle is None or idle <= self._config.stale_after_sec:
            return False
        log.warning("no feed messages for %.1fs, reconnecting", idle)
        ws = self._abandon()
        if ws is not None:
            self._close_in_background(ws)
        self._set_state(ConnectionState.DISCONNECTED)
        self.connect()
        return True

    async def _run(self, generation: int) -> None:
        try:
            ws = await self._connector(self._config.ws_url)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            if generation == self._generation:
                self._conn_task = None
                self._handle_error(exc)
                self._handle_close()
            return
        if generation != self._generation:
            await _close_quietly(ws)
            return
        self._handle_open(ws)
        try:
            async for raw in ws:
                if generation != self._generation:
                    break
                self._handle_frame(raw)
        except ConnectionClosedError as exc:
            if generation == self._generation:
                self._handle_error(exc)
        finally:
            if generation == self._generation:
                self._conn_task = None
                self._handle_close()

    def _handle_open(self, ws: Any) -> None:
        self._ws = ws
        self._reconnect_attempts = 0
        self._last_message_at = self._clock()
        self._outbox = asyncio.Queue()
        self._writer_task = asyncio.get_running_loop().create_task(
            self._write_loop(ws, self._outbox)
        )
        self._set_state(ConnectionState.CONNECTED)
        log.info("feed connected: %s", self._config.ws_url)
        self._start_health_check()
        self.send(SUBSCRIBE_INTENT)
        for listener in list(self._open_listeners):
            listener()

    def _handle_frame(self, raw: str | bytes) -> None:
        # Any frame counts as a liveness signal, even one we cannot use.
        self._last_message_at = self._clock()
        self._set_state(ConnectionState.CONNECTED)
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        try:
            frame = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            self._drop(raw, f"invalid JSON: {exc}")
            return
        if not isinstance(frame, dict):
            self._drop(raw, "not a JSON object")
            return
        try:
            self._on_message(frame)
        except FrameError as exc:
            self._drop(raw, str(exc))

    def _handle_error(self, exc: BaseException) -> None:
        log.error("feed connection error: %s", exc)
        self._set_state(ConnectionState.ERROR)
        self._emit(Notice(ERROR_NOTICE, "error"))

    def _handle_close(self) -> None:
        self._ws = None
        self._stop_writer()
        self._stop_health_check()
        self._set_state(ConnectionState.DISCONNECTED)
        limit = self._config.max_reconnect_attempts
        if self._reconnect_attempts < limit:
            self._reconnect_attempts += 1
            log.info(
                "feed closed, reconnecting (%d/%d) in %.1fs",
                self._reconnect_attempts,
                limit,
                self._config.reconnect_interval_sec,
            )
            self._schedule_reconnect()
        else:
            log.error("feed closed, giving up after %d reconnect attempts", limit)
            self._emit(Notice(GIVE_UP_NOTICE, "error", sticky=True))

    def _schedule_reconnect(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._cancel_reconnect()
        self._reconnect_handle = loop.call_later(
            self._config.reconnect_interval_sec, self._fire_reconnect
        )

    def _fire_reconnect(self) -> None:
        self._reconnect_handle = None
        self.connect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _start_health_check(self) -> None:
        self._stop_health_check()
        self._health_task = asyncio.get_running_loop().create_task(self._health_loop())

    def _stop_health_check(self) -> None:
        task, self._health_task = self._health_task, None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _health_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.health_check_sec)
            if self.check_health():
                return

    async def _write_loop(self, ws: Any, outbox: asyncio.Queue[str]) -> None:
        while True:
            frame = await outbox.get()
            try:
                await ws.send(frame)
            except ConnectionClosed:
                # The reader sees the close and runs the close handling.
                log.debug("feed closed while sending; %d frames unsent", outbox.qsize())
                return

    def _stop_writer(self) -> None:
        task, self._writer_task = self._writer_task, None
        self._outbox = None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _abandon(self) -> Any:
        """Detach the current attempt and its timers; returns its socket, if any."""
        self._generation += 1
        self._stop_health_check()
        self._stop_writer()
        task, self._conn_task = self._conn_task, None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
        ws, self._ws = self._ws, None
        return ws

    def _close_in_background(self, ws: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(_close_quietly(ws))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    def _drop(self, raw: str, reason: str) -> None:
        self.dropped_frames += 1
        log.warning("dropped feed frame (%s): %.200s", reason, raw)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        self._state = state
        log.debug("feed state -> %s", state.label)
        for listener in list(self._state_listeners):
            listener(state)

    def _emit(self, notice: Notice) -> None:
        if self._notify:
            self._notify(notice)


async def _close_quietly(ws: Any) -> None:
    try:
        await ws.close()
    except (OSError, WebSocketException) as exc:
        # Socket already gone.
        log.debug("ignoring close failure: %s", exc)
