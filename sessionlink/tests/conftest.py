from __future__ import annotations

from itertools import count
from typing import Callable

import pytest

from sessionlink.config import ConnectionSettings
from sessionlink.network.transport.dummy import DummyTransport


class _ManualTimer:
    def __init__(self, when: float, order: int, callback: Callable[[], None]) -> None:
        self.when = when
        self.order = order
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual-clock scheduler: timers only fire from ``advance()``."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[_ManualTimer] = []
        self._order = count()

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(self.now + max(0.0, delay), next(self._order), callback)
        self._timers.append(timer)
        return timer

    def pending(self) -> list[_ManualTimer]:
        return [timer for timer in self._timers if not timer.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [timer for timer in self.pending() if timer.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.when, t.order))
            self._timers.remove(timer)
            self.now = timer.when
            timer.callback()
        self._timers = self.pending()
        self.now = target


class TransportRecorder:
    """Transport factory that keeps every DummyTransport it creates."""

    def __init__(self) -> None:
        self.transports: list[DummyTransport] = []

    def __call__(self, url: str) -> DummyTransport:
        transport = DummyTransport(url)
        self.transports.append(transport)
        return transport

    @property
    def current(self) -> DummyTransport:
        return self.transports[-1]

    @property
    def urls(self) -> list[str]:
        return [transport.url for transport in self.transports]


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def recorder() -> TransportRecorder:
    return TransportRecorder()


@pytest.fixture
def settings(monkeypatch, tmp_path) -> ConnectionSettings:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SESSIONLINK_CONFIG_FILE", raising=False)
    return ConnectionSettings(
        url="ws://example.test/websocket",
        max_reconnect_attempts=5,
        reconnect_delay_seconds=0.1,
        max_reconnect_window_seconds=60.0,
        ping_interval_seconds=20.0,
        pong_timeout_seconds=10.0,
    )
