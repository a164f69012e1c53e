"""Application-level heartbeat for the reconnecting connection.

The monitor sends a reserved ping payload every ``ping_interval`` while the
transport is open and expects the reserved pong payload within ``pong_timeout``.
When the deadline passes it closes the transport with a diagnostic code so the
close is routed through the abnormal-close (reconnect) path.

Inbound filtering is a separate stage (:class:`HeartbeatProtocol`) applied to
every message before it reaches the caller.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sessionlink.network.scheduler import Scheduler, TimerHandle
from sessionlink.network.transport.base import BaseTransport, TransportState

LOGGER = logging.getLogger(__name__)

HEARTBEAT_CLOSE_CODE = 4000
HEARTBEAT_CLOSE_REASON = "heartbeat timeout"


class MessageKind(enum.Enum):
    APPLICATION = "application"
    PING = "ping"
    PONG = "pong"


@dataclass(frozen=True)
class HeartbeatProtocol:
    """Reserved ping/pong payloads and the tag check applied to inbound messages."""

    ping_payload: str = "__ping__"
    pong_payload: str = "__pong__"

    def __post_init__(self) -> None:
        if not self.ping_payload or not self.pong_payload:
            raise ValueError("Heartbeat payloads must be non-empty")
        if self.ping_payload == self.pong_payload:
            raise ValueError("Heartbeat ping and pong payloads must differ")

    def classify(self, message: Any) -> MessageKind:
        if isinstance(message, str):
            if message == self.pong_payload:
                return MessageKind.PONG
            if message == self.ping_payload:
                return MessageKind.PING
        return MessageKind.APPLICATION


class HeartbeatMonitor:
    """Periodic ping plus pong deadline, bound to one transport generation at a time."""

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        ping_interval: float,
        pong_timeout: float,
        protocol: Optional[HeartbeatProtocol] = None,
        close_code: int = HEARTBEAT_CLOSE_CODE,
        close_reason: str = HEARTBEAT_CLOSE_REASON,
        on_alive: Optional[Callable[[], None]] = None,
    ) -> None:
        if ping_interval <= 0:
            raise ValueError("ping_interval must be > 0")
        if pong_timeout <= 0:
            raise ValueError("pong_timeout must be > 0")
        self._scheduler = scheduler
        self.ping_interval = float(ping_interval)
        self.pong_timeout = float(pong_timeout)
        self.protocol = protocol or HeartbeatProtocol()
        self.close_code = close_code
        self.close_reason = close_reason
        self._on_alive = on_alive
        self._transport: Optional[BaseTransport] = None
        self._interval_timer: Optional[TimerHandle] = None
        self._deadline_timer: Optional[TimerHandle] = None

    @property
    def running(self) -> bool:
        return self._transport is not None

    @property
    def awaiting_pong(self) -> bool:
        return self._deadline_timer is not None

    def start(self, transport: BaseTransport) -> None:
        """Enter the probing state for ``transport``, discarding any previous timers."""

        self.stop()
        self._transport = transport
        self._schedule_ping()

    def stop(self) -> None:
        if self._interval_timer is not None:
            self._interval_timer.cancel()
            self._interval_timer = None
        if self._deadline_timer is not None:
            self._deadline_timer.cancel()
            self._deadline_timer = None
        self._transport = None

    def consume(self, message: Any) -> bool:
        """Return True when ``message`` belongs to the heartbeat and must be swallowed."""

        kind = self.protocol.classify(message)
        if kind is MessageKind.APPLICATION:
            return False
        if kind is MessageKind.PONG:
            if self._deadline_timer is not None:
                self._deadline_timer.cancel()
                self._deadline_timer = None
            LOGGER.debug("Heartbeat pong received")
            if self._on_alive is not None:
                self._on_alive()
        return True

    def _schedule_ping(self) -> None:
        transport = self._transport
        self._interval_timer = self._scheduler.call_later(self.ping_interval, lambda: self._send_ping(transport))

    def _send_ping(self, transport: Optional[BaseTransport]) -> None:
        if transport is None or transport is not self._transport:
            return
        self._interval_timer = None
        if transport.state is TransportState.OPEN:
            try:
                transport.send(self.protocol.ping_payload)
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("Heartbeat ping send failed: %s", exc)
            else:
                LOGGER.debug("Heartbeat ping sent")
                if self._deadline_timer is None:
                    self._deadline_timer = self._scheduler.call_later(
                        self.pong_timeout, lambda: self._expire(transport)
                    )
        self._schedule_ping()

    def _expire(self, transport: BaseTransport) -> None:
        if transport is not self._transport:
            return
        self._deadline_timer = None
        LOGGER.warning(
            "No heartbeat pong within %.2fs; closing transport (%s %s)",
            self.pong_timeout,
            self.close_code,
            self.close_reason,
        )
        interval_timer, self._interval_timer = self._interval_timer, None
        if interval_timer is not None:
            interval_timer.cancel()
        transport.close(self.close_code, self.close_reason)
