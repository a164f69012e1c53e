"""Reconnecting connection that owns the underlying transport lifecycle.

One :class:`ReconnectingConnection` is one logical session: the session token is
generated once and carried on every transport instance it creates. Abnormal
closes are retried at a fixed delay within a :class:`ReconnectBudget`; normal
(1000/1001) and caller-initiated closes are terminal.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional

from sessionlink.config import ConnectionSettings
from sessionlink.network.backoff import ReconnectBudget
from sessionlink.network.heartbeat import HeartbeatMonitor, HeartbeatProtocol
from sessionlink.network.scheduler import LoopScheduler, Scheduler, TimerHandle
from sessionlink.network.session_state import DisconnectReason, SessionIdentity, default_session_id
from sessionlink.network.transport.base import (
    GOING_AWAY,
    NORMAL_CLOSURE,
    BaseTransport,
    CloseEvent,
    TransportError,
    TransportState,
)

LOGGER = logging.getLogger(__name__)

TransportFactory = Callable[[str], BaseTransport]
Callback = Callable[..., Optional[Awaitable[None]]]

NORMAL_CLOSE_CODES = frozenset({NORMAL_CLOSURE, GOING_AWAY})


class NotOpenError(RuntimeError):
    """Raised when ``send()`` is called while no transport is open."""


class ReconnectingConnection:
    """Transport-shaped connection that survives transient disconnects."""

    def __init__(
        self,
        transport_factory: TransportFactory,
        *,
        settings: Optional[ConnectionSettings] = None,
        url: str | None = None,
        scheduler: Optional[Scheduler] = None,
        id_factory: Callable[[], str] = default_session_id,
        max_reconnect_attempts: int | None = None,
        reconnect_delay: float | None = None,
        max_reconnect_window: float | None = None,
        ping_interval: float | None = None,
        pong_timeout: float | None = None,
        on_open: Optional[Callback] = None,
        on_close: Optional[Callback] = None,
        on_message: Optional[Callback] = None,
        on_error: Optional[Callback] = None,
        on_reconnecting: Optional[Callback] = None,
        on_reconnected: Optional[Callback] = None,
        auto_connect: bool = True,
    ) -> None:
        settings = settings or ConnectionSettings()
        self._settings = settings
        self._transport_factory = transport_factory
        self._scheduler: Scheduler = scheduler or LoopScheduler()
        self._session = SessionIdentity(
            base_url=str(url if url is not None else settings.url),
            session_query_param=settings.session_query_param,
            attempt_query_param=settings.attempt_query_param,
            id_factory=id_factory,
        )
        self._budget = ReconnectBudget(
            max_attempts=int(
                max_reconnect_attempts if max_reconnect_attempts is not None else settings.max_reconnect_attempts
            ),
            max_window=float(
                max_reconnect_window if max_reconnect_window is not None else settings.max_reconnect_window_seconds
            ),
            delay=float(reconnect_delay if reconnect_delay is not None else settings.reconnect_delay_seconds),
        )
        self._heartbeat = HeartbeatMonitor(
            self._scheduler,
            ping_interval=float(ping_interval if ping_interval is not None else settings.ping_interval_seconds),
            pong_timeout=float(pong_timeout if pong_timeout is not None else settings.pong_timeout_seconds),
            protocol=HeartbeatProtocol(ping_payload=settings.ping_payload, pong_payload=settings.pong_payload),
            close_code=settings.heartbeat_close_code,
            close_reason=settings.heartbeat_close_reason,
            on_alive=self._budget.reset,
        )

        self.on_open = on_open
        self.on_close = on_close
        self.on_message = on_message
        self.on_error = on_error
        self.on_reconnecting = on_reconnecting
        self.on_reconnected = on_reconnected

        self._transport: Optional[BaseTransport] = None
        self._resolved_address = self._session.target_address
        self._reconnect_timer: Optional[TimerHandle] = None
        self._forced_close = False
        self._close_reason: Optional[DisconnectReason] = None
        self._background: set[asyncio.Task[Any]] = set()

        if auto_connect:
            self.connect()

    # --- read-only surface -------------------------------------------------

    @property
    def session_id(self) -> str:
        return self._session.session_id

    @property
    def current_state(self) -> TransportState:
        if self._transport is not None:
            return self._transport.state
        if self._close_reason is not None:
            return TransportState.CLOSED
        return TransportState.CONNECTING

    @property
    def resolved_address(self) -> str:
        return self._resolved_address

    @property
    def protocol(self) -> str:
        return self._transport.protocol if self._transport is not None else ""

    @property
    def buffered_amount(self) -> int:
        return self._transport.buffered_amount if self._transport is not None else 0

    @property
    def extensions(self) -> str:
        return self._transport.extensions if self._transport is not None else ""

    @property
    def attempts(self) -> int:
        return self._budget.attempts

    @property
    def total_attempts(self) -> int:
        return self._budget.total_attempts

    @property
    def close_reason(self) -> Optional[DisconnectReason]:
        return self._close_reason

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    @property
    def heartbeat(self) -> HeartbeatMonitor:
        return self._heartbeat

    # --- operations ----------------------------------------------------------

    def connect(self) -> None:
        """Create a fresh transport generation addressed at the session target."""

        if self._forced_close or self._close_reason is not None:
            LOGGER.warning("Connection %s already closed; not connecting", self.session_id)
            return
        self._cancel_reconnect()
        self._heartbeat.stop()
        previous = self._transport
        if previous is not None:
            self._release(previous)
            if previous.state in {TransportState.CONNECTING, TransportState.OPEN}:
                previous.close()

        address = self._session.attempt_address(self._budget.total_attempts)
        self._resolved_address = address
        LOGGER.info("Connecting to %s (session %s)", address, self.session_id)
        transport = self._transport_factory(address)
        transport.on_open = lambda: self._handle_open(transport)
        transport.on_message = lambda data: self._handle_message(transport, data)
        transport.on_error = lambda exc: self._handle_error(transport, exc)
        transport.on_close = lambda event: self._handle_close(transport, event)
        self._transport = transport

    def send(self, data: Any) -> None:
        """Forward ``data`` unmodified; raises :class:`NotOpenError` unless open."""

        transport = self._transport
        if transport is None or transport.state is not TransportState.OPEN:
            raise NotOpenError(f"Connection is not open (state={self.current_state.name})")
        transport.send(data)
        self._budget.reset()

    def close(self, code: int | None = None, reason: str | None = None) -> None:
        """Close permanently; no reconnection is attempted afterwards."""

        if self._forced_close:
            return
        self._forced_close = True
        self._cancel_reconnect()
        self._heartbeat.stop()
        transport = self._transport
        if transport is not None and transport.state in {TransportState.CONNECTING, TransportState.OPEN}:
            LOGGER.info("Closing connection %s (%s %s)", self.session_id, code, reason or "")
            transport.close(code, reason)
            return
        if transport is not None and transport.state is TransportState.CLOSING:
            return
        # No live transport will report a close event; finish the lifecycle here.
        if transport is not None:
            self._release(transport)
        if self._close_reason is None:
            self._finish(
                DisconnectReason.FORCED,
                CloseEvent(code=code if code is not None else NORMAL_CLOSURE, reason=reason or "", was_clean=True),
            )

    # --- transport events ----------------------------------------------------

    def _handle_open(self, transport: BaseTransport) -> None:
        if transport is not self._transport:
            return
        reconnected = self._budget.attempts > 0
        LOGGER.info(
            "Connection open (session %s, attempt %s/%s)",
            self.session_id,
            self._budget.attempts,
            self._budget.max_attempts,
        )
        self._heartbeat.start(transport)
        self._budget.reset()
        if reconnected:
            self._emit(self.on_reconnected)
        self._emit(self.on_open)

    def _handle_message(self, transport: BaseTransport, data: Any) -> None:
        if transport is not self._transport:
            return
        if self._heartbeat.consume(data):
            return
        self._emit(self.on_message, data)

    def _handle_error(self, transport: BaseTransport, exc: Exception) -> None:
        if transport is not self._transport:
            return
        if isinstance(exc, TransportError):
            error = exc
        else:
            error = TransportError(str(exc) or exc.__class__.__name__)
            error.__cause__ = exc
        LOGGER.error("Transport error (session %s): %s", self.session_id, error)
        self._emit(self.on_error, error)

    def _handle_close(self, transport: BaseTransport, event: CloseEvent) -> None:
        if transport is not self._transport:
            return
        self._heartbeat.stop()
        self._release(transport)

        if self._forced_close:
            LOGGER.info("Connection closed by caller. Code: %s, Reason: %s", event.code, event.reason)
            self._finish(DisconnectReason.FORCED, event)
            return
        if event.code in NORMAL_CLOSE_CODES:
            LOGGER.info("Connection closed normally. Code: %s, Reason: %s", event.code, event.reason)
            self._finish(DisconnectReason.NORMAL, event)
            return

        LOGGER.warning("Connection lost (code %s, reason %r)", event.code, event.reason)
        self._schedule_reconnect(event)

    # --- reconnect budget ----------------------------------------------------

    def _schedule_reconnect(self, event: CloseEvent) -> None:
        now = self._scheduler.time()
        budget = self._budget
        if not budget.can_retry(now):
            LOGGER.error(
                "Failed to reconnect after %s attempt(s) over %.2fs; giving up",
                budget.attempts,
                budget.elapsed(now),
            )
            self._finish(DisconnectReason.EXHAUSTED, event)
            return
        attempt = budget.begin_attempt(now)
        LOGGER.info(
            "Reconnecting with same session in %.2fs... (%s/%s)",
            budget.delay,
            attempt,
            budget.max_attempts,
        )
        self._emit(self.on_reconnecting, attempt, budget.max_attempts, budget.delay)
        # The callback may have closed us permanently.
        if self._forced_close:
            return
        self._reconnect_timer = self._scheduler.call_later(budget.delay, self._reconnect_due)

    def _reconnect_due(self) -> None:
        self._reconnect_timer = None
        if self._forced_close:
            return
        self.connect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    # --- helpers -------------------------------------------------------------

    def _release(self, transport: BaseTransport) -> None:
        transport.detach()
        if transport is self._transport:
            self._transport = None

    def _finish(self, reason: DisconnectReason, event: CloseEvent) -> None:
        self._close_reason = reason
        self._cancel_reconnect()
        self._heartbeat.stop()
        self._emit(self.on_close, event)

    def _emit(self, callback: Optional[Callback], *args: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
        except Exception:  # noqa: BLE001
            LOGGER.debug("Suppress connection callback error: %s", callback, exc_info=True)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._background.add(task)
            task.add_done_callback(self._callback_done)

    def _callback_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        if task.exception() is not None:
            LOGGER.debug("Suppress connection callback error", exc_info=task.exception())
