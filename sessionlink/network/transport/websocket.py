"""WebSocket transport implementation."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from .base import ABNORMAL_CLOSURE, NORMAL_CLOSURE, BaseTransport, CloseEvent, TransportError, TransportState

LOGGER = logging.getLogger(__name__)


class WebSocketTransport(BaseTransport):
    """Event-driven transport on top of a ``websockets`` client connection.

    The connection attempt starts as a task on the running loop as soon as the
    instance is created. ``send()`` enqueues onto an outbound queue drained by a
    writer task, so it never blocks and preserves call order.
    """

    def __init__(
        self,
        url: str,
        *,
        subprotocols: Optional[list[str]] = None,
        open_timeout: float | None = 10.0,
        close_timeout: float | None = 10.0,
    ) -> None:
        super().__init__(url)
        self._subprotocols = list(subprotocols or [])
        self._open_timeout = open_timeout
        self._close_timeout = close_timeout
        self._ws: Any = None
        self._state = TransportState.CONNECTING
        self._outbox: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False
        self._loop = asyncio.get_running_loop()
        self._close_task: Optional[asyncio.Task[None]] = None
        self._task = self._loop.create_task(self._run(), name="transport-run")
        self._task.add_done_callback(self._run_done)

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def protocol(self) -> str:
        if self._ws is None:
            return ""
        return self._ws.subprotocol or ""

    @property
    def buffered_amount(self) -> int:
        return self._outbox.qsize()

    @property
    def extensions(self) -> str:
        if self._ws is None:
            return ""
        negotiated = getattr(self._ws, "extensions", None)
        if negotiated is None:
            negotiated = getattr(getattr(self._ws, "protocol", None), "extensions", None) or []
        return ", ".join(extension.name for extension in negotiated)

    def send(self, data: Any) -> None:
        if self._state is not TransportState.OPEN:
            raise TransportError(f"WebSocket transport not open (state={self._state.name})")
        self._outbox.put_nowait(data)

    def close(self, code: int | None = None, reason: str | None = None) -> None:
        if self._state in {TransportState.CLOSING, TransportState.CLOSED}:
            return
        if self._state is TransportState.CONNECTING:
            LOGGER.debug("Cancelling pending WebSocket connect to %s", self.url)
            self._state = TransportState.CLOSING
            self._task.cancel()
            return
        self._state = TransportState.CLOSING
        close_code = NORMAL_CLOSURE if code is None else code
        LOGGER.info("Closing WebSocket transport (%s %s)", close_code, reason or "")
        self._close_task = self._loop.create_task(
            self._ws.close(code=close_code, reason=reason or ""), name="transport-close"
        )

    async def _run(self) -> None:
        try:
            ws = await websockets.connect(
                self.url,
                subprotocols=self._subprotocols or None,
                open_timeout=self._open_timeout,
                close_timeout=self._close_timeout,
            )
        except asyncio.CancelledError:
            self._finish(CloseEvent(code=ABNORMAL_CLOSURE, reason="connect cancelled"))
            raise
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("WebSocket connect to %s failed: %s", self.url, exc)
            self._report_error(exc)
            self._finish(CloseEvent(code=ABNORMAL_CLOSURE, reason=str(exc)))
            return

        self._ws = ws
        self._state = TransportState.OPEN
        self._fire_open()
        writer = self._loop.create_task(self._write_loop(ws), name="transport-writer")
        try:
            async for message in ws:
                self._fire_message(message)
        except ConnectionClosed:
            pass
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("WebSocket receive failed: %s", exc)
            self._report_error(exc)
        finally:
            writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await writer

        code = ws.close_code if ws.close_code is not None else ABNORMAL_CLOSURE
        self._finish(CloseEvent(code=code, reason=ws.close_reason or "", was_clean=code != ABNORMAL_CLOSURE))

    async def _write_loop(self, ws: Any) -> None:
        while True:
            data = await self._outbox.get()
            try:
                await ws.send(data)
            except ConnectionClosed:
                return
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("WebSocket send failed: %s", exc)
                self._report_error(exc)

    def _report_error(self, exc: Exception) -> None:
        error = TransportError(str(exc) or exc.__class__.__name__)
        error.__cause__ = exc
        self._fire_error(error)

    def _run_done(self, task: asyncio.Task[None]) -> None:
        # Cancelled before its first step, _run never reached its own handlers.
        if task.cancelled():
            self._finish(CloseEvent(code=ABNORMAL_CLOSURE, reason="connect cancelled"))

    def _finish(self, event: CloseEvent) -> None:
        if self._closed:
            return
        self._closed = True
        self._state = TransportState.CLOSED
        self._fire_close(event)
