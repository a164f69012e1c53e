"""In-memory transport for offline runs and tests."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .base import ABNORMAL_CLOSURE, NORMAL_CLOSURE, BaseTransport, CloseEvent, TransportError, TransportState

LOGGER = logging.getLogger(__name__)


class DummyTransport(BaseTransport):
    """Scriptable transport: records outbound frames, events are injected by the caller."""

    def __init__(self, url: str, subprotocols: Optional[list[str]] = None) -> None:
        super().__init__(url)
        self.subprotocols = list(subprotocols or [])
        self.sent: list[Any] = []
        self.close_requests: list[tuple[int | None, str | None]] = []
        self._state = TransportState.CONNECTING

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def protocol(self) -> str:
        if self._state is TransportState.OPEN and self.subprotocols:
            return self.subprotocols[0]
        return ""

    def send(self, data: Any) -> None:
        if self._state is not TransportState.OPEN:
            raise TransportError("Dummy transport not open")
        LOGGER.debug("Dummy transport send(): %s", data)
        self.sent.append(data)

    def close(self, code: int | None = None, reason: str | None = None) -> None:
        LOGGER.debug("Dummy transport close(%s, %s)", code, reason)
        self.close_requests.append((code, reason))
        if self._state in {TransportState.CONNECTING, TransportState.OPEN}:
            self._state = TransportState.CLOSING

    def simulate_open(self) -> None:
        self._state = TransportState.OPEN
        self._fire_open()

    def simulate_message(self, data: Any) -> None:
        self._fire_message(data)

    def simulate_error(self, exc: Exception | None = None) -> None:
        self._fire_error(exc or TransportError("simulated transport error"))

    def simulate_close(self, code: int = ABNORMAL_CLOSURE, reason: str = "") -> None:
        self._state = TransportState.CLOSED
        self._fire_close(CloseEvent(code=code, reason=reason, was_clean=code != ABNORMAL_CLOSURE))

    def complete_close(self) -> None:
        """Finish a requested close, echoing the last requested code back."""

        code, reason = self.close_requests[-1] if self.close_requests else (None, None)
        self.simulate_close(code if code is not None else NORMAL_CLOSURE, reason or "")
