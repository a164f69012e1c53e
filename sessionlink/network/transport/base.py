"""Transport abstractions for the reconnecting session connection."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

NORMAL_CLOSURE = 1000
GOING_AWAY = 1001
ABNORMAL_CLOSURE = 1006


class TransportState(enum.IntEnum):
    """Ready states of a transport instance."""

    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3


class TransportError(RuntimeError):
    """Raised (or reported via ``on_error``) for low-level transport failures."""


@dataclass(frozen=True)
class CloseEvent:
    code: int
    reason: str = ""
    was_clean: bool = False


class BaseTransport(ABC):
    """Abstract WebSocket-like transport driven by open/message/error/close events.

    Handlers are plain attributes; the owner assigns them right after construction
    and clears them with :meth:`detach` before dropping the instance.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self.on_open: Optional[Callable[[], None]] = None
        self.on_message: Optional[Callable[[Any], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None
        self.on_close: Optional[Callable[[CloseEvent], None]] = None

    @property
    @abstractmethod
    def state(self) -> TransportState:
        ...

    @property
    def protocol(self) -> str:
        return ""

    @property
    def buffered_amount(self) -> int:
        return 0

    @property
    def extensions(self) -> str:
        return ""

    @abstractmethod
    def send(self, data: Any) -> None:
        ...

    @abstractmethod
    def close(self, code: int | None = None, reason: str | None = None) -> None:
        ...

    def detach(self) -> None:
        self.on_open = None
        self.on_message = None
        self.on_error = None
        self.on_close = None

    def _fire_open(self) -> None:
        if self.on_open:
            self.on_open()

    def _fire_message(self, data: Any) -> None:
        if self.on_message:
            self.on_message(data)

    def _fire_error(self, exc: Exception) -> None:
        if self.on_error:
            self.on_error(exc)

    def _fire_close(self, event: CloseEvent) -> None:
        if self.on_close:
            self.on_close(event)
