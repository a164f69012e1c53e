"""Transport implementations for the reconnecting connection."""

from .base import BaseTransport, CloseEvent, TransportError, TransportState
from .dummy import DummyTransport
from .websocket import WebSocketTransport

__all__ = ["BaseTransport", "CloseEvent", "TransportError", "TransportState", "DummyTransport", "WebSocketTransport"]
