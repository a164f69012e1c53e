"""Session-preserving reconnecting WebSocket client."""

from sessionlink.network import NotOpenError, ReconnectingConnection, TransportError, TransportState

__all__ = ["ReconnectingConnection", "NotOpenError", "TransportError", "TransportState"]
