"""Network stack (transport/heartbeat/reconnect) for the session connection."""

from sessionlink.network.backoff import ReconnectBudget
from sessionlink.network.connection import NotOpenError, ReconnectingConnection
from sessionlink.network.heartbeat import HeartbeatMonitor, HeartbeatProtocol, MessageKind
from sessionlink.network.scheduler import LoopScheduler, Scheduler
from sessionlink.network.session_state import DisconnectReason, SessionIdentity
from sessionlink.network.transport.base import BaseTransport, CloseEvent, TransportError, TransportState
from sessionlink.network.transport.dummy import DummyTransport
from sessionlink.network.transport.websocket import WebSocketTransport

__all__ = [
    "ReconnectingConnection",
    "NotOpenError",
    "ReconnectBudget",
    "HeartbeatMonitor",
    "HeartbeatProtocol",
    "MessageKind",
    "Scheduler",
    "LoopScheduler",
    "DisconnectReason",
    "SessionIdentity",
    "BaseTransport",
    "CloseEvent",
    "TransportError",
    "TransportState",
    "DummyTransport",
    "WebSocketTransport",
]
