import pytest

from sessionlink.network.heartbeat import HeartbeatMonitor, HeartbeatProtocol, MessageKind
from sessionlink.network.transport.dummy import DummyTransport
from sessionlink.network.transport.base import TransportState


def _open_transport() -> DummyTransport:
    transport = DummyTransport("ws://example.test/websocket")
    transport.simulate_open()
    return transport


def _monitor(scheduler, **kwargs) -> HeartbeatMonitor:
    kwargs.setdefault("ping_interval", 20.0)
    kwargs.setdefault("pong_timeout", 10.0)
    return HeartbeatMonitor(scheduler, **kwargs)


def test_protocol_classifies_only_exact_text_payloads():
    protocol = HeartbeatProtocol()

    assert protocol.classify("__pong__") is MessageKind.PONG
    assert protocol.classify("__ping__") is MessageKind.PING
    assert protocol.classify("__pong__ ") is MessageKind.APPLICATION
    assert protocol.classify(b"__pong__") is MessageKind.APPLICATION
    assert protocol.classify({"event": "pong"}) is MessageKind.APPLICATION


def test_protocol_rejects_identical_payloads():
    with pytest.raises(ValueError):
        HeartbeatProtocol(ping_payload="x", pong_payload="x")


def test_ping_sent_every_interval_and_arms_deadline(scheduler):
    transport = _open_transport()
    monitor = _monitor(scheduler)
    monitor.start(transport)

    scheduler.advance(19.0)
    assert transport.sent == []

    scheduler.advance(1.0)
    assert transport.sent == ["__ping__"]
    assert monitor.awaiting_pong


def test_pong_cancels_deadline(scheduler):
    transport = _open_transport()
    alive = []
    monitor = _monitor(scheduler, on_alive=lambda: alive.append(True))
    monitor.start(transport)

    scheduler.advance(20.0)
    assert monitor.consume("__pong__") is True
    assert not monitor.awaiting_pong

    scheduler.advance(15.0)
    assert transport.close_requests == []
    assert alive == [True]


def test_missing_pong_closes_with_heartbeat_code(scheduler):
    transport = _open_transport()
    monitor = _monitor(scheduler)
    monitor.start(transport)

    scheduler.advance(29.0)
    assert transport.close_requests == []

    scheduler.advance(1.0)
    assert transport.close_requests == [(4000, "heartbeat timeout")]
    assert transport.state is TransportState.CLOSING


def test_deadline_not_extended_by_later_ping(scheduler):
    transport = _open_transport()
    monitor = _monitor(scheduler, ping_interval=5.0, pong_timeout=8.0)
    monitor.start(transport)

    scheduler.advance(10.0)
    assert transport.sent == ["__ping__", "__ping__"]
    assert transport.close_requests == []

    scheduler.advance(3.0)
    assert transport.close_requests == [(4000, "heartbeat timeout")]


def test_application_messages_are_not_consumed(scheduler):
    monitor = _monitor(scheduler)
    monitor.start(_open_transport())

    assert monitor.consume("hello") is False
    assert monitor.consume("__ping__") is True


def test_stop_cancels_both_timers(scheduler):
    transport = _open_transport()
    monitor = _monitor(scheduler)
    monitor.start(transport)
    scheduler.advance(20.0)
    assert monitor.awaiting_pong

    monitor.stop()

    assert scheduler.pending() == []
    assert not monitor.running
    scheduler.advance(100.0)
    assert transport.close_requests == []
    assert transport.sent == ["__ping__"]


def test_no_ping_while_transport_not_open(scheduler):
    transport = DummyTransport("ws://example.test/websocket")
    monitor = _monitor(scheduler)
    monitor.start(transport)

    scheduler.advance(45.0)

    assert transport.sent == []
    assert not monitor.awaiting_pong


def test_restart_discards_previous_generation(scheduler):
    first = _open_transport()
    second = _open_transport()
    monitor = _monitor(scheduler)
    monitor.start(first)
    scheduler.advance(20.0)

    monitor.start(second)
    scheduler.advance(15.0)

    assert first.close_requests == []
    assert first.sent == ["__ping__"]
    assert second.sent == []


@pytest.mark.parametrize("kwargs", [{"ping_interval": 0}, {"pong_timeout": -1}])
def test_invalid_timings_rejected(scheduler, kwargs):
    with pytest.raises(ValueError):
        _monitor(scheduler, **kwargs)
