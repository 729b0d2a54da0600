"""Tests for Receiver."""

import threading
import time

import pytest

from oscudp.codec import OutboundPacket
from oscudp.config import POLL_INTERVAL_S
from oscudp.errors import (
    AlreadyRunningError,
    DecodeError,
    NotConfiguredError,
    ReceiveFailure,
)
from oscudp.receiver import Receiver

from conftest import Collector, send_raw, wait_for

SECONDS_42 = OutboundPacket().message("/seconds", "i", 42).data


class TestReceiverLifecycle:
    """Tests for start() and stop()."""

    def test_start_before_set_port(self):
        """start() on an unbound receiver raises NotConfiguredError."""
        with Receiver() as receiver:
            with pytest.raises(NotConfiguredError):
                receiver.start(Collector())
            assert not receiver.running

    def test_start_and_stop(self, receiver, collector):
        receiver.start(collector)
        assert receiver.running
        receiver.stop()
        assert not receiver.running
        assert receiver.failure is None

    def test_start_twice(self, receiver, collector):
        receiver.start(collector)
        with pytest.raises(AlreadyRunningError):
            receiver.start(collector)

    def test_stop_is_idempotent(self, receiver, collector):
        receiver.stop()
        receiver.start(collector)
        receiver.stop()
        receiver.stop()

    def test_close_is_idempotent(self, receiver, collector):
        receiver.start(collector)
        receiver.close()
        receiver.close()
        assert not receiver.running

    def test_start_after_close(self, receiver, collector):
        """A closed receiver refuses to start instead of spawning a dead thread."""
        receiver.close()
        with pytest.raises(NotConfiguredError, match="closed"):
            receiver.start(collector, on_error=collector.on_error)
        assert not receiver.running
        assert receiver.failure is None
        assert collector.errors == []

    def test_restart_after_stop(self, receiver, sender, collector):
        receiver.start(collector)
        receiver.stop()
        receiver.start(collector)
        sender.send_message("/again", "i", 1)
        assert wait_for(lambda: len(collector.calls) == 1)

    def test_stop_joins_thread(self, receiver, collector):
        """No receive thread is left alive after stop()."""
        receiver.start(collector)
        name = f"osc-receiver-{receiver.port}"
        assert any(t.name == name for t in threading.enumerate())
        receiver.stop()
        assert not any(t.name == name for t in threading.enumerate())

    def test_stop_waits_for_handler(self, receiver, sender):
        """stop() returns only after an in-flight handler finished."""
        entered = threading.Event()
        finished = []

        def slow(packet, client):
            entered.set()
            time.sleep(0.2)
            finished.append(packet.address)

        receiver.start(slow)
        sender.send_message("/slow", "")
        assert entered.wait(2.0)
        receiver.stop()
        assert finished == ["/slow"]

    def test_stop_from_handler(self, receiver, sender):
        """A handler may stop its own receiver without deadlocking."""
        seen = []

        def stop_self(packet, client):
            seen.append(packet.address)
            receiver.stop()

        receiver.start(stop_self)
        sender.send_message("/stop", "")
        assert wait_for(lambda: not receiver.running)
        receiver.stop()
        assert seen == ["/stop"]


class TestReceiverDispatch:
    """Tests for the receive loop."""

    def test_seconds_42(self, receiver, sender, collector):
        """A /seconds 42 message reaches the handler exactly once."""
        receiver.start(collector)
        sender.send_message("/seconds", "i", 42)

        assert wait_for(lambda: len(collector.calls) == 1)
        time.sleep(POLL_INTERVAL_S * 5)
        assert len(collector.calls) == 1

        packet, client = collector.calls[0]
        assert packet.address == "/seconds"
        assert packet.arguments == (42,)
        assert client.address == "127.0.0.1"

    def test_handler_runs_on_background_thread(self, receiver, sender, collector):
        receiver.start(collector)
        sender.send_message("/where", "")
        assert wait_for(lambda: collector.calls)
        assert collector.threads == {f"osc-receiver-{receiver.port}"}

    def test_messages_arrive_in_order(self, receiver, sender, collector):
        """N messages from one sender are handled in send order on loopback."""
        receiver.start(collector)
        for i in range(50):
            sender.send_message("/order", "i", i)

        assert wait_for(lambda: len(collector.calls) == 50)
        assert [p.arguments[0] for p in collector.packets] == list(range(50))
        assert receiver.stats["packets_dispatched"] == 50

    def test_client_address_is_the_sender(self, receiver, sender, collector):
        receiver.start(collector)
        sender.send_message("/whoami", "")
        assert wait_for(lambda: collector.calls)
        _, client = collector.calls[0]
        assert client.port == sender._transport._sock.getsockname()[1]

    def test_late_datagram_after_stop_is_not_handled(self, receiver, sender, collector):
        """Once stop() returns, later datagrams are never dispatched."""
        receiver.start(collector)
        receiver.stop()

        sender.send_message("/late", "i", 1)
        time.sleep(POLL_INTERVAL_S * 10)
        assert collector.calls == []
        assert not receiver.running

    def test_corrupt_datagram_does_not_stop_loop(self, receiver, sender, collector):
        """Malformed datagrams are skipped and reported; valid ones still arrive."""
        receiver.start(collector, on_error=collector.on_error)

        send_raw(receiver.port, b"/sec")
        send_raw(receiver.port, b"garbage\x00")
        send_raw(receiver.port, SECONDS_42[:-4])
        sender.send_message("/seconds", "i", 42)

        assert wait_for(lambda: len(collector.calls) == 1)
        assert collector.packets[0].arguments == (42,)
        assert receiver.running
        assert len(collector.errors) == 3
        assert all(isinstance(e, DecodeError) for e in collector.errors)
        assert receiver.stats["decode_errors"] == 3
        assert receiver.failure is None

    def test_corrupt_datagram_without_error_callback(self, receiver, sender, collector):
        receiver.start(collector)
        send_raw(receiver.port, b"\xff\xfe")
        sender.send_message("/ok", "")
        assert wait_for(lambda: len(collector.calls) == 1)
        assert receiver.running


class TestReceiverFailures:
    """Tests for fatal loop errors."""

    def test_socket_error_stops_loop(self, receiver, collector, monkeypatch):
        """A non-would-block socket error is fatal and observable."""

        def broken(buffer):
            raise OSError(9, "Bad file descriptor")

        monkeypatch.setattr(receiver._transport, "recv_into", broken)
        receiver.start(collector, on_error=collector.on_error)

        assert wait_for(lambda: not receiver.running)
        receiver.stop()
        assert isinstance(receiver.failure, ReceiveFailure)
        assert isinstance(receiver.failure.__cause__, OSError)
        assert collector.errors == [receiver.failure]

    def test_handler_exception_stops_loop(self, receiver, sender, collector):
        def explode(packet, client):
            raise RuntimeError("handler bug")

        receiver.start(explode, on_error=collector.on_error)
        sender.send_message("/boom", "")

        assert wait_for(lambda: receiver.failure is not None)
        receiver.stop()
        assert isinstance(receiver.failure, RuntimeError)
        assert collector.errors == [receiver.failure]

    def test_failing_error_callback_is_contained(self, receiver, sender, collector):
        """An on_error that raises does not kill the loop."""

        def bad_callback(exc):
            raise ValueError("callback bug")

        receiver.start(collector, on_error=bad_callback)
        send_raw(receiver.port, b"junk")
        sender.send_message("/ok", "")
        assert wait_for(lambda: len(collector.calls) == 1)
        assert receiver.running

    def test_start_clears_previous_failure(self, receiver, collector, monkeypatch):
        def broken(buffer):
            raise OSError(9, "Bad file descriptor")

        monkeypatch.setattr(receiver._transport, "recv_into", broken)
        receiver.start(collector)
        assert wait_for(lambda: receiver.failure is not None)
        receiver.stop()

        monkeypatch.undo()
        receiver.start(collector)
        assert receiver.failure is None

    def test_unexpected_recv_error_stops_loop(self, receiver, collector, monkeypatch):
        """An exception that is not an OSError is still reported."""

        def broken(buffer):
            raise RuntimeError("socket wrapper bug")

        monkeypatch.setattr(receiver._transport, "recv_into", broken)
        receiver.start(collector, on_error=collector.on_error)

        assert wait_for(lambda: not receiver.running)
        receiver.stop()
        assert isinstance(receiver.failure, RuntimeError)
        assert collector.errors == [receiver.failure]

    def test_unexpected_decode_error_stops_loop(self, receiver, sender, collector, monkeypatch):
        """Only DecodeError is skipped; other decode exceptions are fatal."""

        def broken(buffer, length=None):
            raise KeyError("codec bug")

        monkeypatch.setattr("oscudp.receiver.decode", broken)
        receiver.start(collector, on_error=collector.on_error)
        sender.send_message("/seconds", "i", 42)

        assert wait_for(lambda: receiver.failure is not None)
        receiver.stop()
        assert isinstance(receiver.failure, KeyError)
        assert collector.errors == [receiver.failure]
        assert collector.calls == []
        assert receiver.stats["decode_errors"] == 0
