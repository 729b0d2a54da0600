"""Shared pytest fixtures for oscudp tests."""

import socket
import threading
import time

import pytest

from oscudp.receiver import Receiver
from oscudp.sender import Sender


def send_raw(port: int, data: bytes) -> None:
    """Send a raw UDP datagram to localhost:port."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.sendto(data, ("127.0.0.1", port))
    sock.close()


def wait_for(predicate, timeout_s: float = 2.0) -> bool:
    """Poll *predicate* until it is true or *timeout_s* passes."""
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class Collector:
    """Receive handler that records every call."""

    def __init__(self):
        self.calls = []
        self.errors = []
        self.threads = set()
        self._lock = threading.Lock()

    def __call__(self, packet, client) -> None:
        with self._lock:
            self.calls.append((packet, client))
            self.threads.add(threading.current_thread().name)

    def on_error(self, exc: Exception) -> None:
        with self._lock:
            self.errors.append(exc)

    @property
    def packets(self):
        return [packet for packet, _ in self.calls]


@pytest.fixture
def receiver():
    """A Receiver bound to a free port, closed after the test."""
    r = Receiver()
    r.set_port(0)
    yield r
    r.close()


@pytest.fixture
def sender(receiver):
    """A Sender pointed at the receiver fixture."""
    s = Sender()
    s.set_address_and_port("127.0.0.1", receiver.port)
    yield s
    s.close()


@pytest.fixture
def collector():
    return Collector()
