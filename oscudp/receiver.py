"""Receive OSC messages on a local UDP port.

A Receiver owns a non-blocking socket and, while running, one background
thread that drains it: each datagram is decoded and handed to the
handler together with the address it came from. Handlers run one at a
time, in the order the OS delivered the datagrams.

Example:
    >>> def handle(packet, client):
    ...     print(packet.address, packet.arguments, client)
    >>> receiver = Receiver()
    >>> receiver.set_port(7000)
    >>> receiver.start(handle)
    >>> receiver.stop()
    >>> receiver.close()
"""

import logging
import threading
from typing import Callable

from oscudp.codec import InboundPacket, decode
from oscudp.config import MAX_PACKET_SIZE, POLL_INTERVAL_S
from oscudp.endpoint import Endpoint
from oscudp.errors import AlreadyRunningError, DecodeError, NotConfiguredError, ReceiveFailure
from oscudp.transport import TransportSocket

log = logging.getLogger(__name__)

Handler = Callable[[InboundPacket, Endpoint], None]
ErrorHandler = Callable[[Exception], None]


class Receiver:
    """Background OSC receiver bound to ``0.0.0.0:<port>``.

    Failures of the background loop cannot be raised to the owner, so
    they are reported three ways: the optional ``on_error`` callback, the
    ``failure`` property, and the log. Malformed datagrams are reported
    to ``on_error`` as DecodeError and skipped; the loop keeps running.

    Args:
        poll_interval: Seconds to wait when no datagram is pending.

    Raises:
        TransportInitError: If the socket cannot be created.
    """

    def __init__(self, poll_interval: float = POLL_INTERVAL_S):
        self._transport = TransportSocket(blocking=False)
        self._poll_interval = poll_interval
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._failure: Exception | None = None
        self._stats = {
            "packets_received": 0,
            "packets_dispatched": 0,
            "decode_errors": 0,
        }

    @property
    def local_endpoint(self) -> Endpoint | None:
        return self._transport.local_endpoint

    @property
    def port(self) -> int | None:
        endpoint = self._transport.local_endpoint
        return endpoint.port if endpoint else None

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    @property
    def failure(self) -> Exception | None:
        """The error that killed the last loop run, if any."""
        return self._failure

    @property
    def stats(self) -> dict:
        return dict(self._stats)

    def set_port(self, port: int) -> Endpoint:
        """Bind the socket to *port* on all interfaces.

        Raises:
            AddressError: Port in use, out of range, or already bound.
        """
        endpoint = self._transport.bind(port)
        log.info("listening on %s", endpoint)
        return endpoint

    def start(self, handler: Handler, on_error: ErrorHandler | None = None) -> None:
        """Spawn the receive thread and return immediately.

        Raises:
            NotConfiguredError: set_port() was not called, or the receiver
                was closed.
            AlreadyRunningError: The loop is already running.
        """
        self._transport.require_configured("start")
        if self._transport.closed:
            raise NotConfiguredError("start called on a closed receiver")
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                raise AlreadyRunningError("receiver is already running")

            self._stop_event.clear()
            self._failure = None
            self._thread = threading.Thread(
                target=self._receive_loop,
                args=(handler, on_error),
                name=f"osc-receiver-{self.port}",
                daemon=True,
            )
            self._thread.start()

    def stop(self) -> None:
        """Stop the loop and wait for the thread to exit.

        No handler is running once this returns. Calling it while idle
        does nothing. Called from inside a handler it only signals the
        loop, which exits when the handler returns.
        """
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            if thread is threading.current_thread():
                return
            self._thread = None

        thread.join()
        log.debug("receive thread stopped")

    def close(self) -> None:
        """Stop the loop and release the socket. Safe to call twice."""
        self.stop()
        self._transport.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _receive_loop(self, handler: Handler, on_error: ErrorHandler | None) -> None:
        buffer = bytearray(MAX_PACKET_SIZE)

        while not self._stop_event.is_set():
            try:
                result = self._transport.recv_into(buffer)
            except OSError as exc:
                self._fail(ReceiveFailure(f"recvfrom failed: {exc}"), on_error, exc)
                return
            except Exception as exc:
                self._fail(exc, on_error)
                return

            if result is None:
                self._stop_event.wait(self._poll_interval)
                continue

            nbytes, client = result
            if nbytes == 0 or self._stop_event.is_set():
                continue
            self._stats["packets_received"] += 1

            try:
                packet = decode(buffer, nbytes)
            except DecodeError as exc:
                self._stats["decode_errors"] += 1
                log.debug("dropping %d bytes from %s: %s", nbytes, client, exc)
                self._report(exc, on_error)
                continue
            except Exception as exc:
                self._fail(exc, on_error)
                return

            try:
                handler(packet, client)
            except Exception as exc:
                self._fail(exc, on_error)
                return
            self._stats["packets_dispatched"] += 1

    def _fail(self, exc: Exception, on_error: ErrorHandler | None, cause: Exception | None = None) -> None:
        if cause is not None:
            exc.__cause__ = cause
        self._failure = exc
        self._stop_event.set()
        log.error("receive loop stopped: %s", exc, exc_info=exc)
        self._report(exc, on_error)

    @staticmethod
    def _report(exc: Exception, on_error: ErrorHandler | None) -> None:
        if on_error is None:
            return
        try:
            on_error(exc)
        except Exception:
            log.exception("error callback raised")
