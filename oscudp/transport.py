"""UDP socket wrapper shared by Sender and Receiver.

Each component owns its own TransportSocket. A socket is configured
exactly once, either bound to a local port (receiving) or pointed at a
remote endpoint (sending), and must be configured before it is used.
"""

import logging
import socket

from oscudp.endpoint import Endpoint, local_endpoint, remote_endpoint
from oscudp.errors import AddressError, NotConfiguredError, TransportInitError

log = logging.getLogger(__name__)


class TransportSocket:
    """One IPv4 UDP socket and the endpoint it is configured for.

    Args:
        blocking: Create a blocking socket. Receivers pass False.

    Raises:
        TransportInitError: If the socket cannot be created.
    """

    def __init__(self, blocking: bool = True):
        self._sock: socket.socket | None = None
        self._local: Endpoint | None = None
        self._remote: Endpoint | None = None
        self._initialize(blocking)

    def _initialize(self, blocking: bool) -> None:
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        except OSError as exc:
            raise TransportInitError(f"failed to create socket: {exc}") from exc

        try:
            sock.setblocking(blocking)
        except OSError as exc:
            sock.close()
            raise TransportInitError(f"failed to set socket mode: {exc}") from exc

        self._sock = sock

    @property
    def closed(self) -> bool:
        return self._sock is None

    @property
    def configured(self) -> bool:
        return self._local is not None or self._remote is not None

    @property
    def local_endpoint(self) -> Endpoint | None:
        return self._local

    @property
    def remote_endpoint(self) -> Endpoint | None:
        return self._remote

    def bind(self, port: int) -> Endpoint:
        """Bind to ``0.0.0.0:port`` and return the bound endpoint.

        Port 0 picks a free port; the returned endpoint carries the real one.

        Raises:
            AddressError: Port invalid or in use, or socket already configured.
        """
        self._check_unconfigured()
        endpoint = local_endpoint(port)
        try:
            self._socket().bind(endpoint)
        except OSError as exc:
            raise AddressError(f"failed to bind {endpoint}: {exc}") from exc

        self._local = Endpoint(*self._socket().getsockname())
        log.debug("bound %s", self._local)
        return self._local

    def set_remote(self, address: str, port: int) -> Endpoint:
        """Fix the endpoint that send() writes to.

        Raises:
            AddressError: Address is not a dotted quad, port out of range,
                or socket already configured.
        """
        self._check_unconfigured()
        self._remote = remote_endpoint(address, port)
        return self._remote

    def require_configured(self, operation: str) -> None:
        if not self.configured:
            raise NotConfiguredError(f"{operation} called before the socket was configured")

    def recv_into(self, buffer) -> tuple[int, Endpoint] | None:
        """Read one datagram into *buffer*.

        Returns:
            ``(nbytes, client)``, or None when nothing is waiting.

        Raises:
            OSError: Any socket error other than would-block.
        """
        try:
            nbytes, addr = self._socket().recvfrom_into(buffer)
        except BlockingIOError:
            return None
        return nbytes, Endpoint(addr[0], addr[1])

    def send(self, data) -> int:
        """Write *data* as one datagram to the remote endpoint."""
        self.require_configured("send")
        if self._remote is None:
            raise NotConfiguredError("socket is bound for receiving, not sending")
        return self._socket().sendto(data, self._remote)

    def close(self) -> None:
        """Release the socket. Safe to call more than once."""
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            sock.close()
        except OSError:
            pass

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _socket(self) -> socket.socket:
        if self._sock is None:
            raise NotConfiguredError("socket is closed")
        return self._sock

    def _check_unconfigured(self) -> None:
        if self.configured:
            raise AddressError("socket is already configured")
