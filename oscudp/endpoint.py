"""IPv4 UDP endpoints.

An Endpoint is a plain ``(address, port)`` tuple, so it can be handed
straight to ``socket.sendto`` or ``socket.bind``.
"""

import socket
from typing import NamedTuple

from oscudp.errors import AddressError

ANY_ADDRESS = "0.0.0.0"


class Endpoint(NamedTuple):
    address: str
    port: int

    def __str__(self) -> str:
        return f"{self.address}:{self.port}"


def check_port(port) -> int:
    """Return *port* as an int, or raise AddressError if out of range."""
    if isinstance(port, bool) or not isinstance(port, int):
        raise AddressError(f"port must be int, got {type(port).__name__}")
    if not 0 <= port <= 0xFFFF:
        raise AddressError(f"port out of range: {port}")
    return port


def remote_endpoint(address: str, port: int) -> Endpoint:
    """Validate a literal dotted-quad address and port.

    No name resolution is attempted; ``"localhost"`` is rejected.
    """
    try:
        socket.inet_pton(socket.AF_INET, address)
    except (OSError, TypeError) as exc:
        raise AddressError(f"invalid IPv4 address: {address!r}") from exc
    return Endpoint(address, check_port(port))


def local_endpoint(port: int) -> Endpoint:
    """Wildcard endpoint a receiver binds to."""
    return Endpoint(ANY_ADDRESS, check_port(port))
