"""Send OSC messages to one fixed UDP peer.

Example:
    >>> sender = Sender()
    >>> sender.set_address_and_port("127.0.0.1", 7000)
    >>> packet = OutboundPacket()
    >>> sender.send(packet.open_message("/seconds", 1).int32(42).close_message())
    >>> sender.close()
"""

import logging

from oscudp.codec import OutboundPacket
from oscudp.config import DEFAULT_SEND_BUFFER_SIZE
from oscudp.endpoint import Endpoint
from oscudp.errors import SendFailure
from oscudp.transport import TransportSocket

log = logging.getLogger(__name__)


class Sender:
    """Synchronous OSC sender bound to a single remote endpoint.

    Not thread-safe: share one instance only under the caller's own lock,
    or give each thread its own Sender.

    Args:
        buffer_size: Initial capacity of the packet used by send_message().

    Raises:
        TransportInitError: If the socket cannot be created.
    """

    def __init__(self, buffer_size: int = DEFAULT_SEND_BUFFER_SIZE):
        self._transport = TransportSocket(blocking=True)
        self._packet = OutboundPacket(buffer_size)

    @property
    def remote(self) -> Endpoint | None:
        return self._transport.remote_endpoint

    def set_address_and_port(self, address: str, port: int) -> Endpoint:
        """Fix the peer every send goes to.

        Raises:
            AddressError: If *address* is not a dotted-quad IPv4 literal,
                *port* is out of range, or the peer was already set.
        """
        endpoint = self._transport.set_remote(address, port)
        log.info("sending to %s", endpoint)
        return endpoint

    def send(self, packet) -> int:
        """Write one encoded packet as a single datagram.

        *packet* is an OutboundPacket or a bytes-like object.

        Returns:
            Number of bytes written, always the full packet length.

        Raises:
            NotConfiguredError: set_address_and_port() was not called.
            SendFailure: The packet is empty, the write was short, or the
                socket reported an error. Nothing is retried.
        """
        self._transport.require_configured("send")

        data = packet.data if isinstance(packet, OutboundPacket) else bytes(packet)
        if not data:
            raise SendFailure("refusing to send an empty packet")

        try:
            sent = self._transport.send(data)
        except OSError as exc:
            raise SendFailure(f"failed to send to {self.remote}: {exc}") from exc

        if sent != len(data):
            raise SendFailure(f"short write to {self.remote}: {sent} of {len(data)} bytes")

        log.debug("sent %d bytes to %s", sent, self.remote)
        return sent

    def send_message(self, address: str, type_tag: str = "", *args) -> int:
        """Encode and send one message using the sender's own packet."""
        self._packet.message(address, type_tag, *args)
        try:
            return self.send(self._packet)
        finally:
            self._packet.reset()

    def close(self) -> None:
        self._transport.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
