"""Open Sound Control over UDP: a fixed-peer sender and a threaded receiver."""

from oscudp.codec import InboundPacket, OutboundPacket, decode, encode
from oscudp.endpoint import Endpoint
from oscudp.errors import (
    AddressError,
    AlreadyRunningError,
    DecodeError,
    EncodeError,
    NotConfiguredError,
    OSCCodecError,
    OSCTransportError,
    ReceiveFailure,
    SendFailure,
    TransportInitError,
)
from oscudp.receiver import Receiver
from oscudp.sender import Sender

__version__ = "0.1.0"

__all__ = [
    "AddressError",
    "AlreadyRunningError",
    "DecodeError",
    "EncodeError",
    "Endpoint",
    "InboundPacket",
    "NotConfiguredError",
    "OSCCodecError",
    "OSCTransportError",
    "OutboundPacket",
    "ReceiveFailure",
    "Receiver",
    "SendFailure",
    "Sender",
    "TransportInitError",
    "decode",
    "encode",
]
