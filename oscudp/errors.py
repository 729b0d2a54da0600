"""Exceptions raised by the OSC UDP transport."""


class OSCTransportError(Exception):
    """Base class for every error raised by oscudp."""


class TransportInitError(OSCTransportError):
    """The UDP socket could not be created or configured."""


class AddressError(OSCTransportError):
    """A bind address or remote address was rejected."""


class NotConfiguredError(OSCTransportError):
    """An operation was attempted before bind/set_remote."""


class AlreadyRunningError(OSCTransportError):
    """start() was called on a receiver whose loop is still alive."""


class SendFailure(OSCTransportError):
    """A datagram could not be written in full."""


class ReceiveFailure(OSCTransportError):
    """The receive loop hit a socket error and stopped."""


class OSCCodecError(OSCTransportError):
    """Base class for encode/decode errors."""


class EncodeError(OSCCodecError):
    """A message could not be encoded."""


class DecodeError(OSCCodecError):
    """A datagram is not a valid OSC message."""
