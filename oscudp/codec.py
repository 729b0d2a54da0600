"""OSC message encoding and decoding on top of python-osc.

The transport only needs two things from a codec: turn an address, a
type tag and arguments into bytes, and turn a datagram back into an
address and arguments. Both are provided here, along with the packet
objects the Sender and Receiver pass around.

Example:
    >>> packet = OutboundPacket()
    >>> packet.open_message("/seconds", 1).int32(42).close_message()
    >>> decode(packet.data).arguments
    (42,)
"""

from dataclasses import dataclass
from typing import Any, Iterator

from pythonosc.osc_bundle import OscBundle
from pythonosc.osc_message import OscMessage, ParseError
from pythonosc.osc_message_builder import BuildError, OscMessageBuilder
from pythonosc.parsing import osc_types

from oscudp.config import DEFAULT_SEND_BUFFER_SIZE
from oscudp.errors import DecodeError, EncodeError

# Tags that carry no argument bytes and take no value from the caller.
_IMPLIED_TAGS = {"T": True, "F": False, "N": None}
_VALUE_TAGS = "ihfdsb"


def encode(buffer: bytearray, address: str, type_tag: str, *args) -> int:
    """Encode one OSC message into the front of *buffer*.

    *type_tag* may be given with or without its leading comma. The tags
    ``T``, ``F`` and ``N`` consume no entry from *args*. The buffer grows
    if the message does not fit.

    Returns:
        The encoded length in bytes.

    Raises:
        EncodeError: Unknown tag, argument count mismatch, or a value
            that does not fit its tag.
    """
    builder = OscMessageBuilder(address=address)
    values = list(args)
    for tag in type_tag.removeprefix(","):
        if tag in _IMPLIED_TAGS:
            builder.add_arg(_IMPLIED_TAGS[tag], tag)
        elif tag in _VALUE_TAGS:
            if not values:
                raise EncodeError(f"type tag {type_tag!r} needs more arguments than given")
            builder.add_arg(values.pop(0), tag)
        else:
            raise EncodeError(f"unsupported type tag: {tag!r}")
    if values:
        raise EncodeError(f"{len(values)} argument(s) left over for type tag {type_tag!r}")

    return _write(buffer, _build(builder))


def _build(builder: OscMessageBuilder) -> bytes:
    if not builder.address or not builder.address.startswith("/"):
        raise EncodeError(f"OSC address must start with '/': {builder.address!r}")
    try:
        return builder.build().dgram
    except BuildError as exc:
        raise EncodeError(str(exc)) from exc


def _write(buffer: bytearray, dgram: bytes) -> int:
    size = len(dgram)
    if len(buffer) < size:
        buffer.extend(bytes(size - len(buffer)))
    buffer[:size] = dgram
    return size


@dataclass(frozen=True)
class InboundPacket:
    """A decoded OSC message.

    Handed to the receive handler; only meaningful for the duration of
    that call.
    """

    address: str
    type_tags: str
    arguments: tuple
    size: int

    def __iter__(self) -> Iterator[Any]:
        return iter(self.arguments)

    def __str__(self) -> str:
        args = " ".join(repr(a) for a in self.arguments)
        return f"{self.address} ,{self.type_tags} {args}".rstrip()


def decode(buffer, length: int | None = None) -> InboundPacket:
    """Parse the first *length* bytes of *buffer* as an OSC message.

    Raises:
        DecodeError: The bytes are not a well-formed OSC message. Bundles
            are reported as errors too.
    """
    data = bytes(buffer if length is None else buffer[:length])

    if OscBundle.dgram_is_bundle(data):
        raise DecodeError("OSC bundles are not supported")
    if not OscMessage.dgram_is_message(data):
        raise DecodeError("datagram does not start with an OSC address")

    try:
        message = OscMessage(data)
        type_tags = _type_tags(data)
    except (ParseError, osc_types.ParseError, ValueError, IndexError) as exc:
        raise DecodeError(f"malformed OSC message: {exc}") from exc

    return InboundPacket(
        address=message.address,
        type_tags=type_tags,
        arguments=tuple(message.params),
        size=len(data),
    )


def _type_tags(data: bytes) -> str:
    """Return the type tag string of *data* without its comma."""
    _, index = osc_types.get_string(data, 0)
    if index >= len(data):
        return ""
    tags, _ = osc_types.get_string(data, index)
    return tags[1:] if tags.startswith(",") else ""


class OutboundPacket:
    """Reusable send buffer holding one encoded OSC message.

    Built either one value at a time::

        packet.open_message("/seconds", 1).int32(sec).close_message()

    or in one call::

        packet.message("/seconds", ",i", sec)

    ``reset()`` empties the packet and keeps the buffer.
    """

    def __init__(self, buffer_size: int = DEFAULT_SEND_BUFFER_SIZE):
        self._buffer = bytearray(buffer_size)
        self._size = 0
        self._builder: OscMessageBuilder | None = None
        self._expected: int | None = None
        self._count = 0

    @property
    def size(self) -> int:
        """Encoded length of the current message, 0 if none."""
        return self._size

    @property
    def buffer_size(self) -> int:
        return len(self._buffer)

    @property
    def data(self) -> bytes:
        """The encoded message, exactly ``size`` bytes long."""
        return bytes(self._buffer[:self._size])

    def open_message(self, address: str, arg_count: int | None = None) -> "OutboundPacket":
        """Start a message. *arg_count*, if given, is checked on close."""
        if self._builder is not None:
            raise EncodeError("a message is already open")
        if self._size:
            raise EncodeError("packet already holds a message; call reset() first")
        self._builder = OscMessageBuilder(address=address)
        self._expected = arg_count
        self._count = 0
        return self

    def int32(self, value: int) -> "OutboundPacket":
        return self._add(value, OscMessageBuilder.ARG_TYPE_INT)

    def int64(self, value: int) -> "OutboundPacket":
        return self._add(value, OscMessageBuilder.ARG_TYPE_INT64)

    def float32(self, value: float) -> "OutboundPacket":
        return self._add(value, OscMessageBuilder.ARG_TYPE_FLOAT)

    def float64(self, value: float) -> "OutboundPacket":
        return self._add(value, OscMessageBuilder.ARG_TYPE_DOUBLE)

    def string(self, value: str) -> "OutboundPacket":
        return self._add(value, OscMessageBuilder.ARG_TYPE_STRING)

    def blob(self, value: bytes) -> "OutboundPacket":
        return self._add(value, OscMessageBuilder.ARG_TYPE_BLOB)

    def true(self) -> "OutboundPacket":
        return self._add(True, OscMessageBuilder.ARG_TYPE_TRUE)

    def false(self) -> "OutboundPacket":
        return self._add(False, OscMessageBuilder.ARG_TYPE_FALSE)

    def boolean(self, value: bool) -> "OutboundPacket":
        return self.true() if value else self.false()

    def nil(self) -> "OutboundPacket":
        return self._add(None, OscMessageBuilder.ARG_TYPE_NIL)

    def close_message(self) -> "OutboundPacket":
        """Encode the open message into the buffer."""
        builder = self._open_builder()
        if self._expected is not None and self._count != self._expected:
            raise EncodeError(
                f"message {builder.address} declared {self._expected} argument(s), got {self._count}"
            )
        self._size = _write(self._buffer, _build(builder))
        self._builder = None
        return self

    def message(self, address: str, type_tag: str = "", *args) -> "OutboundPacket":
        """Replace the packet contents with one encoded message."""
        self.reset()
        self._size = encode(self._buffer, address, type_tag, *args)
        return self

    def reset(self) -> None:
        """Drop the current message without reallocating the buffer."""
        self._size = 0
        self._builder = None
        self._expected = None
        self._count = 0

    def _add(self, value, arg_type: str) -> "OutboundPacket":
        self._open_builder().add_arg(value, arg_type)
        self._count += 1
        return self

    def _open_builder(self) -> OscMessageBuilder:
        if self._builder is None:
            raise EncodeError("no message is open; call open_message() first")
        return self._builder
