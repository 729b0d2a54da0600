"""Transport constants and config-file loading.

Example:
    >>> from oscudp.config import load_config, DEFAULT_PORT
    >>> cfg = load_config("oscudp.toml")
    >>> cfg["receiver_port"]
    7000
"""

import tomllib

DEFAULT_ADDRESS = "127.0.0.1"
DEFAULT_PORT = 7000

# Largest datagram the receiver accepts; longer ones are truncated by the OS.
MAX_PACKET_SIZE = 8192

# Initial capacity of an OutboundPacket buffer. Grows on demand.
DEFAULT_SEND_BUFFER_SIZE = 1024

# Receive loop back-off when no datagram is waiting.
POLL_INTERVAL_S = 0.01


def load_config(path: str) -> dict:
    """Read a TOML config file and fill in defaults.

    Recognised keys::

        [sender]
        address = "127.0.0.1"
        port = 7000

        [receiver]
        port = 7000

    Both sections are optional.

    Returns:
        dict with ``sender_address``, ``sender_port`` and ``receiver_port``.

    Raises:
        ValueError: If a key has the wrong type or a port is out of range.
    """
    with open(path, "rb") as f:
        raw = tomllib.load(f)

    sender = _section(raw, "sender")
    receiver = _section(raw, "receiver")

    address = sender.get("address", DEFAULT_ADDRESS)
    if not isinstance(address, str):
        raise ValueError(f"sender.address must be str, got {type(address).__name__}")

    return {
        "sender_address": address,
        "sender_port": _port(sender, "sender"),
        "receiver_port": _port(receiver, "receiver"),
    }


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name, {})
    if not isinstance(value, dict):
        raise ValueError(f"[{name}] must be a table")
    return value


def _port(section: dict, name: str) -> int:
    """Validate ``port`` in *section*, defaulting to DEFAULT_PORT."""
    port = section.get("port", DEFAULT_PORT)
    if isinstance(port, bool) or not isinstance(port, int):
        raise ValueError(f"{name}.port must be int, got {type(port).__name__}")
    if not 0 <= port <= 65535:
        raise ValueError(f"{name}.port out of range: {port}")
    return port
