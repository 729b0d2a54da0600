"""Console tools built on Sender and Receiver.

Example:
    From the shell::

        oscudp listen --port 7000
        oscudp seconds --address 127.0.0.1 --port 7000
        oscudp send --port 7000
        oscudp mirror --port 9000 --target-port 8000 -v
"""

import argparse
import logging
import threading
import time

from oscudp.codec import InboundPacket
from oscudp.config import DEFAULT_ADDRESS, DEFAULT_PORT, load_config
from oscudp.endpoint import Endpoint
from oscudp.errors import OSCTransportError
from oscudp.receiver import Receiver
from oscudp.sender import Sender

log = logging.getLogger(__name__)

# =========================================================
# Console sender
# =========================================================

def parse_value(text: str):
    """Cast console input to int, then float, else keep the string."""
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


def type_tag_for(value) -> str:
    if isinstance(value, int):
        return "i" if -2**31 <= value < 2**31 else "h"
    if isinstance(value, float):
        return "f"
    return "s"


def console_loop(sender: Sender, read_line=input) -> int:
    """Send ``/path value`` lines until EOF or Ctrl+C. Returns messages sent."""
    print("OSC console sender")
    print("Enter messages as: /path value")
    print("Press Ctrl+C to quit")

    sent = 0
    while True:
        try:
            line = read_line("> ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\nExiting")
            return sent

        if not line:
            continue

        parts = line.split(maxsplit=1)
        if len(parts) != 2 or not parts[0].startswith("/"):
            print("Invalid input. Use: /path value")
            continue

        address, value = parts[0], parse_value(parts[1])
        try:
            sender.send_message(address, type_tag_for(value), value)
        except OSCTransportError as exc:
            print(f"Send failed: {exc}")
            continue

        sent += 1
        print(f"Sent OSC: {address} {value}")

# =========================================================
# Clock sender
# =========================================================

def current_seconds() -> int:
    return int(time.time()) % 60


def send_seconds(sender: Sender, interval: float, shutdown: threading.Event) -> int:
    """Send ``/seconds <0-59>`` every *interval* until *shutdown* is set."""
    count = 0
    while not shutdown.is_set():
        sender.send_message("/seconds", "i", current_seconds())
        count += 1
        shutdown.wait(interval)
    return count

# =========================================================
# Receivers
# =========================================================

def print_packet(packet: InboundPacket, client: Endpoint) -> None:
    print(f"{client} | {packet}")


def mirror_handler(sender: Sender):
    """Return a handler that re-sends every message through *sender*.

    A message that cannot be re-encoded or sent is logged and skipped.
    """

    def handle(packet: InboundPacket, client: Endpoint) -> None:
        values = [
            arg for tag, arg in zip(packet.type_tags, packet.arguments)
            if tag not in "TFN"
        ]
        try:
            sender.send_message(packet.address, packet.type_tags, *values)
        except OSCTransportError as exc:
            log.warning("not mirroring %s from %s: %s", packet.address, client, exc)
            return
        print(f"{client} -> {sender.remote} | {packet.address} {packet.arguments}")

    return handle


def serve(receiver: Receiver, handler, shutdown: threading.Event) -> Exception | None:
    """Run *receiver* until *shutdown* is set or its loop dies."""
    receiver.start(handler, on_error=lambda exc: log.debug("receiver: %s", exc))
    try:
        while not shutdown.is_set() and receiver.running:
            shutdown.wait(1.0)
    except KeyboardInterrupt:
        print("\nExiting")
    finally:
        receiver.stop()
    return receiver.failure

# =========================================================
# Command line
# =========================================================

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="oscudp", description="OSC over UDP tools")
    parser.add_argument("--config", help="TOML file with [sender]/[receiver] defaults")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    send = sub.add_parser("send", help="send messages typed on the console")
    send.add_argument("--address")
    send.add_argument("--port", type=int)

    seconds = sub.add_parser("seconds", help="send /seconds periodically")
    seconds.add_argument("--address")
    seconds.add_argument("--port", type=int)
    seconds.add_argument("--interval", type=float, default=1.0)

    listen = sub.add_parser("listen", help="print received messages")
    listen.add_argument("--port", type=int)

    mirror = sub.add_parser("mirror", help="echo received messages to a target")
    mirror.add_argument("--port", type=int)
    mirror.add_argument("--address")
    mirror.add_argument("--target-port", type=int, required=True)

    return parser


def _settings(args) -> dict:
    if args.config:
        return load_config(args.config)
    return {
        "sender_address": DEFAULT_ADDRESS,
        "sender_port": DEFAULT_PORT,
        "receiver_port": DEFAULT_PORT,
    }


def main(argv=None) -> int:
    """CLI entry point. Returns the process exit status."""
    args = _build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=level,
    )

    cfg = _settings(args)
    address = getattr(args, "address", None) or cfg["sender_address"]
    shutdown = threading.Event()

    try:
        if args.command in ("send", "seconds"):
            port = args.port if args.port is not None else cfg["sender_port"]
            with Sender() as sender:
                sender.set_address_and_port(address, port)
                print(f"Sending OSC packets to {address}:{port}")
                if args.command == "send":
                    console_loop(sender)
                else:
                    print("Press Ctrl+C to exit.")
                    try:
                        send_seconds(sender, args.interval, shutdown)
                    except KeyboardInterrupt:
                        print("\nExiting")
            return 0

        port = args.port if args.port is not None else cfg["receiver_port"]
        with Receiver() as receiver:
            receiver.set_port(port)
            print(f"Receiving OSC messages on port {receiver.port}")
            print("Press Ctrl+C to exit.")
            if args.command == "listen":
                failure = serve(receiver, print_packet, shutdown)
            else:
                with Sender() as sender:
                    sender.set_address_and_port(address, args.target_port)
                    failure = serve(receiver, mirror_handler(sender), shutdown)

        if failure is not None:
            print(f"Error: {failure}")
            return 1
        return 0

    except OSCTransportError as exc:
        print(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
