"""Publish/subscribe forwarding proxy for CSP traffic over ZeroMQ."""

from __future__ import annotations

import contextlib
import getopt
import os
import re
import socket
import sys
import threading
from dataclasses import dataclass

import zmq
from zmq.utils.monitor import recv_monitor_message

DEFAULT_SUB = "tcp://0.0.0.0:6000"
DEFAULT_PUB = "tcp://0.0.0.0:7000"
CONFIG_NAME = "zmqauth.cfg"
CURVE_KEY_CHARS = 40
MIN_FRAME = 5

EVENT_ACCEPTED = 0x0020
EVENT_DISCONNECTED = 0x0200
EVENT_HANDSHAKE_FAILED_NO_DETAIL = 0x0800
EVENT_HANDSHAKE_SUCCEEDED = 0x1000
EVENT_HANDSHAKE_FAILED_PROTOCOL = 0x2000
EVENT_HANDSHAKE_FAILED_AUTH = 0x4000

USAGE = (
    "Usage:\n"
    " -d DEBUG_LVL\t1 = connections, 2 = packets, 3 = both\n"
    " -v VERSION\tcsp version: (default = 2)\n"
    " -s SUB_STR\tsubscriber port: (default = tcp://0.0.0.0:6000)\n"
    " -p PUB_STR\tpublisher  port: (default = tcp://0.0.0.0:7000)\n"
    " -f LOGFILE\tLog to this file\n"
    " -a AUTH\tEnable authentication and encryption\n"
    " -g GEN \tGenerate keypair\n"
)

_SHORTOPTS = "hagv:d:s:p:f:"
_LOG_DELIMITER = b"--------"
_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")


@dataclass
class ProxyOptions:
    """Command-line settings of the proxy."""

    debug: int = 0
    version: int = 2
    sub_str: str = DEFAULT_SUB
    pub_str: str = DEFAULT_PUB
    logfile: str | None = None
    auth: bool = False
    generate_key: bool = False
    secret_key: str | None = None


def _atoi(text: str) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group(1)) if match else 0


def parse_args(argv) -> ProxyOptions:
    """Parse command-line arguments; raise ValueError carrying the usage text."""
    try:
        pairs, _ = getopt.gnu_getopt(list(argv), _SHORTOPTS)
    except getopt.GetoptError as exc:
        raise ValueError(USAGE) from exc

    options = ProxyOptions()
    for flag, value in pairs:
        if flag == "-d":
            options.debug = _atoi(value)
        elif flag == "-v":
            options.version = _atoi(value)
        elif flag == "-s":
            options.sub_str = value
        elif flag == "-p":
            options.pub_str = value
        elif flag == "-f":
            options.logfile = value
        elif flag == "-a":
            options.auth = True
        elif flag == "-g":
            options.generate_key = True
            break
        else:
            raise ValueError(USAGE)
    return options


def load_secret_key(home: str | None) -> str:
    """Read the server's z85 secret key from the first line of ``<home>/zmqauth.cfg``."""
    if home is None:
        raise ValueError("HOME environment variable is not set.")
    path = f"{home}/{CONFIG_NAME}"
    try:
        with open(path, encoding="ascii", errors="replace") as handle:
            line = handle.readline(CURVE_KEY_CHARS)
    except OSError as exc:
        raise ValueError(f"Could not open config {path}") from exc
    if not line:
        raise ValueError("Failed to read secret key from file.")
    return line.rstrip("\r\n")


def describe_event(event: int, value: int, address: str, peer=None) -> str:
    """Render a socket monitor event as one line of text."""
    if event == EVENT_ACCEPTED:
        prefix = f"{peer[0]}:{peer[1]} " if peer else ""
        return f"{prefix}connected on {address}"
    if event == EVENT_HANDSHAKE_SUCCEEDED:
        return f"Handshake succeeded on {address}"
    if event == EVENT_HANDSHAKE_FAILED_PROTOCOL:
        return f"Handshake protocol failure on {address}"
    if event == EVENT_HANDSHAKE_FAILED_AUTH:
        return f"Handshake failed auth on {address}"
    if event == EVENT_DISCONNECTED:
        return f"Client disconnected on {address}"
    if event == EVENT_HANDSHAKE_FAILED_NO_DETAIL:
        return f"Unspecified system errors during handshake {address} errno: {value}"
    return f"event: 0x{int(event):x}"


def _peer_of_fd(fd: int):
    """Return (host, port) of the peer connected on ``fd``, or None."""
    if fd == -1:
        return None
    try:
        dup = os.dup(fd)
    except OSError:
        return None
    try:
        with socket.socket(fileno=dup) as sock:
            address = sock.getpeername()
    except OSError:
        return None
    if isinstance(address, tuple) and len(address) >= 2:
        return address[0], address[1]
    return None


def _monitor_loop(monitor) -> None:
    try:
        while True:
            message = recv_monitor_message(monitor)
            event = int(message["event"])
            value = int(message["value"])
            endpoint = message["endpoint"]
            if isinstance(endpoint, bytes):
                endpoint = endpoint.decode(errors="replace")
            peer = _peer_of_fd(value) if event == EVENT_ACCEPTED else None
            print(describe_event(event, value, endpoint, peer), flush=True)
    except zmq.ContextTerminated:
        pass
    finally:
        monitor.close(linger=0)


def _describe_packet(frame: bytes, version: int) -> str | None:
    """Describe the CSP header of a raw frame, or None if it is too short."""
    if version == 1:
        if len(frame) < 4:
            return None
        word = int.from_bytes(frame[:4], "big")
        pri = (word >> 30) & 0x3
        src = (word >> 25) & 0x1F
        dst = (word >> 20) & 0x1F
        dport = (word >> 14) & 0x3F
        sport = (word >> 8) & 0x3F
        flags = word & 0xFF
        length = len(frame) - 4
    else:
        if len(frame) < 6:
            return None
        word = int.from_bytes(frame[:6], "big")
        pri = (word >> 46) & 0x3
        dst = (word >> 32) & 0x3FFF
        src = (word >> 18) & 0x3FFF
        dport = (word >> 12) & 0x3F
        sport = (word >> 6) & 0x3F
        flags = word & 0x3F
        length = len(frame) - 6
    return (
        f"Packet: Src {src}, Dst {dst}, Dport {dport}, Sport {sport}, "
        f"Pri {pri}, Flags 0x{flags:02X}, Size {length}"
    )


def run_capture(ctx, options: ProxyOptions) -> None:
    """Subscribe to the publisher side, print packet headers and log raw frames.

    Returns when the context is terminated.
    """
    print(f"Capture/logging task listening on {options.sub_str}", flush=True)
    with contextlib.ExitStack() as stack:
        subscriber = stack.enter_context(ctx.socket(zmq.SUB))
        subscriber.setsockopt(zmq.LINGER, 0)
        if options.auth and options.secret_key:
            secret = options.secret_key.encode()
            public = zmq.curve_public(secret)
            subscriber.setsockopt(zmq.CURVE_SERVERKEY, public)
            subscriber.setsockopt(zmq.CURVE_PUBLICKEY, public)
            subscriber.setsockopt(zmq.CURVE_SECRETKEY, secret)
        subscriber.connect(options.pub_str)
        subscriber.setsockopt(zmq.SUBSCRIBE, b"")

        log = None
        if options.logfile:
            try:
                log = stack.enter_context(open(options.logfile, "ab+"))
            except OSError as exc:
                raise ValueError(f"Unable to open logfile {options.logfile}") from exc

        while True:
            try:
                frame = subscriber.recv()
            except zmq.ContextTerminated:
                return
            except zmq.ZMQError as exc:
                print(f"ZMQ: {exc}", flush=True)
                continue

            if len(frame) < MIN_FRAME:
                print(f"ZMQ: Too short datalen: {len(frame)}", flush=True)
                with contextlib.suppress(zmq.Again):
                    while subscriber.recv(zmq.NOBLOCK):
                        pass
                continue

            line = _describe_packet(frame, options.version)
            if line is not None:
                print(line, flush=True)

            if log is not None:
                log.write(_LOG_DELIMITER)
                log.write(frame)
                log.flush()


def run_proxy(options: ProxyOptions) -> int:
    """Bind the XSUB/XPUB pair and forward messages until the context ends."""
    ctx = zmq.Context()
    frontend = ctx.socket(zmq.XSUB)
    backend = ctx.socket(zmq.XPUB)

    if options.auth:
        if not options.secret_key:
            raise ValueError("Failed to read secret key from file.")
        secret = options.secret_key.encode()
        for sock in (frontend, backend):
            sock.setsockopt(zmq.CURVE_SERVER, 1)
            sock.setsockopt(zmq.CURVE_SECRETKEY, secret)

    frontend.bind(options.sub_str)
    print(f"Subscriber task listening on {options.sub_str}", flush=True)
    backend.bind(options.pub_str)
    print(f"Publisher task listening on {options.pub_str}", flush=True)

    if options.debug & 2:
        threading.Thread(target=run_capture, args=(ctx, options), daemon=True).start()

    if options.debug & 1:
        for sock in (frontend, backend):
            monitor = sock.get_monitor_socket(zmq.EVENT_ALL)
            threading.Thread(target=_monitor_loop, args=(monitor,), daemon=True).start()

    try:
        zmq.proxy(frontend, backend)
    except zmq.ContextTerminated:
        pass

    print("Closing ZMQproxy", end="", flush=True)
    frontend.close(linger=0)
    backend.close(linger=0)
    ctx.term()
    return 0


def main(argv=None) -> int:
    """Run the proxy from the command line."""
    if argv is None:
        argv = sys.argv[1:]
    try:
        options = parse_args(argv)
    except ValueError as exc:
        print(exc, end="")
        return 1

    if options.generate_key:
        _, secret = zmq.curve_keypair()
        print(f"Secret key: {secret.decode()}")
        return 0

    if options.auth:
        try:
            options.secret_key = load_secret_key(os.environ.get("HOME"))
        except ValueError as exc:
            print(exc)
            return 1

    return run_proxy(options)


if __name__ == "__main__":
    sys.exit(main())