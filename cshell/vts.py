"""Streaming of attitude and orbit samples to a VTS visualisation server."""

from __future__ import annotations

import socket
from collections.abc import Sequence

DEFAULT_IP = "127.0.0.1"
DEFAULT_PORT = 8888
Q_HAT_ID = 305
ORBIT_POS = 357
INIT_COMMAND = b"INIT adcs REGULATING\n"

_UNIX_EPOCH_JD = 2440587.5
_CNES_EPOCH_JD = 2433282.5
_SECONDS_PER_DAY = 86400.0


def to_jd(ts_s: float) -> float:
    """Convert a Unix timestamp in seconds to a Julian date."""
    return _UNIX_EPOCH_JD + ts_s / _SECONDS_PER_DAY


class VtsClient:
    """Connection to a VTS server that receives quaternion and position data."""

    def __init__(self, sock: socket.socket, adcs_node: int = 0) -> None:
        self._sock = sock
        self.adcs_node = adcs_node
        self.running = True
        self._last_q_hat_time = 0
        self._last_pos_time = 0

    @classmethod
    def connect(
        cls,
        server_ip: str = DEFAULT_IP,
        port: int = DEFAULT_PORT,
        adcs_node: int = 0,
    ) -> VtsClient:
        """Open a TCP connection to the server and send the init command.

        Raises ValueError for an address that is not IPv4 and
        ConnectionError when the server cannot be reached.
        """
        try:
            socket.inet_pton(socket.AF_INET, server_ip)
        except (OSError, ValueError) as exc:
            raise ValueError("Invalid address/ Address not supported") from exc

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP)
        try:
            sock.connect((server_ip, port))
        except OSError as exc:
            sock.close()
            raise ConnectionError("Connection failed") from exc
        try:
            sock.sendall(INIT_COMMAND)
        except OSError as exc:
            sock.close()
            raise ConnectionError("Failed to send init") from exc

        print(f"Streaming data to VTS at {server_ip}:{port}")
        return cls(sock, adcs_node)

    def check(self, node: int, param_id: int) -> bool:
        """True when a parameter from ``node`` should be forwarded."""
        if not self.running or node != self.adcs_node:
            return False
        return param_id in (Q_HAT_ID, ORBIT_POS)

    def _send(self, line: str) -> None:
        try:
            self._sock.sendall(line.encode())
        except OSError:
            print("VTS send failed!")

    def add(self, values: Sequence[float], param_id: int, time_ms: int) -> None:
        """Send a time tag and, when new, the quaternion or position sample."""
        timestamp = int(time_ms) // 1000
        jd_cnes = to_jd(timestamp) - _CNES_EPOCH_JD
        self._send(f"TIME {jd_cnes:f} 1\n")

        count = len(values)
        if param_id == Q_HAT_ID and count == 4 and timestamp > self._last_q_hat_time:
            x, y, z, w = values
            self._send(f'DATA {jd_cnes:f} orbit_sim_quat "{w:f} {x:f} {y:f} {z:f}"\n')
            self._last_q_hat_time = timestamp

        if param_id == ORBIT_POS and count == 3 and timestamp > self._last_pos_time:
            x, y, z = (v / 1000 for v in values)
            self._send(f'DATA {jd_cnes:f} orbit_prop_pos "{x:f} {y:f} {z:f}"\n')
            self._last_pos_time = timestamp

    def close(self) -> None:
        """Stop forwarding and close the connection."""
        self.running = False
        self._sock.close()

    def __enter__(self) -> VtsClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()