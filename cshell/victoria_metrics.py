"""Buffered push of parameter samples to a VictoriaMetrics server."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass

import requests

SERVER_PORT = 8428
SERVER_PORT_AUTH = 8427
BUFFER_SIZE = 10 * 1024 * 1024


def format_param_lines(name: str, node: int, values: Iterable[object], time_ms: int) -> list[str]:
    """Format one Prometheus text line per array element of a parameter."""
    return [
        f'{name}{{node="{node}", idx="{index}"}} {value} {time_ms}\n'
        for index, value in enumerate(values)
    ]


class MetricBuffer:
    """Thread-safe text buffer that drops lines once it is full."""

    def __init__(self, limit: int = BUFFER_SIZE) -> None:
        self.limit = limit
        self._lock = threading.Lock()
        self._lines: list[str] = []
        self._size = 0

    def add(self, line: str) -> bool:
        """Append a line; return False if it did not fit."""
        length = len(line.encode())
        with self._lock:
            if self._size + length >= self.limit:
                return False
            self._lines.append(line)
            self._size += length
            return True

    def drain(self) -> str:
        """Return all buffered text and empty the buffer."""
        with self._lock:
            text = "".join(self._lines)
            self._lines.clear()
            self._size = 0
            return text

    def _restore(self, text: str) -> None:
        """Put text taken by drain back in front of newer lines."""
        if not text:
            return
        with self._lock:
            self._lines.insert(0, text)
            self._size += len(text.encode())

    def __len__(self) -> int:
        with self._lock:
            return self._size


@dataclass
class PushConfig:
    """Where and how to push metrics."""

    server: str
    port: int = 0
    use_ssl: bool = False
    skip_verify: bool = False
    verbose: bool = False
    username: str | None = None
    password: str | None = None

    def __post_init__(self) -> None:
        if self.username:
            if not self.password:
                raise ValueError("Provide password with -p")
            if not self.port:
                self.port = SERVER_PORT_AUTH
        elif not self.port:
            self.port = SERVER_PORT

    @property
    def _base(self) -> str:
        protocol = "https" if self.use_ssl else "http"
        return f"{protocol}://{self.server}:{self.port}"

    def query_url(self) -> str:
        """URL used to test the connection."""
        return f"{self._base}/prometheus/api/v1/query"

    def import_url(self, hostname: str) -> str:
        """URL that receives pushed samples, labelled with this instance."""
        return f"{self._base}/api/v1/import/prometheus?extra_label=instance={hostname}"


class VictoriaMetricsPusher:
    """Background worker that posts buffered metrics once per interval."""

    def __init__(
        self,
        config: PushConfig,
        buffer: MetricBuffer,
        hostname: str,
        session: requests.Session | None = None,
        interval: float = 1.0,
    ) -> None:
        self.config = config
        self.buffer = buffer
        self.hostname = hostname
        self.session = session if session is not None else requests.Session()
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running and not self._stop.is_set()

    def start(self) -> None:
        """Start pushing in a background thread; does nothing if already running."""
        if self.running:
            return
        self._stop.clear()
        self._running = True
        self._thread = threading.Thread(target=self.run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Ask the push loop to end."""
        self._stop.set()

    def _post(self, url: str, data: str, headers: dict[str, str] | None = None):
        auth = None
        if self.config.username and self.config.password:
            auth = (self.config.username, self.config.password)
        return self.session.post(
            url,
            data=data.encode(),
            headers=headers,
            auth=auth,
            verify=not self.config.skip_verify,
        )

    def run(self) -> None:
        """Test the connection, then push buffered text until stopped."""
        self._running = True
        try:
            response = self._post(self.config.query_url(), "query=test42")
        except requests.RequestException as exc:
            print(f"Failed test of connection: {exc}")
            self._stop.set()
        else:
            if response.status_code != 200:
                print(f"Failed test with response code: {response.status_code}")
                self._stop.set()

        url = self.config.import_url(self.hostname)
        if self.config.verbose:
            print(f"Full URL: {url}")
        if not self._stop.is_set():
            print(f"Connection established to {self.config._base}")

        headers = {"Content-Type": "text/plain"}
        while not self._stop.is_set():
            data = self.buffer.drain()
            if data:
                try:
                    self._post(url, data, headers)
                except requests.RequestException as exc:
                    print(f"Failed push: {exc}")
                    self.buffer._restore(data)
            self._stop.wait(self.interval)

        self._running = False
        print("vm push stopped")