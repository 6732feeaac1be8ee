import pytest
import requests

from cshell.victoria_metrics import (
    SERVER_PORT,
    SERVER_PORT_AUTH,
    MetricBuffer,
    PushConfig,
    VictoriaMetricsPusher,
    format_param_lines,
)


class _Response:
    def __init__(self, status_code):
        self.status_code = status_code


class _Session:
    def __init__(self, test_status=200, fail_test=False, fail_push=0):
        self.test_status = test_status
        self.fail_test = fail_test
        self.fail_push = fail_push
        self.calls = []
        self.pusher = None

    def post(self, url, data=None, headers=None, auth=None, verify=True):
        self.calls.append((url, data, headers, auth, verify))
        if "query" in url:
            if self.fail_test:
                raise requests.ConnectionError("refused")
            return _Response(self.test_status)
        if self.fail_push:
            self.fail_push -= 1
            raise requests.ConnectionError("refused")
        self.pusher.stop()
        return _Response(204)


def test_format_param_lines():
    lines = format_param_lines("temp", 5, ["1.5", "2"], 1000)
    assert lines[0] == 'temp{node="5", idx="0"} 1.5 1000\n'
    assert len(lines) == 2
    assert 'idx="1"} 2 1000' in lines[1]


def test_buffer_add_and_drain():
    buf = MetricBuffer()
    assert buf.add("a 1\n")
    assert buf.add("b 2\n")
    assert buf.drain() == "a 1\nb 2\n"
    assert buf.drain() == ""
    assert len(buf) == 0


def test_buffer_drops_when_full():
    buf = MetricBuffer(limit=10)
    assert buf.add("12345")
    assert not buf.add("67890")
    assert buf.drain() == "12345"


def test_config_default_ports():
    assert PushConfig("host").port == SERVER_PORT
    password = "password"
    assert PushConfig("host", username="user", password=password).port == SERVER_PORT_AUTH
    assert PushConfig("host", port=9000).port == 9000


def test_config_username_requires_password():
    with pytest.raises(ValueError):
        PushConfig("host", username="user")


def test_config_urls():
    cfg = PushConfig("metrics.example.com", use_ssl=True)
    assert cfg.query_url() == f"https://metrics.example.com:{SERVER_PORT}/prometheus/api/v1/query"
    assert cfg.import_url("csh").endswith("/api/v1/import/prometheus?extra_label=instance=csh")
    assert PushConfig("h").query_url().startswith("http://h:")


def test_pusher_pushes_buffer():
    buf = MetricBuffer()
    buf.add("x 1\n")
    session = _Session()
    password = "password"
    cfg = PushConfig("h", username="user", password=password, skip_verify=True)
    pusher = VictoriaMetricsPusher(cfg, buf, "node1", session=session, interval=0.0)
    session.pusher = pusher
    pusher.run()
    push_calls = [c for c in session.calls if "import" in c[0]]
    assert len(push_calls) == 1
    url, data, headers, auth, verify = push_calls[0]
    assert data == b"x 1\n"
    assert headers == {"Content-Type": "text/plain"}
    assert auth == ("user", password)
    assert verify is False
    assert not pusher.running
    assert len(buf) == 0


def test_pusher_failed_push_keeps_data():
    buf = MetricBuffer()
    buf.add("y 2\n")
    session = _Session(fail_push=1)
    pusher = VictoriaMetricsPusher(PushConfig("h"), buf, "n", session=session, interval=0.0)
    session.pusher = pusher
    pusher.run()
    pushes = [c[1] for c in session.calls if "import" in c[0]]
    assert pushes == [b"y 2\n", b"y 2\n"]


def test_pusher_stops_on_failed_connection_test():
    buf = MetricBuffer()
    buf.add("z 3\n")
    session = _Session(fail_test=True)
    pusher = VictoriaMetricsPusher(PushConfig("h"), buf, "n", session=session, interval=0.0)
    pusher.run()
    assert len(session.calls) == 1
    assert not pusher.running
    assert buf.drain() == "z 3\n"


def test_pusher_stops_on_bad_status():
    session = _Session(test_status=401)
    pusher = VictoriaMetricsPusher(PushConfig("h"), MetricBuffer(), "n", session=session, interval=0.0)
    pusher.run()
    assert [c[1] for c in session.calls] == [b"query=test42"]
    assert not pusher.running