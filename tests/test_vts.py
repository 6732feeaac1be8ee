import socket

import pytest

from cshell.vts import INIT_COMMAND, ORBIT_POS, Q_HAT_ID, VtsClient, to_jd

CNES_OFFSET = 2433282.5


def _read_all(sock):
    chunks = []
    while True:
        data = sock.recv(4096)
        if not data:
            break
        chunks.append(data)
    return b"".join(chunks).decode()


def _time_value(line):
    parts = line.split()
    assert parts[0] == "TIME"
    return float(parts[1])


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    b.settimeout(5)
    yield a, b
    b.close()


def test_to_jd_epoch():
    assert to_jd(0) == 2440587.5


def test_to_jd_one_day_later():
    assert to_jd(86400) - to_jd(0) == pytest.approx(1.0)


def test_check_filters_node_and_ids(pair):
    a, _ = pair
    client = VtsClient(a, adcs_node=5)
    assert client.check(5, Q_HAT_ID) is True
    assert client.check(5, ORBIT_POS) is True
    assert client.check(5, 1) is False
    assert client.check(4, Q_HAT_ID) is False
    client.close()
    assert client.check(5, Q_HAT_ID) is False


def test_add_quaternion_reorders_scalar_first(pair):
    a, b = pair
    client = VtsClient(a, adcs_node=1)
    client.add([1.0, 2.0, 3.0, 4.0], Q_HAT_ID, 86_400_000)
    client.close()
    lines = _read_all(b).splitlines()
    assert len(lines) == 2
    time_parts = lines[0].split()
    assert time_parts[0] == "TIME"
    assert float(time_parts[1]) == pytest.approx(to_jd(86400) - CNES_OFFSET)
    assert time_parts[2] == "1"
    assert "orbit_sim_quat" in lines[1]
    quoted = lines[1].split('"')[1].split()
    assert quoted == [f"{v:f}" for v in (4.0, 1.0, 2.0, 3.0)]


def test_add_position_converted_to_km(pair):
    a, b = pair
    client = VtsClient(a)
    client.add([1000.0, 2000.0, 3000.0], ORBIT_POS, 5_000)
    client.close()
    lines = _read_all(b).splitlines()
    assert len(lines) == 2
    assert _time_value(lines[0]) == pytest.approx(to_jd(5) - CNES_OFFSET)
    assert "orbit_prop_pos" in lines[1]
    quoted = [float(v) for v in lines[1].split('"')[1].split()]
    assert quoted == [1.0, 2.0, 3.0]


def test_add_skips_repeated_timestamp(pair):
    a, b = pair
    client = VtsClient(a)
    client.add([0.0, 0.0, 0.0, 1.0], Q_HAT_ID, 10_000)
    client.add([0.0, 0.0, 0.0, 1.0], Q_HAT_ID, 10_500)
    client.close()
    lines = _read_all(b).splitlines()
    assert [line.split()[0] for line in lines] == ["TIME", "DATA", "TIME"]
    assert _time_value(lines[0]) == pytest.approx(to_jd(10) - CNES_OFFSET)
    assert _time_value(lines[2]) == pytest.approx(to_jd(10) - CNES_OFFSET)


def test_add_timestamp_zero_sends_no_data(pair):
    a, b = pair
    client = VtsClient(a)
    client.add([0.0, 0.0, 0.0, 1.0], Q_HAT_ID, 0)
    client.close()
    lines = _read_all(b).splitlines()
    assert len(lines) == 1
    assert _time_value(lines[0]) == pytest.approx(to_jd(0) - CNES_OFFSET)


def test_add_wrong_count_sends_only_time(pair):
    a, b = pair
    client = VtsClient(a)
    client.add([1.0, 2.0, 3.0], Q_HAT_ID, 20_000)
    client.close()
    lines = _read_all(b).splitlines()
    assert len(lines) == 1
    assert _time_value(lines[0]) == pytest.approx(to_jd(20) - CNES_OFFSET)


def test_add_reports_send_failure(capsys):
    a, b = socket.socketpair()
    b.close()
    client = VtsClient(a)
    client.add([1.0, 2.0, 3.0], ORBIT_POS, 1_000)
    client.close()
    assert "VTS send failed!" in capsys.readouterr().out


def test_connect_sends_init():
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    port = server.getsockname()[1]
    try:
        client = VtsClient.connect("127.0.0.1", port, 7)
        conn, _ = server.accept()
        conn.settimeout(5)
        client.close()
        assert _read_all(conn).encode() == INIT_COMMAND
        assert client.adcs_node == 7
        conn.close()
    finally:
        server.close()


def test_connect_invalid_address():
    with pytest.raises(ValueError):
        VtsClient.connect("not-an-ip", 8888, 0)


def test_connect_refused():
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    with pytest.raises(ConnectionError):
        VtsClient.connect("127.0.0.1", port, 0)