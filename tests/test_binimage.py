import struct

import pytest

from cshell.binimage import (
    IDENT_BEGIN_MAGIC,
    IDENT_END_MAGIC,
    BinaryIdent,
    find_binaries,
    format_candidate,
    inspect_binary,
    read_image,
    vmem_name,
)

ADDR_MIN = 0x1000
ADDR_MAX = 0x1000 + 0x10000 - 1


def _vector_image(entry, size=64):
    data = bytearray(size)
    data[4:8] = struct.pack("<I", entry)
    return bytes(data)


def _ident_image(hostname=b"host", model=b"model", version=b"v1.2", stext=ADDR_MIN):
    return (
        bytes(16)
        + IDENT_BEGIN_MAGIC
        + hostname + b"\x00" + model + b"\x00" + version + b"\x00"
        + struct.pack("<I", stext)
        + IDENT_END_MAGIC
    )


def test_read_image_round_trip(tmp_path):
    path = tmp_path / "a.bin"
    path.write_bytes(b"\x01\x02\x03")
    assert read_image(path) == b"\x01\x02\x03"


def test_vmem_name_basic():
    assert vmem_name(0) == "fl0"


def test_vmem_name_truncated_to_four_chars():
    assert len(vmem_name(123)) == 4
    assert vmem_name(123).startswith("fl12")


def test_non_bin_extension_rejected(tmp_path):
    path = tmp_path / "image.txt"
    path.write_bytes(_vector_image(ADDR_MIN + 0x100))
    assert inspect_binary(path, ADDR_MIN, ADDR_MAX) is None


def test_missing_file_rejected(tmp_path, capsys):
    assert inspect_binary(tmp_path / "gone.bin", ADDR_MIN, ADDR_MAX) is None
    assert "Cannot find file" in capsys.readouterr().out


def test_vector_table_entry_accepted(tmp_path):
    path = tmp_path / "fw.bin"
    path.write_bytes(_vector_image(ADDR_MIN + 0x100))
    result = inspect_binary(path, ADDR_MIN, ADDR_MAX)
    assert result == BinaryIdent()
    assert result.valid is False


def test_second_entry_offset_accepted(tmp_path):
    data = bytearray(0x300)
    data[0x2C4:0x2C8] = struct.pack("<I", ADDR_MIN + 4)
    path = tmp_path / "e70.bin"
    path.write_bytes(bytes(data))
    result = inspect_binary(path, ADDR_MIN, ADDR_MAX)
    assert result == BinaryIdent()
    assert result.valid is False


def test_vector_entry_out_of_range_rejected(tmp_path):
    path = tmp_path / "fw.bin"
    path.write_bytes(_vector_image(ADDR_MAX + 1))
    assert inspect_binary(path, ADDR_MIN, ADDR_MAX) is None


def test_image_too_large_rejected(tmp_path):
    path = tmp_path / "big.bin"
    path.write_bytes(_vector_image(ADDR_MIN + 0x100, size=0x10000))
    assert inspect_binary(path, ADDR_MIN, ADDR_MAX) is None


def test_ident_strings_read(tmp_path):
    path = tmp_path / "id.bin"
    path.write_bytes(_ident_image())
    result = inspect_binary(path, ADDR_MIN, ADDR_MAX)
    assert result == BinaryIdent(True, "host", "model", "v1.2", ADDR_MIN)


def test_ident_hostname_truncated(tmp_path):
    path = tmp_path / "long.bin"
    path.write_bytes(_ident_image(hostname=b"a" * 40))
    result = inspect_binary(path, ADDR_MIN, ADDR_MAX)
    assert result.hostname == "a" * 32
    assert result.model == "model"


def test_ident_stext_out_of_range_rejected(tmp_path):
    data = bytearray(_ident_image(stext=ADDR_MAX + 10))
    data[4:8] = struct.pack("<I", ADDR_MIN + 8)
    path = tmp_path / "bad.bin"
    path.write_bytes(bytes(data))
    assert inspect_binary(path, ADDR_MIN, ADDR_MAX) is None


def test_end_marker_without_begin_falls_back_to_vector(tmp_path):
    data = bytearray(64)
    data[4:8] = struct.pack("<I", ADDR_MIN + 0x20)
    data[-8:-4] = struct.pack("<I", ADDR_MIN)
    data[-4:] = IDENT_END_MAGIC
    path = tmp_path / "noid.bin"
    path.write_bytes(bytes(data))
    result = inspect_binary(path, ADDR_MIN, ADDR_MAX)
    assert result is not None
    assert result.valid is False


def test_find_binaries_skips_hidden_and_other(tmp_path):
    (tmp_path / "a.bin").write_bytes(_vector_image(ADDR_MIN + 0x10))
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "b.bin").write_bytes(_ident_image())
    (tmp_path / ".hidden.bin").write_bytes(_vector_image(ADDR_MIN + 0x10))
    (tmp_path / "notes.txt").write_bytes(b"text")
    found = find_binaries(tmp_path, ADDR_MIN, ADDR_MAX)
    paths = [path for path, _ in found]
    assert paths == [str(tmp_path / "a.bin"), str(sub / "b.bin")]
    assert found[1][1].hostname == "host"


def test_find_binaries_limits_to_ten(tmp_path, capsys):
    for i in range(12):
        (tmp_path / f"img{i:02d}.bin").write_bytes(_vector_image(ADDR_MIN + 0x10))
    found = find_binaries(tmp_path, ADDR_MIN, ADDR_MAX)
    assert len(found) == 10
    assert "More than 10 binaries found" in capsys.readouterr().out


def test_find_binaries_respects_depth(tmp_path):
    deep = tmp_path / "x"
    deep.mkdir()
    (deep / "c.bin").write_bytes(_vector_image(ADDR_MIN + 0x10))
    assert find_binaries(tmp_path, ADDR_MIN, ADDR_MAX, depth=0) == []
    assert len(find_binaries(tmp_path, ADDR_MIN, ADDR_MAX, depth=1)) == 1


def test_format_candidate_with_ident():
    ident = BinaryIdent(True, "host", "model", "v1", 0x1000)
    assert format_candidate(0, "a.bin", ident) == "  0: a.bin (host, model, v1, 0x00001000)"


@pytest.mark.parametrize("ident", [None, BinaryIdent()])
def test_format_candidate_without_ident(ident):
    assert format_candidate(3, "b.bin", ident) == "  3: b.bin"