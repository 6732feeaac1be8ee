"""Locate and inspect firmware images that fit a flash memory region."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass

from cshell.walkdir import MAX_ENTRIES, walk

IDENT_END_MAGIC = b"\xC0\xDE\xBA\xD0"
IDENT_BEGIN_MAGIC = b"\xBA\xD0\xFA\xCE"
# Byte offsets of the entry point address in the vector table of known targets.
ENTRY_OFFSETS = (4, 0x2C4)
IDENT_FIELD_LEN = 32
_IDENT_SCAN_LIMIT = -256
_IDENT_FIELDS = 3


@dataclass
class BinaryIdent:
    """Identification found in an image; ``valid`` is True when the strings were read."""

    valid: bool = False
    hostname: str = ""
    model: str = ""
    version_string: str = ""
    stext: int = 0


def read_image(path: str | os.PathLike) -> bytes:
    """Return the whole content of an image file."""
    with open(path, "rb") as handle:
        return handle.read()


def _u32(data: bytes, offset: int) -> int | None:
    if offset < 0 or offset + 4 > len(data):
        return None
    return struct.unpack_from("<I", data, offset)[0]


def _read_idents(data: bytes, begin: int) -> list[str]:
    end = len(data) - 4
    fields: list[str] = []
    position = begin
    while position < end and len(fields) < _IDENT_FIELDS:
        stop = data.find(b"\x00", position)
        if stop < 0:
            stop = len(data)
        fields.append(data[position:stop][:IDENT_FIELD_LEN].decode("latin-1"))
        position = stop + 1
    return fields


def inspect_binary(path: str | os.PathLike, addr_min: int, addr_max: int) -> BinaryIdent | None:
    """Check whether a ``.bin`` file is an image for the given address range.

    Returns None when it is not. Otherwise returns a BinaryIdent whose
    ``valid`` flag tells whether identification strings were found; an
    image without them is accepted when an entry point in its vector table
    lies inside the range.
    """
    name = os.fspath(path)
    if len(name) <= 4 or not name.endswith(".bin"):
        return None
    try:
        data = read_image(name)
    except OSError:
        print(f"  Cannot find file: {name}")
        return None

    length = len(data)
    fits = addr_min + length <= addr_max

    if length >= 8 and data[-4:] == IDENT_END_MAGIC:
        stext = _u32(data, length - 8)
        if not (addr_min <= stext <= addr_max and fits):
            return None
        for idx in range(-9, _IDENT_SCAN_LIMIT - 2, -1):
            start = length + idx
            if start < 0:
                break
            if data[start:start + 4] == IDENT_BEGIN_MAGIC:
                fields = _read_idents(data, start + 4)
                fields += [""] * (_IDENT_FIELDS - len(fields))
                return BinaryIdent(True, fields[0], fields[1], fields[2], stext)

    if fits:
        for offset in ENTRY_OFFSETS:
            addr = _u32(data, offset)
            if addr is not None and addr_min <= addr <= addr_max:
                return BinaryIdent()
    return None


def find_binaries(
    root: str | os.PathLike,
    addr_min: int,
    addr_max: int,
    depth: int = 10,
) -> list[tuple[str, BinaryIdent]]:
    """Walk ``root`` and return up to ten (path, ident) pairs of usable images."""
    found: list[tuple[str, BinaryIdent]] = []
    for path in walk(os.fspath(root), depth):
        ident = inspect_binary(path, addr_min, addr_max)
        if ident is None:
            continue
        if len(found) < MAX_ENTRIES:
            found.append((path, ident))
        else:
            print(f"More than {MAX_ENTRIES} binaries found. Searched stopped.")
    return found


def vmem_name(slot: int) -> str:
    """Name of the flash memory area for a slot, at most four characters."""
    return f"fl{slot % (1 << 32)}"[:4]


def format_candidate(index: int, path: str, ident: BinaryIdent | None) -> str:
    """One line of the candidate list shown before programming."""
    if ident is not None and ident.valid:
        return (
            f"  {index}: {path} ({ident.hostname}, {ident.model}, "
            f"{ident.version_string}, 0x{ident.stext:08X})"
        )
    return f"  {index}: {path}"