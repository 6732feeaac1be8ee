"""Helpers for monitoring a remote standard-output buffer."""

from __future__ import annotations

import os
import time
from collections.abc import Callable

MAX_CHUNK = 200
_MAX_NAME = 99
_DEFAULT_PREFIX = "csh"


def choose_log_name(
    name: str,
    date_stamp: str,
    exists: Callable[[str], bool] = os.path.exists,
) -> str:
    """Resolve the log file name.

    A name starting with ``?`` asks for a generated name of the form
    ``<prefix>_<date>_<nnn>.log``, picking the first counter from 1 to 99
    that is not taken; an empty prefix becomes ``csh``. Any other name is
    used as given.
    """
    if not name.startswith("?"):
        return name[:_MAX_NAME]
    prefix = name[1:] or _DEFAULT_PREFIX
    candidate = ""
    for counter in range(1, 100):
        candidate = f"{prefix}_{date_stamp}_{counter:03d}.log"[: _MAX_NAME - 1]
        if not exists(candidate):
            break
    return candidate


def format_log_bytes(data: bytes) -> str:
    """Render buffer bytes for the log file.

    Printable characters are kept, each run of CR/LF becomes one newline,
    and any other byte is written as ``0xNN``.
    """
    out: list[str] = []
    newline_run = False
    for byte in bytes(data):
        if byte in (0x0D, 0x0A):
            if not newline_run:
                out.append("\n")
            newline_run = True
            continue
        newline_run = False
        if 0x20 <= byte <= 0x7E:
            out.append(chr(byte))
        else:
            out.append(f"0x{byte:02x}")
    return "".join(out)


def next_window(in_index: int, out_index: int, size: int) -> tuple[int, int] | None:
    """Return (offset, length) of the next unread chunk of a ring buffer.

    Reads run from the out index up to the in index, or up to the end of the
    buffer when the writer has wrapped; at most 200 bytes are taken at once.
    Returns None when there is nothing to read.
    """
    if out_index < in_index:
        end = in_index
    elif out_index > in_index:
        end = size
    else:
        return None
    return out_index, min(end - out_index, MAX_CHUNK)


class StdbufLog:
    """Append-only log of buffer output, with a start banner."""

    def __init__(
        self,
        name: str,
        date_stamp: str | None = None,
        exists: Callable[[str], bool] = os.path.exists,
    ) -> None:
        stamp = date_stamp if date_stamp is not None else time.strftime("%Y%m%d")
        self.path = choose_log_name(name, stamp, exists)
        self._file = open(self.path, "a", encoding="utf-8")
        self._file.write(f"\n\n --- CSH log start {stamp} ------------\n")
        self._file.flush()

    def write(self, data: bytes) -> None:
        """Append buffer bytes to the log."""
        self._file.write(format_log_bytes(data))
        self._file.flush()

    def close(self) -> None:
        """Close the log file."""
        self._file.close()

    def __enter__(self) -> StdbufLog:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()