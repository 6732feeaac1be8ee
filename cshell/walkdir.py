"""Depth-limited directory walk that reports regular files."""

from __future__ import annotations

import os
import stat
from collections.abc import Callable, Iterator

MAX_ENTRIES = 10
MAX_PATH_SIZE = 256

EnterDir = Callable[[str, str], bool]


def walk(path: str, depth: int, enter_dir: EnterDir | None = None) -> Iterator[str]:
    """Yield the paths of regular files under ``path``.

    Entries whose names start with a dot are skipped, as are links and
    anything that is neither a directory nor a regular file. A directory is
    entered only while ``depth`` is above zero and ``enter_dir(path, name)``
    returns true; without ``enter_dir`` every directory is entered. If
    ``path`` itself exists but is not a directory, it is yielded alone.
    """
    path = os.fspath(path)
    try:
        with os.scandir(path) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except NotADirectoryError:
        yield path
        return
    except OSError:
        return

    for entry in entries:
        if entry.name.startswith("."):
            continue
        full = os.path.join(path, entry.name)
        try:
            mode = os.lstat(full).st_mode
        except OSError:
            continue
        if stat.S_ISDIR(mode):
            if depth > 0 and (enter_dir is None or enter_dir(full, entry.name)):
                yield from walk(full, depth - 1, enter_dir)
        elif stat.S_ISREG(mode):
            yield full