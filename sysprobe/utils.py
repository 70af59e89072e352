"""Small helpers for reading pseudo-files under /proc and /sys."""

from __future__ import annotations

import os
import stat
from pathlib import Path

__all__ = ["get_all_data", "realpath"]


def get_all_data(file_path: str | os.PathLike[str]) -> str:
    """Return the whole content of ``file_path`` as text.

    Raises ``OSError`` when the file cannot be opened or read and
    ``UnicodeDecodeError`` when it is not valid UTF-8.
    """
    with open(file_path, encoding="utf-8", newline="") as handle:
        return handle.read()


def realpath(original: str | os.PathLike[str]) -> Path | None:
    """Return the target of the symbolic link ``original``.

    Returns ``None`` when ``original`` does not exist, is not a symbolic
    link, or its target cannot be read.
    """
    try:
        info = os.lstat(original)
    except OSError:
        return None
    if not stat.S_ISLNK(info.st_mode):
        return None
    try:
        return Path(os.readlink(original))
    except OSError:
        return None