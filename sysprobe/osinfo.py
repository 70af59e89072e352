"""Operating-system facts: release names, boot time, uptime, load and memory."""

from __future__ import annotations

import os
import re
import socket
import time
from dataclasses import dataclass
from enum import Enum

from .utils import get_all_data

__all__ = [
    "InfoType",
    "LoadAvg",
    "MemInfo",
    "get_system_info_linux",
    "boot_time",
    "read_uptime",
    "read_load_average",
    "parse_meminfo",
    "host_name",
    "kernel_version",
]

_U64_PATTERN = re.compile(r"\+?[0-9]+")
_U64_MAX = 2**64 - 1


class InfoType(Enum):
    """Which piece of release information to look up."""

    NAME = ("NAME=", "DISTRIB_ID=")
    OS_VERSION = ("VERSION_ID=", "DISTRIB_RELEASE=")

    @property
    def os_release_key(self) -> str:
        return self.value[0]

    @property
    def lsb_release_key(self) -> str:
        return self.value[1]


@dataclass
class LoadAvg:
    """Load averages over one, five and fifteen minutes."""

    one: float = 0.0
    five: float = 0.0
    fifteen: float = 0.0


@dataclass
class MemInfo:
    """Memory figures from /proc/meminfo, in bytes divided by 1000."""

    total: int = 0
    free: int = 0
    available: int = 0
    buffers: int = 0
    page_cache: int = 0
    slab_reclaimable: int = 0
    swap_total: int = 0
    swap_free: int = 0


_MEMINFO_FIELDS = {
    "MemTotal": "total",
    "MemFree": "free",
    "MemAvailable": "available",
    "Buffers": "buffers",
    "Cached": "page_cache",
    "SReclaimable": "slab_reclaimable",
    "SwapTotal": "swap_total",
    "SwapFree": "swap_free",
}


def _parse_u64(text: str) -> int | None:
    if not _U64_PATTERN.fullmatch(text):
        return None
    value = int(text)
    return value if value <= _U64_MAX else None


def _read_lines(path: str | os.PathLike[str]) -> list[str] | None:
    """Return the decodable lines of a file, or ``None`` if it cannot be read."""
    try:
        with open(path, "rb") as handle:
            data = handle.read()
    except OSError:
        return None
    lines = []
    for raw in data.split(b"\n"):
        try:
            lines.append(raw.removesuffix(b"\r").decode("utf-8"))
        except UnicodeDecodeError:
            continue
    return lines


def _find_value(lines: list[str], key: str) -> str | None:
    for line in lines:
        if line.startswith(key):
            return line[len(key):].replace('"', "")
    return None


def get_system_info_linux(
    info: InfoType,
    path: str | os.PathLike[str],
    fallback_path: str | os.PathLike[str],
) -> str | None:
    """Look ``info`` up in an os-release file, then in an lsb-release file."""
    lines = _read_lines(path)
    if lines is not None:
        value = _find_value(lines, info.os_release_key)
        if value is not None:
            return value
    lines = _read_lines(fallback_path)
    if lines is None:
        return None
    return _find_value(lines, info.lsb_release_key)


def _clock_boottime() -> int:
    clock = getattr(time, "CLOCK_BOOTTIME", None)
    if clock is None:
        return 0
    try:
        return int(time.clock_gettime(clock))
    except OSError:
        return 0


def boot_time(stat_path: str | os.PathLike[str] = "/proc/stat") -> int:
    """Return the boot time in seconds since the epoch."""
    try:
        with open(stat_path, "rb") as handle:
            data = handle.read()
    except OSError:
        data = None
    if data is not None:
        for line in data.split(b"\n"):
            if line.startswith(b"btime"):
                parts = [part for part in line.split(b" ") if part]
                if len(parts) > 1 and parts[1].isdigit():
                    return int(parts[1])
                return 0
    return _clock_boottime()


def read_uptime(path: str | os.PathLike[str] = "/proc/uptime") -> int:
    """Return the whole seconds since boot, or 0 if unknown."""
    try:
        content = get_all_data(path)
    except (OSError, UnicodeDecodeError):
        content = ""
    value = _parse_u64(content.split(".")[0])
    return value if value is not None else 0


def read_load_average(path: str | os.PathLike[str] = "/proc/loadavg") -> LoadAvg:
    """Return the load averages; zeros when the file cannot be read.

    Raises ``ValueError`` when the file is readable but malformed.
    """
    try:
        content = get_all_data(path)
    except (OSError, UnicodeDecodeError):
        return LoadAvg()
    loads = [float(value) for value in content.strip().split(" ")[:3]]
    if len(loads) < 3:
        raise ValueError(f"malformed load average: {content!r}")
    return LoadAvg(*loads)


def parse_meminfo(data: str) -> MemInfo:
    """Parse /proc/meminfo content; values are converted from KiB to kB."""
    info = MemInfo()
    for line in data.split("\n"):
        parts = line.split(":")
        attribute = _MEMINFO_FIELDS.get(parts[0])
        if attribute is None or len(parts) < 2:
            continue
        value = _parse_u64(parts[1].lstrip().split(" ")[0])
        if value is not None:
            setattr(info, attribute, value * 128 // 125)
    return info


def host_name() -> str | None:
    """Return the host name, or ``None`` when it cannot be retrieved."""
    try:
        name = socket.gethostname()
    except OSError:
        return None
    return name.split("\0", 1)[0]


def kernel_version() -> str | None:
    """Return the kernel release, or ``None`` when unavailable."""
    try:
        release = os.uname().release
    except (AttributeError, OSError):
        return None
    return release.replace("\0", "")