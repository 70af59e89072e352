"""CPU time accounting and processor details read from /proc and /sys."""

from __future__ import annotations

import math
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from .utils import get_all_data

__all__ = [
    "CpuValues",
    "Processor",
    "get_cpu_frequency",
    "get_physical_core_count",
    "get_vendor_id_and_brand",
]

_DEFAULT_CPU_SYS_ROOT = "/sys/devices/system/cpu"
_DEFAULT_CPUINFO = "/proc/cpuinfo"
_U64_MAX = 2**64 - 1
_U64_PATTERN = re.compile(r"\+?[0-9]+")
_FREQUENCY_PREFIXES = ("cpu MHz\t", "BogoMIPS", "clock\t", "bogomips per cpu")


def _read_text(path: str | os.PathLike[str]) -> str | None:
    try:
        return get_all_data(path)
    except (OSError, UnicodeDecodeError):
        return None


def _lines(text: str) -> list[str]:
    return [line.removesuffix("\r") for line in text.removesuffix("\n").split("\n")] if text else []


def _parse_u64(text: str) -> int | None:
    if not _U64_PATTERN.fullmatch(text):
        return None
    value = int(text)
    return value if value <= _U64_MAX else None


def _parse_f64(text: str) -> float | None:
    if "_" in text or not text or text != text.strip():
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _saturating_u64(value: float) -> int:
    if math.isnan(value) or value <= 0:
        return 0
    if value >= _U64_MAX:
        return _U64_MAX
    return int(value)


@dataclass
class CpuValues:
    """Cumulative CPU times of one line of /proc/stat, in clock ticks."""

    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0
    guest: int = 0
    guest_nice: int = 0

    def work_time(self) -> int:
        """Return the time spent doing work."""
        return self.user + self.nice + self.system + self.irq + self.softirq + self.steal

    def total_time(self) -> int:
        """Return the total elapsed time."""
        # guest and guest_nice are already part of user and nice.
        return self.work_time() + self.idle + self.iowait


def _positive_diff(new: int, old: int) -> float:
    return float(new - old) if new > old else 1.0


@dataclass
class Processor:
    """One processor (or the aggregate of all of them) and its usage."""

    name: str = ""
    new_values: CpuValues = field(default_factory=CpuValues)
    frequency: int = 0
    vendor_id: str = ""
    brand: str = ""
    old_values: CpuValues = field(default_factory=CpuValues)
    cpu_usage: float = 0.0
    total_time: int = 0
    old_total_time: int = 0

    def update(self, values: CpuValues) -> None:
        """Store new CPU times and recompute the usage percentage."""
        self.old_values = self.new_values
        self.new_values = values
        self.total_time = self.new_values.total_time()
        self.old_total_time = self.old_values.total_time()
        usage = (
            _positive_diff(self.new_values.work_time(), self.old_values.work_time())
            / _positive_diff(self.total_time, self.old_total_time)
            * 100.0
        )
        self.cpu_usage = min(usage, 100.0)

    def raw_times(self) -> tuple[int, int]:
        """Return the new and old total times."""
        return self.total_time, self.old_total_time


def get_cpu_frequency(
    cpu_core_index: int,
    sys_root: str | os.PathLike[str] = _DEFAULT_CPU_SYS_ROOT,
    cpuinfo_path: str | os.PathLike[str] = _DEFAULT_CPUINFO,
) -> int:
    """Return the frequency of one core in MHz, or 0 when unknown."""
    scaling = Path(sys_root) / f"cpu{cpu_core_index}" / "cpufreq" / "scaling_cur_freq"
    content = _read_text(scaling)
    if content is not None:
        freq = _parse_u64(content.strip().split("\n")[0])
        if freq is not None:
            return freq // 1000
    cpuinfo = _read_text(cpuinfo_path)
    if cpuinfo is None:
        return 0
    line = next(
        (line for line in cpuinfo.split("\n") if line.startswith(_FREQUENCY_PREFIXES)),
        None,
    )
    if line is None:
        return 0
    speed = _parse_f64(line.split(":")[-1].replace("MHz", "").strip())
    return _saturating_u64(speed) if speed is not None else 0


def _value_after_colon(line: str) -> str:
    return line.split(":", 1)[-1].strip()


def get_physical_core_count(
    cpuinfo_path: str | os.PathLike[str] = _DEFAULT_CPUINFO,
) -> int | None:
    """Return the number of distinct physical cores, or ``None`` if unknown."""
    content = _read_text(cpuinfo_path)
    if content is None:
        return None
    cores: set[tuple[str, str]] = set()
    core_id = ""
    physical_id = ""
    for line in _lines(content):
        if line.startswith("core id"):
            core_id = _value_after_colon(line)
        elif line.startswith("physical id"):
            physical_id = _value_after_colon(line)
        if core_id and physical_id:
            cores.add((core_id, physical_id))
            core_id = ""
            physical_id = ""
    return len(cores)


def get_vendor_id_and_brand(
    cpuinfo_path: str | os.PathLike[str] = _DEFAULT_CPUINFO,
) -> tuple[str, str]:
    """Return the vendor id and brand of the first CPU."""
    content = _read_text(cpuinfo_path)
    if content is None:
        return "", ""
    vendor_id: str | None = None
    brand: str | None = None
    for line in content.split("\n"):
        if line.startswith("vendor_id\t"):
            vendor_id = line.split(":")[-1].strip()
        elif line.startswith("model name\t"):
            brand = line.split(":")[-1].strip()
        else:
            continue
        if vendor_id is not None and brand is not None:
            break
    return vendor_id or "", brand or ""