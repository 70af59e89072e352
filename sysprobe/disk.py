"""Mounted disks, their sizes and whether they are rotational or removable."""

from __future__ import annotations

import os
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .utils import get_all_data

__all__ = [
    "DiskKind",
    "DiskType",
    "Disk",
    "find_type_for_device_name",
    "parse_mounts",
    "new_disk",
    "get_all_disks",
]

_PROC_MOUNTS = "/proc/mounts"
_DISK_BY_ID = "/dev/disk/by-id"
_SYS_BLOCK = "/sys/block"
_U64_MASK = 2**64 - 1
_I32_PATTERN = re.compile(r"[+-]?[0-9]+")
_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1

_IGNORED_FILE_SYSTEMS = frozenset(
    {
        "rootfs",
        "sysfs",  # pseudo file system for kernel objects
        "proc",
        "tmpfs",
        "devtmpfs",
        "cgroup",
        "cgroup2",
        "pstore",
        "squashfs",  # compressed read-only file system (snaps)
        "rpc_pipefs",
        "iso9660",  # optical media
    }
)

_MOUNT_ESCAPES = (
    ("\\134", "\\"),
    ("\\040", " "),
    ("\\011", "\t"),
    ("\\012", "\n"),
)


class DiskKind(Enum):
    """Broad category of a disk."""

    HDD = "HDD"
    SSD = "SSD"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class DiskType:
    """Type of a disk; unknown types carry the raw value that was read."""

    kind: DiskKind
    code: int | None = None

    @classmethod
    def hdd(cls) -> DiskType:
        return cls(DiskKind.HDD)

    @classmethod
    def ssd(cls) -> DiskType:
        return cls(DiskKind.SSD)

    @classmethod
    def unknown(cls, code: int = -1) -> DiskType:
        return cls(DiskKind.UNKNOWN, code)

    def __str__(self) -> str:
        if self.kind is DiskKind.UNKNOWN:
            return f"Unknown({self.code})"
        return self.kind.value


def _statvfs(path: str | os.PathLike[str]) -> os.statvfs_result | None:
    try:
        return os.statvfs(path)
    except (OSError, ValueError):
        return None


@dataclass
class Disk:
    """A mounted file system backed by a device."""

    disk_type: DiskType
    name: str
    file_system: bytes
    mount_point: Path
    total_space: int
    available_space: int
    is_removable: bool

    def refresh(self) -> bool:
        """Update the available space; return ``False`` if it cannot be read."""
        stat = _statvfs(self.mount_point)
        if stat is None:
            return False
        self.available_space = (stat.f_bsize * stat.f_bavail) & _U64_MASK
        return True


def _strip_repeated_prefix(text: str, prefix: str) -> str:
    while prefix and text.startswith(prefix):
        text = text[len(prefix):]
    return text


def _canonical(device_name: str) -> str:
    if not device_name:
        return device_name
    try:
        return str(Path(device_name).resolve(strict=True))
    except (OSError, RuntimeError, ValueError):
        return device_name


def _parse_i32(text: str) -> int | None:
    if not _I32_PATTERN.fullmatch(text):
        return None
    value = int(text)
    return value if _I32_MIN <= value <= _I32_MAX else None


def find_type_for_device_name(device_name: str | os.PathLike[str]) -> DiskType:
    """Guess whether a block device is an HDD or an SSD from sysfs."""
    device_path = os.fspath(device_name)
    real_path = _canonical(device_path)
    if device_path.startswith("/dev/mapper/"):
        # Resolve to the real device, for example /dev/dm-0.
        if real_path != device_path:
            return find_type_for_device_name(real_path)
    elif device_path.startswith(("/dev/sd", "/dev/vd")):
        # "sda1" becomes "sda".
        real_path = _strip_repeated_prefix(real_path, "/dev/").rstrip("0123456789")
    elif device_path.startswith("/dev/nvme"):
        # "nvme0n1p1" becomes "nvme0n1".
        real_path = _strip_repeated_prefix(real_path, "/dev/").rstrip("0123456789").rstrip("p")
    elif device_path.startswith("/dev/root"):
        if real_path != device_path:
            return find_type_for_device_name(real_path)
    elif device_path.startswith("/dev/mmcblk"):
        # "mmcblk0p1" becomes "mmcblk0".
        real_path = _strip_repeated_prefix(real_path, "/dev/").rstrip("0123456789").rstrip("p")
    else:
        real_path = _strip_repeated_prefix(real_path, "/dev/")

    rotational_file = Path(_SYS_BLOCK) / real_path / "queue" / "rotational"
    try:
        content = get_all_data(rotational_file)
    except (OSError, UnicodeDecodeError, ValueError):
        content = ""
    value = _parse_i32(content.strip())
    if value is None:
        return DiskType.unknown(-1)
    if value == 1:
        return DiskType.hdd()
    if value == 0:
        return DiskType.ssd()
    return DiskType.unknown(value)


def _lines(content: str) -> list[str]:
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line.removesuffix("\r") for line in lines]


def _is_ignored(fs_spec: str, fs_file: str, fs_vfstype: str) -> bool:
    return (
        fs_vfstype in _IGNORED_FILE_SYSTEMS
        or fs_file.startswith("/sys")
        or fs_file.startswith("/proc")
        or (fs_file.startswith("/run") and not fs_file.startswith("/run/media"))
        or fs_spec.startswith("sunrpc")
    )


def parse_mounts(content: str) -> list[tuple[str, str, str]]:
    """Return ``(device, mount point, file system)`` for the relevant mounts."""
    mounts = []
    for line in _lines(content):
        fields = line.split()
        fs_spec = fields[0] if fields else ""
        fs_file = fields[1] if len(fields) > 1 else ""
        for escape, replacement in _MOUNT_ESCAPES:
            fs_file = fs_file.replace(escape, replacement)
        fs_vfstype = fields[2] if len(fields) > 2 else ""
        if _is_ignored(fs_spec, fs_file, fs_vfstype):
            continue
        mounts.append((fs_spec, fs_file, fs_vfstype))
    return mounts


def new_disk(
    device_name: str,
    mount_point: str | os.PathLike[str],
    file_system: str | bytes,
    removable_entries: Iterable[str | os.PathLike[str]],
) -> Disk | None:
    """Build a disk for a mount point, or ``None`` when it has no space."""
    disk_type = find_type_for_device_name(device_name)
    total = 0
    available = 0
    stat = _statvfs(mount_point)
    if stat is not None:
        total = (stat.f_bsize * stat.f_blocks) & _U64_MASK
        available = (stat.f_bsize * stat.f_bavail) & _U64_MASK
    if total == 0:
        return None
    if isinstance(file_system, str):
        file_system = file_system.encode("utf-8")
    is_removable = any(os.fspath(entry) == device_name for entry in removable_entries)
    return Disk(
        disk_type=disk_type,
        name=device_name,
        file_system=bytes(file_system),
        mount_point=Path(mount_point),
        total_space=total,
        available_space=available,
        is_removable=is_removable,
    )


def _removable_entries(by_id: str | os.PathLike[str] = _DISK_BY_ID) -> list[Path]:
    """Return the devices that USB links in ``by_id`` point to."""
    try:
        entries = list(os.scandir(by_id))
    except OSError:
        return []
    removable = []
    for entry in entries:
        if not entry.name.startswith("usb-"):
            continue
        try:
            removable.append(Path(entry.path).resolve(strict=True))
        except (OSError, RuntimeError):
            continue
    return removable


def get_all_disks() -> list[Disk]:
    """Return every mounted disk listed in /proc/mounts."""
    try:
        content = get_all_data(_PROC_MOUNTS)
    except (OSError, UnicodeDecodeError):
        content = ""
    removable = _removable_entries()
    disks = []
    for fs_spec, fs_file, fs_vfstype in parse_mounts(content):
        disk = new_disk(fs_spec, fs_file, fs_vfstype, removable)
        if disk is not None:
            disks.append(disk)
    return disks