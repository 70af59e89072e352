"""Network interface counters read from sysfs."""

from __future__ import annotations

import os
from collections.abc import Iterator, MutableMapping
from dataclasses import dataclass
from pathlib import Path

__all__ = [
    "NetworkData",
    "Networks",
    "read_counter",
    "refresh_networks_list_from_sysfs",
]

_DEFAULT_SYSFS_NET = "/sys/class/net"
_READ_SIZE = 30
_COUNTER_FILES = (
    "rx_bytes",
    "tx_bytes",
    "rx_packets",
    "tx_packets",
    "rx_errors",
    "tx_errors",
)


def read_counter(parent: str | os.PathLike[str], name: str) -> int:
    """Return the number at the start of ``parent/name``, or 0 if unreadable."""
    try:
        with open(Path(parent) / name, "rb") as handle:
            data = handle.read(_READ_SIZE)
    except OSError:
        return 0
    value = 0
    for byte in data:
        if not 0x30 <= byte <= 0x39:
            break
        value = value * 10 + (byte - 0x30)
    return value


def _read_counters(statistics_dir: Path) -> tuple[int, ...]:
    return tuple(read_counter(statistics_dir, name) for name in _COUNTER_FILES)


@dataclass
class NetworkData:
    """Counters of one network interface, with the values of the previous refresh."""

    total_received: int = 0
    total_transmitted: int = 0
    total_packets_received: int = 0
    total_packets_transmitted: int = 0
    total_errors_on_received: int = 0
    total_errors_on_transmitted: int = 0
    old_received: int = 0
    old_transmitted: int = 0
    old_packets_received: int = 0
    old_packets_transmitted: int = 0
    old_errors_on_received: int = 0
    old_errors_on_transmitted: int = 0
    updated: bool = True

    @classmethod
    def _from_counters(cls, counters: tuple[int, ...]) -> NetworkData:
        data = cls(*counters)
        data.old_received, data.old_transmitted = counters[0], counters[1]
        data.old_packets_received, data.old_packets_transmitted = counters[2], counters[3]
        data.old_errors_on_received, data.old_errors_on_transmitted = counters[4], counters[5]
        return data

    def _shift(self, counters: tuple[int, ...]) -> None:
        self.old_received, self.total_received = self.total_received, counters[0]
        self.old_transmitted, self.total_transmitted = self.total_transmitted, counters[1]
        self.old_packets_received, self.total_packets_received = (
            self.total_packets_received,
            counters[2],
        )
        self.old_packets_transmitted, self.total_packets_transmitted = (
            self.total_packets_transmitted,
            counters[3],
        )
        self.old_errors_on_received, self.total_errors_on_received = (
            self.total_errors_on_received,
            counters[4],
        )
        self.old_errors_on_transmitted, self.total_errors_on_transmitted = (
            self.total_errors_on_transmitted,
            counters[5],
        )

    def update(self, statistics_dir: str | os.PathLike[str]) -> None:
        """Read fresh counters from an interface's ``statistics`` directory."""
        self._shift(_read_counters(Path(statistics_dir)))

    def received(self) -> int:
        """Bytes received since the last refresh."""
        return max(self.total_received - self.old_received, 0)

    def transmitted(self) -> int:
        """Bytes transmitted since the last refresh."""
        return max(self.total_transmitted - self.old_transmitted, 0)

    def packets_received(self) -> int:
        """Packets received since the last refresh."""
        return max(self.total_packets_received - self.old_packets_received, 0)

    def packets_transmitted(self) -> int:
        """Packets transmitted since the last refresh."""
        return max(self.total_packets_transmitted - self.old_packets_transmitted, 0)

    def errors_on_received(self) -> int:
        """Receive errors since the last refresh."""
        return max(self.total_errors_on_received - self.old_errors_on_received, 0)

    def errors_on_transmitted(self) -> int:
        """Transmit errors since the last refresh."""
        return max(self.total_errors_on_transmitted - self.old_errors_on_transmitted, 0)


def refresh_networks_list_from_sysfs(
    interfaces: MutableMapping[str, NetworkData],
    sysfs_net: str | os.PathLike[str],
) -> None:
    """Add new interfaces, update known ones and drop those that are gone."""
    try:
        entries = list(os.scandir(sysfs_net))
    except OSError:
        return
    for data in interfaces.values():
        data.updated = False
    for entry in entries:
        name = entry.name
        try:
            name.encode("utf-8")
        except UnicodeEncodeError:
            continue
        counters = _read_counters(Path(entry.path) / "statistics")
        existing = interfaces.get(name)
        if existing is not None:
            existing._shift(counters)
            existing.updated = True
        else:
            interfaces[name] = NetworkData._from_counters(counters)
    for name in [name for name, data in interfaces.items() if not data.updated]:
        del interfaces[name]


class Networks:
    """The network interfaces of the machine, keyed by name."""

    def __init__(self, sysfs_net: str | os.PathLike[str] = _DEFAULT_SYSFS_NET) -> None:
        self.sysfs_net = Path(sysfs_net)
        self.interfaces: dict[str, NetworkData] = {}

    def __iter__(self) -> Iterator[tuple[str, NetworkData]]:
        return iter(list(self.interfaces.items()))

    def __len__(self) -> int:
        return len(self.interfaces)

    def __getitem__(self, name: str) -> NetworkData:
        return self.interfaces[name]

    def refresh(self) -> None:
        """Update the counters of the known interfaces."""
        for name, data in self.interfaces.items():
            data.update(self.sysfs_net / name / "statistics")

    def refresh_networks_list(self) -> None:
        """Rescan the interfaces, adding new ones and removing missing ones."""
        refresh_networks_list_from_sysfs(self.interfaces, self.sysfs_net)