"""A snapshot of the whole machine: memory, CPUs, processes, disks, networks."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .component import Component, get_components
from .disk import Disk, get_all_disks
from .network import Networks
from .osinfo import (
    InfoType,
    LoadAvg,
    MemInfo,
    boot_time,
    get_system_info_linux,
    parse_meminfo,
    read_load_average,
    read_uptime,
)
from .osinfo import host_name as _host_name
from .osinfo import kernel_version as _kernel_version
from .process import (
    Process,
    ProcessRefreshKind,
    compute_cpu_usage,
    get_process_data,
    refresh_procs,
)
from .processor import (
    CpuValues,
    Processor,
    get_cpu_frequency,
    get_physical_core_count,
    get_vendor_id_and_brand,
)
from .utils import get_all_data

__all__ = ["RefreshKind", "System", "get_current_pid"]

_CPU_FIELDS = 10


def _sysconf(name: str, default: int) -> int:
    try:
        value = os.sysconf(name)
    except (AttributeError, OSError, ValueError):
        return default
    return value if value > 0 else default


def _to_u64(raw: bytes) -> int:
    return int(raw) if raw.isdigit() else 0


def _cpu_values(parts: list[bytes]) -> CpuValues:
    numbers = [_to_u64(part) for part in parts[:_CPU_FIELDS]]
    numbers.extend([0] * (_CPU_FIELDS - len(numbers)))
    return CpuValues(*numbers)


@dataclass
class RefreshKind:
    """Which parts of the system to refresh."""

    networks: bool = False
    networks_list: bool = False
    processes: ProcessRefreshKind | None = None
    disks_list: bool = False
    disks: bool = False
    memory: bool = False
    cpu: bool = False
    components: bool = False
    components_list: bool = False

    @classmethod
    def everything(cls) -> RefreshKind:
        return cls(
            networks=True,
            networks_list=True,
            processes=ProcessRefreshKind.everything(),
            disks_list=True,
            disks=True,
            memory=True,
            cpu=True,
            components=True,
            components_list=True,
        )


class System:
    """Information about the machine, refreshed on demand.

    ``root`` is the directory under which ``proc``, ``sys`` and ``etc`` are
    looked up; it is ``/`` on a live system.
    """

    def __init__(
        self,
        refreshes: RefreshKind | None = None,
        *,
        root: str | os.PathLike[str] = "/",
    ) -> None:
        self.root = Path(root)
        self._proc = self.root / "proc"
        self._cpuinfo = self._proc / "cpuinfo"
        self.process_list = Process(0)
        self._mem = MemInfo()
        self._global_processor = Processor()
        self._processors: list[Processor] = []
        self.page_size_kb = _sysconf("SC_PAGESIZE", 4096) // 1024
        self.clock_cycle = _sysconf("SC_CLK_TCK", 100)
        self._components: list[Component] = []
        self._disks: list[Disk] = []
        self._networks = Networks(self.root / "sys" / "class" / "net")
        self._boot_time = boot_time(self._proc / "stat")
        # Set to False once processors are read, True after processes are refreshed.
        self.need_processors_update = True
        self.refresh_specifics(refreshes if refreshes is not None else RefreshKind())

    @classmethod
    def new_all(cls) -> System:
        """Create a system with everything already refreshed."""
        return cls(RefreshKind.everything())

    # Read-only views.

    @property
    def processes(self) -> dict[int, Process]:
        return self.process_list.tasks

    @property
    def processors(self) -> list[Processor]:
        return self._processors

    @property
    def global_processor(self) -> Processor:
        return self._global_processor

    @property
    def components(self) -> list[Component]:
        return self._components

    @property
    def disks(self) -> list[Disk]:
        return self._disks

    @property
    def networks(self) -> Networks:
        return self._networks

    @property
    def total_memory(self) -> int:
        return self._mem.total

    @property
    def free_memory(self) -> int:
        return self._mem.free

    @property
    def available_memory(self) -> int:
        return self._mem.available

    @property
    def total_swap(self) -> int:
        return self._mem.swap_total

    @property
    def free_swap(self) -> int:
        return self._mem.swap_free

    @property
    def boot_time(self) -> int:
        return self._boot_time

    # Refreshing.

    def refresh_specifics(self, refreshes: RefreshKind) -> None:
        """Refresh the parts selected by ``refreshes``."""
        if refreshes.memory:
            self.refresh_memory()
        if refreshes.cpu:
            self.refresh_cpu()
        if refreshes.components_list:
            self.refresh_components_list()
        elif refreshes.components:
            self.refresh_components()
        if refreshes.networks_list:
            self.refresh_networks_list()
        elif refreshes.networks:
            self.refresh_networks()
        if refreshes.processes is not None:
            self.refresh_processes_specifics(refreshes.processes)
        if refreshes.disks_list:
            self.refresh_disks_list()
        elif refreshes.disks:
            self.refresh_disks()

    def refresh_all(self) -> None:
        """Refresh memory, CPUs, components, processes, disks and networks."""
        self.refresh_system()
        self.refresh_processes()
        self.refresh_disks()
        self.refresh_networks()

    def refresh_system(self) -> None:
        """Refresh memory, CPUs and components."""
        self.refresh_memory()
        self.refresh_cpu()
        self.refresh_components()

    def refresh_memory(self) -> None:
        try:
            data = get_all_data(self._proc / "meminfo")
        except (OSError, UnicodeDecodeError):
            return
        self._mem = parse_meminfo(data)

    def refresh_cpu(self) -> None:
        self._refresh_processors(only_update_global_processor=False)

    def refresh_components_list(self) -> None:
        self._components = get_components(
            self.root / "sys" / "class" / "hwmon",
            self.root / "sys" / "class" / "thermal" / "thermal_zone0" / "temp",
        )

    def refresh_components(self) -> None:
        for component in self._components:
            component.refresh()

    def refresh_processes(self) -> None:
        self.refresh_processes_specifics(ProcessRefreshKind.everything())

    def refresh_processes_specifics(self, refresh_kind: ProcessRefreshKind) -> None:
        """Rescan every process, dropping those that are gone."""
        uptime = self.uptime()
        if refresh_procs(
            self.process_list,
            self._proc,
            self.page_size_kb,
            0,
            uptime,
            self.clock_cycle,
            refresh_kind,
        ):
            self._clear_procs(refresh_kind)
        self.need_processors_update = True

    def refresh_process(self, pid: int) -> bool:
        return self.refresh_process_specifics(pid, ProcessRefreshKind.everything())

    def refresh_process_specifics(self, pid: int, refresh_kind: ProcessRefreshKind) -> bool:
        """Refresh one process; return whether it exists."""
        uptime = self.uptime()
        try:
            process, found_pid = get_process_data(
                self._proc / str(pid),
                self.process_list,
                self.page_size_kb,
                0,
                uptime,
                self.clock_cycle,
                refresh_kind,
            )
        except (OSError, ValueError):
            return False
        if process is not None:
            self.process_list.tasks[found_pid] = process

        if refresh_kind.cpu:
            self._refresh_processors(only_update_global_processor=True)
            if not self._processors:
                return True
            new, old = self._global_processor.raw_times()
            total_time = float(1 if old >= new else new - old)
            task = self.process_list.tasks.get(pid)
            if task is not None:
                compute_cpu_usage(
                    task,
                    total_time / len(self._processors),
                    self._max_process_cpu_usage(),
                )
        else:
            task = self.process_list.tasks.get(pid)
            if task is not None:
                task.updated = False
        return True

    def refresh_disks_list(self) -> None:
        self._disks = get_all_disks()

    def refresh_disks(self) -> None:
        for disk in self._disks:
            disk.refresh()

    def refresh_networks(self) -> None:
        self._networks.refresh()

    def refresh_networks_list(self) -> None:
        self._networks.refresh_networks_list()

    # Queries.

    def process(self, pid: int) -> Process | None:
        return self.process_list.tasks.get(pid)

    def physical_core_count(self) -> int | None:
        return get_physical_core_count(self._cpuinfo)

    def used_memory(self) -> int:
        mem = self._mem
        used = mem.total - mem.free - mem.buffers - mem.page_cache - mem.slab_reclaimable
        return max(used, 0)

    def used_swap(self) -> int:
        return max(self._mem.swap_total - self._mem.swap_free, 0)

    def uptime(self) -> int:
        return read_uptime(self._proc / "uptime")

    def load_average(self) -> LoadAvg:
        return read_load_average(self._proc / "loadavg")

    def name(self) -> str | None:
        return get_system_info_linux(
            InfoType.NAME, self.root / "etc" / "os-release", self.root / "etc" / "lsb-release"
        )

    def os_version(self) -> str | None:
        return get_system_info_linux(
            InfoType.OS_VERSION,
            self.root / "etc" / "os-release",
            self.root / "etc" / "lsb-release",
        )

    def long_os_version(self) -> str | None:
        return f"Linux {self.os_version() or ''} {self.name() or ''}"

    def host_name(self) -> str | None:
        return _host_name()

    def kernel_version(self) -> str | None:
        return _kernel_version()

    # Internals.

    def _max_process_cpu_usage(self) -> float:
        # A process can never use more than every CPU at 100%.
        return len(self._processors) * 100.0

    def _clear_procs(self, refresh_kind: ProcessRefreshKind) -> None:
        compute_cpu = False
        total_time = 0.0
        max_value = 0.0
        if refresh_kind.cpu:
            if self.need_processors_update:
                self._refresh_processors(only_update_global_processor=True)
            if self._processors:
                new, old = self._global_processor.raw_times()
                total = 1 if old > new else new - old
                total_time = total / len(self._processors)
                max_value = self._max_process_cpu_usage()
                compute_cpu = True

        gone = []
        for pid, process in self.process_list.tasks.items():
            if not process.updated:
                gone.append(pid)
            elif compute_cpu:
                compute_cpu_usage(process, total_time, max_value)
            process.updated = False
        for pid in gone:
            self.process_list.tasks.pop(pid).close()

    def _refresh_processors(self, only_update_global_processor: bool) -> None:
        try:
            with open(self._proc / "stat", "rb") as handle:
                data = handle.read()
        except OSError:
            return
        self.need_processors_update = False

        lines = data.split(b"\n")
        if lines and lines[-1] == b"":
            lines.pop()
        first = not self._processors
        vendor_id, brand = get_vendor_id_and_brand(self._cpuinfo) if first else ("", "")
        sys_cpu_root = self.root / "sys" / "devices" / "system" / "cpu"

        rest = iter(lines)
        head = next(rest, None)
        if head is not None:
            if head[:4] != b"cpu ":
                return
            parts = [part for part in head.split(b" ") if part]
            if first:
                self._global_processor.name = parts[0].decode("utf-8", "replace")
            self._global_processor.update(_cpu_values(parts[1:]))
            if not first and only_update_global_processor:
                return

        for index, line in enumerate(rest):
            if line[:3] != b"cpu":
                break
            parts = [part for part in line.split(b" ") if part]
            values = _cpu_values(parts[1:])
            frequency = get_cpu_frequency(index, sys_cpu_root, self._cpuinfo)
            if first:
                self._processors.append(
                    Processor(
                        name=parts[0].decode("utf-8", "replace"),
                        new_values=values,
                        frequency=frequency,
                        vendor_id=vendor_id,
                        brand=brand,
                    )
                )
            elif index < len(self._processors):
                self._processors[index].update(values)
                self._processors[index].frequency = frequency

        self._global_processor.frequency = max(
            (processor.frequency for processor in self._processors), default=0
        )
        if first:
            self._global_processor.vendor_id = vendor_id
            self._global_processor.brand = brand


def get_current_pid() -> int:
    """Return the pid of the running process."""
    return os.getpid()