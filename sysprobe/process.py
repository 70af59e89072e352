"""Processes and their tasks, read from /proc."""

from __future__ import annotations

import contextlib
import os
import re
import signal as _signal
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import BinaryIO, ClassVar

from .files import acquire_file_slot, release_file_slot
from .utils import get_all_data, realpath

__all__ = [
    "ProcessStatus",
    "Signal",
    "DiskUsage",
    "ProcessRefreshKind",
    "Process",
    "compute_cpu_usage",
    "set_time",
    "update_process_disk_activity",
    "parse_stat_file",
    "parse_uid_and_gid",
    "read_null_separated",
    "get_process_data",
    "refresh_procs",
]

_U64_PATTERN = re.compile(r"\+?[0-9]+")
_I32_PATTERN = re.compile(r"[+-]?[0-9]+")
_U64_MAX = 2**64 - 1
_U32_MAX = 2**32 - 1
_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1
_CMDLINE_READ_SIZE = 16_384
_STAT_MIN_FIELDS = 24


def _parse_unsigned(text: str, maximum: int) -> int | None:
    if not _U64_PATTERN.fullmatch(text):
        return None
    value = int(text)
    return value if value <= maximum else None


def _parse_pid(text: str) -> int | None:
    if not _I32_PATTERN.fullmatch(text):
        return None
    value = int(text)
    return value if _I32_MIN <= value <= _I32_MAX else None


def _u64_or_zero(text: str) -> int:
    value = _parse_unsigned(text, _U64_MAX)
    return value if value is not None else 0


@dataclass(frozen=True)
class ProcessStatus:
    """State of a process; unknown states carry the raw value that was read."""

    label: str
    code: int | None = None

    IDLE: ClassVar[ProcessStatus]
    RUN: ClassVar[ProcessStatus]
    SLEEP: ClassVar[ProcessStatus]
    STOP: ClassVar[ProcessStatus]
    ZOMBIE: ClassVar[ProcessStatus]
    TRACING: ClassVar[ProcessStatus]
    DEAD: ClassVar[ProcessStatus]
    WAKEKILL: ClassVar[ProcessStatus]
    WAKING: ClassVar[ProcessStatus]
    PARKED: ClassVar[ProcessStatus]

    @classmethod
    def unknown(cls, code: int) -> ProcessStatus:
        return cls("Unknown", code)

    @property
    def is_unknown(self) -> bool:
        return self.label == "Unknown"

    @classmethod
    def from_char(cls, status: str) -> ProcessStatus:
        """Map the state letter of /proc/<pid>/stat to a status."""
        known = _STATUS_BY_CHAR.get(status)
        return known if known is not None else cls.unknown(ord(status))

    @classmethod
    def from_code(cls, status: int) -> ProcessStatus:
        """Map a numeric state (1 to 5) to a status."""
        known = _STATUS_BY_CODE.get(status)
        return known if known is not None else cls.unknown(status)

    def __str__(self) -> str:
        return self.label


ProcessStatus.IDLE = ProcessStatus("Idle")
ProcessStatus.RUN = ProcessStatus("Runnable")
ProcessStatus.SLEEP = ProcessStatus("Sleeping")
ProcessStatus.STOP = ProcessStatus("Stopped")
ProcessStatus.ZOMBIE = ProcessStatus("Zombie")
ProcessStatus.TRACING = ProcessStatus("Tracing")
ProcessStatus.DEAD = ProcessStatus("Dead")
ProcessStatus.WAKEKILL = ProcessStatus("Wakekill")
ProcessStatus.WAKING = ProcessStatus("Waking")
ProcessStatus.PARKED = ProcessStatus("Parked")

_STATUS_BY_CHAR = {
    "R": ProcessStatus.RUN,
    "S": ProcessStatus.SLEEP,
    "D": ProcessStatus.IDLE,
    "Z": ProcessStatus.ZOMBIE,
    "T": ProcessStatus.STOP,
    "t": ProcessStatus.TRACING,
    "X": ProcessStatus.DEAD,
    "x": ProcessStatus.DEAD,
    "K": ProcessStatus.WAKEKILL,
    "W": ProcessStatus.WAKING,
    "P": ProcessStatus.PARKED,
}

_STATUS_BY_CODE = {
    1: ProcessStatus.IDLE,
    2: ProcessStatus.RUN,
    3: ProcessStatus.SLEEP,
    4: ProcessStatus.STOP,
    5: ProcessStatus.ZOMBIE,
}


class Signal(Enum):
    """Signals that can be sent to a process."""

    HANGUP = "SIGHUP"
    INTERRUPT = "SIGINT"
    QUIT = "SIGQUIT"
    ILLEGAL = "SIGILL"
    TRAP = "SIGTRAP"
    ABORT = "SIGABRT"
    IOT = "SIGIOT"
    BUS = "SIGBUS"
    FLOATING_POINT_EXCEPTION = "SIGFPE"
    KILL = "SIGKILL"
    USER1 = "SIGUSR1"
    SEGV = "SIGSEGV"
    USER2 = "SIGUSR2"
    PIPE = "SIGPIPE"
    ALARM = "SIGALRM"
    TERM = "SIGTERM"
    CHILD = "SIGCHLD"
    CONTINUE = "SIGCONT"
    STOP = "SIGSTOP"
    TSTP = "SIGTSTP"
    TTIN = "SIGTTIN"
    TTOU = "SIGTTOU"
    URGENT = "SIGURG"
    XCPU = "SIGXCPU"
    XFSZ = "SIGXFSZ"
    VIRTUAL_ALARM = "SIGVTALRM"
    PROFILING = "SIGPROF"
    WINCH = "SIGWINCH"
    IO = "SIGIO"
    POLL = "SIGPOLL"
    POWER = "SIGPWR"
    SYS = "SIGSYS"

    @property
    def number(self) -> int | None:
        """The platform's number for this signal, or ``None`` if it has none."""
        value = getattr(_signal, self.value, None)
        return int(value) if value is not None else None


@dataclass(frozen=True)
class DiskUsage:
    """Bytes read and written by a process, since the last refresh and in total."""

    written_bytes: int = 0
    total_written_bytes: int = 0
    read_bytes: int = 0
    total_read_bytes: int = 0


@dataclass
class ProcessRefreshKind:
    """Which optional process figures to refresh."""

    cpu: bool = False
    disk_usage: bool = False

    @classmethod
    def everything(cls) -> ProcessRefreshKind:
        return cls(cpu=True, disk_usage=True)


@dataclass(eq=False)
class Process:
    """A process (or task) and the figures read for it."""

    pid: int
    parent: int | None = None
    start_time: int = 0
    name: str = ""
    cmd: list[str] = field(default_factory=list)
    exe: Path | None = None
    environ: list[str] = field(default_factory=list, repr=False)
    cwd: Path | None = None
    root: Path | None = None
    memory: int = 0
    virtual_memory: int = 0
    run_time: int = 0
    cpu_usage: float = 0.0
    uid: int = 0
    gid: int = 0
    status: ProcessStatus = field(default_factory=lambda: ProcessStatus.unknown(0))
    updated: bool = True
    tasks: dict[int, Process] = field(default_factory=dict, repr=False)
    utime: int = 0
    stime: int = 0
    old_utime: int = 0
    old_stime: int = 0
    read_bytes: int = 0
    written_bytes: int = 0
    old_read_bytes: int = 0
    old_written_bytes: int = 0
    stat_file: BinaryIO | None = field(default=None, repr=False)

    def kill(self) -> bool:
        """Send SIGKILL; return whether the signal was delivered."""
        return bool(self.kill_with(Signal.KILL))

    def kill_with(self, signal: Signal) -> bool | None:
        """Send ``signal``; ``None`` when the platform does not have it."""
        number = signal.number
        if number is None:
            return None
        try:
            os.kill(self.pid, number)
        except OSError:
            return False
        return True

    def disk_usage(self) -> DiskUsage:
        """Return the disk activity since the last refresh and in total."""
        return DiskUsage(
            written_bytes=max(self.written_bytes - self.old_written_bytes, 0),
            total_written_bytes=self.written_bytes,
            read_bytes=max(self.read_bytes - self.old_read_bytes, 0),
            total_read_bytes=self.read_bytes,
        )

    def close(self) -> None:
        """Close the kept stat files of this process and its tasks."""
        for task in self.tasks.values():
            task.close()
        if self.stat_file is not None:
            self.stat_file.close()
            self.stat_file = None
            release_file_slot()

    def __enter__(self) -> Process:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __del__(self) -> None:
        with contextlib.suppress(Exception):
            self.close()


def compute_cpu_usage(process: Process, total_time: float, max_value: float) -> None:
    """Compute the CPU usage of ``process``, never above ``max_value``."""
    # Without previous values there is no reference yet: wait for the next cycle.
    if process.old_utime == 0 and process.old_stime == 0:
        return
    spent = max(process.utime - process.old_utime, 0) + max(process.stime - process.old_stime, 0)
    if total_time == 0:
        process.cpu_usage = max_value
        return
    process.cpu_usage = min(spent / total_time * 100.0, max_value)


def set_time(process: Process, utime: int, stime: int) -> None:
    """Store new user and system times, keeping the previous ones."""
    process.old_utime = process.utime
    process.old_stime = process.stime
    process.utime = utime
    process.stime = stime
    process.updated = True


def update_process_disk_activity(process: Process, path: str | os.PathLike[str]) -> None:
    """Read the ``io`` file of the process directory ``path``."""
    try:
        data = get_all_data(Path(path) / "io")
    except (OSError, UnicodeDecodeError):
        return
    done = 0
    for line in data.split("\n"):
        parts = line.split(": ")
        value = _parse_unsigned(parts[1], _U64_MAX) if len(parts) > 1 else None
        if parts[0] == "read_bytes":
            process.old_read_bytes = process.read_bytes
            process.read_bytes = value if value is not None else process.old_read_bytes
        elif parts[0] == "write_bytes":
            process.old_written_bytes = process.written_bytes
            process.written_bytes = value if value is not None else process.old_written_bytes
        else:
            continue
        done += 1
        if done > 1:
            break


def parse_stat_file(data: str) -> list[str]:
    """Split the content of a stat file into its fields.

    The command name (second field) may hold spaces and parentheses, so it
    runs up to the last ``)``. Raises ``ValueError`` on malformed content.
    """
    head = data.split(" ", 1)
    if len(head) < 2:
        raise ValueError("stat content has no command field")
    name, separator, rest = head[1].rpartition(")")
    if not separator:
        raise ValueError("stat content has no closing parenthesis")
    return [head[0], name.removeprefix("("), *rest.split()]


def parse_uid_and_gid(status_data: str) -> tuple[int, int] | None:
    """Return the effective uid and gid found in a status file.

    Raises ``ValueError`` if a ``Uid:`` or ``Gid:`` line appears twice.
    """

    def effective(line: str, prefix: str) -> int | None:
        if not line.startswith(prefix):
            return None
        fields = line.split()
        return _parse_unsigned(fields[2] if len(fields) > 2 else "0", _U32_MAX)

    uid = None
    gid = None
    for line in status_data.splitlines():
        if (value := effective(line, "Uid:")) is not None:
            if uid is not None:
                raise ValueError("duplicate Uid line")
            uid = value
        elif (value := effective(line, "Gid:")) is not None:
            if gid is not None:
                raise ValueError("duplicate Gid line")
            gid = value
        else:
            continue
        if uid is not None and gid is not None:
            break
    if uid is None or gid is None:
        return None
    return uid, gid


def read_null_separated(path: str | os.PathLike[str]) -> list[str]:
    """Return the NUL-terminated, non-empty strings of a file such as cmdline."""
    try:
        with open(path, "rb") as handle:
            data = handle.read(_CMDLINE_READ_SIZE)
    except OSError:
        return []
    out = []
    for chunk in data.split(b"\0")[:-1]:
        if not chunk:
            continue
        try:
            out.append(chunk.decode("utf-8").strip())
        except UnicodeDecodeError:
            continue
    return out


def _read_from_start(handle: BinaryIO) -> str:
    handle.seek(0)
    return handle.read().decode("utf-8")


def _keep_if_slot(handle: BinaryIO) -> BinaryIO | None:
    if acquire_file_slot():
        return handle
    handle.close()
    return None


def _stat_fields(data: str) -> list[str]:
    parts = parse_stat_file(data)
    if len(parts) < _STAT_MIN_FIELDS:
        raise ValueError("stat content has too few fields")
    return parts


def _status_from(part: str) -> ProcessStatus:
    return ProcessStatus.from_char(part[0]) if part else ProcessStatus.unknown(0)


def _insert_task(proc_list: Process, task: Process) -> None:
    previous = proc_list.tasks.get(task.pid)
    if previous is not None and previous is not task:
        previous.close()
    proc_list.tasks[task.pid] = task


def _update_time_and_memory(
    path: Path,
    entry: Process,
    parts: list[str],
    page_size_kb: int,
    parent_memory: int,
    parent_virtual_memory: int,
    uptime: int,
    clock_cycle: int,
    refresh_kind: ProcessRefreshKind,
) -> None:
    entry.memory = _u64_or_zero(parts[23]) * page_size_kb
    if entry.memory >= parent_memory:
        entry.memory -= parent_memory
    entry.virtual_memory = _u64_or_zero(parts[22])
    if entry.virtual_memory >= parent_virtual_memory:
        entry.virtual_memory -= parent_virtual_memory
    set_time(entry, _u64_or_zero(parts[13]), _u64_or_zero(parts[14]))
    entry.run_time = max(uptime - entry.start_time, 0)
    refresh_procs(
        entry, path / "task", page_size_kb, entry.pid, uptime, clock_cycle, refresh_kind
    )


def get_process_data(
    path: str | os.PathLike[str],
    proc_list: Process,
    page_size_kb: int,
    pid: int,
    uptime: int,
    clock_cycle: int,
    refresh_kind: ProcessRefreshKind,
) -> tuple[Process | None, int]:
    """Read the process directory ``path`` as a task of ``proc_list``.

    Known tasks are updated in place and ``(None, pid)`` is returned; a new
    one is returned as ``(process, pid)`` without being inserted. Raises
    ``ValueError`` when the directory name is not a pid (or equals ``pid``)
    or its content is malformed, and ``OSError`` when it cannot be read.
    """
    path = Path(path)
    found_pid = _parse_pid(path.name)
    if found_pid is None or found_pid == pid:
        raise ValueError(f"not a process directory: {path}")

    parent_memory = proc_list.memory
    parent_virtual_memory = proc_list.virtual_memory
    entry = proc_list.tasks.get(found_pid)
    if entry is not None:
        if entry.stat_file is not None:
            data = _read_from_start(entry.stat_file)
        else:
            handle = open(path / "stat", "rb", buffering=0)
            try:
                data = _read_from_start(handle)
            except BaseException:
                handle.close()
                raise
            entry.stat_file = _keep_if_slot(handle)
        parts = _stat_fields(data)
        entry.status = _status_from(parts[2])
        _update_time_and_memory(
            path, entry, parts, page_size_kb, parent_memory, parent_virtual_memory,
            uptime, clock_cycle, refresh_kind,
        )
        if refresh_kind.disk_usage:
            update_process_disk_activity(entry, path)
        return None, found_pid

    handle = open(path / "stat", "rb", buffering=0)
    try:
        parts = _stat_fields(_read_from_start(handle))
    except BaseException:
        handle.close()
        raise
    stat_file = _keep_if_slot(handle)

    if proc_list.pid != 0:
        parent_pid: int | None = proc_list.pid
    else:
        parsed = _parse_pid(parts[3])
        parent_pid = parsed if parsed else None

    start_time = _u64_or_zero(parts[21]) // clock_cycle
    process = Process(found_pid, parent_pid, start_time)
    process.stat_file = stat_file
    process.status = _status_from(parts[2])

    try:
        ids = parse_uid_and_gid(get_all_data(path / "status"))
    except (OSError, UnicodeDecodeError):
        ids = None
    if ids is not None:
        process.uid, process.gid = ids

    if proc_list.pid != 0:
        # A task shares these with the process that owns it.
        process.cmd = list(proc_list.cmd)
        process.name = proc_list.name
        process.environ = list(proc_list.environ)
        process.exe = proc_list.exe
        process.cwd = proc_list.cwd
        process.root = proc_list.root
    else:
        process.name = parts[1]
        process.cmd = read_null_separated(path / "cmdline")
        try:
            process.exe = Path(os.readlink(path / "exe"))
        except OSError:
            process.exe = Path(process.cmd[0]) if process.cmd else None
        process.environ = read_null_separated(path / "environ")
        process.cwd = realpath(path / "cwd")
        process.root = realpath(path / "root")

    _update_time_and_memory(
        path, process, parts, page_size_kb, proc_list.memory, proc_list.virtual_memory,
        uptime, clock_cycle, refresh_kind,
    )
    if refresh_kind.disk_usage:
        update_process_disk_activity(process, path)
    return process, found_pid


def refresh_procs(
    proc_list: Process,
    path: str | os.PathLike[str],
    page_size_kb: int,
    pid: int,
    uptime: int,
    clock_cycle: int,
    refresh_kind: ProcessRefreshKind,
) -> bool:
    """Read every process directory under ``path`` into ``proc_list.tasks``.

    For the top-level list (``pid == 0``) vanished processes are kept; for
    the tasks of a process they are removed. Returns ``False`` when ``path``
    cannot be listed.
    """
    try:
        entries = list(os.scandir(path))
    except OSError:
        return False
    folders = [Path(entry.path) for entry in entries if Path(entry.path).is_dir()]

    new_tasks: list[Process] = []
    updated_pids: set[int] = set()
    for folder in folders:
        try:
            process, found_pid = get_process_data(
                folder, proc_list, page_size_kb, pid, uptime, clock_cycle, refresh_kind
            )
        except (OSError, ValueError):
            continue
        updated_pids.add(found_pid)
        if process is not None:
            new_tasks.append(process)

    if pid != 0:
        for gone in [task_pid for task_pid in proc_list.tasks if task_pid not in updated_pids]:
            proc_list.tasks.pop(gone).close()

    for task in new_tasks:
        _insert_task(proc_list, task)
    return True