import os
import shutil

import pytest

from sysprobe.process import ProcessRefreshKind, ProcessStatus
from sysprobe.system import RefreshKind, System, get_current_pid

STAT_1 = (
    "cpu  100 0 50 800 0 0 0 0 0 0\n"
    "cpu0 50 0 25 400 0 0 0 0 0 0\n"
    "cpu1 50 0 25 400 0 0 0 0 0 0\n"
    "intr 1\n"
    "btime 1600000000\n"
)
STAT_2 = (
    "cpu  200 0 100 900 0 0 0 0 0 0\n"
    "cpu0 100 0 50 450 0 0 0 0 0 0\n"
    "cpu1 100 0 50 450 0 0 0 0 0 0\n"
    "intr 1\n"
    "btime 1600000000\n"
)
CPUINFO = (
    "processor\t: 0\n"
    "vendor_id\t: GenuineIntel\n"
    "model name\t: Test CPU\n"
    "cpu MHz\t\t: 2400.000\n"
    "physical id\t: 0\n"
    "core id\t\t: 0\n"
    "\n"
    "processor\t: 1\n"
    "vendor_id\t: GenuineIntel\n"
    "model name\t: Test CPU\n"
    "cpu MHz\t\t: 2400.000\n"
    "physical id\t: 0\n"
    "core id\t\t: 1\n"
)
MEMINFO = (
    "MemTotal:       1000 kB\n"
    "MemFree:         250 kB\n"
    "MemAvailable:    500 kB\n"
    "Buffers:         125 kB\n"
    "Cached:          125 kB\n"
    "SReclaimable:      0 kB\n"
    "SwapTotal:       500 kB\n"
    "SwapFree:        125 kB\n"
)
PROC_STAT = "42 (my proc) S 1 42 42 0 -1 0 0 0 0 0 10 5 0 0 20 0 1 0 500 8192 3\n"
PROC_STATUS = "Name:\tmy proc\nUid:\t1000\t1001\t1000\t1000\nGid:\t100\t101\t100\t100\n"


@pytest.fixture
def root(tmp_path):
    proc = tmp_path / "proc"
    proc.mkdir()
    (proc / "stat").write_text(STAT_1)
    (proc / "cpuinfo").write_text(CPUINFO)
    (proc / "meminfo").write_text(MEMINFO)
    (proc / "uptime").write_text("12345.67 100.00\n")
    (proc / "loadavg").write_text("0.50 1.00 1.50 1/100 123\n")
    pdir = proc / "42"
    pdir.mkdir()
    (pdir / "stat").write_text(PROC_STAT)
    (pdir / "status").write_text(PROC_STATUS)
    (pdir / "cmdline").write_bytes(b"/usr/bin/myproc\0--flag\0")
    etc = tmp_path / "etc"
    etc.mkdir()
    (etc / "os-release").write_text('NAME="Ubuntu"\nVERSION_ID="20.10"\n')
    return tmp_path


def test_new_system_is_empty(root):
    s = System(root=root)
    assert s.total_memory == 0
    assert s.free_memory == 0
    assert s.available_memory == 0
    assert s.used_memory() == 0
    assert s.total_swap == 0
    assert s.free_swap == 0
    assert s.used_swap() == 0
    assert s.processors == []
    assert s.processes == {}


def test_refresh_memory(root):
    s = System(root=root)
    s.refresh_memory()
    assert s.total_memory == 1024
    assert s.free_memory == 256
    assert s.available_memory == 512
    assert s.used_memory() == 512
    assert s.total_swap == 512
    assert s.free_swap == 128
    assert s.used_swap() == 384


def test_refresh_system_invariants(root):
    s = System(root=root)
    s.refresh_system()
    assert s.total_memory >= s.free_memory
    assert s.total_swap >= s.free_swap
    assert s.total_memory > 0


def test_refresh_cpu(root):
    s = System(root=root)
    s.refresh_cpu()
    assert [p.name for p in s.processors] == ["cpu0", "cpu1"]
    assert s.global_processor.name == "cpu"
    assert s.global_processor.vendor_id == "GenuineIntel"
    assert s.global_processor.brand == "Test CPU"
    assert s.global_processor.frequency == 2400
    assert all(p.frequency == 2400 for p in s.processors)
    assert 0.0 <= s.global_processor.cpu_usage <= 100.0


def test_cpu_usage_after_second_refresh(root):
    s = System(root=root)
    s.refresh_cpu()
    (root / "proc" / "stat").write_text(STAT_2)
    s.refresh_cpu()
    assert s.global_processor.cpu_usage == pytest.approx(60.0)
    assert s.processors[0].cpu_usage == pytest.approx(60.0)


def test_physical_core_count(root):
    s = System(root=root)
    assert s.physical_core_count() == 2
    s.refresh_cpu()
    assert s.physical_core_count() <= len(s.processors)


def test_physical_core_count_missing_cpuinfo(tmp_path):
    s = System(root=tmp_path)
    assert s.physical_core_count() is None


def test_boot_time_uptime_and_load(root):
    s = System(root=root)
    assert s.boot_time == 1600000000
    assert s.uptime() == 12345
    load = s.load_average()
    assert (load.one, load.five, load.fifteen) == (0.5, 1.0, 1.5)


def test_os_names(root):
    s = System(root=root)
    assert s.name() == "Ubuntu"
    assert s.os_version() == "20.10"
    assert s.long_os_version() == "Linux 20.10 Ubuntu"


def test_os_names_lsb_fallback(tmp_path):
    etc = tmp_path / "etc"
    etc.mkdir()
    (etc / "lsb-release").write_text("DISTRIB_ID=Ubuntu\nDISTRIB_RELEASE=20.10\n")
    s = System(root=tmp_path)
    assert s.name() == "Ubuntu"
    assert s.os_version() == "20.10"


def test_refresh_process(root):
    s = System(root=root)
    assert s.processes == {}
    assert s.refresh_process(42) is True
    assert s.refresh_process(42) is True
    p = s.process(42)
    assert p.name == "my proc"
    assert p.cmd == ["/usr/bin/myproc", "--flag"]
    assert str(p.exe) == "/usr/bin/myproc"
    assert p.parent == 1
    assert (p.uid, p.gid) == (1001, 101)
    assert p.status == ProcessStatus.SLEEP
    assert p.virtual_memory == 8192


def test_refresh_process_missing(root):
    s = System(root=root)
    assert s.refresh_process(999) is False
    assert s.process(999) is None


def test_refresh_process_without_cpu_marks_not_updated(root):
    s = System(root=root)
    assert s.refresh_process_specifics(42, ProcessRefreshKind()) is True
    assert s.process(42).updated is False


def test_refresh_processes_adds_and_removes(root):
    s = System(root=root)
    s.refresh_processes()
    assert list(s.processes) == [42]
    assert all(p.cpu_usage == 0.0 for p in s.processes.values())
    shutil.rmtree(root / "proc" / "42")
    s.refresh_processes()
    assert s.processes == {}


def test_refresh_specifics_everything(root):
    s = System(RefreshKind.everything(), root=root)
    assert s.total_memory == 1024
    assert len(s.processors) == 2
    assert 42 in s.processes
    assert len(s.networks) == 0
    assert s.components == []


def test_refresh_kind_everything():
    kind = RefreshKind.everything()
    assert kind.processes == ProcessRefreshKind(cpu=True, disk_usage=True)
    assert kind.memory and kind.cpu and kind.disks_list and kind.networks_list


def test_current_pid():
    assert get_current_pid() == os.getpid()


def test_hostname_has_no_nuls():
    s = System(root="/nonexistent-root")
    assert "\0" not in (s.host_name() or "")