# sysprobe

sysprobe reads the state of a Linux machine from `/proc`, `/sys` and `/etc`. It reports:

- processes and their threads (tasks)
- processor usage, frequency, vendor and brand
- memory and swap
- mounted disks, their sizes, and whether they are rotational or removable
- network interface counters
- temperature sensors (hwmon and the first thermal zone)
- operating-system name and version, kernel release, host name, uptime, boot time and load average

It depends only on the standard library.

## Installation

```
pip install .
```

## Usage

```python
from sysprobe.system import System, get_current_pid

system = System.new_all()

print("OS:", system.name(), system.os_version())
print("Kernel:", system.kernel_version())
print("Host:", system.host_name())
print("Uptime (s):", system.uptime())
print("Boot time:", system.boot_time)
print("Total memory (kB):", system.total_memory)
print("Used memory (kB):", system.used_memory())
print("Used swap (kB):", system.used_swap())
print("Physical cores:", system.physical_core_count())

load = system.load_average()
print("Load:", load.one, load.five, load.fifteen)

for processor in system.processors:
    print(processor.name, processor.frequency, processor.cpu_usage)

for disk in system.disks:
    print(disk.name, disk.mount_point, disk.disk_type, disk.total_space, disk.available_space)

for name, data in system.networks:
    print(name, data.received(), data.total_received)

for component in system.components:
    print(component.label, component.temperature, component.max, component.critical)

me = system.process(get_current_pid())
if me is not None:
    print(me.name, me.status, me.memory, me.disk_usage())
```

Memory and swap figures are read from `/proc/meminfo` and given in kilobytes (bytes divided by 1000).

### Refreshing

A `System` keeps the values of its last refresh until it is refreshed again. `System()` refreshes nothing; `System.new_all()` refreshes everything. Refresh only the parts you need:

- `refresh_memory`
- `refresh_cpu`
- `refresh_processes`, `refresh_processes_specifics(refresh_kind)`
- `refresh_process(pid)`, `refresh_process_specifics(pid, refresh_kind)`
- `refresh_disks_list`, `refresh_disks`
- `refresh_networks_list`, `refresh_networks`
- `refresh_components_list`, `refresh_components`
- `refresh_system` (memory, CPUs and components)
- `refresh_all` (the above, plus processes, disks and networks)

The `*_list` methods discover disks, interfaces and sensors. The methods without `_list` only update what has already been discovered, so call the list form at least once first.

`RefreshKind` chooses what `refresh_specifics` and the `System` constructor refresh. `RefreshKind.everything()` selects every part. `ProcessRefreshKind` chooses whether a process refresh also computes CPU usage (`cpu`) and disk activity (`disk_usage`).

CPU usage is computed from the difference between two refreshes. Refresh at least twice, a short time apart, before you read a usage figure. The same holds for the per-refresh network and disk-activity figures.

### Reading another root

`System(root=...)` looks up `proc`, `sys/class` and `etc` under a directory other than `/`. This is useful for tests and for mounted system images. The disk list, the host name and the kernel release are always read from the running system.

### Lower-level modules

The functions behind `System` can be used on their own:

- `sysprobe.processor`: `get_cpu_frequency`, `get_physical_core_count` and `get_vendor_id_and_brand`. Each takes the paths to read.
- `sysprobe.network`: `Networks`, `refresh_networks_list_from_sysfs` and `read_counter`.
- `sysprobe.disk`: `parse_mounts`, `find_type_for_device_name`, `new_disk` and `get_all_disks`.
- `sysprobe.component`: `scan_hwmon_folder` and `get_components`.
- `sysprobe.osinfo`: `get_system_info_linux`, `parse_meminfo`, `boot_time`, `read_uptime` and `read_load_average`.
- `sysprobe.process`: `parse_stat_file`, `parse_uid_and_gid`, `read_null_separated`, `get_process_data` and `refresh_procs`.

A `Process` can be sent a signal with `kill()` (SIGKILL) or `kill_with(Signal.TERM)` and the like. `kill_with` returns `None` when the platform lacks the signal.

### Open file limit

sysprobe keeps each process's `stat` file open between refreshes. A budget, half of the process's descriptor limit, caps how many it keeps open. When the budget is first used, the soft descriptor limit is raised to the hard one. To change the budget, call this before you first refresh processes:

```python
from sysprobe.files import remaining_files, set_open_files_limit

set_open_files_limit(10)
print(remaining_files())
```

The new limit is clamped between 0 and `max_open_files()`. `Process.close()`, or leaving a `with` block on a process, gives its files back.

## What it does not do

- It works on Linux only. It reads nothing from other operating systems.
- It does not list user accounts.
- It has no command-line tool. It is a library to import.

## Running the tests

```
pip install .[test]
pytest
```