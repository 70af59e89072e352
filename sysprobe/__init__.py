"""Linux system information: processes, processors, memory, disks, networks and sensors."""

__version__ = "0.1.0"

__all__ = [
    "component",
    "disk",
    "files",
    "network",
    "osinfo",
    "process",
    "processor",
    "system",
    "utils",
]