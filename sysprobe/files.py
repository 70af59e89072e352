"""Budget of file descriptors the library may keep open for process stat files.

To avoid exhausting descriptors, at most half of the system limit is used.
"""

from __future__ import annotations

import sys
import threading

try:
    import resource
except ImportError:  # pragma: no cover - platforms without rlimits
    resource = None  # type: ignore[assignment]

__all__ = [
    "max_open_files",
    "remaining_files",
    "set_open_files_limit",
    "acquire_file_slot",
    "release_file_slot",
]

# Most systems default to 1024 open files.
_DEFAULT_LIMIT = 1024


def _as_int(value: int) -> int:
    if resource is not None and value == resource.RLIM_INFINITY:
        return sys.maxsize
    return value


def _initial_remaining() -> int:
    if resource is None:
        return _DEFAULT_LIMIT // 2
    try:
        soft, hard = resource.getrlimit(resource.RLIMIT_NOFILE)
    except (OSError, ValueError):
        return _DEFAULT_LIMIT // 2
    # Raise the soft limit to the hard one, then keep half of it for ourselves.
    try:
        resource.setrlimit(resource.RLIMIT_NOFILE, (hard, hard))
    except (OSError, ValueError):
        return _as_int(soft) // 2
    return _as_int(hard) // 2


def max_open_files() -> int:
    """Return the largest number of files the library may keep open."""
    if resource is None:
        return _DEFAULT_LIMIT // 2
    try:
        _soft, hard = resource.getrlimit(resource.RLIMIT_NOFILE)
    except (OSError, ValueError):
        return _DEFAULT_LIMIT // 2
    return _as_int(hard) // 2


class _FileBudget:
    """Thread-safe counter of file slots still available."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._remaining: int | None = None

    def _current(self) -> int:
        if self._remaining is None:
            self._remaining = _initial_remaining()
        return self._remaining

    def remaining(self) -> int:
        with self._lock:
            return self._current()

    def set_limit(self, new_limit: int) -> bool:
        new_limit = max(new_limit, 0)
        maximum = max_open_files()
        new_limit = min(new_limit, maximum)
        with self._lock:
            # Files already open must still be accounted for once they close.
            diff = maximum - self._current()
            self._remaining = new_limit - diff
        return True

    def acquire(self) -> bool:
        with self._lock:
            current = self._current()
            if current > 0:
                self._remaining = current - 1
                return True
            return False

    def release(self) -> None:
        with self._lock:
            self._remaining = self._current() + 1


_BUDGET = _FileBudget()


def remaining_files() -> int:
    """Return how many more files may be kept open."""
    return _BUDGET.remaining()


def set_open_files_limit(new_limit: int) -> bool:
    """Change how many files may be kept open.

    The value is clamped between 0 and :func:`max_open_files`. Files that are
    already open are subtracted from the new limit. Returns ``True`` once the
    value has been set.
    """
    return _BUDGET.set_limit(new_limit)


def acquire_file_slot() -> bool:
    """Take one file slot; return ``False`` when none is left."""
    return _BUDGET.acquire()


def release_file_slot() -> None:
    """Give back a file slot taken with :func:`acquire_file_slot`."""
    _BUDGET.release()