"""Temperature sensors read from hwmon and thermal zones."""

from __future__ import annotations

import os
import re
from collections import defaultdict
from pathlib import Path

__all__ = ["Component", "scan_hwmon_folder", "get_components"]

_DEFAULT_HWMON_ROOT = "/sys/class/hwmon"
_DEFAULT_THERMAL_FILE = "/sys/class/thermal/thermal_zone0/temp"
_SENSOR_ID = re.compile(r"[0-9]+")
_U32_MAX = 2**32 - 1


def _read_file(path: Path) -> str | None:
    try:
        with open(path, encoding="utf-8", newline="") as handle:
            return handle.read()
    except (OSError, UnicodeDecodeError):
        return None


def _parse_millidegrees(text: str) -> float:
    """Convert a millidegree reading to degrees Celsius."""
    try:
        value = float(text.replace("\n", ""))
    except ValueError:
        value = 100_000.0
    return value / 1000.0


class Component:
    """A temperature sensor backed by an input file."""

    def __init__(
        self,
        label: str,
        input_file: str | os.PathLike[str],
        max: float | None = None,
        critical: float | None = None,
    ) -> None:
        self.label = label
        self.input_file = Path(input_file)
        self.max = max if max is not None else 0.0
        self.critical = critical
        self.temperature = 0.0
        self.refresh()

    def refresh(self) -> None:
        """Read the current temperature, raising ``max`` if it is exceeded."""
        content = _read_file(self.input_file)
        if content is None:
            return
        self.temperature = _parse_millidegrees(content)
        if self.temperature > self.max:
            self.max = self.temperature

    def __repr__(self) -> str:
        return (
            f"Component(label={self.label!r}, temperature={self.temperature}, "
            f"max={self.max}, critical={self.critical})"
        )


def _sensor_suffixes(folder: Path) -> dict[int, list[str]]:
    matchings: dict[int, list[str]] = defaultdict(list)
    try:
        entries = list(os.scandir(folder))
    except OSError:
        return {}
    for entry in entries:
        name = entry.name
        if Path(entry.path).is_dir() or not name.startswith("temp"):
            continue
        parts = name.split("_")
        digits = parts[0][4:]
        if not _SENSOR_ID.fullmatch(digits):
            continue
        sensor_id = int(digits)
        if sensor_id > _U32_MAX:
            continue
        matchings[sensor_id].append(f"_{parts[1]}" if len(parts) > 1 else "")
    return matchings


def scan_hwmon_folder(folder: str | os.PathLike[str]) -> list[Component]:
    """Return the labelled temperature sensors found in one hwmon folder."""
    folder = Path(folder)
    components = []
    for key, suffixes in sorted(_sensor_suffixes(folder).items()):
        found_input = None
        found_label = None
        for pos, suffix in enumerate(suffixes):
            # Raspberry Pi exposes the input file without a suffix.
            if suffix in ("_input", ""):
                found_input = pos
            elif suffix == "_label":
                found_label = pos
        if found_label is None or found_input is None:
            continue
        p_input = folder / f"temp{key}{suffixes[found_input]}"
        if not p_input.is_file():
            continue
        label_text = _read_file(folder / f"temp{key}_label")
        if label_text is None:
            label_text = f"Component {key}"
        label = label_text.replace("\n", "")
        max_text = _read_file(folder / f"temp{key}_max")
        crit_text = _read_file(folder / f"temp{key}_crit")
        components.append(
            Component(
                label,
                p_input,
                _parse_millidegrees(max_text) if max_text is not None else None,
                _parse_millidegrees(crit_text) if crit_text is not None else None,
            )
        )
    return components


def get_components(
    hwmon_root: str | os.PathLike[str] = _DEFAULT_HWMON_ROOT,
    thermal_file: str | os.PathLike[str] = _DEFAULT_THERMAL_FILE,
) -> list[Component]:
    """Return every temperature sensor, sorted by label, then the thermal zone."""
    components: list[Component] = []
    try:
        entries = list(os.scandir(hwmon_root))
    except OSError:
        entries = None
    if entries is not None:
        for entry in entries:
            path = Path(entry.path)
            if not path.is_dir() or not entry.name.startswith("hwmon"):
                continue
            components.extend(scan_hwmon_folder(path))
        components.sort(key=lambda c: c.label.lower())
    thermal_path = Path(thermal_file)
    if thermal_path.is_file():
        components.append(Component("CPU", thermal_path))
    return components