import pytest

from sysprobe.component import Component, get_components, scan_hwmon_folder


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return path


def test_component_reads_millidegrees(tmp_path):
    sensor = _write(tmp_path / "temp", "45000\n")
    comp = Component("CPU", sensor)
    assert comp.temperature == pytest.approx(45.0)


def test_component_unparsable_value_uses_fallback(tmp_path):
    sensor = _write(tmp_path / "temp", "garbage\n")
    comp = Component("CPU", sensor)
    assert comp.temperature == pytest.approx(100.0)


def test_component_max_follows_temperature_when_absent(tmp_path):
    sensor = _write(tmp_path / "temp", "30000")
    comp = Component("CPU", sensor)
    assert comp.max == comp.temperature


def test_component_max_kept_when_higher(tmp_path):
    sensor = _write(tmp_path / "temp", "30000")
    comp = Component("CPU", sensor, max=1000.0, critical=2000.0)
    assert comp.max == 1000.0
    assert comp.critical == 2000.0
    assert comp.temperature < comp.max


def test_component_refresh_tracks_changes(tmp_path):
    sensor = _write(tmp_path / "temp", "20000")
    comp = Component("CPU", sensor)
    first = comp.temperature
    _write(sensor, "60000")
    comp.refresh()
    assert comp.temperature > first
    assert comp.max == comp.temperature
    _write(sensor, "10000")
    comp.refresh()
    assert comp.temperature < first
    assert comp.max > comp.temperature


def test_component_missing_file_keeps_values(tmp_path):
    sensor = _write(tmp_path / "temp", "20000")
    comp = Component("CPU", sensor)
    before = comp.temperature
    sensor.unlink()
    comp.refresh()
    assert comp.temperature == before


def test_component_without_file_starts_at_zero(tmp_path):
    comp = Component("Ghost", tmp_path / "missing")
    assert comp.temperature == 0.0
    assert comp.max == 0.0
    assert comp.critical is None


def test_scan_full_sensor(tmp_path):
    _write(tmp_path / "temp1_input", "50000\n")
    _write(tmp_path / "temp1_label", "Core 0\n")
    _write(tmp_path / "temp1_max", "50000\n")
    _write(tmp_path / "temp1_crit", "90000\n")
    components = scan_hwmon_folder(tmp_path)
    assert len(components) == 1
    comp = components[0]
    assert comp.label == "Core 0"
    assert comp.input_file == tmp_path / "temp1_input"
    assert comp.max == comp.temperature
    assert comp.critical > comp.temperature


def test_scan_requires_label(tmp_path):
    _write(tmp_path / "temp2_input", "50000")
    assert scan_hwmon_folder(tmp_path) == []


def test_scan_requires_input(tmp_path):
    _write(tmp_path / "temp3_label", "Orphan")
    assert scan_hwmon_folder(tmp_path) == []


def test_scan_accepts_input_without_suffix(tmp_path):
    _write(tmp_path / "temp1", "40000")
    _write(tmp_path / "temp1_label", "Board")
    components = scan_hwmon_folder(tmp_path)
    assert [c.label for c in components] == ["Board"]
    assert components[0].input_file == tmp_path / "temp1"
    assert components[0].critical is None


def test_scan_ignores_unrelated_entries(tmp_path):
    _write(tmp_path / "fan1_input", "1200")
    _write(tmp_path / "fan1_label", "Fan")
    (tmp_path / "temp9_input").mkdir()
    _write(tmp_path / "temp9_label", "Dir")
    _write(tmp_path / "tempx_input", "1000")
    _write(tmp_path / "tempx_label", "Bad id")
    assert scan_hwmon_folder(tmp_path) == []


def test_scan_missing_folder(tmp_path):
    assert scan_hwmon_folder(tmp_path / "missing") == []


def test_get_components_sorts_and_appends_thermal(tmp_path):
    root = tmp_path / "hwmon"
    first = root / "hwmon0"
    second = root / "hwmon1"
    ignored = root / "other0"
    for folder in (first, second, ignored):
        folder.mkdir(parents=True)
    _write(first / "temp1_input", "30000")
    _write(first / "temp1_label", "b sensor")
    _write(second / "temp1_input", "30000")
    _write(second / "temp1_label", "A sensor")
    _write(ignored / "temp1_input", "30000")
    _write(ignored / "temp1_label", "ignored")
    thermal = _write(tmp_path / "thermal_temp", "30000")

    components = get_components(root, thermal)
    assert [c.label for c in components] == ["A sensor", "b sensor", "CPU"]
    assert components[-1].input_file == thermal


def test_get_components_nothing_available(tmp_path):
    assert get_components(tmp_path / "none", tmp_path / "no_thermal") == []


def test_get_components_thermal_only(tmp_path):
    thermal = _write(tmp_path / "thermal_temp", "25000")
    components = get_components(tmp_path / "none", thermal)
    assert [c.label for c in components] == ["CPU"]
    assert components[0].max == components[0].temperature