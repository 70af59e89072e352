import shutil

from sysprobe.network import (
    NetworkData,
    Networks,
    read_counter,
    refresh_networks_list_from_sysfs,
)


def _write_stats(iface_dir, **counters):
    stats = iface_dir / "statistics"
    stats.mkdir(parents=True, exist_ok=True)
    for name, value in counters.items():
        (stats / name).write_text(f"{value}\n")


def test_refresh_networks_list_add_interface(tmp_path):
    (tmp_path / "itf1").mkdir()
    interfaces = {}
    refresh_networks_list_from_sysfs(interfaces, tmp_path)
    assert list(interfaces) == ["itf1"]

    (tmp_path / "itf2").mkdir()
    refresh_networks_list_from_sysfs(interfaces, tmp_path)
    assert sorted(interfaces) == ["itf1", "itf2"]


def test_refresh_networks_list_remove_interface(tmp_path):
    (tmp_path / "itf1").mkdir()
    (tmp_path / "itf2").mkdir()
    interfaces = {}
    refresh_networks_list_from_sysfs(interfaces, tmp_path)
    assert sorted(interfaces) == ["itf1", "itf2"]

    (tmp_path / "itf1").rmdir()
    refresh_networks_list_from_sysfs(interfaces, tmp_path)
    assert list(interfaces) == ["itf2"]


def test_missing_sysfs_dir_leaves_interfaces(tmp_path):
    interfaces = {"eth0": NetworkData()}
    refresh_networks_list_from_sysfs(interfaces, tmp_path / "missing")
    assert list(interfaces) == ["eth0"]


def test_read_counter_parses_leading_digits(tmp_path):
    (tmp_path / "rx_bytes").write_text("1234\n")
    assert read_counter(tmp_path, "rx_bytes") == 1234


def test_read_counter_non_numeric(tmp_path):
    (tmp_path / "rx_bytes").write_text("abc")
    assert read_counter(tmp_path, "rx_bytes") == 0


def test_read_counter_missing_file(tmp_path):
    assert read_counter(tmp_path, "nothing") == 0


def test_new_interface_has_no_delta(tmp_path):
    _write_stats(tmp_path / "eth0", rx_bytes=500, tx_bytes=300, rx_packets=5)
    interfaces = {}
    refresh_networks_list_from_sysfs(interfaces, tmp_path)
    data = interfaces["eth0"]
    assert data.total_received == 500
    assert data.total_transmitted == 300
    assert data.total_packets_received == 5
    assert data.received() == 0
    assert data.transmitted() == 0


def test_rescan_computes_deltas(tmp_path):
    iface = tmp_path / "eth0"
    _write_stats(iface, rx_bytes=500, tx_bytes=300)
    interfaces = {}
    refresh_networks_list_from_sysfs(interfaces, tmp_path)
    _write_stats(iface, rx_bytes=800, tx_bytes=350, rx_errors=2)
    refresh_networks_list_from_sysfs(interfaces, tmp_path)
    data = interfaces["eth0"]
    assert data.received() == 800 - 500
    assert data.transmitted() == 350 - 300
    assert data.errors_on_received() == 2
    assert data.updated is True


def test_update_counter_decrease_saturates(tmp_path):
    data = NetworkData(total_received=1000, total_packets_transmitted=50)
    _write_stats(tmp_path, rx_bytes=10, tx_packets=60)
    data.update(tmp_path / "statistics")
    assert data.received() == 0
    assert data.total_received == 10
    assert data.packets_transmitted() == 60 - 50


def test_networks_refresh_and_iteration(tmp_path):
    iface = tmp_path / "lo"
    _write_stats(iface, rx_bytes=100, tx_bytes=100, tx_errors=1)
    networks = Networks(tmp_path)
    networks.refresh_networks_list()
    assert [name for name, _ in networks] == ["lo"]

    _write_stats(iface, rx_bytes=250, tx_bytes=180, tx_errors=4, rx_packets=7, tx_packets=9)
    networks.refresh()
    data = networks["lo"]
    assert data.received() == 250 - 100
    assert data.transmitted() == 180 - 100
    assert data.errors_on_transmitted() == 4 - 1
    assert data.packets_received() == 7
    assert data.packets_transmitted() == 9


def test_networks_list_drops_removed(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    networks = Networks(tmp_path)
    networks.refresh_networks_list()
    assert len(networks) == 2
    shutil.rmtree(tmp_path / "a")
    networks.refresh_networks_list()
    assert [name for name, _ in networks] == ["b"]