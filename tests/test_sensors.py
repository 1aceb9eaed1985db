from __future__ import annotations

from pathlib import Path

from agents_mobile.lib.sensors import Sensors


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _fake_sysfs(root: Path) -> Path:
    _write(root / "class/thermal/thermal_zone0/temp", "-5000\n")
    _write(root / "class/thermal/thermal_zone1/temp", "200000\n")
    _write(root / "class/thermal/thermal_zone2/temp", "48500\n")
    _write(root / "class/thermal/thermal_zone3/temp", "61000\n")
    _write(root / "class/power_supply/battery/capacity", "55\n")
    _write(root / "class/power_supply/battery/status", "Discharging\n")
    _write(root / "devices/system/cpu/cpu0/cpufreq/scaling_cur_freq", "1804800\n")
    return root


def test_first_plausible_thermal_zone_wins(tmp_path: Path) -> None:
    assert Sensors(_fake_sysfs(tmp_path)).cpu_temp() == 48


def test_battery_and_frequency(tmp_path: Path) -> None:
    sensors = Sensors(_fake_sysfs(tmp_path))
    assert sensors.battery() == (55, "Discharging")
    assert sensors.cpu_freq_mhz() == 1804


def test_missing_sensors_degrade(tmp_path: Path) -> None:
    sensors = Sensors(tmp_path / "empty")
    assert sensors.cpu_temp() == 0
    assert sensors.battery() == (None, None)
    assert sensors.cpu_freq_mhz() == 0


def test_read_combines_everything(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(Sensors, "memory_percent", staticmethod(lambda: 42))
    monkeypatch.setattr(Sensors, "cpu_percent", staticmethod(lambda: 12.5))
    reading = Sensors(_fake_sysfs(tmp_path)).read()
    assert reading.temp_c == 48
    assert reading.battery_level == 55
    assert reading.memory_percent == 42
    assert reading.cpu_percent == 12.5
