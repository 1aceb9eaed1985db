from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import psutil

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reading:
    temp_c: int
    battery_level: Optional[int]
    battery_status: Optional[str]
    cpu_freq_mhz: int
    memory_percent: int
    cpu_percent: float


def _read_int(path: Path) -> Optional[int]:
    try:
        return int(path.read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return None


class Sensors:
    """Sample thermal, battery, CPU and memory signals.

    All sysfs paths hang off sysfs_root so tests (and odd kernels) can point
    it elsewhere. Unreadable sensors degrade to 0 / None, never raise.
    """

    def __init__(self, sysfs_root: Path = Path("/sys")):
        self.sysfs_root = sysfs_root

    def cpu_temp(self) -> int:
        # Zones are in millidegrees; skip the ones reporting nonsense.
        zones = sorted((self.sysfs_root / "class/thermal").glob("thermal_zone*/temp"))
        for zone in zones:
            raw = _read_int(zone)
            if raw is None:
                continue
            temp = raw // 1000
            if 0 < temp < 150:
                return temp
        return 0

    def battery(self) -> Tuple[Optional[int], Optional[str]]:
        base = self.sysfs_root / "class/power_supply/battery"
        if not base.is_dir():
            return None, None
        level = _read_int(base / "capacity")
        try:
            status = (base / "status").read_text(encoding="utf-8").strip() or None
        except OSError:
            status = None
        return level, status

    def cpu_freq_mhz(self) -> int:
        khz = _read_int(self.sysfs_root / "devices/system/cpu/cpu0/cpufreq/scaling_cur_freq")
        return (khz or 0) // 1000

    @staticmethod
    def memory_percent() -> int:
        return int(psutil.virtual_memory().percent)

    @staticmethod
    def cpu_percent() -> float:
        return float(psutil.cpu_percent(interval=None))

    def read(self) -> Reading:
        level, status = self.battery()
        return Reading(
            temp_c=self.cpu_temp(),
            battery_level=level,
            battery_status=status,
            cpu_freq_mhz=self.cpu_freq_mhz(),
            memory_percent=self.memory_percent(),
            cpu_percent=self.cpu_percent(),
        )
