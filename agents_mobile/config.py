from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .lib.env import Paths, home

DEFAULT_REPO_URL = "https://github.com/Deivisan/Agents-Mobile.git"
DEFAULT_PID_FILE = "/tmp/mobile-watchdog.pid"

# env var -> (section, key, cast)
_ENV_OVERRIDES = {
    "AGENTS_MOBILE_ROOT": ("paths", "root", str),
    "CHROOT_DIR": ("paths", "chroot_dir", str),
    "AGENTS_MOBILE_CHROOT": ("paths", "chroot_dir", str),
    "DISTRO": ("install", "distro", str),
    "AGENTS_MOBILE_DISTRO": ("install", "distro", str),
    "INTERVAL": ("watchdog", "interval", float),
    "TEMP_THRESHOLD": ("watchdog", "temp_threshold", int),
    "TEMP_CRITICAL": ("watchdog", "temp_critical", int),
    "BATTERY_LOW": ("watchdog", "battery_low", int),
}


@dataclass(frozen=True)
class Settings:
    raw: Dict[str, Any]

    def _section(self, name: str) -> Dict[str, Any]:
        return self.raw.get(name) or {}

    @property
    def root(self) -> Path:
        return Path(self._section("paths").get("root") or home() / ".agents-mobile").expanduser()

    @property
    def paths(self) -> Paths:
        return Paths(root=self.root)

    @property
    def chroot_dir(self) -> Path:
        return Path(self._section("paths").get("chroot_dir") or "/data/local/mnt/arch")

    @property
    def arch_rootfs_dir(self) -> Path:
        """Rootfs unpacked by the root installer."""
        return Path(self._section("paths").get("arch_rootfs_dir") or home() / "arch-chroot").expanduser()

    @property
    def distro(self) -> str:
        return str(self._section("install").get("distro") or "arch")

    @property
    def repo_url(self) -> str:
        return str(self._section("install").get("repo_url") or DEFAULT_REPO_URL)

    @property
    def interval(self) -> float:
        return float(self._section("watchdog").get("interval", 5))

    @property
    def temp_threshold(self) -> int:
        return int(self._section("watchdog").get("temp_threshold", 75))

    @property
    def temp_critical(self) -> int:
        return int(self._section("watchdog").get("temp_critical", 85))

    @property
    def battery_low(self) -> int:
        return int(self._section("watchdog").get("battery_low", 20))

    @property
    def memory_high(self) -> int:
        return int(self._section("watchdog").get("memory_high", 90))

    @property
    def hysteresis(self) -> int:
        return int(self._section("watchdog").get("hysteresis", 5))

    @property
    def process_pattern(self) -> str:
        return str(self._section("watchdog").get("process_pattern") or "bun")

    @property
    def throttle_cpus(self) -> List[int]:
        # Snapdragon 695: cores 0-5 are the A55 efficiency cluster
        return parse_cpu_list(str(self._section("watchdog").get("throttle_cpus") or "0-5"))

    @property
    def all_cpus(self) -> List[int]:
        spec = self._section("watchdog").get("all_cpus")
        if spec:
            return parse_cpu_list(str(spec))
        return list(range(os.cpu_count() or 1))

    @property
    def kill_grace(self) -> float:
        return float(self._section("watchdog").get("kill_grace", 2))

    @property
    def pid_file(self) -> Path:
        return Path(self._section("watchdog").get("pid_file") or DEFAULT_PID_FILE)

    @property
    def sysfs_root(self) -> Path:
        return Path(self._section("watchdog").get("sysfs_root") or "/sys")


def parse_cpu_list(spec: str) -> List[int]:
    """Parse a taskset-style CPU list such as ``0-3,6``."""

    cpus: List[int] = []
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            lo, hi = part.split("-", 1)
            cpus.extend(range(int(lo), int(hi) + 1))
        else:
            cpus.append(int(part))
    return sorted(set(cpus))


def _load_yaml(path: Path) -> Dict[str, Any]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must contain a mapping/object")
    for section, value in list(raw.items()):
        if value is None:
            raw[section] = {}
        elif not isinstance(value, dict):
            raise ValueError(f"{path}: section '{section}' must be a mapping/object")
    return raw


def load_settings(
    path: Optional[str] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Defaults, then the YAML config file, then environment variables."""

    env = os.environ if environ is None else environ
    raw: Dict[str, Any] = {}

    env_root = env.get("AGENTS_MOBILE_ROOT")
    root = Path(env_root).expanduser() if env_root else home() / ".agents-mobile"
    config_path = Path(path or env.get("AGENTS_MOBILE_CONFIG") or root / "config.yaml")
    if path and not config_path.exists():
        raise FileNotFoundError(str(config_path))
    if config_path.exists():
        raw = _load_yaml(config_path)

    for var, (section, key, cast) in _ENV_OVERRIDES.items():
        value = env.get(var)
        if value in (None, ""):
            continue
        try:
            raw.setdefault(section, {})[key] = cast(value)
        except ValueError as e:
            raise ValueError(f"Invalid value for {var}: {value!r}") from e

    return Settings(raw=raw)
