from __future__ import annotations

import logging
import os
import platform
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import psutil

from .command import command_exists, run_cmd

logger = logging.getLogger(__name__)

BUILD_PROP = Path("/system/build.prop")
PROC_VERSION = Path("/proc/version")
OS_RELEASE = Path("/etc/os-release")
DOCKERENV = Path("/.dockerenv")


def _read_text(path: Path) -> Optional[str]:
    try:
        txt = path.read_text(encoding="utf-8", errors="ignore").strip()
        return txt or None
    except OSError:
        return None


def parse_os_release(path: Path = OS_RELEASE) -> Dict[str, str]:
    """Parse /etc/os-release KEY=value lines (quotes stripped)."""

    out: Dict[str, str] = {}
    for line in (_read_text(path) or "").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        out[key.strip()] = value.strip().strip('"').strip("'")
    return out


def is_android() -> bool:
    return BUILD_PROP.exists()


def is_wsl() -> bool:
    return "microsoft" in (_read_text(PROC_VERSION) or "").lower()


def detect_os() -> str:
    """Android | WSL | macOS | Linux | Unknown."""

    if is_android():
        return "Android"
    if is_wsl():
        return "WSL"
    system = platform.system()
    if system == "Darwin":
        return "macOS"
    if system == "Linux":
        return "Linux"
    return "Unknown"


def os_detail(os_name: str) -> Optional[str]:
    """Version/distro string shown under the OS line of the report."""

    if os_name == "Android":
        r = run_cmd(["getprop", "ro.build.version.release"], check=False)
        return r.stdout.strip() or None
    if os_name == "WSL":
        r = run_cmd(["wsl.exe", "--version"], check=False)
        for line in r.stdout.splitlines():
            if "WSL version" in line:
                return line.split(":", 1)[-1].strip()
        return None
    if os_name == "macOS":
        r = run_cmd(["sw_vers", "-productVersion"], check=False)
        return r.stdout.strip() or None
    if os_name == "Linux":
        return parse_os_release().get("ID")
    return None


def has_root() -> bool:
    geteuid = getattr(os, "geteuid", None)
    if geteuid is not None and geteuid() == 0:
        return True
    return command_exists("su")


def is_root_user() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0


def human_bytes(n: float) -> str:
    for unit in ("B", "Ki", "Mi", "Gi"):
        if n < 1024:
            return f"{n:.1f}{unit}" if unit != "B" else f"{int(n)}B"
        n /= 1024
    return f"{n:.1f}Ti"


def bun_version() -> Optional[str]:
    if not command_exists("bun"):
        return None
    r = run_cmd(["bun", "--version"], check=False)
    return r.stdout.strip() or None


def detect_environment(
    *,
    chroot_dir: Path,
    environ: Optional[Mapping[str, str]] = None,
) -> str:
    """Classify where we run; drives launcher and stop routing."""

    env = os.environ if environ is None else environ
    if env.get("TERMUX_VERSION"):
        if (chroot_dir / "etc/os-release").exists() or chroot_dir.is_dir():
            return "termux-chroot"
        if command_exists("proot-distro"):
            return "termux-proot"
        return "termux-native"
    if DOCKERENV.exists():
        return "docker"
    if is_wsl():
        return "wsl"
    system = platform.system()
    if system == "Darwin":
        return "macos"
    if system == "Linux":
        return "linux"
    return "unknown"


def collect_report() -> Dict[str, Any]:
    os_name = detect_os()
    bun = bun_version()
    report: Dict[str, Any] = {
        "timestamp": datetime.now().astimezone().isoformat(timespec="seconds"),
        "os": os_name,
        "os_detail": os_detail(os_name),
        "arch": platform.machine() or "unknown",
        "root": "Yes" if has_root() else "No",
        "cpu_cores": os.cpu_count() or "Unknown",
        "total_ram": human_bytes(psutil.virtual_memory().total),
        "bun_installed": f"Yes (v{bun})" if bun else "No",
    }
    logger.info("Detection: %s", report)
    return report


def recommend(report: Mapping[str, Any]) -> Dict[str, Any]:
    """Pick the install mode for a detection report."""

    os_name = report.get("os")
    if os_name == "Android":
        if report.get("root") == "Yes":
            return {
                "mode": "root",
                "alternative": "proot",
                "note": "Root chroot gives the best performance",
            }
        return {
            "mode": "proot",
            "alternative": None,
            "note": "For best performance, consider rooting your device",
        }
    if os_name in {"WSL", "Linux", "macOS"}:
        return {"mode": "desktop", "alternative": None, "note": None}
    return {
        "mode": "manual",
        "alternative": None,
        "note": "Unknown OS - manual installation may be required",
    }
