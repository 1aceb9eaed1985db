"""Stop Agents-Mobile: kill workloads, unmount the chroot, clean up, save state."""
from __future__ import annotations

import argparse
import glob
import logging
import os
import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import psutil

from . import console
from .config import Settings
from .lib.command import command_exists
from .lib.detect import bun_version, is_root_user
from .lib.env import TEMP_GLOB, home
from .lib.mounts import UNMOUNT_ORDER, unmount_all
from .lib.procs import describe, find_processes, terminate_then_kill
from .logging_utils import configure_logging
from .state_store import write_json_snapshot

logger = logging.getLogger(__name__)


def detect_stop_environment(chroot_dir: Path, environ: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if environ is None else environ
    if not env.get("TERMUX_VERSION"):
        return "desktop"
    if chroot_dir.is_dir() and is_root_user():
        return "termux-chroot"
    if command_exists("proot-distro"):
        return "termux-proot"
    return "termux-native"


def format_uptime(seconds: float) -> str:
    """Render like ``uptime -p``: ``up 2 days, 3 hours, 5 minutes``."""

    minutes = int(seconds // 60)
    days, minutes = divmod(minutes, 24 * 60)
    hours, minutes = divmod(minutes, 60)
    parts = []
    for value, unit in ((days, "day"), (hours, "hour"), (minutes, "minute")):
        if value:
            parts.append(f"{value} {unit}{'s' if value != 1 else ''}")
    return "up " + (", ".join(parts) if parts else "0 minutes")


def temp_targets(settings: Settings) -> List[Path]:
    targets = [settings.paths.tmp_dir]
    targets.extend(Path(p) for p in sorted(glob.glob(TEMP_GLOB)))
    targets.append(home() / ".cache" / "agents-mobile")
    return targets


class Stopper:
    def __init__(self, settings: Settings, log_path: str, *, pattern: Optional[str] = None):
        self.settings = settings
        self.log_path = log_path
        self.pattern = pattern or settings.process_pattern
        self.environment = "unknown"
        self.summary: Dict[str, Any] = {}

    def detect(self) -> None:
        self.environment = detect_stop_environment(self.settings.chroot_dir)
        console.info(f"Environment: {self.environment}")
        logger.info("Environment: %s", self.environment)

    def kill_processes(self) -> None:
        console.step(1, 5, f"Checking for {self.pattern} processes...")
        procs = find_processes(self.pattern)
        if not procs:
            console.ok(f"No {self.pattern} processes running")
            self.summary["killed"] = []
            return
        console.warn(f"Found running {self.pattern} processes")
        for proc in procs:
            line = describe(proc)
            console.console.print(f"  - {line}")
            logger.info("Stopping %s", line)
        result = terminate_then_kill(procs, grace=self.settings.kill_grace)
        if result.killed:
            console.warn(f"Some processes didn't exit, forced: {result.killed}")
        console.ok(f"{self.pattern} processes stopped")
        self.summary["killed"] = result.terminated + result.killed

    def unmount(self) -> None:
        if self.environment != "termux-chroot":
            console.step(2, 5, "Skipping chroot unmount (not applicable)")
            return
        console.step(2, 5, "Unmounting chroot filesystems...")
        chroot_dir = self.settings.chroot_dir
        if not chroot_dir.is_dir():
            console.warn("Chroot directory not found")
            return
        outcome = unmount_all(chroot_dir, UNMOUNT_ORDER)
        for target, result in outcome.items():
            if result == "failed":
                console.fail(f"Failed to unmount {chroot_dir / target}")
            else:
                console.ok(f"Unmounted {target} ({result})")
        self.summary["unmounted"] = outcome
        console.ok("Chroot unmount complete")

    def clean_temp(self) -> None:
        console.step(3, 5, "Cleaning temporary files...")
        cleaned = []
        for target in temp_targets(self.settings):
            if not target.exists():
                continue
            console.info(f"Cleaning {target}...")
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target, ignore_errors=True)
            else:
                try:
                    target.unlink()
                except OSError as e:
                    logger.warning("Could not remove %s: %s", target, e)
            cleaned.append(str(target))
        self.summary["cleaned"] = cleaned
        console.ok("Temporary files cleaned")

    def save_state(self) -> Path:
        console.step(4, 5, "Saving session state...")
        payload = {
            "last_stop": datetime.now().astimezone().isoformat(timespec="seconds"),
            "environment": self.environment,
            "bun_version": bun_version() or "not installed",
            "shell": os.environ.get("SHELL") or "unknown",
            "uptime_before_stop": format_uptime(time.time() - psutil.boot_time()),
        }
        path = write_json_snapshot(self.settings.paths.state_file, payload)
        console.ok(f"State saved to {path}")
        return path

    def report(self) -> None:
        console.step(5, 5, "Generating shutdown report...")
        console.banner("Agents-Mobile Stopped Successfully", style="green")
        console.key_values(
            "📊 Shutdown Summary",
            [
                ("Processes terminated", len(self.summary.get("killed", []))),
                ("Filesystems unmounted", len(self.summary.get("unmounted", {})) or "n/a"),
                ("Temporary paths cleaned", len(self.summary.get("cleaned", []))),
                ("State", self.settings.paths.state_file),
                ("Log file", self.log_path),
            ],
        )
        console.info("To restart: agents-mobile start")

    def run(self) -> None:
        console.banner("Stopping Agents-Mobile...")
        phases = [
            ("detect", self.detect),
            ("kill_processes", self.kill_processes),
            ("unmount", self.unmount),
            ("clean_temp", self.clean_temp),
            ("save_state", self.save_state),
            ("report", self.report),
        ]
        for name, phase in phases:
            try:
                phase()
            except Exception:
                logger.exception("Error during shutdown phase %s", name)
                console.fail(f"Error occurred during shutdown ({name})")
                console.warn(f"Check log file: {self.log_path}")
                raise


def add_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("--pattern", default=None, help="Process command-line pattern to stop (default: bun)")


def run_from_args(args: argparse.Namespace, settings: Settings) -> int:
    log_path = configure_logging(log_path=str(settings.paths.logs_dir / "stop.log"))
    Stopper(settings, log_path, pattern=args.pattern).run()
    return 0
