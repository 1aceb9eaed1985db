"""Self-checks for an installation and for the chroot mounts.

Each check prints PASS or FAIL; the command exits 1 if any failed.
"""
from __future__ import annotations

import argparse
import logging
import os
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional

from . import console
from .config import Settings
from .lib.command import command_exists, run_cmd
from .lib.detect import is_root_user
from .lib.mounts import INSTALL_MOUNTS, PROC_MOUNTS, mount_all, mount_types
from .logging_utils import configure_logging
from .steps.common import aliases_path

logger = logging.getLogger(__name__)

SHM_DIR = Path("/dev/shm")

BUN_CHECKS = (
    ("Bun execution", ["bun", "-e", 'console.log("test")'], None),
    ("TypeScript support", ["bun", "-e", "const x: number = 5; console.log(x)"], None),
    (
        "Bun file I/O",
        [
            "bun",
            "-e",
            'await Bun.write("/tmp/agents-mobile-check.txt", "test"); '
            'console.log(await Bun.file("/tmp/agents-mobile-check.txt").text())',
        ],
        None,
    ),
    ("JSON parsing", ["bun", "-e", "const data = await Bun.stdin.json(); console.log(data.test)"], '{"test":true}'),
)

# mountpoint (relative to the rootfs) -> expected filesystem type
CORE_MOUNT_TYPES = (
    ("proc", "proc"),
    ("sys", "sysfs"),
    ("dev", "devtmpfs"),
    ("dev/shm", "tmpfs"),
    ("run", "tmpfs"),
)


class CheckRun:
    def __init__(self, title: str):
        self.title = title
        self.passed = 0
        self.failed = 0

    def check(self, name: str, probe: Callable[[], bool]) -> bool:
        try:
            ok = bool(probe())
        except (OSError, subprocess.SubprocessError) as e:
            # a hung probe (TimeoutExpired) is a failure, not a crash
            logger.info("%s raised %s", name, e)
            ok = False
        if ok:
            self.passed += 1
            console.console.print(f"Testing {name}... [green]✅ PASS[/green]")
        else:
            self.failed += 1
            console.console.print(f"Testing {name}... [red]❌ FAIL[/red]")
        logger.info("%s: %s", name, "PASS" if ok else "FAIL")
        return ok

    def finish(self, log_path: str) -> int:
        console.key_values(
            "Test Summary",
            [("✅ Passed", self.passed), ("❌ Failed", self.failed)],
        )
        logger.info("%s: passed=%d failed=%d", self.title, self.passed, self.failed)
        if self.failed == 0:
            console.ok("All tests passed!")
            return 0
        console.warn(f"Some tests failed. Check log: {log_path}")
        return 1


def _runs(argv, input_text: Optional[str] = None) -> Callable[[], bool]:
    return lambda: run_cmd(argv, check=False, input_text=input_text, timeout=60).ok


def writable(path: Path) -> bool:
    probe = path / f".agents-mobile-test-{os.getpid()}"
    try:
        probe.touch()
        probe.unlink()
    except OSError:
        return False
    return True


def check_install(settings: Settings, log_path: str) -> int:
    run = CheckRun("install")
    console.banner("🧪 Agents-Mobile Installation Test")

    run.check("Bun installation", lambda: command_exists("bun"))
    run.check("Bun version", _runs(["bun", "--version"]))
    run.check("Git installation", lambda: command_exists("git"))
    run.check("curl installed", lambda: command_exists("curl"))
    run.check("wget installed", lambda: command_exists("wget"))
    for name, argv, stdin in BUN_CHECKS:
        run.check(name, _runs(argv, stdin))

    if SHM_DIR.is_dir():
        run.check("/dev/shm exists", SHM_DIR.is_dir)
        run.check("/dev/shm writable", lambda: writable(SHM_DIR))
    else:
        console.warn("/dev/shm not found - Bun may crash!")
        console.info("   Run: sudo mount -t tmpfs -o size=1G tmpfs /dev/shm")
        logger.warning("/dev/shm missing")

    repo = settings.paths.repo_dir
    run.check("Skills folder", lambda: (repo / "skills").is_dir())
    run.check("Aliases installed", lambda: aliases_path(settings.root).is_file())
    return run.finish(log_path)


def expected_mount_types(rootfs: Path, host_root: Path = Path("/")) -> Dict[str, str]:
    expected = {str(rootfs / rel): fstype for rel, fstype in CORE_MOUNT_TYPES}
    if (host_root / "sdcard").is_dir():
        expected[str(rootfs / "sdcard")] = "fuse"
    if (host_root / "data").is_dir():
        expected[str(rootfs / "data")] = "ext4"
    return expected


def check_mounts(
    settings: Settings,
    log_path: str,
    *,
    mounts_file: Path = PROC_MOUNTS,
    host_root: Path = Path("/"),
) -> int:
    console.banner("🧪 Mount Configuration Test")
    if not is_root_user():
        console.warn("This test requires root access")
        console.info("   Run: sudo agents-mobile check mounts")
        return 1
    rootfs = settings.arch_rootfs_dir
    if not rootfs.is_dir():
        console.fail(f"Chroot directory not found: {rootfs}")
        console.info("   Run `agents-mobile install root` first")
        return 1

    console.info("Setting up mounts...")
    mount_all(rootfs, INSTALL_MOUNTS, mounts_file=mounts_file)

    run = CheckRun("mounts")
    actual = mount_types(mounts_file)
    for path, fstype in expected_mount_types(rootfs, host_root).items():
        # fuse-backed storage shows up as fuse, fuse.sdcardfs, etc.
        run.check(f"/{Path(path).relative_to(rootfs)}", lambda p=path, t=fstype: actual.get(p, "").startswith(t))

    run.check("/dev/shm writable", lambda: writable(rootfs / "dev/shm"))
    run.check("/run writable", lambda: writable(rootfs / "run"))
    if (rootfs / "sdcard").is_dir():
        run.check("/sdcard writable", lambda: writable(rootfs / "sdcard"))

    console.info("Testing inside chroot...")
    for name, argv in (
        ("ps in chroot", ["ps", "aux"]),
        ("free in chroot", ["free", "-h"]),
        ("df in chroot", ["df", "-h"]),
    ):
        run.check(name, _runs(["chroot", str(rootfs), *argv]))
    return run.finish(log_path)


def add_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("target", choices=("install", "mounts"), help="What to check")


def run_from_args(args: argparse.Namespace, settings: Settings) -> int:
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = configure_logging(log_path=str(settings.paths.logs_dir / f"check-{args.target}-{stamp}.log"))
    if args.target == "install":
        return check_install(settings, log_path)
    return check_mounts(settings, log_path)
