from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .command import run_cmd
from .env import TERMUX_STORAGE

logger = logging.getLogger(__name__)

PROC_MOUNTS = Path("/proc/mounts")


@dataclass(frozen=True)
class MountSpec:
    source: str
    target: str  # relative to the guest root
    fstype: Optional[str] = None
    options: Optional[str] = None
    bind: bool = False
    label: str = ""
    # Only mount when this host path exists (storage binds).
    require_source: bool = False
    # Only mount when the target directory does not exist yet.
    require_missing_target: bool = False

    def argv(self, root: Path) -> List[str]:
        dst = str(root / self.target)
        if self.bind:
            return ["mount", "--bind", self.source, dst]
        argv = ["mount"]
        if self.fstype:
            argv += ["-t", self.fstype]
        if self.options:
            argv += ["-o", self.options]
        return [*argv, self.source, dst]


# Written into start-arch.sh by the root installer, in this order.
INSTALL_MOUNTS: Sequence[MountSpec] = (
    MountSpec("/proc", "proc", bind=True, label="process information"),
    MountSpec("/sys", "sys", bind=True, label="system information"),
    MountSpec("/dev", "dev", bind=True, label="device files"),
    MountSpec("/dev/pts", "dev/pts", bind=True, label="pseudo terminals"),
    # Bun/Node need /dev/shm; without it posix_spawn fails.
    MountSpec("tmpfs", "dev/shm", fstype="tmpfs", options="size=1G", label="shared memory"),
    MountSpec("tmpfs", "run", fstype="tmpfs", options="size=512M", label="runtime data"),
    MountSpec("/data", "data", bind=True, label="Android data partition"),
    MountSpec("/sdcard", "sdcard", bind=True, label="SD card storage"),
    MountSpec("/storage/emulated/0", "storage/emulated/0", bind=True, label="main storage"),
)

# Mounted by the launcher before entering an existing chroot.
LAUNCH_MOUNTS: Sequence[MountSpec] = (
    MountSpec("proc", "proc", fstype="proc", label="/proc"),
    MountSpec("sysfs", "sys", fstype="sysfs", label="/sys"),
    MountSpec("/dev", "dev", bind=True, label="/dev"),
    MountSpec("/dev/pts", "dev/pts", bind=True, label="/dev/pts"),
    MountSpec(
        "tmpfs",
        "dev/shm",
        fstype="tmpfs",
        options="size=2G",
        label="/dev/shm (2GB tmpfs)",
        require_missing_target=True,
    ),
    MountSpec(str(TERMUX_STORAGE), "mnt/termux", bind=True, label="Termux storage", require_source=True),
)

# Most nested first.
UNMOUNT_ORDER: Sequence[str] = ("mnt/termux", "dev/shm", "dev/pts", "dev", "sys", "proc")


def _unescape(field: str) -> str:
    # /proc/mounts encodes spaces and tabs as octal escapes
    return field.replace("\\040", " ").replace("\\011", "\t").replace("\\134", "\\")


def mount_types(mounts_file: Path = PROC_MOUNTS) -> Dict[str, str]:
    """Map mountpoint -> filesystem type (last mount wins, like the kernel)."""

    out: Dict[str, str] = {}
    try:
        lines = mounts_file.read_text(encoding="utf-8", errors="ignore").splitlines()
    except OSError:
        return out
    for line in lines:
        fields = line.split()
        if len(fields) >= 3:
            out[_unescape(fields[1])] = fields[2]
    return out


def is_mountpoint(path: Path, mounts_file: Path = PROC_MOUNTS) -> bool:
    return str(path).rstrip("/") in mount_types(mounts_file)


def mount_all(
    root: Path,
    specs: Sequence[MountSpec],
    *,
    skip_mounted: bool = True,
    mounts_file: Path = PROC_MOUNTS,
    dry_run: bool = False,
) -> Dict[str, str]:
    """Mount specs under root in order, best effort.

    Returns target -> "mounted" | "already" | "skipped" | "failed".
    """

    outcome: Dict[str, str] = {}
    for spec in specs:
        dst = root / spec.target
        if spec.require_source and not Path(spec.source).is_dir():
            outcome[spec.target] = "skipped"
            continue
        if skip_mounted and is_mountpoint(dst, mounts_file):
            outcome[spec.target] = "already"
            continue
        if spec.require_missing_target and dst.is_dir():
            outcome[spec.target] = "skipped"
            continue
        if not dry_run:
            try:
                dst.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning("Cannot create mountpoint %s: %s", dst, e)
        r = run_cmd(spec.argv(root), check=False, dry_run=dry_run)
        if r.ok:
            outcome[spec.target] = "mounted"
        else:
            logger.warning("Mount of %s failed (may already be mounted): %s", dst, r.stderr.strip())
            outcome[spec.target] = "failed"
    return outcome


def unmount_all(
    root: Path,
    order: Sequence[str] = UNMOUNT_ORDER,
    *,
    mounts_file: Path = PROC_MOUNTS,
    dry_run: bool = False,
) -> Dict[str, str]:
    """Unmount in the given order, falling back to a lazy unmount.

    Returns target -> "unmounted" | "lazy" | "failed"; targets that are not
    mountpoints are left out.
    """

    outcome: Dict[str, str] = {}
    for rel in order:
        dst = root / rel
        if not dry_run and not is_mountpoint(dst, mounts_file):
            continue
        if run_cmd(["umount", str(dst)], check=False, dry_run=dry_run).ok:
            outcome[rel] = "unmounted"
            continue
        logger.warning("Regular unmount of %s failed, trying lazy unmount", dst)
        if run_cmd(["umount", "-l", str(dst)], check=False, dry_run=dry_run).ok:
            outcome[rel] = "lazy"
        else:
            logger.error("Failed to unmount %s", dst)
            outcome[rel] = "failed"
    return outcome


def chroot_cmd(root: Path, argv: Sequence[str], *, input_text: str | None = None, dry_run: bool = False) -> None:
    """Run a command inside the guest root."""

    run_cmd(["chroot", str(root), *argv], input_text=input_text, dry_run=dry_run)
