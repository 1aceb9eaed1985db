from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict

from .command import run_cmd

logger = logging.getLogger(__name__)

ROOTFS_URLS: Dict[str, str] = {
    "arch": "http://os.archlinuxarm.org/os/ArchLinuxARM-aarch64-latest.tar.gz",
    "ubuntu": "https://cloud-images.ubuntu.com/minimal/releases/jammy/release/ubuntu-22.04-minimal-cloudimg-arm64-root.tar.xz",
    "alpine": "https://dl-cdn.alpinelinux.org/alpine/v3.19/releases/aarch64/alpine-minirootfs-3.19.0-aarch64.tar.gz",
}


def rootfs_url(distro: str) -> str:
    try:
        return ROOTFS_URLS[distro]
    except KeyError:
        raise RuntimeError(f"Unsupported distro: {distro} (supported: {', '.join(ROOTFS_URLS)})") from None


def tarball_name(url: str) -> str:
    return url.rsplit("/", 1)[-1]


def download(url: str, dest: Path, *, dry_run: bool = False) -> Path:
    """Fetch url to dest unless a previous run already did."""

    if dest.exists() and dest.stat().st_size > 0:
        logger.info("Using cached rootfs %s", dest)
        return dest
    if not dry_run:
        dest.parent.mkdir(parents=True, exist_ok=True)
    run_cmd(["wget", url, "-O", str(dest)], dry_run=dry_run)
    return dest


def extract(tarball: Path, target: Path, *, strict: bool = True, dry_run: bool = False) -> bool:
    """Unpack a rootfs tarball (compression auto-detected by tar).

    Android's tar warns on hardlinks and device nodes inside rootfs images,
    so the root installer calls this with strict=False.
    """

    if not dry_run:
        target.mkdir(parents=True, exist_ok=True)
    r = run_cmd(["tar", "-xpf", str(tarball), "-C", str(target)], check=strict, dry_run=dry_run)
    if not r.ok:
        logger.warning("tar exited %s while extracting %s; continuing", r.returncode, tarball)
    return r.ok
