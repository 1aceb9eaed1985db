"""Root mode: Arch Linux ARM chroot with native mounts."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

from ..lib.assets import install_asset
from ..lib.bun import GUEST_BUN_SCRIPT
from ..lib.detect import has_root
from ..lib.mounts import INSTALL_MOUNTS, chroot_cmd, mount_all, unmount_all
from ..lib.pkg import PACKAGE_MANAGERS, pm_install, pm_update
from ..lib.rootfs import download, extract, rootfs_url, tarball_name
from ..lib.shellrc import append_once
from ..lib.templates import ARCH_GUEST_SETUP, render_mount_script, write_executable
from .common import cfg_of, dry_run_of, home_of

logger = logging.getLogger(__name__)

TERMUX_PACKAGES = ["wget", "curl", "git", "tar", "gzip", "proot"]

# Enough of the host for pacman and the bun installer to work in the guest.
GUEST_SETUP_MOUNTS = INSTALL_MOUNTS[:4]


def _rootfs_dir(state: Dict[str, Any]) -> Path:
    return Path(cfg_of(state)["arch_rootfs_dir"])


def _tarball(state: Dict[str, Any]) -> Path:
    return _rootfs_dir(state) / tarball_name(rootfs_url("arch"))


class CheckRootStep:
    step_id = "10_check_root"
    title = "Checking root access..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        if not has_root():
            raise RuntimeError(
                "This installer requires root access. "
                "Try `agents-mobile install proot` (no-root alternative)."
            )
        logger.info("Root access confirmed")
        return state


class TermuxPackagesStep:
    step_id = "20_termux_packages"
    title = "Installing Termux packages..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        pm = PACKAGE_MANAGERS["pkg"]
        dry_run = dry_run_of(state)
        pm_update(pm, dry_run=dry_run)
        pm_install(pm, TERMUX_PACKAGES, dry_run=dry_run)
        return state


class DownloadRootfsStep:
    step_id = "30_download_rootfs"
    title = "Downloading Arch Linux ARM..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        path = download(rootfs_url("arch"), _tarball(state), dry_run=dry_run_of(state))
        state.setdefault("results", {})["rootfs_tarball"] = str(path)
        return state


class ExtractRootfsStep:
    step_id = "40_extract_rootfs"
    title = "Extracting rootfs (this may take a few minutes)..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        extract(_tarball(state), _rootfs_dir(state), strict=False, dry_run=dry_run_of(state))
        return state


class WriteMountScriptStep:
    step_id = "50_write_mount_script"
    title = "Creating mount script..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        script = home_of(state) / "start-arch.sh"
        write_executable(script, render_mount_script(_rootfs_dir(state)), dry_run=dry_run_of(state))
        state.setdefault("results", {})["launcher"] = str(script)
        return state


class ConfigureGuestStep:
    step_id = "60_configure_guest"
    title = "Configuring Arch environment..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        rootfs = _rootfs_dir(state)
        dry_run = dry_run_of(state)

        mount_all(rootfs, GUEST_SETUP_MOUNTS, dry_run=dry_run)
        try:
            chroot_cmd(rootfs, ["/bin/bash"], input_text=ARCH_GUEST_SETUP + GUEST_BUN_SCRIPT, dry_run=dry_run)
        finally:
            unmount_all(rootfs, [m.target for m in reversed(GUEST_SETUP_MOUNTS)], dry_run=dry_run)
        return state


class GuestAliasesStep:
    step_id = "70_guest_aliases"
    title = "Creating aliases..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        guest_root = _rootfs_dir(state) / "root"
        dry_run = dry_run_of(state)
        # Best effort: the guest may lack /root until first boot.
        try:
            dst = install_asset("core.zsh", guest_root / ".agents-mobile" / "aliases" / "core.zsh", dry_run=dry_run)
            append_once(
                guest_root / ".zshrc",
                "aliases/core.zsh",
                "\n# Agents-Mobile aliases\nsource ~/.agents-mobile/aliases/core.zsh\n",
                create=True,
                dry_run=dry_run,
            )
            state.setdefault("results", {})["aliases"] = str(dst)
        except OSError as e:
            logger.warning("Aliases will be added later: %s", e)
        return state


def chroot_steps():
    return [
        CheckRootStep(),
        TermuxPackagesStep(),
        DownloadRootfsStep(),
        ExtractRootfsStep(),
        WriteMountScriptStep(),
        ConfigureGuestStep(),
        GuestAliasesStep(),
    ]
