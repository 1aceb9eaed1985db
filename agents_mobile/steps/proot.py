"""PRoot mode: no root needed, ~10-15% slower than a native chroot."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

from ..lib.bun import GUEST_BUN_SCRIPT
from ..lib.command import command_exists, command_version, run_cmd
from ..lib.detect import parse_os_release
from ..lib.pkg import PACKAGE_MANAGERS, PROOT_HOST_DEPS, detect_package_manager, pm_install, pm_update
from ..lib.proot import guest_shell_argv, proot_distro_installed
from ..lib.rootfs import download, extract, rootfs_url, tarball_name
from ..lib.shellrc import append_once
from ..lib.templates import LOCAL_BIN_BLOCK, render_proot_launcher, write_executable
from .common import aliases_path, cfg_of, dry_run_of, home_of, paths_of, root_of

logger = logging.getLogger(__name__)

TERMUX_DEPS = ["proot-distro", "wget", "curl", "git", "unzip", "zsh", "vim"]
LAUNCHER_NAME = "agents-mobile-proot"


def _platform(state: Dict[str, Any]) -> str:
    return str((state.get("platform") or {}).get("name") or "")


def _distro(state: Dict[str, Any]) -> str:
    return str(cfg_of(state).get("distro") or "arch")


def _run_in_guest(state: Dict[str, Any], script: str) -> None:
    argv = guest_shell_argv(
        platform=_platform(state),
        distro=_distro(state),
        rootfs=paths_of(state).rootfs_dir,
        script=script,
    )
    run_cmd(argv, dry_run=dry_run_of(state))


def launcher_path(home: Path) -> Path:
    return home / ".local" / "bin" / LAUNCHER_NAME


class DetectPlatformStep:
    step_id = "10_detect_platform"
    title = "Detecting platform..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        termux = os.environ.get("TERMUX_VERSION")
        if termux:
            name, pretty = "termux", f"Termux {termux}"
        else:
            release = parse_os_release()
            if not release.get("ID"):
                raise RuntimeError("Unsupported platform: not Termux and no /etc/os-release")
            name, pretty = release["ID"], release.get("PRETTY_NAME", release["ID"])
        state.setdefault("platform", {}).update({"name": name, "pretty_name": pretty})
        logger.info("Platform: %s", pretty)
        return state


class InstallHostDepsStep:
    step_id = "20_install_host_deps"
    title = "Installing dependencies..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        dry_run = dry_run_of(state)
        if _platform(state) == "termux":
            pm = PACKAGE_MANAGERS["pkg"]
            pm_update(pm, dry_run=dry_run)
            pm_install(pm, TERMUX_DEPS, dry_run=dry_run)
            return state

        pm = detect_package_manager(("apt", "pacman", "dnf"))
        if pm is None:
            logger.warning("Could not detect package manager - install PRoot manually")
            state.setdefault("warnings", []).append("no package manager; install PRoot manually")
            return state
        if pm.name == "pacman":
            run_cmd(["sudo", "pacman", "-Sy", "--noconfirm", *PROOT_HOST_DEPS], dry_run=dry_run)
        else:
            if pm.name == "apt":
                pm_update(pm, dry_run=dry_run)
            pm_install(pm, PROOT_HOST_DEPS, dry_run=dry_run)
        return state


class CheckProotStep:
    step_id = "30_check_proot"
    title = "Checking PRoot..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        if not command_exists("proot") and not dry_run_of(state):
            raise RuntimeError("PRoot not found - install it manually")
        version = command_version(["proot", "--version"]) or "unknown"
        state.setdefault("platform", {})["proot_version"] = version
        if _platform(state) == "termux":
            state["platform"]["proot_distro"] = command_exists("proot-distro")
        logger.info("PRoot available: %s", version)
        return state


class InstallDistroStep:
    step_id = "40_install_distro"
    title = "Installing distribution..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        distro = _distro(state)
        dry_run = dry_run_of(state)

        if _platform(state) == "termux":
            if proot_distro_installed(distro):
                logger.info("%s already installed", distro)
                state.setdefault("results", {})["distro"] = "present"
            else:
                run_cmd(["proot-distro", "install", distro], dry_run=dry_run)
                state.setdefault("results", {})["distro"] = "installed"
            return state

        # Generic Linux: unpack a rootfs ourselves
        url = rootfs_url(distro)
        paths = paths_of(state)
        tarball = paths.tmp_dir / tarball_name(url)
        download(url, tarball, dry_run=dry_run)
        extract(tarball, paths.rootfs_dir, dry_run=dry_run)
        if not dry_run:
            tarball.unlink(missing_ok=True)
        state.setdefault("results", {})["distro"] = "extracted"
        return state


class ConfigureLauncherStep:
    step_id = "50_configure_launcher"
    title = "Configuring PRoot environment..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        root = root_of(state)
        dry_run = dry_run_of(state)
        if not dry_run:
            for sub in ("home", "tmp", "mounts"):
                (root / sub).mkdir(parents=True, exist_ok=True)

        launcher = launcher_path(home_of(state))
        content = render_proot_launcher(install_dir=root, platform=_platform(state), distro=_distro(state))
        write_executable(launcher, content, dry_run=dry_run)
        state.setdefault("results", {})["launcher"] = str(launcher)
        return state


class GuestBunStep:
    step_id = "60_install_bun"
    title = "Installing Bun runtime inside PRoot..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        _run_in_guest(state, GUEST_BUN_SCRIPT)
        return state


class LinkGuestAliasesStep:
    step_id = "75_link_guest_aliases"
    title = "Linking aliases inside PRoot..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        aliases = aliases_path(root_of(state))
        _run_in_guest(
            state,
            f"grep -q '{aliases}' ~/.zshrc 2>/dev/null || echo 'source {aliases}' >> ~/.zshrc",
        )
        return state


class FinalizeStep:
    step_id = "80_finalize"
    title = "Finalizing installation..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        append_once(
            home_of(state) / ".zshrc",
            ".local/bin",
            LOCAL_BIN_BLOCK,
            create=True,
            dry_run=dry_run_of(state),
        )
        return state
