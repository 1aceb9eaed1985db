"""Desktop mode: WSL 2, native Linux, macOS. No chroot, no thermal tuning."""
from __future__ import annotations

import logging
import platform
from pathlib import Path
from typing import Any, Dict

from ..lib.detect import is_wsl, parse_os_release
from ..lib.pkg import DESKTOP_DEPS, PACKAGE_MANAGERS, detect_package_manager, pm_install, pm_update
from ..lib.shellrc import append_once, preferred_rc_file
from ..lib.templates import desktop_rc_block
from ..lib.tools import install_oh_my_zsh
from .common import aliases_path, cfg_of, dry_run_of, home_of, root_of

logger = logging.getLogger(__name__)


class DetectOSStep:
    step_id = "10_detect_os"
    title = "Detecting operating system..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        system = platform.system()
        if system == "Linux":
            if is_wsl():
                name, pretty = "wsl", "Windows Subsystem for Linux"
            else:
                name, pretty = "linux", parse_os_release().get("PRETTY_NAME", "Linux")
        elif system == "Darwin":
            name, pretty = "macos", "macOS"
        else:
            raise RuntimeError(f"Unsupported OS: {system}")
        state.setdefault("platform", {}).update({"name": name, "pretty_name": pretty})
        return state


class DetectPackageManagerStep:
    step_id = "20_detect_package_manager"
    title = "Detecting package manager..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        pm = detect_package_manager()
        if pm is None:
            raise RuntimeError("No supported package manager found (apt, pacman, dnf, brew)")
        state.setdefault("platform", {})["package_manager"] = pm.name
        logger.info("Using %s", pm.name)
        return state


class InstallSystemDepsStep:
    step_id = "30_install_deps"
    title = "Installing system dependencies..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        pm_name = (state.get("platform") or {}).get("package_manager")
        if pm_name not in PACKAGE_MANAGERS:
            raise RuntimeError("platform.package_manager missing; run 20_detect_package_manager first")
        pm = PACKAGE_MANAGERS[pm_name]
        dry_run = dry_run_of(state)
        pm_update(pm, dry_run=dry_run)
        pm_install(pm, DESKTOP_DEPS, dry_run=dry_run)
        return state


class OptionalOhMyZshStep:
    step_id = "68_install_omz"
    title = "Installing Oh My Zsh (optional)..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        if not cfg_of(state).get("with_omz"):
            logger.info("Oh My Zsh not requested (--with-omz)")
            return state
        installed = install_oh_my_zsh(home_of(state), with_plugins=True, dry_run=dry_run_of(state))
        state.setdefault("results", {})["oh_my_zsh"] = installed
        return state


class ConfigureShellStep:
    step_id = "75_configure_shell"
    title = "Configuring Agents-Mobile..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        root = root_of(state)
        dry_run = dry_run_of(state)
        rc = preferred_rc_file(home_of(state))
        changed = append_once(rc, str(aliases_path(root)), desktop_rc_block(root), create=True, dry_run=dry_run)
        if changed:
            logger.info("Aliases added to %s", rc)

        repo = Path(cfg_of(state)["repo_dir"])
        if not dry_run:
            for sub in ("setup", "scripts", "tests"):
                for script in (repo / sub).glob("*.sh"):
                    try:
                        script.chmod(0o755)
                    except OSError as e:
                        logger.warning("chmod %s failed: %s", script, e)
        state.setdefault("results", {})["rc_file"] = str(rc)
        return state
