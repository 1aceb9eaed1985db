"""Steps shared by several install modes, plus the `deps` sequence."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

from ..lib.assets import install_asset
from ..lib.bun import install_bun
from ..lib.command import command_exists, run_cmd
from ..lib.env import Paths
from ..lib.pkg import ESSENTIAL_TOOLS, PACKAGE_MANAGERS, pm_install, pm_update
from ..lib.tools import detect_deps_env, install_oh_my_zsh, link_debian_renames, tool_versions

logger = logging.getLogger(__name__)


def cfg_of(state: Dict[str, Any]) -> Dict[str, Any]:
    return state.get("config") or {}


def home_of(state: Dict[str, Any]) -> Path:
    return Path(cfg_of(state)["home"])


def root_of(state: Dict[str, Any]) -> Path:
    return Path(cfg_of(state)["root"])


def paths_of(state: Dict[str, Any]) -> Paths:
    return Paths(root=root_of(state))


def dry_run_of(state: Dict[str, Any]) -> bool:
    return bool(cfg_of(state).get("dry_run", False))


def aliases_path(root: Path) -> Path:
    return root / "aliases" / "core.zsh"


class InstallBunStep:
    step_id = "40_install_bun"
    title = "Installing Bun runtime..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = cfg_of(state)
        outcome = install_bun(
            home_of(state),
            force=bool(cfg.get("reinstall_bun", False)),
            dry_run=dry_run_of(state),
        )
        state.setdefault("results", {})["bun"] = outcome
        return state


class CloneRepoStep:
    step_id = "65_clone_repo"
    title = "Cloning Agents-Mobile repository..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = cfg_of(state)
        repo_dir = Path(cfg["repo_dir"])
        dry_run = dry_run_of(state)

        if (repo_dir / ".git").is_dir():
            logger.info("Repository already exists - pulling updates")
            run_cmd(["git", "-C", str(repo_dir), "pull"], dry_run=dry_run)
            state.setdefault("results", {})["repo"] = "pulled"
        else:
            run_cmd(["git", "clone", str(cfg["repo_url"]), str(repo_dir)], dry_run=dry_run)
            state.setdefault("results", {})["repo"] = "cloned"
        return state


class InstallAliasesStep:
    step_id = "70_install_aliases"
    title = "Installing shell aliases..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        dst = install_asset("core.zsh", aliases_path(root_of(state)), dry_run=dry_run_of(state))
        state.setdefault("results", {})["aliases"] = str(dst)
        return state


# --- deps -----------------------------------------------------------------


class DetectDepsEnvStep:
    step_id = "80_deps_detect_env"
    title = "Detecting package environment..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        env = detect_deps_env()
        state.setdefault("platform", {})["deps_env"] = env
        logger.info("Detected environment: %s", env)
        return state


class DepsInstallBunStep(InstallBunStep):
    step_id = "81_deps_install_bun"


_DEPS_ENV_TO_PM = {"debian": "apt", "arch": "pacman", "macos": "brew"}


class InstallEssentialToolsStep:
    step_id = "82_deps_install_tools"
    title = "Installing essential tools..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        env = (state.get("platform") or {}).get("deps_env")
        pm_name = _DEPS_ENV_TO_PM.get(str(env))
        if pm_name is None:
            logger.info("No essential-tools set for environment %s", env)
            return state

        pm = PACKAGE_MANAGERS[pm_name]
        dry_run = dry_run_of(state)
        if pm_name != "brew":
            pm_update(pm, dry_run=dry_run)
        pm_install(pm, ESSENTIAL_TOOLS[pm_name], dry_run=dry_run)
        return state


class OhMyZshStep:
    step_id = "83_deps_oh_my_zsh"
    title = "Installing Oh My Zsh (optional)..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        if not command_exists("zsh"):
            logger.info("zsh not installed; skipping Oh My Zsh")
            return state
        installed = install_oh_my_zsh(home_of(state), dry_run=dry_run_of(state))
        state.setdefault("results", {})["oh_my_zsh"] = installed
        return state


class LinkToolsStep:
    step_id = "84_deps_link_tools"
    title = "Creating symlinks..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        linked = link_debian_renames(home_of(state) / ".local" / "bin", dry_run=dry_run_of(state))
        state.setdefault("results", {})["links"] = {k: str(v) for k, v in linked.items()}
        return state


class ReportToolsStep:
    step_id = "85_deps_report"
    title = "Checking installed tools..."

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        state.setdefault("results", {})["tools"] = {label: version for label, version in tool_versions()}
        return state


def deps_steps():
    return [
        DetectDepsEnvStep(),
        DepsInstallBunStep(),
        InstallEssentialToolsStep(),
        OhMyZshStep(),
        LinkToolsStep(),
        ReportToolsStep(),
    ]
