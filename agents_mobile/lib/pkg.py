from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from .command import command_exists, run_cmd

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageManager:
    name: str
    update: Sequence[str]
    install: Sequence[str]
    # update is allowed to exit non-zero (dnf check-update returns 100)
    update_may_fail: bool = False


PACKAGE_MANAGERS: Dict[str, PackageManager] = {
    "pkg": PackageManager("pkg", ["pkg", "update", "-y"], ["pkg", "install", "-y"]),
    "apt": PackageManager("apt", ["sudo", "apt", "update"], ["sudo", "apt", "install", "-y"]),
    "pacman": PackageManager("pacman", ["sudo", "pacman", "-Sy"], ["sudo", "pacman", "-S", "--noconfirm", "--needed"]),
    "dnf": PackageManager("dnf", ["sudo", "dnf", "check-update"], ["sudo", "dnf", "install", "-y"], update_may_fail=True),
    "brew": PackageManager("brew", ["brew", "update"], ["brew", "install"]),
}

# Probe order for desktop hosts.
DESKTOP_ORDER = ("apt", "pacman", "dnf", "brew")

# Distro-specific package names for the essential toolset.
ESSENTIAL_TOOLS: Dict[str, Sequence[str]] = {
    "apt": ["git", "wget", "curl", "htop", "neovim", "ripgrep", "fd-find", "bat", "jq", "pandoc", "zsh"],
    "pacman": ["git", "wget", "curl", "htop", "neovim", "ripgrep", "fd", "bat", "jq", "yq", "pandoc", "zsh"],
    "brew": ["git", "wget", "curl", "htop", "neovim", "ripgrep", "fd", "bat", "jq", "yq", "pandoc", "zsh"],
}

DESKTOP_DEPS = ["git", "curl", "wget", "unzip", "zsh", "vim", "jq", "ripgrep", "fzf", "bat"]
PROOT_HOST_DEPS = ["proot", "wget", "curl", "git", "unzip", "zsh", "vim"]


def detect_package_manager(order: Sequence[str] = DESKTOP_ORDER) -> Optional[PackageManager]:
    for name in order:
        if command_exists(name):
            return PACKAGE_MANAGERS[name]
    return None


def pm_update(pm: PackageManager, *, dry_run: bool = False) -> None:
    run_cmd(list(pm.update), check=not pm.update_may_fail, dry_run=dry_run)


def pm_install(pm: PackageManager, packages: Sequence[str], *, dry_run: bool = False) -> None:
    if not packages:
        return
    run_cmd([*pm.install, *packages], dry_run=dry_run)
