from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .command import command_exists, command_version, run_shell
from .detect import is_android

logger = logging.getLogger(__name__)

OMZ_INSTALL_SCRIPT = (
    'sh -c "$(curl -fsSL https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh)" "" --unattended'
)

OMZ_PLUGINS = {
    "zsh-autosuggestions": "https://github.com/zsh-users/zsh-autosuggestions",
    "zsh-syntax-highlighting": "https://github.com/zsh-users/zsh-syntax-highlighting.git",
}

AGENT_HINTS: Sequence[Tuple[str, str]] = (
    ("Claude CLI", "npm install -g @anthropic-ai/claude-code"),
    ("Gemini CLI", "bun install -g gemini-cli"),
    ("OpenCode", "Follow docs at https://opencode.dev"),
)

# Debian ships these under different binary names.
DEBIAN_RENAMES = {"bat": "batcat", "fd": "fdfind"}

VERSION_PROBES: Sequence[Tuple[str, List[str]]] = (
    ("Bun", ["bun", "--version"]),
    ("Git", ["git", "--version"]),
    ("Ripgrep", ["rg", "--version"]),
    ("Bat", ["bat", "--version"]),
    ("jq", ["jq", "--version"]),
    ("Pandoc", ["pandoc", "--version"]),
)


def detect_deps_env() -> str:
    """android | debian | arch | macos | unknown (package manager family)."""

    if is_android():
        return "android"
    if command_exists("apt"):
        return "debian"
    if command_exists("pacman"):
        return "arch"
    if command_exists("brew"):
        return "macos"
    return "unknown"


def install_oh_my_zsh(home: Path, *, with_plugins: bool = False, dry_run: bool = False) -> bool:
    """Install Oh My Zsh if absent. Failures are logged, not raised."""

    if (home / ".oh-my-zsh").is_dir():
        logger.info("Oh My Zsh already installed")
        return False
    r = run_shell(OMZ_INSTALL_SCRIPT, check=False, dry_run=dry_run)
    if not r.ok:
        logger.warning("Oh My Zsh installation failed (rc=%s)", r.returncode)
        return False
    if with_plugins:
        custom = home / ".oh-my-zsh" / "custom" / "plugins"
        for name, url in OMZ_PLUGINS.items():
            run_shell(f"git clone {url} {custom / name}", check=False, dry_run=dry_run)
        zshrc = home / ".zshrc"
        if zshrc.exists() and not dry_run:
            txt = zshrc.read_text(encoding="utf-8")
            zshrc.write_text(
                txt.replace(
                    "plugins=(git)",
                    "plugins=(git command-not-found zsh-autosuggestions zsh-syntax-highlighting)",
                ),
                encoding="utf-8",
            )
    return True


def link_debian_renames(bin_dir: Path, *, dry_run: bool = False) -> Dict[str, Path]:
    """Symlink bat/fd to batcat/fdfind when only the Debian names exist."""

    linked: Dict[str, Path] = {}
    if not dry_run:
        bin_dir.mkdir(parents=True, exist_ok=True)
    for wanted, debian_name in DEBIAN_RENAMES.items():
        real = shutil.which(debian_name)
        if real is None or command_exists(wanted):
            continue
        link = bin_dir / wanted
        if not dry_run:
            if link.is_symlink() or link.exists():
                link.unlink()
            link.symlink_to(real)
        logger.info("Linked %s -> %s", link, real)
        linked[wanted] = link
    return linked


def tool_versions() -> List[Tuple[str, Optional[str]]]:
    return [(label, command_version(argv)) for label, argv in VERSION_PROBES]
