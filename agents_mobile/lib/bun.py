from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

from .command import run_shell
from .detect import bun_version
from .shellrc import append_once, existing_rc_files

logger = logging.getLogger(__name__)

BUN_INSTALL_URL = "https://bun.sh/install"
BUN_INSTALL_SCRIPT = f"curl -fsSL {BUN_INSTALL_URL} | bash"

BUN_ENV_BLOCK = (
    "\n# Bun runtime\n"
    'export BUN_INSTALL="$HOME/.bun"\n'
    'export PATH="$BUN_INSTALL/bin:$PATH"\n'
)


def activate_bun_path(home: Path) -> None:
    """Make a freshly installed bun visible to this process and its children."""

    bun_install = str(home / ".bun")
    os.environ["BUN_INSTALL"] = bun_install
    bin_dir = os.path.join(bun_install, "bin")
    if bin_dir not in os.environ.get("PATH", "").split(os.pathsep):
        os.environ["PATH"] = bin_dir + os.pathsep + os.environ.get("PATH", "")


def persist_bun_path(home: Path, *, dry_run: bool = False) -> List[Path]:
    """Add BUN_INSTALL/PATH exports to existing rc files (once)."""

    changed = []
    for rc in existing_rc_files(home):
        if append_once(rc, "BUN_INSTALL", BUN_ENV_BLOCK, dry_run=dry_run):
            changed.append(rc)
    return changed


def install_bun(home: Path, *, force: bool = False, dry_run: bool = False) -> str:
    """Install bun with the official installer unless already present.

    Returns "present" or "installed".
    """

    current = bun_version()
    if current and not force:
        logger.info("Bun already installed: %s", current)
        return "present"

    run_shell(BUN_INSTALL_SCRIPT, dry_run=dry_run)
    if not dry_run:
        activate_bun_path(home)
    persist_bun_path(home, dry_run=dry_run)
    logger.info("Bun installed: %s", bun_version() or "not in current PATH")
    return "installed"


# Runs inside a guest (chroot or PRoot) where ~ is the guest home.
GUEST_BUN_SCRIPT = (
    "if ! command -v bun >/dev/null 2>&1; then\n"
    f"  {BUN_INSTALL_SCRIPT}\n"
    "fi\n"
    "grep -q BUN_INSTALL ~/.zshrc 2>/dev/null || {\n"
    "  echo 'export BUN_INSTALL=\"$HOME/.bun\"' >> ~/.zshrc\n"
    "  echo 'export PATH=\"$BUN_INSTALL/bin:$PATH\"' >> ~/.zshrc\n"
    "}\n"
)
