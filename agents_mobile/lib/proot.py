from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List

from .command import command_exists, run_cmd

logger = logging.getLogger(__name__)


def proot_distro_installed(distro: str) -> bool:
    """True if `proot-distro list` reports distro as installed."""

    if not command_exists("proot-distro"):
        return False
    r = run_cmd(["proot-distro", "list"], check=False)
    # proot-distro writes its listing to stderr on some versions
    listing = r.stdout + r.stderr
    pattern = re.compile(r"installed.*" + re.escape(distro), re.IGNORECASE)
    return any(pattern.search(line) for line in listing.splitlines())


def guest_shell_argv(*, platform: str, distro: str, rootfs: Path, script: str) -> List[str]:
    """argv that runs a bash script inside the PRoot guest."""

    if platform == "termux":
        return ["proot-distro", "login", distro, "--", "bash", "-c", script]
    return ["proot", "-r", str(rootfs), "-0", "-w", "/root", "bash", "-c", script]


def login_argv(distro: str, script: str) -> List[str]:
    return ["proot-distro", "login", distro, "--shared-tmp", "--", "/bin/bash", "-c", script]
