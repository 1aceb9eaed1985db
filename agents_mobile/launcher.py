"""Unified launcher: detect where we run and enter the right environment."""
from __future__ import annotations

import logging
import os
import shlex
import sys
from typing import Dict, List, Optional, Sequence

from . import console
from .config import Settings
from .lib.detect import bun_version, detect_environment, is_root_user
from .lib.command import command_exists
from .lib.mounts import LAUNCH_MOUNTS, mount_all
from .lib.proot import login_argv, proot_distro_installed
from .lib.templates import CHROOT_ENTER_SCRIPT, PROOT_ENTER_SCRIPT

logger = logging.getLogger(__name__)

DESKTOP_TYPES = {"wsl", "linux", "macos", "docker"}


def exec_argv(argv: Sequence[str], env: Optional[Dict[str, str]] = None) -> None:
    """Replace the current process. Only returns in tests (patched)."""

    logger.info("EXEC %s", " ".join(shlex.quote(a) for a in argv))
    os.execvpe(argv[0], list(argv), env if env is not None else dict(os.environ))


def show_info(env_type: str) -> None:
    console.key_values(
        "Environment Information",
        [
            ("Type", env_type),
            ("Shell", os.environ.get("SHELL", "unknown")),
            ("Bun", bun_version() or "not installed"),
            ("Root", os.environ.get("AGENTS_MOBILE_ROOT")),
        ],
    )


def _source_env(settings: Settings, mode: str) -> Dict[str, str]:
    env = dict(os.environ)
    env["AGENTS_MOBILE_ROOT"] = str(settings.root)
    env["AGENTS_MOBILE_MODE"] = mode
    bun_bin = os.path.join(env.get("HOME", ""), ".bun", "bin")
    if os.path.isdir(bun_bin) and bun_bin not in env.get("PATH", "").split(os.pathsep):
        env["PATH"] = bun_bin + os.pathsep + env.get("PATH", "")
    return env


def start_chroot(settings: Settings, command: Sequence[str]) -> None:
    chroot_dir = settings.chroot_dir
    if not is_root_user():
        console.warn("Native chroot requires root access")
        console.info("Attempting to elevate with su...")
        exec_argv(["su", "-c", " ".join(shlex.quote(a) for a in [sys.executable, "-m", "agents_mobile", "start", *command])])
        return

    if not chroot_dir.is_dir():
        raise RuntimeError(f"Chroot directory not found: {chroot_dir}. Run `agents-mobile install root` first")

    console.ok("Starting native chroot environment...")
    for target, outcome in mount_all(chroot_dir, LAUNCH_MOUNTS).items():
        if outcome == "mounted":
            console.ok(f"Mounted /{target}")
        elif outcome == "failed":
            console.warn(f"/{target} mount failed")

    script = CHROOT_ENTER_SCRIPT
    if command:
        script = script.replace("exec zsh -l", "exec " + " ".join(shlex.quote(a) for a in command))
    console.info("Entering chroot environment...")
    exec_argv(["chroot", str(chroot_dir), "/bin/bash", "-c", script])


def start_proot(settings: Settings, command: Sequence[str]) -> None:
    distro = settings.distro
    if not command_exists("proot-distro"):
        raise RuntimeError("proot-distro not found. Install with: pkg install proot-distro")
    if not proot_distro_installed(distro):
        raise RuntimeError(f"{distro} not installed. Run: proot-distro install {distro}")

    script = PROOT_ENTER_SCRIPT
    if command:
        script = script.replace("exec zsh -l", "exec " + " ".join(shlex.quote(a) for a in command))
    console.info(f"Entering PRoot ({distro})...")
    exec_argv(login_argv(distro, script))


def start_desktop(settings: Settings, command: Sequence[str], mode: str = "desktop") -> None:
    if mode == "desktop" and not settings.root.is_dir():
        raise RuntimeError(
            f"Agents-Mobile not installed at {settings.root}. Run: agents-mobile install desktop"
        )
    if mode == "termux-native":
        console.warn("Running without chroot - limited functionality")
        console.info("Consider using chroot or proot for full features")

    env = _source_env(settings, mode)
    console.info("Environment ready! Type 'agents-info' for system information")
    argv: List[str] = list(command) if command else [env.get("SHELL") or "/bin/bash"]
    exec_argv(argv, env)


def start(settings: Settings, command: Sequence[str] = (), *, info: bool = False) -> int:
    console.banner("🤖  AGENTS-MOBILE  🤖", "Transform Devices into AGI Workstations")
    env_type = detect_environment(chroot_dir=settings.chroot_dir)
    console.info(f"🔍 Environment detected: {env_type}")
    logger.info("Environment detected: %s", env_type)

    if info:
        show_info(env_type)
        return 0

    if env_type == "termux-chroot":
        start_chroot(settings, command)
    elif env_type == "termux-proot":
        start_proot(settings, command)
    elif env_type == "termux-native":
        start_desktop(settings, command, mode="termux-native")
    elif env_type in DESKTOP_TYPES:
        start_desktop(settings, command)
    else:
        raise RuntimeError(f"Unsupported environment: {env_type}")
    return 0
