"""Text of the files the installers write: launchers, guest bootstrap, rc blocks."""
from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Sequence

from .mounts import INSTALL_MOUNTS, MountSpec

logger = logging.getLogger(__name__)


def _mount_line(root_var: str, spec: MountSpec) -> str:
    dst = f'"${root_var}/{spec.target}"'
    if spec.bind:
        cmd = f"mount --bind {spec.source} {dst}"
    else:
        cmd = "mount"
        if spec.fstype:
            cmd += f" -t {spec.fstype}"
        if spec.options:
            cmd += f" -o {spec.options}"
        cmd += f" {spec.source} {dst}"
    return f'{cmd} 2>/dev/null || echo "  ⚠️  /{spec.target} mount failed"'


def render_mount_script(rootfs_dir: Path, mounts: Sequence[MountSpec] = INSTALL_MOUNTS) -> str:
    """start-arch.sh: mount everything (best effort) then enter the chroot."""

    lines = [
        "#!/bin/bash",
        "# Generated by agents-mobile install root",
        f"ARCH_DIR={shlex.quote(str(rootfs_dir))}",
        "",
        'echo "🔗 Setting up mounts..."',
    ]
    for n, spec in enumerate(mounts, start=1):
        lines.append("")
        lines.append(f"# {n}. /{spec.target} - {spec.label}")
        lines.append(f'mkdir -p "$ARCH_DIR/{spec.target}"')
        lines.append(_mount_line("ARCH_DIR", spec))
    lines += [
        "",
        'echo "✅ Mounts completed"',
        'echo "🚀 Entering Arch chroot..."',
        'chroot "$ARCH_DIR" /bin/bash',
        "",
    ]
    return "\n".join(lines)


PROOT_LAUNCHER = """#!/usr/bin/env bash
# Agents-Mobile PRoot launcher
# Generated by agents-mobile install proot

INSTALL_DIR={install_dir}
PLATFORM={platform}
DISTRO={distro}

if [[ "$PLATFORM" == "termux" ]]; then
    exec proot-distro login "$DISTRO" --shared-tmp -- /bin/bash -c "
        export AGENTS_MOBILE_ROOT='$INSTALL_DIR'
        cd ~ || exit
        exec zsh -l
    "
else
    ROOTFS="$INSTALL_DIR/rootfs"
    exec proot \\
        -0 \\
        -r "$ROOTFS" \\
        -b /dev \\
        -b /proc \\
        -b /sys \\
        -b "$HOME:$HOME" \\
        -b "$INSTALL_DIR/tmp:/tmp" \\
        -w /root \\
        /bin/bash -c "
            export PATH=/usr/local/bin:/usr/bin:/bin
            export AGENTS_MOBILE_ROOT='$INSTALL_DIR'
            exec zsh -l
        "
fi
"""


def render_proot_launcher(*, install_dir: Path, platform: str, distro: str) -> str:
    return PROOT_LAUNCHER.format(
        install_dir=shlex.quote(str(install_dir)),
        platform=shlex.quote(platform),
        distro=shlex.quote(distro),
    )


# Run by `chroot <dir> /bin/bash -c` when the launcher enters the native chroot.
CHROOT_ENTER_SCRIPT = """
export HOME=/root
export PATH=/usr/local/bin:/usr/bin:/bin:/sbin
export TERM=xterm-256color
export AGENTS_MOBILE_ROOT=/root/.agents-mobile
cd ~
[[ -f ~/.bun/_bun ]] && source ~/.bun/_bun
[[ -f ~/.agents-mobile/aliases/core.zsh ]] && source ~/.agents-mobile/aliases/core.zsh
exec zsh -l
"""

PROOT_ENTER_SCRIPT = """
export AGENTS_MOBILE_ROOT=~/.agents-mobile
export AGENTS_MOBILE_MODE=proot
cd ~
[[ -f ~/.bun/_bun ]] && source ~/.bun/_bun
[[ -f ~/.agents-mobile/aliases/core.zsh ]] && source ~/.agents-mobile/aliases/core.zsh
exec zsh -l
"""

# Guest-side first boot of the Arch chroot.
ARCH_GUEST_SETUP = """
pacman-key --init
pacman-key --populate archlinuxarm
pacman -Syu --noconfirm
pacman -S --noconfirm --needed base-devel git wget curl zsh vim neovim htop
"""


def desktop_rc_block(install_dir: Path) -> str:
    return (
        "\n# Agents-Mobile aliases\n"
        f'source "{install_dir}/aliases/core.zsh"\n'
        "\n# Agents-Mobile environment\n"
        f'export AGENTS_MOBILE_ROOT="{install_dir}"\n'
        'export AGENTS_MOBILE_PLATFORM="desktop"\n'
    )


LOCAL_BIN_BLOCK = '\n# agents-mobile launcher\nexport PATH="$HOME/.local/bin:$PATH"\n'


def write_executable(path: Path, content: str, *, dry_run: bool = False) -> None:
    if dry_run:
        logger.info("Would write executable %s", path)
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    path.chmod(0o755)
    logger.info("Wrote %s", path)
