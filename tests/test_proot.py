from __future__ import annotations

from pathlib import Path

from agents_mobile.lib import proot


def _listing(monkeypatch, fake_runner, text: str) -> None:
    monkeypatch.setattr(proot, "command_exists", lambda name: True)
    monkeypatch.setattr(proot, "run_cmd", fake_runner(lambda argv: (0, text)))


def test_distro_matches_longer_alias(monkeypatch, fake_runner) -> None:
    _listing(monkeypatch, fake_runner, "Installed distributions: archlinux\n")
    assert proot.proot_distro_installed("arch") is True


def test_distro_not_installed(monkeypatch, fake_runner) -> None:
    _listing(monkeypatch, fake_runner, "Supported: archlinux debian\nInstalled: debian\n")
    assert proot.proot_distro_installed("arch") is False


def test_distro_without_proot_distro(monkeypatch) -> None:
    monkeypatch.setattr(proot, "command_exists", lambda name: False)
    assert proot.proot_distro_installed("arch") is False


def test_guest_shell_argv(tmp_path: Path) -> None:
    assert proot.guest_shell_argv(platform="termux", distro="arch", rootfs=tmp_path, script="true") == [
        "proot-distro", "login", "arch", "--", "bash", "-c", "true",
    ]
    assert proot.guest_shell_argv(platform="debian", distro="arch", rootfs=tmp_path, script="true")[:3] == [
        "proot", "-r", str(tmp_path),
    ]
