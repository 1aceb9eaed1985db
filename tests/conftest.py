from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional, Tuple

import pytest

from agents_mobile.config import Settings
from agents_mobile.lib.command import CmdResult


class FakeRunner:
    """Stands in for run_cmd; records argv and answers with respond(argv)."""

    def __init__(self, respond: Optional[Callable[[List[str]], Tuple[int, str]]] = None):
        self.calls: List[List[str]] = []
        self.kwargs: List[dict] = []
        self._respond = respond or (lambda argv: (0, ""))

    def __call__(self, argv, **kwargs) -> CmdResult:
        argv = list(argv)
        self.calls.append(argv)
        self.kwargs.append(kwargs)
        rc, out = (0, "") if kwargs.get("dry_run") else self._respond(argv)
        if kwargs.get("check", True) and rc != 0:
            raise RuntimeError(f"Command failed ({rc}): {argv}")
        return CmdResult(argv=argv, returncode=rc, stdout=out, stderr="")


@pytest.fixture
def fake_runner():
    return FakeRunner


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        raw={
            "paths": {
                "root": str(tmp_path / "am"),
                "chroot_dir": str(tmp_path / "chroot"),
                "arch_rootfs_dir": str(tmp_path / "arch-chroot"),
            },
            "watchdog": {
                "pid_file": str(tmp_path / "watchdog.pid"),
                "sysfs_root": str(tmp_path / "sys"),
                "all_cpus": "0-7",
            },
        }
    )
