from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def home() -> Path:
    return Path(os.environ.get("HOME") or Path.home())


@dataclass(frozen=True)
class Paths:
    """Well-known locations, all derived from the install root."""

    root: Path

    @property
    def logs_dir(self) -> Path:
        return self.root / "logs"

    @property
    def benchmarks_dir(self) -> Path:
        return self.root / "benchmarks"

    @property
    def tmp_dir(self) -> Path:
        return self.root / "tmp"

    @property
    def rootfs_dir(self) -> Path:
        # Generic (non-Termux) PRoot guest
        return self.root / "rootfs"

    @property
    def repo_dir(self) -> Path:
        return self.root / "agents-mobile"

    @property
    def state_file(self) -> Path:
        return self.root / "state.json"

    @property
    def install_state_file(self) -> Path:
        return self.root / "install-state.json"

    @property
    def detection_report(self) -> Path:
        return self.logs_dir / "detection-report.json"


TERMUX_STORAGE = Path("/data/data/com.termux/files/home/storage")
TEMP_GLOB = "/tmp/agents-mobile-*"
