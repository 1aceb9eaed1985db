from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

logger = logging.getLogger(__name__)


def append_once(rc_file: Path, marker: str, block: str, *, create: bool = False, dry_run: bool = False) -> bool:
    """Append block to rc_file unless marker already appears in it.

    Returns True if the file was (or, in dry-run, would be) changed.
    """

    if not rc_file.exists() and not create:
        return False
    current = rc_file.read_text(encoding="utf-8", errors="ignore") if rc_file.exists() else ""
    if marker in current:
        logger.info("%s already contains %r", rc_file, marker)
        return False
    if dry_run:
        logger.info("Would append to %s: %s", rc_file, block.strip())
        return True
    rc_file.parent.mkdir(parents=True, exist_ok=True)
    sep = "" if not current or current.endswith("\n") else "\n"
    with rc_file.open("a", encoding="utf-8") as fh:
        fh.write(sep + block if block.endswith("\n") else sep + block + "\n")
    logger.info("Appended %r block to %s", marker, rc_file)
    return True


def existing_rc_files(home: Path, names: Iterable[str] = (".zshrc", ".bashrc")) -> List[Path]:
    return [home / n for n in names if (home / n).exists()]


def preferred_rc_file(home: Path) -> Path:
    """~/.zshrc when present, else ~/.bashrc."""

    zshrc = home / ".zshrc"
    return zshrc if zshrc.exists() else home / ".bashrc"
