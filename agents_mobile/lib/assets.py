from __future__ import annotations

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def assets_dir() -> Path:
    # agents_mobile/lib/assets.py -> agents_mobile/assets
    return Path(__file__).resolve().parents[1] / "assets"


def install_asset(name: str, dst: Path, *, dry_run: bool = False) -> Path:
    src = assets_dir() / name
    if not src.exists():
        raise FileNotFoundError(str(src))

    if dry_run:
        logger.info("Would copy %s -> %s", src, dst)
        return dst

    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dst)
    logger.info("Installed %s -> %s", name, dst)
    return dst
