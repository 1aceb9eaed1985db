from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .lib.env import home

DEFAULT_LOG_PATH = str(home() / ".agents-mobile" / "logs" / "agents-mobile.log")


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Configure logging.

    Every command, mount and signal decision is recorded in the log file.

    Notes:
    - The log lives under the install root, which may not exist yet (first
      install) or may be on read-only storage inside a guest. We create the
      directory and, if the file still cannot be opened, fall back to a
      file in the working directory.
    - The daemonized watchdog passes also_console=False so its output goes
      to the file only.

    Returns the actual file path being used.
    """

    logger = logging.getLogger()
    logger.setLevel(level)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(logger, "_agents_mobile_configured", False):
        return getattr(logger, "_agents_mobile_log_path", log_path)

    chosen_path = log_path
    handlers: list[logging.Handler] = []

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    file_handler: Optional[logging.Handler] = None
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
    except OSError:
        fallback = str(Path.cwd() / "agents-mobile.log")
        file_handler = logging.FileHandler(fallback)
        chosen_path = fallback
    file_handler.setFormatter(fmt)
    handlers.append(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        # Console output is for humans; rich panels carry the details.
        console.setLevel(max(level, logging.WARNING))
        handlers.append(console)

    for h in handlers:
        logger.addHandler(h)

    setattr(logger, "_agents_mobile_configured", True)
    setattr(logger, "_agents_mobile_log_path", chosen_path)

    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path
