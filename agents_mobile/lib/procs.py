from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

import psutil

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KillResult:
    terminated: List[int]
    killed: List[int]


def find_processes(pattern: str) -> List[psutil.Process]:
    """Processes whose full command line contains pattern (like ``pgrep -f``)."""

    me = psutil.Process().pid
    found = []
    for proc in psutil.process_iter(["pid", "name", "cmdline"]):
        if proc.info["pid"] == me:
            continue
        cmdline = " ".join(proc.info.get("cmdline") or []) or (proc.info.get("name") or "")
        if pattern in cmdline:
            found.append(proc)
    return found


def describe(proc: psutil.Process) -> str:
    try:
        return f"{proc.pid} {' '.join(proc.cmdline()) or proc.name()}"
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return str(proc.pid)


def set_priority(procs: Sequence[psutil.Process], *, nice: int, cpus: Sequence[int]) -> int:
    """Best-effort renice + CPU pinning; returns how many processes took both.

    The two changes are independent: an unprivileged user cannot lower a
    nice value again, but can still widen the affinity mask.
    """

    adjusted = 0
    for proc in procs:
        reniced = pinned = True
        try:
            proc.nice(nice)
        except (psutil.Error, OSError, ValueError) as e:
            logger.debug("Could not renice %s: %s", proc.pid, e)
            reniced = False
        if hasattr(proc, "cpu_affinity"):
            try:
                proc.cpu_affinity(list(cpus))
            except (psutil.Error, OSError, ValueError) as e:
                logger.debug("Could not pin %s: %s", proc.pid, e)
                pinned = False
        if reniced and pinned:
            adjusted += 1
    return adjusted


def terminate_then_kill(procs: Sequence[psutil.Process], *, grace: float = 2.0) -> KillResult:
    """SIGTERM everything, wait grace seconds, SIGKILL the survivors."""

    for proc in procs:
        try:
            proc.terminate()
        except psutil.Error as e:
            logger.debug("SIGTERM %s failed: %s", proc.pid, e)

    gone, alive = psutil.wait_procs(list(procs), timeout=grace)

    for proc in alive:
        try:
            proc.kill()
        except psutil.Error as e:
            logger.debug("SIGKILL %s failed: %s", proc.pid, e)

    return KillResult(terminated=[p.pid for p in gone], killed=[p.pid for p in alive])
