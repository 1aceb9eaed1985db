"""Thermal and battery watchdog for long-running Bun workloads.

Samples temperature, battery, memory and CPU every ``interval`` seconds and
reacts to heat:

- at ``temp_threshold`` matching processes are reniced and pinned to the
  efficiency cores;
- once the temperature drops ``hysteresis`` degrees below the threshold they
  get their priority and all cores back;
- at ``temp_critical`` they are terminated and the loop ends.
"""
from __future__ import annotations

import argparse
import enum
import logging
import os
import signal
import time
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

import psutil

from . import console
from .config import Settings
from .lib.command import command_exists, run_cmd
from .lib.procs import describe, find_processes, set_priority, terminate_then_kill
from .lib.sensors import Reading, Sensors
from .logging_utils import configure_logging

logger = logging.getLogger(__name__)

THROTTLE_NICE = 10


class Action(str, enum.Enum):
    NONE = "none"
    THROTTLE = "throttle"
    RESTORE = "restore"
    EMERGENCY = "emergency"


@dataclass(frozen=True)
class Thresholds:
    temp_threshold: int = 75
    temp_critical: int = 85
    battery_low: int = 20
    memory_high: int = 90
    hysteresis: int = 5

    @classmethod
    def from_settings(cls, settings: Settings) -> "Thresholds":
        return cls(
            temp_threshold=settings.temp_threshold,
            temp_critical=settings.temp_critical,
            battery_low=settings.battery_low,
            memory_high=settings.memory_high,
            hysteresis=settings.hysteresis,
        )


def decide(temp: int, throttled: bool, thresholds: Thresholds) -> Action:
    if temp >= thresholds.temp_critical:
        return Action.EMERGENCY
    if temp >= thresholds.temp_threshold and not throttled:
        return Action.THROTTLE
    if temp < thresholds.temp_threshold - thresholds.hysteresis and throttled:
        return Action.RESTORE
    return Action.NONE


def status_flags(reading: Reading, thresholds: Thresholds, throttled: bool) -> List[str]:
    flags = []
    if throttled:
        flags.append("THROTTLED")
    if (
        reading.battery_level is not None
        and reading.battery_level < thresholds.battery_low
        and reading.battery_status != "Charging"
    ):
        flags.append("LOW BATTERY")
    if reading.memory_percent > thresholds.memory_high:
        flags.append("HIGH MEMORY")
    return flags


_FLAG_STYLES = {"THROTTLED": "yellow", "LOW BATTERY": "red", "HIGH MEMORY": "red"}


def format_status(reading: Reading, flags: List[str], now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    level = "unknown" if reading.battery_level is None else f"{reading.battery_level}%"
    parts = [
        f"[blue][{now:%H:%M:%S}][/blue] 🌡️  {reading.temp_c}°C",
        f"🔋 {level} ({reading.battery_status or 'N/A'})",
        f"💾 {reading.memory_percent}%",
        f"⚡ {reading.cpu_freq_mhz}MHz",
        f"📊 CPU {reading.cpu_percent:.1f}%",
    ]
    line = " | ".join(parts)
    for flag in flags:
        line += f" [{_FLAG_STYLES.get(flag, 'red')}]\\[{flag}][/]"
    return line


def notify(title: str, content: str) -> None:
    if command_exists("termux-notification"):
        run_cmd(["termux-notification", "--title", title, "--content", content], check=False)


class Watchdog:
    def __init__(
        self,
        *,
        sensors: Sensors,
        thresholds: Thresholds,
        interval: float = 5.0,
        pattern: str = "bun",
        throttle_cpus: Optional[List[int]] = None,
        all_cpus: Optional[List[int]] = None,
        kill_grace: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        echo: Callable[[str], None] = console.console.print,
    ):
        self.sensors = sensors
        self.thresholds = thresholds
        self.interval = interval
        self.pattern = pattern
        self.throttle_cpus = throttle_cpus or list(range(6))
        self.all_cpus = all_cpus or list(range(os.cpu_count() or 1))
        self.kill_grace = kill_grace
        self._sleep = sleep
        self._echo = echo
        self.throttled = False
        self.stopped = False

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "Watchdog":
        return cls(
            sensors=Sensors(settings.sysfs_root),
            thresholds=Thresholds.from_settings(settings),
            interval=settings.interval,
            pattern=settings.process_pattern,
            throttle_cpus=settings.throttle_cpus,
            all_cpus=settings.all_cpus,
            kill_grace=settings.kill_grace,
            **kwargs,
        )

    def stop(self, *_args) -> None:
        self.stopped = True

    def throttle(self, temp: int) -> None:
        procs = find_processes(self.pattern)
        logger.warning("Throttling %d %s process(es) (temp: %s°C)", len(procs), self.pattern, temp)
        set_priority(procs, nice=THROTTLE_NICE, cpus=self.throttle_cpus)

    def restore(self, temp: int) -> None:
        procs = find_processes(self.pattern)
        logger.info("Restoring %d %s process(es) (temp: %s°C)", len(procs), self.pattern, temp)
        set_priority(procs, nice=0, cpus=self.all_cpus)

    def emergency(self, temp: int) -> None:
        logger.critical("CRITICAL: Temperature %s°C - emergency shutdown!", temp)
        procs = find_processes(self.pattern)
        for proc in procs:
            logger.info("Stopping %s", describe(proc))
        result = terminate_then_kill(procs, grace=self.kill_grace)
        logger.info("Terminated=%s killed=%s", result.terminated, result.killed)
        notify("Agents-Mobile Emergency", "Critical temperature - processes stopped")

    def tick(self) -> Action:
        """One sample-decide-act round. Returns the action taken."""

        reading = self.sensors.read()
        action = decide(reading.temp_c, self.throttled, self.thresholds)
        if action is Action.EMERGENCY:
            self._echo(f"[red]🔥 CRITICAL: Temperature {reading.temp_c}°C - emergency shutdown![/red]")
            self.emergency(reading.temp_c)
            return action
        if action is Action.THROTTLE:
            self._echo(f"[yellow]⚠ Throttling {self.pattern} processes (temp: {reading.temp_c}°C)[/yellow]")
            self.throttle(reading.temp_c)
            self.throttled = True
        elif action is Action.RESTORE:
            self._echo(f"[green]✓ Restoring {self.pattern} processes (temp: {reading.temp_c}°C)[/green]")
            self.restore(reading.temp_c)
            self.throttled = False

        flags = status_flags(reading, self.thresholds, self.throttled)
        logger.debug("reading=%s action=%s flags=%s", reading, action.value, flags)
        self._echo(format_status(reading, flags))
        return action

    def run(self, max_iterations: Optional[int] = None) -> int:
        """Loop until stopped, an emergency, or max_iterations rounds."""

        iterations = 0
        while not self.stopped:
            action = self.tick()
            iterations += 1
            if action is Action.EMERGENCY:
                break
            if max_iterations is not None and iterations >= max_iterations:
                break
            self._sleep(self.interval)
        return iterations


def read_pid(pid_file: Path) -> Optional[int]:
    try:
        return int(pid_file.read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return None


def running_pid(pid_file: Path) -> Optional[int]:
    pid = read_pid(pid_file)
    if pid is not None and pid != os.getpid() and psutil.pid_exists(pid):
        return pid
    return None


def stop_running(pid_file: Path) -> bool:
    """Signal the watchdog recorded in pid_file. Returns True if one was running."""

    pid = read_pid(pid_file)
    stopped = False
    if pid is not None:
        try:
            os.kill(pid, signal.SIGTERM)
            stopped = True
        except OSError as e:
            logger.info("Watchdog pid %s not signalled: %s", pid, e)
    pid_file.unlink(missing_ok=True)
    return stopped


def add_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("--interval", type=float, default=None, help="Seconds between samples")
    p.add_argument("--temp-threshold", type=int, default=None, help="°C to start throttling")
    p.add_argument("--temp-critical", type=int, default=None, help="°C for emergency shutdown")
    p.add_argument("--battery-low", type=int, default=None, help="Low battery warning (%%)")
    p.add_argument("--daemon", action="store_true", help="Write the pid file and log to file only")
    p.add_argument("--stop", action="store_true", help="Stop a running watchdog")
    p.add_argument("--max-iterations", type=int, default=None, help=argparse.SUPPRESS)


def run_from_args(args: argparse.Namespace, settings: Settings) -> int:
    pid_file = settings.pid_file
    if args.stop:
        if stop_running(pid_file):
            console.ok("Watchdog stopped")
        else:
            console.info("Watchdog not running")
        return 0

    log_path = str(settings.paths.logs_dir / "watchdog.log")
    configure_logging(log_path=log_path, also_console=not args.daemon)

    pid = running_pid(pid_file)
    if pid is not None:
        console.warn(f"Watchdog already running (PID: {pid})")
        return 1

    watchdog = Watchdog.from_settings(settings)
    overrides = {
        "temp_threshold": args.temp_threshold,
        "temp_critical": args.temp_critical,
        "battery_low": args.battery_low,
    }
    watchdog.thresholds = replace(
        watchdog.thresholds, **{k: v for k, v in overrides.items() if v is not None}
    )
    if args.interval is not None:
        watchdog.interval = args.interval

    if args.daemon:
        # Status lines go to the log file instead of the terminal.
        watchdog._echo = lambda line: logger.info("%s", console.plain(line))
        pid_file.parent.mkdir(parents=True, exist_ok=True)
        pid_file.write_text(f"{os.getpid()}\n", encoding="utf-8")
    else:
        console.banner("Mobile Watchdog Started")
        console.key_values(
            "Watchdog",
            [
                ("Interval", f"{watchdog.interval}s"),
                ("Temp threshold", f"{watchdog.thresholds.temp_threshold}°C"),
                ("Temp critical", f"{watchdog.thresholds.temp_critical}°C"),
                ("Battery low", f"{watchdog.thresholds.battery_low}%"),
            ],
        )

    signal.signal(signal.SIGTERM, watchdog.stop)
    signal.signal(signal.SIGINT, watchdog.stop)

    logger.info("Watchdog started pid=%s thresholds=%s", os.getpid(), watchdog.thresholds)
    try:
        watchdog.run(max_iterations=args.max_iterations)
    finally:
        if read_pid(pid_file) == os.getpid():
            pid_file.unlink(missing_ok=True)
        logger.info("Watchdog exited")
    return 0
