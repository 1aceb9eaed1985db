from __future__ import annotations

import argparse
import os
from datetime import datetime
from pathlib import Path
from typing import List

import pytest

from agents_mobile import console, watchdog
from agents_mobile.lib.procs import KillResult
from agents_mobile.lib.sensors import Reading
from agents_mobile.watchdog import Action, Thresholds, Watchdog, decide, format_status, status_flags

T = Thresholds()


def _reading(temp: int = 50, level=80, status="Discharging", memory: int = 40) -> Reading:
    return Reading(
        temp_c=temp,
        battery_level=level,
        battery_status=status,
        cpu_freq_mhz=1800,
        memory_percent=memory,
        cpu_percent=10.0,
    )


@pytest.mark.parametrize(
    "temp,throttled,expected",
    [
        (85, False, Action.EMERGENCY),
        (90, True, Action.EMERGENCY),
        (75, False, Action.THROTTLE),
        (80, True, Action.NONE),
        (70, True, Action.NONE),
        (69, True, Action.RESTORE),
        (60, False, Action.NONE),
    ],
)
def test_decide(temp: int, throttled: bool, expected: Action) -> None:
    assert decide(temp, throttled, T) is expected


def test_status_flags() -> None:
    assert status_flags(_reading(level=15), T, throttled=False) == ["LOW BATTERY"]
    assert status_flags(_reading(level=15, status="Charging"), T, throttled=False) == []
    assert status_flags(_reading(level=None, status=None), T, throttled=False) == []
    assert status_flags(_reading(memory=91), T, throttled=True) == ["THROTTLED", "HIGH MEMORY"]
    assert status_flags(_reading(memory=90), T, throttled=False) == []


def test_format_status_plain_text() -> None:
    line = format_status(_reading(level=None, status=None), ["LOW BATTERY"], now=datetime(2024, 1, 1, 12, 0, 5))
    text = console.plain(line)
    assert text.startswith("[12:00:05] 🌡️  50°C")
    assert "🔋 unknown (N/A)" in text
    assert text.endswith("[LOW BATTERY]")


class FakeSensors:
    def __init__(self, temps: List[int]):
        self._temps = list(temps)

    def read(self) -> Reading:
        return _reading(temp=self._temps.pop(0))


@pytest.fixture
def actions(monkeypatch):
    calls = {"priority": [], "killed": [], "notified": []}
    monkeypatch.setattr(watchdog, "find_processes", lambda pattern: ["proc"])
    monkeypatch.setattr(watchdog, "describe", str)
    monkeypatch.setattr(
        watchdog,
        "set_priority",
        lambda procs, *, nice, cpus: calls["priority"].append((nice, list(cpus))) or len(procs),
    )
    monkeypatch.setattr(
        watchdog,
        "terminate_then_kill",
        lambda procs, *, grace: calls["killed"].append(grace) or KillResult(terminated=[], killed=[]),
    )
    monkeypatch.setattr(watchdog, "notify", lambda title, content: calls["notified"].append(title))
    return calls


def _watchdog(temps: List[int], sleeps: List[float]) -> Watchdog:
    return Watchdog(
        sensors=FakeSensors(temps),
        thresholds=T,
        interval=5,
        throttle_cpus=[0, 1],
        all_cpus=[0, 1, 2, 3],
        kill_grace=0.5,
        sleep=sleeps.append,
        echo=lambda line: None,
    )


def test_loop_throttles_restores_then_emergency(actions) -> None:
    sleeps: List[float] = []
    dog = _watchdog([70, 76, 78, 69, 90], sleeps)

    assert dog.run() == 5
    assert actions["priority"] == [(10, [0, 1]), (0, [0, 1, 2, 3])]
    assert actions["killed"] == [0.5]
    assert actions["notified"] == ["Agents-Mobile Emergency"]
    assert sleeps == [5, 5, 5, 5]


def test_loop_honours_max_iterations_and_stop(actions) -> None:
    dog = _watchdog([60, 60, 60], [])
    assert dog.run(max_iterations=2) == 2

    stopped = _watchdog([60], [])
    stopped.stop()
    assert stopped.run() == 0


def test_running_pid(tmp_path: Path) -> None:
    pid_file = tmp_path / "wd.pid"
    assert watchdog.running_pid(pid_file) is None
    pid_file.write_text("not a pid", encoding="utf-8")
    assert watchdog.running_pid(pid_file) is None
    pid_file.write_text(f"{os.getppid()}\n", encoding="utf-8")
    assert watchdog.running_pid(pid_file) == os.getppid()
    pid_file.write_text(f"{os.getpid()}\n", encoding="utf-8")
    assert watchdog.running_pid(pid_file) is None


def test_stop_running_signals_and_removes(tmp_path: Path, monkeypatch) -> None:
    sent = []
    monkeypatch.setattr(watchdog.os, "kill", lambda pid, sig: sent.append((pid, sig)))
    pid_file = tmp_path / "wd.pid"
    pid_file.write_text("4242\n", encoding="utf-8")

    assert watchdog.stop_running(pid_file) is True
    assert sent == [(4242, watchdog.signal.SIGTERM)]
    assert not pid_file.exists()
    assert watchdog.stop_running(pid_file) is False


def _args(**overrides) -> argparse.Namespace:
    values = dict(
        interval=None,
        temp_threshold=None,
        temp_critical=None,
        battery_low=None,
        daemon=False,
        stop=False,
        max_iterations=1,
    )
    values.update(overrides)
    return argparse.Namespace(**values)


def test_refuses_second_instance(settings) -> None:
    settings.pid_file.write_text(f"{os.getppid()}\n", encoding="utf-8")
    assert watchdog.run_from_args(_args(), settings) == 1


def test_daemon_writes_and_removes_pid_file(settings, monkeypatch) -> None:
    monkeypatch.setattr(watchdog.signal, "signal", lambda *a: None)
    seen = []

    def fake_run(self, max_iterations=None):
        seen.append((settings.pid_file.read_text(encoding="utf-8").strip(), self.thresholds.temp_threshold))
        return 1

    monkeypatch.setattr(Watchdog, "run", fake_run)

    assert watchdog.run_from_args(_args(daemon=True, temp_threshold=60), settings) == 0
    assert seen == [(str(os.getpid()), 60)]
    assert not settings.pid_file.exists()
