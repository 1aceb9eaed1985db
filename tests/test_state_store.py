from __future__ import annotations

import json
from pathlib import Path

import pytest

from agents_mobile.state_store import (
    ensure_defaults,
    is_step_completed,
    load_state,
    mark_step_completed,
    save_state,
    write_json_snapshot,
)


def test_missing_state_is_empty(tmp_path: Path) -> None:
    assert load_state(str(tmp_path / "state.json")) == {}


def test_yaml_state_round_trip(tmp_path: Path) -> None:
    path = str(tmp_path / "nested" / "state.yaml")
    state = ensure_defaults({"config": {"mode": "proot"}})
    mark_step_completed(state, "10_detect_platform")
    save_state(path, state)

    loaded = load_state(path)
    assert loaded["config"]["mode"] == "proot"
    assert is_step_completed(loaded, "10_detect_platform")


def test_state_must_be_object(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_state(str(path))


def test_ensure_defaults_keeps_user_values() -> None:
    state = ensure_defaults({"config": {"distro": "alpine"}, "execution": {"completed_steps": ["a"]}})
    assert state["config"]["distro"] == "alpine"
    assert state["config"]["dry_run"] is False
    assert state["execution"]["completed_steps"] == ["a"]
    assert state["execution"]["errors"] == []


def test_mark_step_completed_once() -> None:
    state: dict = {}
    mark_step_completed(state, "x")
    mark_step_completed(state, "x")
    assert state["execution"]["completed_steps"] == ["x"]


def test_write_json_snapshot_creates_parents(tmp_path: Path) -> None:
    target = tmp_path / "logs" / "detection-report.json"
    assert write_json_snapshot(target, {"os": "Linux"}) == target
    assert json.loads(target.read_text(encoding="utf-8")) == {"os": "Linux"}
