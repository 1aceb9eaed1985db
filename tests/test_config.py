from __future__ import annotations

from pathlib import Path

import pytest

from agents_mobile.config import load_settings, parse_cpu_list


def test_defaults(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    s = load_settings(environ={})
    assert s.root == tmp_path / ".agents-mobile"
    assert s.chroot_dir == Path("/data/local/mnt/arch")
    assert s.arch_rootfs_dir == tmp_path / "arch-chroot"
    assert s.distro == "arch"
    assert (s.interval, s.temp_threshold, s.temp_critical, s.battery_low) == (5.0, 75, 85, 20)
    assert s.memory_high == 90
    assert s.hysteresis == 5
    assert s.throttle_cpus == [0, 1, 2, 3, 4, 5]
    assert s.pid_file == Path("/tmp/mobile-watchdog.pid")
    assert s.paths.state_file == tmp_path / ".agents-mobile" / "state.json"


def test_yaml_then_env_overrides(tmp_path: Path) -> None:
    root = tmp_path / "root"
    root.mkdir()
    (root / "config.yaml").write_text(
        "watchdog:\n  temp_threshold: 60\n  interval: 2\ninstall:\n  distro: ubuntu\n",
        encoding="utf-8",
    )
    s = load_settings(environ={"AGENTS_MOBILE_ROOT": str(root), "TEMP_THRESHOLD": "70"})
    assert s.root == root
    assert s.temp_threshold == 70
    assert s.interval == 2.0
    assert s.distro == "ubuntu"


def test_chroot_dir_alias(tmp_path: Path) -> None:
    s = load_settings(environ={"AGENTS_MOBILE_ROOT": str(tmp_path), "CHROOT_DIR": "/mnt/arch"})
    assert s.chroot_dir == Path("/mnt/arch")


def test_explicit_missing_config_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(str(tmp_path / "nope.yaml"), environ={})


def test_bad_env_value(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="INTERVAL"):
        load_settings(environ={"AGENTS_MOBILE_ROOT": str(tmp_path), "INTERVAL": "fast"})


def test_config_must_be_mapping(tmp_path: Path) -> None:
    cfg = tmp_path / "config.yaml"
    cfg.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(str(cfg), environ={})


def test_parse_cpu_list() -> None:
    assert parse_cpu_list("0-3,6") == [0, 1, 2, 3, 6]
    assert parse_cpu_list(" 7, 0-1 ,") == [0, 1, 7]


def test_config_sections_must_be_mappings(tmp_path: Path) -> None:
    cfg = tmp_path / "config.yaml"
    cfg.write_text("watchdog: 5\n", encoding="utf-8")
    with pytest.raises(ValueError, match="watchdog"):
        load_settings(str(cfg), environ={})


def test_empty_section_accepts_env_override(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text("watchdog:\n", encoding="utf-8")
    s = load_settings(environ={"AGENTS_MOBILE_ROOT": str(tmp_path), "INTERVAL": "3"})
    assert s.interval == 3.0
