from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import pytest

from agents_mobile import installer
from agents_mobile.state_store import load_state
from agents_mobile.steps import common, desktop, proot
from agents_mobile.steps.chroot import CheckRootStep


class FakeStep:
    def __init__(self, step_id: str, log: List[str], fail: bool = False):
        self.step_id = step_id
        self.title = step_id
        self._log = log
        self._fail = fail

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        if self._fail:
            raise RuntimeError(f"{self.step_id} broke")
        self._log.append(self.step_id)
        return state


@pytest.mark.parametrize("mode", installer.MODES)
def test_build_steps_ids_are_unique(mode: str) -> None:
    ids = [s.step_id for s in installer.build_steps(mode)]
    assert ids
    assert len(ids) == len(set(ids))


@pytest.mark.parametrize("mode", installer.MODES)
def test_build_steps_ids_are_numbered_in_order(mode: str) -> None:
    numbers = [int(s.step_id.split("_", 1)[0]) for s in installer.build_steps(mode)]
    assert numbers == sorted(numbers)


def test_root_mode_checks_root_first_and_ends_with_deps() -> None:
    steps = installer.build_steps("root")
    assert isinstance(steps[0], CheckRootStep)
    assert steps[-1].step_id == "85_deps_report"


def test_unknown_mode() -> None:
    with pytest.raises(ValueError):
        installer.build_steps("windows")


def test_run_install_persists_progress(settings, tmp_path: Path, monkeypatch) -> None:
    log: List[str] = []
    monkeypatch.setattr(installer, "build_steps", lambda mode: [FakeStep("10_a", log), FakeStep("20_b", log)])
    state_path = str(tmp_path / "install-state.json")

    state = installer.run_install("desktop", settings=settings, state_path=state_path, with_omz=True)

    assert log == ["10_a", "20_b"]
    assert state["config"]["mode"] == "desktop"
    assert state["config"]["with_omz"] is True
    assert state["config"]["root"] == str(settings.root)
    saved = load_state(state_path)
    assert saved["execution"]["completed_steps"] == ["10_a", "20_b"]

    installer.run_install("desktop", settings=settings, state_path=state_path)
    assert log == ["10_a", "20_b"]

    installer.run_install("proot", settings=settings, state_path=state_path)
    assert log == ["10_a", "20_b", "10_a", "20_b"]


def test_run_install_records_error(settings, tmp_path: Path, monkeypatch) -> None:
    log: List[str] = []
    monkeypatch.setattr(
        installer,
        "build_steps",
        lambda mode: [FakeStep("10_a", log), FakeStep("20_b", log, fail=True)],
    )
    state_path = str(tmp_path / "install-state.json")

    with pytest.raises(RuntimeError, match="20_b broke"):
        installer.run_install("proot", settings=settings, state_path=state_path)

    saved = load_state(state_path)
    assert saved["execution"]["completed_steps"] == ["10_a"]
    assert saved["execution"]["errors"] == [{"step": "20_b", "error": "20_b broke"}]


def test_dry_run_does_not_save(settings, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(installer, "build_steps", lambda mode: [FakeStep("10_a", [])])
    state_path = tmp_path / "install-state.json"
    installer.run_install("deps", settings=settings, state_path=str(state_path), dry_run=True)
    assert not state_path.exists()


def _state(tmp_path: Path, **config) -> Dict[str, Any]:
    cfg = {
        "home": str(tmp_path / "home"),
        "root": str(tmp_path / "am"),
        "repo_dir": str(tmp_path / "am" / "agents-mobile"),
        "repo_url": "https://example.invalid/agents-mobile.git",
        "distro": "arch",
        "dry_run": False,
    }
    cfg.update(config)
    (tmp_path / "home").mkdir(exist_ok=True)
    return {"config": cfg, "platform": {}}


def test_clone_or_pull(tmp_path: Path, monkeypatch, fake_runner) -> None:
    runner = fake_runner()
    monkeypatch.setattr(common, "run_cmd", runner)
    state = _state(tmp_path)

    common.CloneRepoStep().run(state)
    (tmp_path / "am" / "agents-mobile" / ".git").mkdir(parents=True)
    common.CloneRepoStep().run(state)

    repo = str(tmp_path / "am" / "agents-mobile")
    assert runner.calls == [
        ["git", "clone", "https://example.invalid/agents-mobile.git", repo],
        ["git", "-C", repo, "pull"],
    ]
    assert state["results"]["repo"] == "pulled"


def test_install_aliases_copies_asset(tmp_path: Path) -> None:
    state = common.InstallAliasesStep().run(_state(tmp_path))
    dst = tmp_path / "am" / "aliases" / "core.zsh"
    assert state["results"]["aliases"] == str(dst)
    assert "agents-mobile" in dst.read_text(encoding="utf-8")


def test_configure_shell_sources_aliases_once(tmp_path: Path) -> None:
    state = _state(tmp_path)
    (tmp_path / "home" / ".zshrc").write_text("", encoding="utf-8")
    desktop.ConfigureShellStep().run(state)
    desktop.ConfigureShellStep().run(state)

    rc = (tmp_path / "home" / ".zshrc").read_text(encoding="utf-8")
    assert rc.count(f'source "{tmp_path / "am"}/aliases/core.zsh"') == 1
    assert state["results"]["rc_file"] == str(tmp_path / "home" / ".zshrc")


def test_install_system_deps_needs_package_manager(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError):
        desktop.InstallSystemDepsStep().run(_state(tmp_path))


def test_proot_launcher_written(tmp_path: Path) -> None:
    state = _state(tmp_path)
    state["platform"]["name"] = "termux"
    proot.ConfigureLauncherStep().run(state)

    launcher = tmp_path / "home" / ".local" / "bin" / "agents-mobile-proot"
    assert state["results"]["launcher"] == str(launcher)
    assert "DISTRO=arch" in launcher.read_text(encoding="utf-8")
    assert (tmp_path / "am" / "tmp").is_dir()


def test_guest_commands_on_generic_linux(tmp_path: Path, monkeypatch, fake_runner) -> None:
    runner = fake_runner()
    monkeypatch.setattr(proot, "run_cmd", runner)
    state = _state(tmp_path)
    state["platform"]["name"] = "debian"

    proot.GuestBunStep().run(state)

    argv = runner.calls[0]
    assert argv[:3] == ["proot", "-r", str(tmp_path / "am" / "rootfs")]
    assert argv[-2] == "-c"


def test_install_distro_unpacks_into_install_root(tmp_path: Path, monkeypatch) -> None:
    seen: Dict[str, Path] = {}
    monkeypatch.setattr(proot, "download", lambda url, dest, dry_run=False: seen.setdefault("tarball", dest))
    monkeypatch.setattr(proot, "extract", lambda tarball, target, dry_run=False: seen.setdefault("target", target))
    state = _state(tmp_path)
    state["platform"]["name"] = "debian"

    proot.InstallDistroStep().run(state)

    assert seen["target"] == tmp_path / "am" / "rootfs"
    assert seen["tarball"].parent == tmp_path / "am" / "tmp"
    assert state["results"]["distro"] == "extracted"
