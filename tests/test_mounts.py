from __future__ import annotations

from pathlib import Path

from agents_mobile.lib import mounts
from agents_mobile.lib.mounts import (
    LAUNCH_MOUNTS,
    UNMOUNT_ORDER,
    MountSpec,
    is_mountpoint,
    mount_all,
    mount_types,
    unmount_all,
)


def _mounts_file(tmp_path: Path, *entries) -> Path:
    path = tmp_path / "mounts"
    path.write_text(
        "".join(f"{src} {dst} {fstype} rw 0 0\n" for src, dst, fstype in entries),
        encoding="utf-8",
    )
    return path


def test_mount_types_parses_escapes(tmp_path: Path) -> None:
    path = _mounts_file(tmp_path, ("proc", "/proc", "proc"), ("/dev/sda1", "/mnt/my\\040disk", "ext4"))
    assert mount_types(path) == {"/proc": "proc", "/mnt/my disk": "ext4"}
    assert is_mountpoint(Path("/mnt/my disk"), path)
    assert mount_types(tmp_path / "missing") == {}


def test_mount_spec_argv(tmp_path: Path) -> None:
    assert MountSpec("/dev", "dev", bind=True).argv(tmp_path) == ["mount", "--bind", "/dev", str(tmp_path / "dev")]
    shm = MountSpec("tmpfs", "dev/shm", fstype="tmpfs", options="size=2G")
    assert shm.argv(tmp_path) == ["mount", "-t", "tmpfs", "-o", "size=2G", "tmpfs", str(tmp_path / "dev/shm")]


def test_mount_all_is_idempotent(tmp_path: Path, monkeypatch, fake_runner) -> None:
    root = tmp_path / "arch"
    runner = fake_runner()
    monkeypatch.setattr(mounts, "run_cmd", runner)
    mounts_file = _mounts_file(tmp_path, ("proc", str(root / "proc"), "proc"))
    storage = MountSpec(str(tmp_path / "no-storage"), "mnt/termux", bind=True, require_source=True)

    outcome = mount_all(root, [*LAUNCH_MOUNTS[:5], storage], mounts_file=mounts_file)

    assert outcome == {
        "proc": "already",
        "sys": "mounted",
        "dev": "mounted",
        "dev/pts": "mounted",
        "dev/shm": "mounted",
        "mnt/termux": "skipped",
    }
    assert [c[-1] for c in runner.calls] == [str(root / t) for t in ("sys", "dev", "dev/pts", "dev/shm")]
    assert (root / "dev/shm").is_dir()


def test_launch_shm_left_alone_when_dir_exists(tmp_path: Path, monkeypatch, fake_runner) -> None:
    root = tmp_path / "arch"
    (root / "dev" / "shm").mkdir(parents=True)
    runner = fake_runner()
    monkeypatch.setattr(mounts, "run_cmd", runner)
    shm = next(spec for spec in LAUNCH_MOUNTS if spec.target == "dev/shm")

    outcome = mount_all(root, [shm], mounts_file=_mounts_file(tmp_path))

    assert outcome == {"dev/shm": "skipped"}
    assert runner.calls == []


def test_mount_failure_is_reported_not_raised(tmp_path: Path, monkeypatch, fake_runner) -> None:
    monkeypatch.setattr(mounts, "run_cmd", fake_runner(lambda argv: (32, "")))
    outcome = mount_all(tmp_path, [MountSpec("proc", "proc", fstype="proc")], mounts_file=tmp_path / "none")
    assert outcome == {"proc": "failed"}


def test_unmount_all_order_and_lazy_fallback(tmp_path: Path, monkeypatch, fake_runner) -> None:
    root = tmp_path / "arch"
    mounts_file = _mounts_file(
        tmp_path,
        ("proc", str(root / "proc"), "proc"),
        ("tmpfs", str(root / "dev/shm"), "tmpfs"),
    )

    def respond(argv):
        busy = argv == ["umount", str(root / "dev/shm")]
        return (1 if busy else 0), ""

    runner = fake_runner(respond)
    monkeypatch.setattr(mounts, "run_cmd", runner)

    outcome = unmount_all(root, UNMOUNT_ORDER, mounts_file=mounts_file)

    assert outcome == {"dev/shm": "lazy", "proc": "unmounted"}
    assert runner.calls == [
        ["umount", str(root / "dev/shm")],
        ["umount", "-l", str(root / "dev/shm")],
        ["umount", str(root / "proc")],
    ]


def test_unmount_order_is_most_nested_first() -> None:
    assert UNMOUNT_ORDER.index("dev/shm") < UNMOUNT_ORDER.index("dev")
    assert UNMOUNT_ORDER.index("dev/pts") < UNMOUNT_ORDER.index("dev")
    assert UNMOUNT_ORDER[-1] == "proc"
