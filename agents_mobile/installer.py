from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, List, Optional

from . import console
from .config import Settings, load_settings
from .lib.env import home
from .lib.tools import AGENT_HINTS
from .logging_utils import configure_logging
from .pipeline import run_pipeline
from .state_store import ensure_defaults, load_state, save_state
from .steps import (
    CheckProotStep,
    CloneRepoStep,
    ConfigureLauncherStep,
    ConfigureShellStep,
    DetectOSStep,
    DetectPackageManagerStep,
    DetectPlatformStep,
    FinalizeStep,
    GuestBunStep,
    InstallAliasesStep,
    InstallBunStep,
    InstallDistroStep,
    InstallHostDepsStep,
    InstallSystemDepsStep,
    LinkGuestAliasesStep,
    OptionalOhMyZshStep,
    chroot_steps,
    deps_steps,
)

logger = logging.getLogger(__name__)

MODES = ("root", "proot", "desktop", "deps")


def build_steps(mode: str) -> List[Any]:
    if mode == "root":
        return [*chroot_steps(), *deps_steps()]
    if mode == "proot":
        return [
            DetectPlatformStep(),
            InstallHostDepsStep(),
            CheckProotStep(),
            InstallDistroStep(),
            ConfigureLauncherStep(),
            GuestBunStep(),
            CloneRepoStep(),
            InstallAliasesStep(),
            LinkGuestAliasesStep(),
            FinalizeStep(),
        ]
    if mode == "desktop":
        return [
            DetectOSStep(),
            DetectPackageManagerStep(),
            InstallSystemDepsStep(),
            InstallBunStep(),
            CloneRepoStep(),
            OptionalOhMyZshStep(),
            InstallAliasesStep(),
            ConfigureShellStep(),
        ]
    if mode == "deps":
        return deps_steps()
    raise ValueError(f"Unknown install mode: {mode} (expected one of {', '.join(MODES)})")


def _seed_config(state: Dict[str, Any], settings: Settings, mode: str, options: Dict[str, Any]) -> None:
    """Copy resolved settings into state so each step (and a resumed run) sees them."""

    cfg = state["config"]
    cfg.update(
        {
            "mode": mode,
            "home": str(home()),
            "root": str(settings.root),
            "repo_dir": str(settings.paths.repo_dir),
            "repo_url": settings.repo_url,
            "arch_rootfs_dir": str(settings.arch_rootfs_dir),
            "distro": options.get("distro") or settings.distro,
            "dry_run": bool(options.get("dry_run", False)),
            "reinstall_bun": bool(options.get("reinstall_bun", False)),
            "with_omz": bool(options.get("with_omz", False)),
        }
    )


def run_install(
    mode: str,
    *,
    settings: Optional[Settings] = None,
    state_path: Optional[str] = None,
    log_path: Optional[str] = None,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    force: bool = False,
    **options: Any,
) -> Dict[str, Any]:
    """Run an installer pipeline, persisting state for resume."""

    settings = settings or load_settings()
    paths = settings.paths
    state_path = state_path or str(paths.install_state_file)
    actual_log_path = configure_logging(log_path=log_path or str(paths.logs_dir / "install.log"))

    steps = build_steps(mode)

    state = ensure_defaults(load_state(state_path))
    previous_mode = state["config"].get("mode")
    if previous_mode and previous_mode != mode:
        logger.info("Install mode changed (%s -> %s); resetting progress", previous_mode, mode)
        state["execution"]["completed_steps"] = []
    _seed_config(state, settings, mode, options)
    state["execution"].setdefault("paths", {})["log_path_actual"] = actual_log_path

    def _progress(index: int, total: int, step: Any) -> None:
        console.step(index, total, getattr(step, "title", step.step_id))

    try:
        result = run_pipeline(
            state=state,
            steps=steps,
            start_at=start_at,
            stop_after=stop_after,
            force=force,
            on_step=_progress,
        )
        state = result.state
        state["execution"].setdefault("summary", {})["ran_steps"] = result.ran_steps
        state["execution"]["summary"]["skipped_steps"] = result.skipped_steps
        return state
    except Exception as e:
        logger.exception("Installer failed")
        state.setdefault("execution", {}).setdefault("errors", []).append(
            {
                "step": (state.get("execution") or {}).get("current_step"),
                "error": str(e),
            }
        )
        raise
    finally:
        # A dry run must not mark steps completed for the real run.
        if not state["config"]["dry_run"]:
            save_state(state_path, state)


def print_summary(state: Dict[str, Any]) -> None:
    cfg = state.get("config") or {}
    mode = cfg.get("mode")
    results = state.get("results") or {}
    plat = state.get("platform") or {}

    console.banner("Installation Complete!", style="green")
    rows = [
        ("Installation directory", cfg.get("root")),
        ("Mode", mode),
        ("Platform", plat.get("pretty_name") or plat.get("name") or plat.get("deps_env")),
    ]
    if mode == "proot":
        rows.append(("Distribution", f"{cfg.get('distro')} (via PRoot)"))
    if results.get("launcher"):
        rows.append(("Launcher", results["launcher"]))
    if results.get("rc_file"):
        rows.append(("Shell rc", results["rc_file"]))
    for label, version in (results.get("tools") or {}).items():
        if version:
            rows.append((label, version))
    console.key_values("Summary", rows)

    if mode in ("root", "deps"):
        console.info("AI agents (optional - install manually if needed):")
        for name, hint in AGENT_HINTS:
            console.console.print(f"   - {name}: {hint}")
    if mode == "root":
        console.info("To start: bash ~/start-arch.sh")
    elif mode == "proot":
        console.info(f"To start: {results.get('launcher', 'agents-mobile-proot')}")
        console.warn("PRoot adds ~10-15% overhead vs native chroot; root + `install root` is faster")
    elif mode == "desktop":
        console.info("Reload your shell (source ~/.zshrc) then run `agents-mobile check install`")
        if plat.get("name") == "wsl":
            console.info("WSL: enable systemd with [boot] systemd=true in /etc/wsl.conf")


def add_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("mode", choices=MODES, help="root (chroot) | proot (no root) | desktop | deps")
    p.add_argument("--state", default=None, help="Path to install state (json|yaml)")
    p.add_argument("--log", default=None, help="Path to install log")
    p.add_argument("--start-at", default=None, help="Start at step_id (e.g. 40_extract_rootfs)")
    p.add_argument("--stop-after", default=None, help="Stop after step_id")
    p.add_argument("--force", action="store_true", help="Re-run steps even if marked completed")
    p.add_argument("--dry-run", action="store_true", help="Log commands without running them")
    p.add_argument("--distro", default=None, help="PRoot distro: arch | ubuntu | debian | alpine")
    p.add_argument("--reinstall-bun", action="store_true")
    p.add_argument("--with-omz", action="store_true", help="Install Oh My Zsh and plugins (desktop)")


def run_from_args(args: argparse.Namespace, settings: Settings) -> int:
    state = run_install(
        args.mode,
        settings=settings,
        state_path=args.state,
        log_path=args.log,
        start_at=args.start_at,
        stop_after=args.stop_after,
        force=args.force,
        dry_run=args.dry_run,
        distro=args.distro,
        reinstall_bun=args.reinstall_bun,
        with_omz=args.with_omz,
    )
    print_summary(state)
    return 0
