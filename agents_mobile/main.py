from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from . import __version__, bench, checks, console, installer, launcher, stop, watchdog
from .config import Settings, load_settings
from .lib.detect import collect_report, recommend
from .logging_utils import configure_logging
from .state_store import write_json_snapshot

logger = logging.getLogger(__name__)


def cmd_detect(args: argparse.Namespace, settings: Settings) -> int:
    configure_logging(log_path=str(settings.paths.logs_dir / "detect.log"))
    console.info("🔍 Detecting environment...")
    report = collect_report()
    rows = [
        ("OS", report["os"] + (f" ({report['os_detail']})" if report.get("os_detail") else "")),
        ("Architecture", report["arch"]),
        ("Root access", report["root"]),
        ("CPU cores", report["cpu_cores"]),
        ("Total RAM", report["total_ram"]),
        ("Bun", report["bun_installed"]),
    ]
    console.key_values("Environment Detection", rows)

    rec = recommend(report)
    report["recommendation"] = rec
    if rec["mode"] == "manual":
        console.warn(rec["note"])
    else:
        console.ok(f"Recommended: agents-mobile install {rec['mode']}")
        if rec.get("alternative"):
            console.info(f"Alternative: agents-mobile install {rec['alternative']}")
        if rec.get("note"):
            console.info(rec["note"])

    path = write_json_snapshot(Path(args.output) if args.output else settings.paths.detection_report, report)
    console.info(f"Report saved: {path}")
    return 0


def cmd_start(args: argparse.Namespace, settings: Settings) -> int:
    configure_logging(log_path=str(settings.paths.logs_dir / "start.log"))
    command = list(args.command)
    if command[:1] == ["--"]:
        command = command[1:]
    return launcher.start(settings, command, info=args.info)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="agents-mobile")
    p.add_argument("--config", default=None, help="Path to config.yaml (default: <root>/config.yaml)")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="cmd", required=True)

    d = sub.add_parser("detect", help="Detect the environment and recommend an install mode")
    d.add_argument("--output", default=None, help="Where to write detection-report.json")
    d.set_defaults(func=cmd_detect)

    i = sub.add_parser("install", help="Install Agents-Mobile (root | proot | desktop | deps)")
    installer.add_arguments(i)
    i.set_defaults(func=installer.run_from_args)

    s = sub.add_parser("start", help="Enter the Agents-Mobile environment")
    s.add_argument("--info", action="store_true", help="Show environment information and exit")
    s.add_argument("command", nargs=argparse.REMAINDER, help="Command to run instead of the login shell")
    s.set_defaults(func=cmd_start)

    st = sub.add_parser("stop", help="Stop processes, unmount and clean up")
    stop.add_arguments(st)
    st.set_defaults(func=stop.run_from_args)

    w = sub.add_parser("watchdog", help="Thermal and battery watchdog")
    watchdog.add_arguments(w)
    w.set_defaults(func=watchdog.run_from_args)

    b = sub.add_parser("bench", help="Run the benchmark suite")
    bench.add_arguments(b)
    b.set_defaults(func=bench.run_from_args)

    c = sub.add_parser("check", help="Verify an installation or the chroot mounts")
    checks.add_arguments(c)
    c.set_defaults(func=checks.run_from_args)
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args.config)
        return int(args.func(args, settings) or 0)
    except (RuntimeError, FileNotFoundError, ValueError) as e:
        logger.error("%s failed: %s", args.cmd, e)
        console.fail(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
