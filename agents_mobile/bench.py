"""Benchmark suite: Bun, disk I/O, CPU (single and multi core) and memory."""
from __future__ import annotations

import argparse
import gzip
import logging
import os
import platform
import shutil
import time
from concurrent.futures import ProcessPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import psutil

from . import console
from .config import Settings
from .lib.command import command_exists, run_cmd
from .lib.detect import parse_os_release
from .logging_utils import configure_logging
from .state_store import write_json_snapshot

logger = logging.getLogger(__name__)

BENCHMARKS = ("bun", "disk", "cpu_single", "cpu_multi", "memory")

DISK_TEST_MB = 100
PRIME_LIMIT = 50_000
COMPRESS_MB = 10
MEMORY_ELEMENTS = 1_000_000

BUN_SCRIPT = """\
function fib(n: number): number {
    return n <= 1 ? n : fib(n - 1) + fib(n - 2);
}

function arrayBench(): number {
    const arr = Array.from({ length: 1000000 }, (_, i) => i);
    return arr.reduce((sum, n) => sum + n, 0);
}

function objectBench(): number {
    let sum = 0;
    for (let i = 0; i < 100000; i++) {
        const obj = { a: i, b: i * 2, c: i * 3 };
        sum += obj.a + obj.b + obj.c;
    }
    return sum;
}

const start = performance.now();
fib(35);
arrayBench();
objectBench();
console.log((performance.now() - start).toFixed(2));
"""


def _score(numerator: float, elapsed: float) -> float:
    return round(numerator / elapsed, 2) if elapsed > 0 else 0.0


def _cpu_model() -> str:
    try:
        with open("/proc/cpuinfo", encoding="utf-8", errors="ignore") as f:
            for line in f:
                if line.lower().startswith(("model name", "hardware")):
                    return line.split(":", 1)[1].strip()
    except OSError:
        pass
    if platform.system() == "Darwin":
        r = run_cmd(["sysctl", "-n", "machdep.cpu.brand_string"], check=False)
        if r.stdout.strip():
            return r.stdout.strip()
    return platform.processor() or "unknown"


def system_info() -> Dict[str, Any]:
    return {
        "cpu": _cpu_model(),
        "cores": os.cpu_count() or 1,
        "memory": f"{psutil.virtual_memory().total // (1024 * 1024)} MB",
        "os": parse_os_release().get("PRETTY_NAME") or platform.system(),
    }


def bench_bun(tmp_dir: Path) -> Dict[str, Any]:
    if not command_exists("bun"):
        console.fail("Bun not installed - skipping")
        return {"time_ms": 0, "score": 0}
    script = tmp_dir / "bench-bun.ts"
    script.write_text(BUN_SCRIPT, encoding="utf-8")
    r = run_cmd(["bun", "run", str(script)], check=False)
    try:
        elapsed_ms = float(r.stdout.strip().splitlines()[-1])
    except (IndexError, ValueError):
        logger.warning("Unexpected bun output (rc=%s): %r", r.returncode, r.stdout)
        return {"time_ms": 0, "score": 0}
    return {"time_ms": elapsed_ms, "score": _score(10000, elapsed_ms)}


def bench_disk(tmp_dir: Path, size_mb: int = DISK_TEST_MB) -> Dict[str, Any]:
    test_file = tmp_dir / "io-test.bin"
    block = b"\0" * (1024 * 1024)

    start = time.perf_counter()
    with open(test_file, "wb") as f:
        for _ in range(size_mb):
            f.write(block)
        f.flush()
        os.fsync(f.fileno())
    write_time = time.perf_counter() - start

    start = time.perf_counter()
    with open(test_file, "rb") as f:
        while f.read(len(block)):
            pass
    read_time = time.perf_counter() - start

    test_file.unlink(missing_ok=True)
    return {"write_mb_s": _score(size_mb, write_time), "read_mb_s": _score(size_mb, read_time)}


def count_primes(limit: int) -> int:
    """Trial division, deliberately naive."""

    count = 0
    for i in range(2, limit):
        j = 2
        while j * j <= i:
            if i % j == 0:
                break
            j += 1
        else:
            count += 1
    return count


def bench_cpu_single(limit: int = PRIME_LIMIT) -> Dict[str, Any]:
    start = time.perf_counter()
    count_primes(limit)
    elapsed = time.perf_counter() - start
    return {"time_s": round(elapsed, 3), "score": _score(100, elapsed)}


def _compress_random(size_mb: int) -> int:
    return len(gzip.compress(os.urandom(size_mb * 1024 * 1024)))


def bench_cpu_multi(cores: Optional[int] = None, size_mb: int = COMPRESS_MB) -> Dict[str, Any]:
    cores = cores or os.cpu_count() or 1
    start = time.perf_counter()
    with ProcessPoolExecutor(max_workers=cores) as pool:
        list(pool.map(_compress_random, [size_mb] * cores))
    elapsed = time.perf_counter() - start
    return {"time_s": round(elapsed, 3), "score": _score(cores * 10, elapsed), "cores_used": cores}


def bench_memory(elements: int = MEMORY_ELEMENTS) -> Dict[str, Any]:
    start = time.perf_counter()
    arr = [0] * elements
    for i in range(elements):
        arr[i] = i
    elapsed = time.perf_counter() - start
    del arr
    return {"time_s": round(elapsed, 3), "score": _score(1000, elapsed)}


def overall_score(benchmarks: Dict[str, Any]) -> float:
    disk = benchmarks["disk_io"]
    cpu = benchmarks["cpu"]
    total = (
        benchmarks["bun"]["score"] * 0.4
        + cpu["single_thread"]["score"] * 0.2
        + cpu["multi_thread"]["score"] * 0.2
        + benchmarks["memory"]["score"] * 0.1
        + (disk["write_mb_s"] + disk["read_mb_s"]) / 20 * 0.1
    )
    return round(total, 2)


def rating(score: float) -> str:
    if score > 50:
        return "Excellent (Desktop-class)"
    if score >= 20:
        return "Good (Mobile high-end)"
    if score >= 10:
        return "Fair (Mobile mid-range)"
    return "Needs optimization"


def run_benchmarks(tmp_dir: Path, skip: Iterable[str] = ()) -> Dict[str, Any]:
    skipped = set(skip)
    unknown = skipped - set(BENCHMARKS)
    if unknown:
        raise ValueError(f"Unknown benchmark(s): {', '.join(sorted(unknown))}")

    cores = os.cpu_count() or 1
    results: Dict[str, Any] = {
        "bun": {"time_ms": 0, "score": 0},
        "disk_io": {"write_mb_s": 0, "read_mb_s": 0},
        "cpu": {
            "single_thread": {"time_s": 0, "score": 0},
            "multi_thread": {"time_s": 0, "score": 0, "cores_used": cores},
        },
        "memory": {"time_s": 0, "score": 0},
    }
    plan = [
        ("bun", "Benchmarking Bun runtime...", lambda: results.update(bun=bench_bun(tmp_dir))),
        ("disk", "Benchmarking disk I/O...", lambda: results.update(disk_io=bench_disk(tmp_dir))),
        ("cpu_single", "Benchmarking CPU (single-thread)...",
         lambda: results["cpu"].update(single_thread=bench_cpu_single())),
        ("cpu_multi", "Benchmarking CPU (multi-thread)...",
         lambda: results["cpu"].update(multi_thread=bench_cpu_multi(cores))),
        ("memory", "Benchmarking memory bandwidth...", lambda: results.update(memory=bench_memory())),
    ]
    for index, (name, title, job) in enumerate(plan, start=1):
        console.step(index, len(plan), title)
        if name in skipped:
            console.warn(f"{name} skipped")
            continue
        job()
        logger.info("Benchmark %s done", name)
    return results


def print_summary(payload: Dict[str, Any], results_file: Path) -> None:
    system = payload["system"]
    b = payload["benchmarks"]
    console.banner("BENCHMARK RESULTS SUMMARY", style="magenta")
    console.key_values(
        "🖥️  System",
        [("CPU", system["cpu"]), ("Cores", system["cores"]), ("Memory", system["memory"]), ("OS", system["os"])],
        style="cyan",
    )
    console.key_values(
        "⚡ Performance Scores",
        [
            ("Bun Runtime", f"{b['bun']['score']} ({b['bun']['time_ms']}ms)"),
            ("CPU Single-Thread", b["cpu"]["single_thread"]["score"]),
            ("CPU Multi-Thread", f"{b['cpu']['multi_thread']['score']} ({b['cpu']['multi_thread']['cores_used']} cores)"),
            ("Memory", b["memory"]["score"]),
            ("Disk Write", f"{b['disk_io']['write_mb_s']} MB/s"),
            ("Disk Read", f"{b['disk_io']['read_mb_s']} MB/s"),
        ],
        style="cyan",
    )
    console.console.print(
        f"[yellow]🏆 OVERALL SCORE: {payload['overall_score']} - {rating(payload['overall_score'])}[/yellow]"
    )
    console.info(f"📁 Full results: {results_file}")


def run(settings: Settings, skip: Iterable[str] = ()) -> Path:
    console.banner("🔥 AGENTS-MOBILE BENCHMARK SUITE 🔥")
    tmp_dir = Path(f"/tmp/agents-mobile-bench-{os.getpid()}")
    tmp_dir.mkdir(parents=True, exist_ok=True)
    try:
        system = system_info()
        console.ok(f"CPU: {system['cpu']} ({system['cores']} cores)")
        console.ok(f"Memory: {system['memory']}")
        console.ok(f"OS: {system['os']}")

        benchmarks = run_benchmarks(tmp_dir, skip)
        payload = {
            "timestamp": datetime.now().astimezone().isoformat(timespec="seconds"),
            "system": system,
            "benchmarks": benchmarks,
            "overall_score": overall_score(benchmarks),
        }
        results_file = settings.paths.benchmarks_dir / f"results-{datetime.now():%Y%m%d-%H%M%S}.json"
        write_json_snapshot(results_file, payload)
        logger.info("Results saved: %s (overall=%s)", results_file, payload["overall_score"])
        print_summary(payload, results_file)
        return results_file
    finally:
        shutil.rmtree(tmp_dir, ignore_errors=True)


def add_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--skip",
        nargs="*",
        default=[],
        choices=BENCHMARKS,
        metavar="NAME",
        help=f"Benchmarks to skip: {', '.join(BENCHMARKS)}",
    )


def run_from_args(args: argparse.Namespace, settings: Settings) -> int:
    configure_logging(log_path=str(settings.paths.logs_dir / "bench.log"))
    run(settings, skip=args.skip)
    return 0
