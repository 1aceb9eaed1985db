from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from agents_mobile import bench


def _benchmarks(bun=0.0, single=0.0, multi=0.0, mem=0.0, write=0.0, read=0.0):
    return {
        "bun": {"time_ms": 0, "score": bun},
        "disk_io": {"write_mb_s": write, "read_mb_s": read},
        "cpu": {
            "single_thread": {"time_s": 0, "score": single},
            "multi_thread": {"time_s": 0, "score": multi, "cores_used": 1},
        },
        "memory": {"time_s": 0, "score": mem},
    }


def test_overall_score_weights() -> None:
    b = _benchmarks(bun=10, single=5, multi=20, mem=30, write=100, read=100)
    # 4 + 1 + 4 + 3 + (200 / 20) * 0.1
    assert bench.overall_score(b) == 13.0


@pytest.mark.parametrize(
    "score,label",
    [
        (51, "Excellent"),
        (50, "Good"),
        (20, "Good"),
        (19.9, "Fair"),
        (10, "Fair"),
        (9.99, "Needs optimization"),
    ],
)
def test_rating_bands(score: float, label: str) -> None:
    assert bench.rating(score).startswith(label)


def test_count_primes() -> None:
    assert bench.count_primes(100) == 25


def test_bench_bun_missing(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(bench, "command_exists", lambda name: False)
    assert bench.bench_bun(tmp_path) == {"time_ms": 0, "score": 0}


def test_bench_bun_scores_elapsed_ms(tmp_path: Path, monkeypatch, fake_runner) -> None:
    runner = fake_runner(lambda argv: (0, "250.00\n"))
    monkeypatch.setattr(bench, "command_exists", lambda name: True)
    monkeypatch.setattr(bench, "run_cmd", runner)

    assert bench.bench_bun(tmp_path) == {"time_ms": 250.0, "score": 40.0}
    assert runner.calls == [["bun", "run", str(tmp_path / "bench-bun.ts")]]
    assert "fib(35)" in (tmp_path / "bench-bun.ts").read_text(encoding="utf-8")


def test_bench_disk_cleans_up(tmp_path: Path) -> None:
    result = bench.bench_disk(tmp_path, size_mb=2)
    assert set(result) == {"write_mb_s", "read_mb_s"}
    assert result["write_mb_s"] > 0
    assert list(tmp_path.iterdir()) == []


def test_small_cpu_and_memory_benchmarks() -> None:
    assert bench.bench_cpu_single(limit=2000)["score"] > 0
    assert bench.bench_memory(elements=10_000)["score"] > 0
    multi = bench.bench_cpu_multi(cores=1, size_mb=1)
    assert multi["cores_used"] == 1
    assert multi["score"] > 0


def test_unknown_skip_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        bench.run_benchmarks(tmp_path, skip=["gpu"])


def test_run_writes_results_and_removes_tmp(settings) -> None:
    results_file = bench.run(settings, skip=bench.BENCHMARKS)

    assert results_file.parent == settings.paths.benchmarks_dir
    assert results_file.name.startswith("results-")
    payload = json.loads(results_file.read_text(encoding="utf-8"))
    assert set(payload) == {"timestamp", "system", "benchmarks", "overall_score"}
    assert set(payload["system"]) == {"cpu", "cores", "memory", "os"}
    assert payload["overall_score"] == 0
    assert payload["benchmarks"]["cpu"]["multi_thread"]["cores_used"] >= 1
    assert not Path(f"/tmp/agents-mobile-bench-{os.getpid()}").exists()
