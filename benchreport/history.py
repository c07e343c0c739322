"""Keep a rolling history of benchmark runs and render a trend report."""

from __future__ import annotations

import math
import os
import re
import sys
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .common import read_json, write_json_pretty
from .report import BenchmarkSummary, is_protected_case, summary_from_dict

_USIZE = re.compile(r"\+?[0-9]+")


@dataclass
class HistoryRun:
    """Medians of one benchmark run and their geometric mean."""

    run_id: str
    branch: str
    git_sha: str
    generated_at_unix: int
    case_count: int
    geometric_mean_ns: float
    medians: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "branch": self.branch,
            "git_sha": self.git_sha,
            "generated_at_unix": self.generated_at_unix,
            "case_count": self.case_count,
            "geometric_mean_ns": self.geometric_mean_ns,
            "medians": dict(sorted(self.medians.items())),
        }


@dataclass
class BenchmarkHistory:
    """Runs ordered by generation time, oldest first."""

    runs: list[HistoryRun] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"runs": [run.to_dict() for run in self.runs]}


@dataclass(frozen=True)
class CliArgs:
    """Paths and limits given on the command line."""

    history_path: Path = Path("coverage/benchmarks/baseline/history.json")
    max_runs: int = 20
    output_md: Path = Path("coverage/benchmarks/history.md")
    summary_path: Path = Path("coverage/benchmarks/summary.json")


def _run_from_dict(data: Mapping[str, Any]) -> HistoryRun:
    return HistoryRun(
        run_id=str(data["run_id"]),
        branch=str(data["branch"]),
        git_sha=str(data["git_sha"]),
        generated_at_unix=int(data["generated_at_unix"]),
        case_count=int(data["case_count"]),
        geometric_mean_ns=float(data["geometric_mean_ns"]),
        medians={str(k): float(v) for k, v in sorted(data["medians"].items())},
    )


def history_from_dict(data: Mapping[str, Any]) -> BenchmarkHistory:
    """Build a history from its JSON form."""
    try:
        return BenchmarkHistory(runs=[_run_from_dict(run) for run in data["runs"]])
    except KeyError as exc:
        raise ValueError(f"missing field {exc.args[0]!r} in benchmark history") from exc


def parse_args(argv: Sequence[str]) -> CliArgs:
    """Parse ``--history``, ``--max-runs``, ``--output-md`` and ``--summary``."""
    values: dict[str, Any] = {}
    path_flags = {"--history": "history_path", "--output-md": "output_md",
                  "--summary": "summary_path"}
    args = iter(argv)
    for arg in args:
        if arg not in path_flags and arg != "--max-runs":
            raise ValueError(f"unknown argument: {arg}")
        value = next(args, None)
        if value is None:
            raise ValueError(f"missing value for {arg}")
        if arg == "--max-runs":
            if not _USIZE.fullmatch(value):
                raise ValueError(f"invalid usize for {arg}: {value}")
            values["max_runs"] = int(value)
        else:
            values[path_flags[arg]] = Path(value)
    return CliArgs(**values)


def collect_nabled_medians(summary: BenchmarkSummary) -> dict[str, float]:
    """Map full id to median for the library's own cases, sorted by id."""
    medians = {e.full_id: e.median_ns for e in summary.entries if is_protected_case(e)}
    return dict(sorted(medians.items()))


def geometric_mean_ns(values: Iterable[float]) -> float:
    """Geometric mean of the finite positive values, or 0.0 if there are none."""
    positives = [v for v in values if math.isfinite(v) and v > 0.0]
    if not positives:
        return 0.0
    return math.exp(sum(math.log(v) for v in positives) / len(positives))


def build_current_run(
    summary: BenchmarkSummary,
    medians: Mapping[str, float],
    environ: Mapping[str, str] | None = None,
) -> HistoryRun:
    """Describe the current run, taking identifiers from CI variables when present."""
    env = os.environ if environ is None else environ
    medians = dict(sorted(medians.items()))
    return HistoryRun(
        run_id=env.get("GITHUB_RUN_ID", f"local-{summary.generated_at_unix}"),
        branch=env.get("GITHUB_REF_NAME", "local"),
        git_sha=env.get("GITHUB_SHA", summary.git_sha),
        generated_at_unix=summary.generated_at_unix,
        case_count=len(medians),
        geometric_mean_ns=geometric_mean_ns(medians.values()),
        medians=medians,
    )


def load_history(path: str | Path) -> BenchmarkHistory:
    """Read the history at ``path``, or an empty one if the file does not exist."""
    if not Path(path).exists():
        return BenchmarkHistory()
    return history_from_dict(read_json(path))


def upsert_run(history: BenchmarkHistory, run: HistoryRun) -> None:
    """Replace the run with the same id or add it, then order runs by time."""
    for index, existing in enumerate(history.runs):
        if existing.run_id == run.run_id:
            history.runs[index] = run
            break
    else:
        history.runs.append(run)
    history.runs.sort(key=lambda r: r.generated_at_unix)


def trim_history(history: BenchmarkHistory, max_runs: int) -> None:
    """Drop the oldest runs so that at most ``max_runs`` remain."""
    excess = len(history.runs) - max_runs
    if excess > 0:
        del history.runs[:excess]


def min_max_for_benchmark(runs: Iterable[HistoryRun], benchmark: str) -> tuple[float, float]:
    """Smallest and largest median of ``benchmark`` across ``runs``; (0.0, 0.0) if unknown."""
    values = [
        run.medians[benchmark]
        for run in runs
        if benchmark in run.medians and not math.isnan(run.medians[benchmark])
    ]
    if not values:
        return 0.0, 0.0
    low, high = min(values), max(values)
    if math.isfinite(low) and math.isfinite(high):
        return low, high
    return 0.0, 0.0


def format_percent_delta(current: float, reference: float | None) -> str:
    """Percentage change from ``reference`` to ``current``, or ``n/a``."""
    if reference is None or reference <= sys.float_info.epsilon:
        return "n/a"
    return f"{(current - reference) / reference * 100.0:.2f}%"


def render_history_markdown(history: BenchmarkHistory) -> str:
    """Render the trend report as Markdown."""
    lines = [
        "# Benchmark Trend (Last N Runs)",
        "",
        f"- runs in window: `{len(history.runs)}`",
        "",
    ]
    if not history.runs:
        lines.append("No benchmark history available yet.")
        return "\n".join(lines) + "\n"

    lines += [
        "## Run Summary",
        "",
        "| Run ID | Branch | SHA | Cases | Geomean ns | Delta vs Prev | Delta vs First |",
        "|---|---|---|---:|---:|---:|---:|",
    ]
    first_geomean = history.runs[0].geometric_mean_ns
    previous: float | None = None
    for run in history.runs:
        delta_prev = format_percent_delta(run.geometric_mean_ns, previous)
        delta_first = format_percent_delta(run.geometric_mean_ns, first_geomean)
        lines.append(
            f"| `{run.run_id}` | `{run.branch}` | `{run.git_sha[:12]}` | {run.case_count} "
            f"| {run.geometric_mean_ns:.3f} | {delta_prev} | {delta_first} |"
        )
        previous = run.geometric_mean_ns

    lines += [
        "",
        "## Latest Case Snapshot",
        "",
        "| Benchmark | Latest Median (ns) | Prev Median (ns) | Delta vs Prev "
        "| Window Min-Max (ns) |",
        "|---|---:|---:|---:|---|",
    ]
    latest = history.runs[-1]
    previous_run = history.runs[-2] if len(history.runs) > 1 else None
    for benchmark, latest_ns in sorted(latest.medians.items()):
        prev_ns = previous_run.medians.get(benchmark) if previous_run else None
        delta_prev = format_percent_delta(latest_ns, prev_ns)
        low, high = min_max_for_benchmark(history.runs, benchmark)
        prev_str = "n/a" if prev_ns is None else f"{prev_ns:.3f}"
        lines.append(
            f"| `{benchmark}` | {latest_ns:.3f} | {prev_str} | {delta_prev} "
            f"| {low:.3f} - {high:.3f} |"
        )
    return "\n".join(lines) + "\n"


def write_history_markdown(path: str | Path, history: BenchmarkHistory) -> None:
    """Write the trend report to ``path``."""
    Path(path).write_text(render_history_markdown(history), encoding="utf-8")


def main(argv: Sequence[str] | None = None) -> int:
    """Add the current summary to the history and refresh the trend report."""
    raw = sys.argv[1:] if argv is None else list(argv)
    try:
        args = parse_args(raw)
        args.history_path.parent.mkdir(parents=True, exist_ok=True)
        args.output_md.parent.mkdir(parents=True, exist_ok=True)

        summary = summary_from_dict(read_json(args.summary_path))
        run = build_current_run(summary, collect_nabled_medians(summary))

        history = load_history(args.history_path)
        upsert_run(history, run)
        trim_history(history, args.max_runs)

        write_json_pretty(args.history_path, history.to_dict())
        write_history_markdown(args.output_md, history)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(f"Updated benchmark history at {args.history_path}")
    print(f"Wrote benchmark trend markdown to {args.output_md}")
    return 0


if __name__ == "__main__":
    sys.exit(main())