"""Collect Criterion benchmark output into summary artifacts and a regression report."""

from __future__ import annotations

import math
import os
import re
import sys
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from .common import command_output, now_unix_secs, read_json, write_json_pretty

OUTPUT_ROOT = Path("coverage/benchmarks")
CANDIDATE_ROOTS = (Path("target/criterion"), Path("crates/nabled/target/criterion"))

_DOMAIN_PREFIXES = (
    ("svd_", "svd"),
    ("qr_", "qr"),
    ("triangular_", "triangular"),
    ("matrix_functions_", "matrix_functions"),
    ("lu_", "lu"),
    ("cholesky_", "cholesky"),
    ("eigen_", "eigen"),
    ("vector_", "vector"),
    ("sparse_", "sparse"),
    ("schur_", "schur"),
    ("sylvester_", "sylvester"),
    ("optimization_", "optimization"),
)

_NATIVE_GROUPS = frozenset(f"{domain}_nabled_ndarray" for _, domain in _DOMAIN_PREFIXES)

_COMPETITOR_GROUPS = {
    "svd_competitor_faer_direct": ("faer_direct", "faer_direct"),
    "qr_competitor_faer_direct": ("faer_direct", "faer_direct"),
    "svd_competitor_ndarray_linalg": ("ndarray_linalg", "ndarray_linalg"),
    "qr_competitor_ndarray_linalg": ("ndarray_linalg", "ndarray_linalg"),
    "vector_competitor_ndarray": ("ndarray_baseline", "ndarray_baseline"),
    "sparse_competitor_ndarray": ("ndarray_baseline", "ndarray_baseline"),
    "optimization_competitor_manual": ("manual_baseline", "manual_baseline"),
}

_BENCH_NAMES = (
    "svd", "qr", "triangular", "matrix_functions", "lu", "cholesky",
    "eigen", "vector", "sparse", "schur", "sylvester", "optimization",
)

_USIZE = re.compile(r"\+?[0-9]+")


@dataclass
class BenchmarkEntry:
    """One benchmark case with its timing estimates."""

    domain: str
    operation: str
    backend: str
    competitor: str
    group_id: str
    function_id: str
    full_id: str
    shape: str
    rows: int
    cols: int
    size: int
    dtype: str
    mean_ns: float
    median_ns: float
    std_dev_ns: float
    throughput: str | None
    correctness: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BenchmarkSummary:
    """All benchmark entries of one run with information about where they came from."""

    generated_at_unix: int
    git_sha: str
    rustc_version: str
    source: str
    entries: list[BenchmarkEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at_unix": self.generated_at_unix,
            "git_sha": self.git_sha,
            "rustc_version": self.rustc_version,
            "source": self.source,
            "entries": [entry.to_dict() for entry in self.entries],
        }


@dataclass(frozen=True)
class RegressionPolicy:
    """Thresholds that decide when a slower median counts as a regression."""

    warn_pct: float = 5.0
    fail_pct: float = 10.0
    min_regression_ns: float = 25_000.0
    min_baseline_ns: float = 0.0


@dataclass(frozen=True)
class RegressionSummary:
    """Outcome of comparing a summary with the baseline."""

    baseline_found: bool
    fail_count: int


def entry_from_dict(data: Mapping[str, Any]) -> BenchmarkEntry:
    """Build an entry from its JSON form."""
    try:
        return BenchmarkEntry(
            domain=str(data["domain"]),
            operation=str(data["operation"]),
            backend=str(data["backend"]),
            competitor=str(data["competitor"]),
            group_id=str(data["group_id"]),
            function_id=str(data["function_id"]),
            full_id=str(data["full_id"]),
            shape=str(data["shape"]),
            rows=int(data["rows"]),
            cols=int(data["cols"]),
            size=int(data["size"]),
            dtype=str(data["dtype"]),
            mean_ns=float(data["mean_ns"]),
            median_ns=float(data["median_ns"]),
            std_dev_ns=float(data["std_dev_ns"]),
            throughput=data.get("throughput"),
            correctness=str(data["correctness"]),
        )
    except KeyError as exc:
        raise ValueError(f"missing field {exc.args[0]!r} in benchmark entry") from exc


def summary_from_dict(data: Mapping[str, Any]) -> BenchmarkSummary:
    """Build a summary from its JSON form."""
    try:
        return BenchmarkSummary(
            generated_at_unix=int(data["generated_at_unix"]),
            git_sha=str(data["git_sha"]),
            rustc_version=str(data["rustc_version"]),
            source=str(data["source"]),
            entries=[entry_from_dict(item) for item in data["entries"]],
        )
    except KeyError as exc:
        raise ValueError(f"missing field {exc.args[0]!r} in benchmark summary") from exc


def _parse_usize(text: str) -> int:
    return int(text) if _USIZE.fullmatch(text) else 0


def parse_shape_dims(value: str) -> tuple[str, int, int]:
    """Split a value string such as ``square-32x32`` into shape, rows and columns."""
    shape, sep, dims = value.partition("-")
    if not sep:
        return "unknown", 0, 0
    rows_text, sep, cols_text = dims.partition("x")
    if not sep:
        return shape, 0, 0
    return shape, _parse_usize(rows_text), _parse_usize(cols_text)


def classify_benchmark(group_id: str, function_id: str) -> tuple[str, str, str, str]:
    """Return domain, backend, competitor and operation for a benchmark group."""
    domain = next(
        (name for prefix, name in _DOMAIN_PREFIXES if group_id.startswith(prefix)), "unknown"
    )
    if group_id in _NATIVE_GROUPS:
        backend, competitor = "ndarray", "none"
    else:
        backend, competitor = _COMPETITOR_GROUPS.get(group_id, ("unknown", "unknown"))
    return domain, backend, competitor, function_id


def is_protected_case(entry: BenchmarkEntry) -> bool:
    """Only the library's own cases, not competitors, take part in regression checks."""
    return entry.competitor == "none"


def collect_benchmark_json_files(root: str | Path) -> list[Path]:
    """Find every ``new/benchmark.json`` below ``root``."""
    found: list[Path] = []

    def walk(directory: Path) -> None:
        for path in directory.iterdir():
            if path.is_dir():
                walk(path)
            elif path.name == "benchmark.json" and path.parent.name == "new":
                found.append(path)

    walk(Path(root))
    return sorted(found)


def _point_estimate(estimates: Mapping[str, Any], name: str) -> float:
    return float(estimates[name]["point_estimate"])


def load_entries(roots: Iterable[str | Path]) -> list[BenchmarkEntry]:
    """Read all benchmark cases below ``roots``, sorted by full id."""
    files = sorted({path for root in roots for path in collect_benchmark_json_files(root)})
    entries = []
    for benchmark_path in files:
        benchmark = read_json(benchmark_path)
        estimates_path = benchmark_path.with_name("estimates.json")
        if not estimates_path.exists():
            continue
        estimates = read_json(estimates_path)
        try:
            group_id = str(benchmark["group_id"])
            function_id = str(benchmark["function_id"])
            value_str = str(benchmark["value_str"])
            full_id = str(benchmark["full_id"])
            mean_ns = _point_estimate(estimates, "mean")
            median_ns = _point_estimate(estimates, "median")
            std_dev_ns = _point_estimate(estimates, "std_dev")
        except (KeyError, TypeError) as exc:
            raise ValueError(f"malformed benchmark data at {benchmark_path}") from exc

        shape, rows, cols = parse_shape_dims(value_str)
        domain, backend, competitor, operation = classify_benchmark(group_id, function_id)
        entries.append(
            BenchmarkEntry(
                domain=domain,
                operation=operation,
                backend=backend,
                competitor=competitor,
                group_id=group_id,
                function_id=function_id,
                full_id=full_id,
                shape=shape,
                rows=rows,
                cols=cols,
                size=min(rows, cols),
                dtype="f64",
                mean_ns=mean_ns,
                median_ns=median_ns,
                std_dev_ns=std_dev_ns,
                throughput=None,
                correctness="passed",
            )
        )
    entries.sort(key=lambda entry: entry.full_id)
    return entries


def build_summary(roots: Sequence[str | Path]) -> BenchmarkSummary:
    """Gather entries from ``roots`` and stamp them with time and tool versions."""
    entries = load_entries(roots)
    return BenchmarkSummary(
        generated_at_unix=now_unix_secs(),
        git_sha=command_output("git", ["rev-parse", "--short", "HEAD"]),
        rustc_version=command_output("rustc", ["-V"]),
        source=",".join(str(root) for root in roots),
        entries=entries,
    )


def env_f64(environ: Mapping[str, str], key: str, default: float) -> float:
    """Read a finite, non-negative float from ``environ``, falling back to ``default``."""
    raw = environ.get(key)
    if raw is None or raw != raw.strip() or "_" in raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if not math.isfinite(value) or value < 0.0:
        return default
    return value


def regression_policy_from_env(environ: Mapping[str, str] | None = None) -> RegressionPolicy:
    """Build the regression policy from ``BENCH_*`` variables."""
    env = os.environ if environ is None else environ
    return RegressionPolicy(
        warn_pct=env_f64(env, "BENCH_WARN_PCT", 5.0),
        fail_pct=env_f64(env, "BENCH_FAIL_PCT", 10.0),
        min_regression_ns=env_f64(env, "BENCH_MIN_REGRESSION_NS", 25_000.0),
        min_baseline_ns=env_f64(env, "BENCH_MIN_BASELINE_NS", 0.0),
    )


def write_summary_json(output_root: str | Path, summary: BenchmarkSummary) -> None:
    """Write ``summary.json`` into ``output_root``."""
    write_json_pretty(Path(output_root) / "summary.json", summary.to_dict())


def write_summary_csv(output_root: str | Path, summary: BenchmarkSummary) -> None:
    """Write ``summary.csv`` into ``output_root``."""
    lines = [
        "domain,backend,competitor,operation,size,shape,rows,cols,dtype,time_ns,median_ns,"
        "std_dev_ns,throughput,correctness,full_id"
    ]
    for e in summary.entries:
        lines.append(
            f"{e.domain},{e.backend},{e.competitor},{e.operation},{e.size},{e.shape},"
            f"{e.rows},{e.cols},{e.dtype},{e.mean_ns:.3f},{e.median_ns:.3f},"
            f"{e.std_dev_ns:.3f},{e.throughput or ''},{e.correctness},{e.full_id}"
        )
    (Path(output_root) / "summary.csv").write_text("\n".join(lines), encoding="utf-8")


def write_regressions_md(
    output_root: str | Path, summary: BenchmarkSummary, policy: RegressionPolicy
) -> RegressionSummary:
    """Compare ``summary`` with the stored baseline and write ``regressions.md``."""
    output_root = Path(output_root)
    baseline_path = output_root / "baseline" / "summary.json"
    report_path = output_root / "regressions.md"
    floor = policy.min_regression_ns
    lines = [
        "# Benchmark Regression Report",
        "",
        f"- Generated at unix time: `{summary.generated_at_unix}`",
        f"- Git SHA: `{summary.git_sha}`",
        f"- Rustc: `{summary.rustc_version}`",
        f"- Cases: `{len(summary.entries)}`",
        "",
        "- Regression scope: nabled benchmark cases only (`competitor == none`).",
        f"- Thresholds: warn >{policy.warn_pct:.1f}% and +{floor:.0f}ns, "
        f"fail >{policy.fail_pct:.1f}% and +{floor:.0f}ns.",
        f"- Noise floor filter: baseline median must be >= {policy.min_baseline_ns:.0f}ns.",
        "",
    ]

    if not baseline_path.exists():
        lines.append("No baseline found at `coverage/benchmarks/baseline/summary.json`.")
        lines.append("Create a baseline by copying a trusted `summary.json` to that path.")
        report_path.write_text("\n".join(lines), encoding="utf-8")
        return RegressionSummary(baseline_found=False, fail_count=0)

    baseline = summary_from_dict(read_json(baseline_path))
    baseline_map = {entry.full_id: entry.median_ns for entry in baseline.entries}

    lines += [
        f"- Baseline: `{baseline_path}`",
        "",
        "| Benchmark | Current Median (ns) | Baseline Median (ns) | Delta % | Status |",
        "|---|---:|---:|---:|---|",
    ]

    warn_count = fail_count = compared_cases = 0
    for entry in filter(is_protected_case, summary.entries):
        baseline_ns = baseline_map.get(entry.full_id)
        if baseline_ns is None:
            continue
        if baseline_ns < policy.min_baseline_ns:
            lines.append(
                f"| `{entry.full_id}` | {entry.median_ns:.3f} | {baseline_ns:.3f} "
                "| n/a | SKIP_NOISE_FLOOR |"
            )
            continue

        compared_cases += 1
        delta_ns = entry.median_ns - baseline_ns
        delta_pct = (delta_ns / baseline_ns) * 100.0 if baseline_ns > sys.float_info.epsilon else 0.0
        above_noise_floor = delta_ns > floor
        if delta_pct > policy.fail_pct and above_noise_floor:
            fail_count += 1
            status = "FAIL"
        elif delta_pct > policy.warn_pct and above_noise_floor:
            warn_count += 1
            status = "WARN"
        else:
            status = "OK"
        lines.append(
            f"| `{entry.full_id}` | {entry.median_ns:.3f} | {baseline_ns:.3f} "
            f"| {delta_pct:.2f}% | {status} |"
        )

    lines += [
        "",
        f"- Warnings (>{policy.warn_pct:.1f}% and +{floor:.0f}ns): `{warn_count}`",
        f"- Failures (>{policy.fail_pct:.1f}% and +{floor:.0f}ns): `{fail_count}`",
        f"- Compared cases: `{compared_cases}`",
    ]
    report_path.write_text("\n".join(lines), encoding="utf-8")
    return RegressionSummary(baseline_found=True, fail_count=fail_count)


def _print_missing_criterion_message(candidate_roots: Iterable[Path]) -> None:
    err = sys.stderr
    print("No Criterion output found in known target directories.", file=err)
    print("Checked:", file=err)
    for root in candidate_roots:
        print(f"  {root}", file=err)
    print("Run benches first, for example:", file=err)
    for name in _BENCH_NAMES:
        print(f"  cargo bench --bench {name}_benchmarks -- --quick", file=err)


def main(argv: Sequence[str] | None = None) -> int:
    """Write benchmark artifacts; return 2 without a baseline or 3 on regressions when asked."""
    args = sys.argv[1:] if argv is None else list(argv)
    fail_on_regression = "--fail-on-regression" in args
    policy = regression_policy_from_env()

    roots = [root for root in CANDIDATE_ROOTS if root.exists()]
    if not roots:
        _print_missing_criterion_message(CANDIDATE_ROOTS)
        return 0

    summary = build_summary(roots)
    OUTPUT_ROOT.mkdir(parents=True, exist_ok=True)
    write_summary_json(OUTPUT_ROOT, summary)
    write_summary_csv(OUTPUT_ROOT, summary)
    regressions = write_regressions_md(OUTPUT_ROOT, summary, policy)

    if fail_on_regression:
        if not regressions.baseline_found:
            print(
                "Regression check requested but baseline not found at "
                "`coverage/benchmarks/baseline/summary.json`",
                file=sys.stderr,
            )
            return 2
        if regressions.fail_count > 0:
            print(
                f"Benchmark regression check failed: {regressions.fail_count} case(s) exceeded "
                f"{policy.fail_pct:.1f}% and +{policy.min_regression_ns:.0f}ns",
                file=sys.stderr,
            )
            return 3

    print(f"Wrote benchmark artifacts to {OUTPUT_ROOT.resolve()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())