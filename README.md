# benchreport

Command-line tools that turn Criterion benchmark output into summaries. They
check results against a baseline, keep a rolling history of runs and write a
backend capability report.

## Install

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## Commands

### benchmark-report

```
benchmark-report [--fail-on-regression]
```

The command looks in `target/criterion` and `crates/nabled/target/criterion`,
relative to the current directory. It collects every `new/benchmark.json`
together with the `estimates.json` next to it. A case without an
`estimates.json` is skipped. The command writes these files to
`coverage/benchmarks/`:

- `summary.json`: every case with its domain, backend, competitor, shape,
  rows, cols, and the mean, median and standard deviation in nanoseconds.
- `summary.csv`: the same cases as a table.
- `regressions.md`: the current medians compared with
  `coverage/benchmarks/baseline/summary.json`, when that file exists.

Only entries whose competitor is `none` are compared. A case is marked
`FAIL` or `WARN` only when two conditions hold. Its median must be above the
percentage threshold, and it must also be slower by more than the minimum
regression in nanoseconds. A case whose baseline median lies below the
baseline noise floor is listed as `SKIP_NOISE_FLOOR`.

If neither Criterion directory exists, the command prints a hint to standard
error and exits with status 0. It writes no files in that case.

With `--fail-on-regression`, the command exits with status 2 when there is no
baseline. It exits with status 3 when any case is marked `FAIL`.

Thresholds come from the environment. A value that is not a finite,
non-negative number is ignored, and the default is used instead.

| Variable | Default |
|---|---|
| `BENCH_WARN_PCT` | 5.0 |
| `BENCH_FAIL_PCT` | 10.0 |
| `BENCH_MIN_REGRESSION_NS` | 25000 |
| `BENCH_MIN_BASELINE_NS` | 0 |

### benchmark-history

```
benchmark-history [--summary PATH] [--history PATH] [--output-md PATH] [--max-runs N]
```

The command reads a `summary.json` written by `benchmark-report` and takes the
medians of the entries whose competitor is `none`. It records them as one run
in a JSON history.

- A run with the same run id is replaced.
- Runs are kept in order of generation time.
- Only the most recent `N` runs are kept, 20 by default.

The command also writes a Markdown trend report, which has two tables:

- One row per run, showing the geometric mean of its medians and the change
  against the previous run and the first run.
- One row per case of the latest run, showing the change against the
  previous run and the range of that case's medians over the window.

The run id, branch and commit are taken from `GITHUB_RUN_ID`,
`GITHUB_REF_NAME` and `GITHUB_SHA` when those variables are set. Otherwise
they are `local-<generated_at_unix>`, `local` and the commit recorded in the
summary.

Defaults:

- `--summary coverage/benchmarks/summary.json`
- `--history coverage/benchmarks/baseline/history.json`
- `--output-md coverage/benchmarks/history.md`

The command exits with status 1 in these cases:

- an unknown argument
- a missing value for an option
- a value for `--max-runs` that is not a non-negative integer
- a file that cannot be read or written

### backend-capability-report

```
backend-capability-report [--output-dir DIR]
```

The command writes `summary.json` and `summary.md` to `DIR`, which is
`coverage/backend-capabilities` by default. The report lists each algorithm
domain with:

- its tier
- whether baseline kernels exist
- its provider path (`native` or `fallback`)
- the file it is implemented in

The report also records:

- the time it was generated
- the current git commit and `rustc -V`, or `unknown` when these cannot be run
- the target operating system and architecture
- counts of native and fallback domains

An unknown argument or a missing directory value makes the command exit with
status 1.

## Library use

The building blocks can be imported directly from `benchreport.report`,
`benchreport.history`, `benchreport.capabilities` and `benchreport.common`:

```python
from benchreport.report import parse_shape_dims, classify_benchmark
from benchreport.history import geometric_mean_ns, format_percent_delta

parse_shape_dims("square-64x64")                       # ("square", 64, 64)
classify_benchmark("svd_nabled_ndarray", "full_svd")   # ("svd", "ndarray", "none", "full_svd")
geometric_mean_ns([10.0, 1000.0])                      # about 100.0
format_percent_delta(110.0, 100.0)                     # "10.00%"
format_percent_delta(110.0, None)                      # "n/a"
```

`benchreport.report.regression_policy_from_env` and
`benchreport.history.build_current_run` each take an optional mapping to use
in place of `os.environ`.

## What it does not do

The package does not run benchmarks. It only reads the Criterion output
directories left behind by an earlier benchmark run. It also stores nothing
outside the JSON and Markdown files named above.