import json
import math

import pytest

from benchreport.history import (
    BenchmarkHistory,
    CliArgs,
    HistoryRun,
    build_current_run,
    collect_nabled_medians,
    format_percent_delta,
    geometric_mean_ns,
    history_from_dict,
    load_history,
    main,
    min_max_for_benchmark,
    parse_args,
    render_history_markdown,
    trim_history,
    upsert_run,
)
from benchreport.report import BenchmarkEntry, BenchmarkSummary


def _entry(full_id, median, competitor="none"):
    return BenchmarkEntry(
        domain="svd", operation="full_svd", backend="ndarray", competitor=competitor,
        group_id="svd_nabled_ndarray", function_id="full_svd", full_id=full_id,
        shape="square", rows=4, cols=4, size=4, dtype="f64", mean_ns=median,
        median_ns=median, std_dev_ns=1.0, throughput=None, correctness="passed",
    )


def _summary(ts=100, entries=None):
    if entries is None:
        entries = [_entry("b/x", 200.0), _entry("a/y", 50.0),
                   _entry("c/z", 9.0, competitor="faer_direct")]
    return BenchmarkSummary(ts, "deadbeef", "unknown", "target/criterion", entries)


def _run(run_id, ts, medians, geo=10.0):
    return HistoryRun(run_id, "main", "0123456789abcdef", ts, len(medians), geo, medians)


def test_parse_args_defaults():
    assert parse_args([]) == CliArgs()
    assert parse_args([]).max_runs == 20


def test_parse_args_values():
    args = parse_args(["--history", "h.json", "--max-runs", "5",
                       "--output-md", "o.md", "--summary", "s.json"])
    assert (str(args.history_path), args.max_runs, str(args.output_md),
            str(args.summary_path)) == ("h.json", 5, "o.md", "s.json")


@pytest.mark.parametrize("argv, message", [
    (["--history"], "missing value for --history"),
    (["--max-runs", "-3"], "invalid usize for --max-runs: -3"),
    (["--what"], "unknown argument: --what"),
])
def test_parse_args_errors(argv, message):
    with pytest.raises(ValueError, match=message):
        parse_args(argv)


def test_collect_nabled_medians_filters_and_sorts():
    medians = collect_nabled_medians(_summary())
    assert list(medians) == ["a/y", "b/x"]
    assert medians["b/x"] == 200.0


def test_geometric_mean_cases():
    assert geometric_mean_ns([]) == 0.0
    assert geometric_mean_ns([-1.0, 0.0, math.inf, math.nan]) == 0.0
    assert geometric_mean_ns([7.0, 7.0, 7.0]) == pytest.approx(7.0)
    assert geometric_mean_ns([2.0, 8.0]) == pytest.approx(4.0)
    assert geometric_mean_ns([5.0, -2.0, math.nan]) == pytest.approx(5.0)


def test_build_current_run_local_defaults():
    summary = _summary(ts=1234)
    run = build_current_run(summary, collect_nabled_medians(summary), environ={})
    assert run.run_id == "local-1234"
    assert run.branch == "local"
    assert run.git_sha == "deadbeef"
    assert run.case_count == 2
    assert run.geometric_mean_ns == pytest.approx(geometric_mean_ns([200.0, 50.0]))


def test_build_current_run_uses_ci_variables():
    env = {"GITHUB_RUN_ID": "r9", "GITHUB_REF_NAME": "feature", "GITHUB_SHA": "cafe"}
    run = build_current_run(_summary(), {"k": 1.0}, environ=env)
    assert (run.run_id, run.branch, run.git_sha) == ("r9", "feature", "cafe")


def test_upsert_replaces_and_sorts():
    history = BenchmarkHistory([_run("b", 20, {}), _run("a", 10, {})])
    upsert_run(history, _run("c", 15, {}))
    assert [r.run_id for r in history.runs] == ["a", "c", "b"]
    upsert_run(history, _run("b", 5, {"x": 1.0}))
    assert [r.run_id for r in history.runs] == ["b", "a", "c"]
    assert history.runs[0].medians == {"x": 1.0}


def test_trim_history_keeps_newest():
    history = BenchmarkHistory([_run(str(i), i, {}) for i in range(5)])
    trim_history(history, 2)
    assert [r.run_id for r in history.runs] == ["3", "4"]
    trim_history(history, 10)
    assert len(history.runs) == 2
    trim_history(history, 0)
    assert history.runs == []


def test_min_max_for_benchmark():
    runs = [_run("a", 1, {"x": 3.0}), _run("b", 2, {"x": 1.5, "y": 2.0}), _run("c", 3, {})]
    assert min_max_for_benchmark(runs, "x") == (1.5, 3.0)
    assert min_max_for_benchmark(runs, "missing") == (0.0, 0.0)
    assert min_max_for_benchmark([_run("d", 1, {"x": math.inf})], "x") == (0.0, 0.0)


def test_format_percent_delta():
    assert format_percent_delta(1.0, None) == "n/a"
    assert format_percent_delta(1.0, 0.0) == "n/a"
    assert format_percent_delta(100.0, 100.0) == "0.00%"
    assert format_percent_delta(110.0, 100.0) == "10.00%"


def test_history_dict_round_trip():
    history = BenchmarkHistory([_run("a", 1, {"z": 2.0, "a": 1.0})])
    restored = history_from_dict(json.loads(json.dumps(history.to_dict())))
    assert restored == history
    assert list(history.to_dict()["runs"][0]["medians"]) == ["a", "z"]


def test_history_from_dict_missing_field():
    with pytest.raises(ValueError):
        history_from_dict({})


def test_load_history_missing_file(tmp_path):
    assert load_history(tmp_path / "none.json").runs == []


def test_render_empty_history():
    text = render_history_markdown(BenchmarkHistory())
    assert "- runs in window: `0`" in text
    assert text.endswith("No benchmark history available yet.\n")


def test_render_history_rows():
    history = BenchmarkHistory([_run("r1", 1, {"x": 100.0}), _run("r2", 2, {"x": 100.0})])
    text = render_history_markdown(history)
    assert "`0123456789ab`" in text
    assert "0123456789abc" not in text
    assert "| `x` | 100.000 | 100.000 | 0.00% | 100.000 - 100.000 |" in text
    assert "## Latest Case Snapshot" in text


def test_main_end_to_end(tmp_path, monkeypatch):
    for name in ("GITHUB_RUN_ID", "GITHUB_REF_NAME", "GITHUB_SHA"):
        monkeypatch.delenv(name, raising=False)
    summary_path = tmp_path / "summary.json"
    summary_path.write_text(json.dumps(_summary(ts=77).to_dict()), encoding="utf-8")
    history_path = tmp_path / "base" / "history.json"
    md_path = tmp_path / "out" / "history.md"
    argv = ["--summary", str(summary_path), "--history", str(history_path),
            "--output-md", str(md_path)]
    assert main(argv) == 0
    assert main(argv) == 0
    history = load_history(history_path)
    assert [r.run_id for r in history.runs] == ["local-77"]
    assert history.runs[0].case_count == 2
    assert "`local-77`" in md_path.read_text(encoding="utf-8")


def test_main_missing_summary(tmp_path):
    assert main(["--summary", str(tmp_path / "absent.json"),
                 "--history", str(tmp_path / "h.json"),
                 "--output-md", str(tmp_path / "h.md")]) == 1