import json

import pytest

from benchreport.capabilities import (
    DEFAULT_OUTPUT_DIR,
    CapabilityReport,
    DomainCapability,
    ProviderPath,
    build_report,
    main,
    parse_output_dir,
    tier_a_domains,
    tier_b_domains,
    write_summary_json,
    write_summary_markdown,
)


def _small_report():
    return CapabilityReport(
        generated_at_unix=42,
        git_sha="abc1234",
        rustc_version="unknown",
        target_os="linux",
        target_arch="x86_64",
        provider_feature_enabled=False,
        provider_build_active=False,
        native_provider_domains=1,
        fallback_provider_domains=1,
        domains=[
            DomainCapability("tier_a", "svd", True, ProviderPath.NATIVE,
                             "crates/nabled-linalg/src/svd.rs"),
            DomainCapability("tier_b", "pca", False, ProviderPath.FALLBACK, "n"),
        ],
    )


def test_tier_a_domains_names_and_tier():
    domains = tier_a_domains()
    assert [d.domain for d in domains] == [
        "svd", "qr", "lu", "cholesky", "eigen", "schur",
        "triangular_solve", "vector_primitives",
    ]
    assert all(d.tier == "tier_a" and d.baseline_kernels for d in domains)


def test_tier_b_domains_names_and_tier():
    domains = tier_b_domains()
    assert [d.domain for d in domains] == [
        "polar", "pca", "regression", "sylvester_lyapunov", "matrix_functions",
    ]
    assert all(d.tier == "tier_b" for d in domains)
    assert domains[-1].notes.startswith("crates/nabled-linalg/src/matrix_functions.rs")


def test_build_report_counts_domains():
    report = build_report()
    total = len(tier_a_domains()) + len(tier_b_domains())
    assert len(report.domains) == total
    assert report.native_provider_domains + report.fallback_provider_domains == total
    assert report.fallback_provider_domains == 0
    assert report.provider_feature_enabled is False
    assert report.provider_build_active is False


def test_build_report_provider_flag():
    report = build_report(provider_enabled=True)
    assert report.provider_feature_enabled is True
    assert report.provider_build_active is True


def test_domain_to_dict_uses_snake_case_provider():
    d = tier_a_domains()[0].to_dict()
    assert d["provider_path"] == "native"
    assert d["domain"] == "svd"
    assert ProviderPath.FALLBACK.value == "fallback"


def test_parse_output_dir_default_and_flag():
    assert parse_output_dir([]) == DEFAULT_OUTPUT_DIR
    assert str(parse_output_dir(["--output-dir", "out/x"])) == "out/x"


def test_parse_output_dir_errors():
    with pytest.raises(ValueError, match="missing value for --output-dir"):
        parse_output_dir(["--output-dir"])
    with pytest.raises(ValueError, match="unknown argument: --bogus"):
        parse_output_dir(["--bogus"])


def test_write_summary_json_round_trip(tmp_path):
    report = _small_report()
    write_summary_json(tmp_path, report)
    loaded = json.loads((tmp_path / "summary.json").read_text(encoding="utf-8"))
    assert loaded == report.to_dict()
    assert loaded["domains"][1]["provider_path"] == "fallback"


def test_write_summary_markdown_rows(tmp_path):
    write_summary_markdown(tmp_path, _small_report())
    text = (tmp_path / "summary.md").read_text(encoding="utf-8")
    assert text.startswith("# Backend Capability Report\n\n")
    assert "- target: `x86_64-linux`" in text
    assert "- provider_feature_enabled: `false`" in text
    assert "| tier_a | svd | yes | native | crates/nabled-linalg/src/svd.rs |" in text
    assert "| tier_b | pca | no | fallback | n |" in text


def test_main_writes_files(tmp_path):
    out = tmp_path / "caps"
    assert main(["--output-dir", str(out)]) == 0
    data = json.loads((out / "summary.json").read_text(encoding="utf-8"))
    assert len(data["domains"]) == 13
    assert (out / "summary.md").exists()


def test_main_rejects_unknown_argument():
    assert main(["--nope"]) == 1