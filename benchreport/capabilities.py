"""Describe which linear-algebra domains have baseline kernels and which provider path they use."""

from __future__ import annotations

import platform
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .common import command_output, now_unix_secs, write_json_pretty

DEFAULT_OUTPUT_DIR = Path("coverage/backend-capabilities")

_OS_NAMES = {"darwin": "macos", "win32": "windows", "cygwin": "windows"}
_ARCH_NAMES = {"amd64": "x86_64", "x64": "x86_64", "arm64": "aarch64", "i686": "x86", "i386": "x86"}


class ProviderPath(Enum):
    """Whether a domain runs on the native provider or falls back to baseline kernels."""

    NATIVE = "native"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class DomainCapability:
    """Capability entry for one domain."""

    tier: str
    domain: str
    baseline_kernels: bool
    provider_path: ProviderPath
    notes: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier": self.tier,
            "domain": self.domain,
            "baseline_kernels": self.baseline_kernels,
            "provider_path": self.provider_path.value,
            "notes": self.notes,
        }


@dataclass
class CapabilityReport:
    """The full capability report with build information."""

    generated_at_unix: int
    git_sha: str
    rustc_version: str
    target_os: str
    target_arch: str
    provider_feature_enabled: bool
    provider_build_active: bool
    native_provider_domains: int
    fallback_provider_domains: int
    domains: list[DomainCapability] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at_unix": self.generated_at_unix,
            "git_sha": self.git_sha,
            "rustc_version": self.rustc_version,
            "target_os": self.target_os,
            "target_arch": self.target_arch,
            "provider_feature_enabled": self.provider_feature_enabled,
            "provider_build_active": self.provider_build_active,
            "native_provider_domains": self.native_provider_domains,
            "fallback_provider_domains": self.fallback_provider_domains,
            "domains": [domain.to_dict() for domain in self.domains],
        }


def _native(tier: str, domain: str, notes: str) -> DomainCapability:
    return DomainCapability(tier, domain, True, ProviderPath.NATIVE, notes)


def tier_a_domains() -> list[DomainCapability]:
    """Core decomposition and solver domains."""
    return [
        _native("tier_a", "svd", "crates/nabled-linalg/src/svd.rs"),
        _native("tier_a", "qr", "crates/nabled-linalg/src/qr.rs"),
        _native("tier_a", "lu", "crates/nabled-linalg/src/lu.rs"),
        _native("tier_a", "cholesky", "crates/nabled-linalg/src/cholesky.rs"),
        _native("tier_a", "eigen", "crates/nabled-linalg/src/eigen.rs"),
        _native("tier_a", "schur", "crates/nabled-linalg/src/schur.rs"),
        _native("tier_a", "triangular_solve", "crates/nabled-linalg/src/triangular.rs"),
        _native("tier_a", "vector_primitives", "crates/nabled-linalg/src/vector.rs"),
    ]


def tier_b_domains() -> list[DomainCapability]:
    """Higher-level domains built on the core ones."""
    return [
        _native("tier_b", "polar", "crates/nabled-linalg/src/polar.rs"),
        _native("tier_b", "pca", "crates/nabled-ml/src/pca.rs"),
        _native("tier_b", "regression", "crates/nabled-ml/src/regression.rs"),
        _native("tier_b", "sylvester_lyapunov", "crates/nabled-linalg/src/sylvester.rs"),
        _native(
            "tier_b",
            "matrix_functions",
            "crates/nabled-linalg/src/matrix_functions.rs (provider-backed paths for "
            "eigen/SVD operations; Taylor paths remain baseline by design)",
        ),
    ]


def _target_os() -> str:
    name = sys.platform
    if name.startswith("linux"):
        return "linux"
    if name.startswith("freebsd"):
        return "freebsd"
    return _OS_NAMES.get(name, name)


def _target_arch() -> str:
    machine = platform.machine().lower()
    return _ARCH_NAMES.get(machine, machine or "unknown")


def build_report(provider_enabled: bool = False) -> CapabilityReport:
    """Assemble the report for all tiers."""
    domains = tier_a_domains() + tier_b_domains()
    native = sum(1 for d in domains if d.provider_path is ProviderPath.NATIVE)
    fallback = sum(1 for d in domains if d.provider_path is ProviderPath.FALLBACK)
    return CapabilityReport(
        generated_at_unix=now_unix_secs(),
        git_sha=command_output("git", ["rev-parse", "--short", "HEAD"]),
        rustc_version=command_output("rustc", ["-V"]),
        target_os=_target_os(),
        target_arch=_target_arch(),
        provider_feature_enabled=provider_enabled,
        provider_build_active=provider_enabled,
        native_provider_domains=native,
        fallback_provider_domains=fallback,
        domains=domains,
    )


def parse_output_dir(argv: Sequence[str]) -> Path:
    """Return the directory given by ``--output-dir``, or the default one."""
    output_dir = DEFAULT_OUTPUT_DIR
    args = iter(argv)
    for arg in args:
        if arg != "--output-dir":
            raise ValueError(f"unknown argument: {arg}")
        value = next(args, None)
        if value is None:
            raise ValueError("missing value for --output-dir")
        output_dir = Path(value)
    return output_dir


def write_summary_json(output_dir: str | Path, report: CapabilityReport) -> None:
    """Write ``summary.json`` into ``output_dir``."""
    write_json_pretty(Path(output_dir) / "summary.json", report.to_dict())


def write_summary_markdown(output_dir: str | Path, report: CapabilityReport) -> None:
    """Write ``summary.md`` into ``output_dir``."""
    feature_enabled = str(report.provider_feature_enabled).lower()
    build_active = str(report.provider_build_active).lower()
    lines = [
        "# Backend Capability Report",
        "",
        f"- generated_at_unix: `{report.generated_at_unix}`",
        f"- git_sha: `{report.git_sha}`",
        f"- rustc: `{report.rustc_version}`",
        f"- target: `{report.target_arch}-{report.target_os}`",
        f"- provider_feature_enabled: `{feature_enabled}`",
        f"- provider_build_active: `{build_active}`",
        f"- native_provider_domains: `{report.native_provider_domains}`",
        f"- fallback_provider_domains: `{report.fallback_provider_domains}`",
        "",
        "| Tier | Domain | Baseline Kernels | Provider Path | Notes |",
        "|---|---|---|---|---|",
    ]
    for d in report.domains:
        baseline = "yes" if d.baseline_kernels else "no"
        lines.append(
            f"| {d.tier} | {d.domain} | {baseline} | {d.provider_path.value} | {d.notes} |"
        )
    content = "\n".join(lines) + "\n"
    (Path(output_dir) / "summary.md").write_text(content, encoding="utf-8")


def main(argv: Sequence[str] | None = None) -> int:
    """Write the capability report as JSON and Markdown."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        output_dir = parse_output_dir(args)
        output_dir.mkdir(parents=True, exist_ok=True)
        report = build_report()
        write_summary_json(output_dir, report)
        write_summary_markdown(output_dir, report)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(f"Wrote backend capability report to {output_dir.resolve()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())