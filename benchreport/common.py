"""Small helpers shared by the report commands: time, subprocess output and JSON files."""

from __future__ import annotations

import json
import subprocess
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any

UNKNOWN = "unknown"


def now_unix_secs() -> int:
    """Return the current Unix time in whole seconds, or 0 if the clock is before the epoch."""
    return max(int(time.time()), 0)


def command_output(program: str, args: Sequence[str]) -> str:
    """Run a program and return its trimmed standard output, or ``"unknown"`` on any failure."""
    try:
        completed = subprocess.run(
            [program, *args],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            check=False,
        )
    except OSError:
        return UNKNOWN
    if completed.returncode != 0:
        return UNKNOWN
    return completed.stdout.decode("utf-8", errors="replace").strip()


def read_json(path: str | Path) -> Any:
    """Load a JSON document from ``path``."""
    with open(path, encoding="utf-8") as handle:
        return json.load(handle)


def write_json_pretty(path: str | Path, value: Any) -> None:
    """Write ``value`` to ``path`` as JSON indented by two spaces."""
    Path(path).write_text(json.dumps(value, indent=2, ensure_ascii=False), encoding="utf-8")