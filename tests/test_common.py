import json
import sys
import time

import pytest

from benchreport.common import command_output, now_unix_secs, read_json, write_json_pretty


def test_now_unix_secs_matches_clock():
    before = int(time.time())
    value = now_unix_secs()
    after = int(time.time())
    assert before <= value <= after


def test_command_output_trims_stdout():
    result = command_output(sys.executable, ["-c", "print('  hello  ')"])
    assert result == "hello"


def test_command_output_nonzero_exit_is_unknown():
    result = command_output(sys.executable, ["-c", "import sys; print('x'); sys.exit(4)"])
    assert result == "unknown"


def test_command_output_missing_program_is_unknown():
    assert command_output("definitely-not-a-real-program-xyz", ["-V"]) == "unknown"


def test_json_round_trip(tmp_path):
    path = tmp_path / "data.json"
    value = {"runs": [{"id": "a", "value": 1.5, "count": 3}], "name": "caf\u00e9"}
    write_json_pretty(path, value)
    assert read_json(path) == value


def test_write_json_pretty_uses_two_space_indent(tmp_path):
    path = tmp_path / "data.json"
    write_json_pretty(path, {"key": [1]})
    text = path.read_text(encoding="utf-8")
    assert text == json.dumps({"key": [1]}, indent=2)
    assert text.startswith('{\n  "key"')
    assert not text.endswith("\n")


def test_read_json_invalid_raises(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        read_json(path)


def test_read_json_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_json(tmp_path / "missing.json")