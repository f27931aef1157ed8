"""Tests for the run_process command-line entry point."""

from __future__ import annotations

import importlib.util
import json
from pathlib import Path

import pytest

from qaflow.engine.runner import RUN_RECORD_FILENAME


SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "run_process.py"


@pytest.fixture(scope="module")
def cli():
    spec = importlib.util.spec_from_file_location("run_process", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.mark.unit
def test_list_exits_zero(cli):
    assert cli.main(["--list"]) == 0


@pytest.mark.unit
def test_unknown_process_exits_two(cli, tmp_path: Path):
    assert cli.main(["load-testing", "--dry-run", "--output-dir", str(tmp_path)]) == 2


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["[1]", "{not json", "{}"])
def test_unusable_inputs_exit_two(cli, tmp_path: Path, raw):
    code = cli.main(["mobile-testing", "--dry-run", "--inputs", raw, "--output-dir", str(tmp_path)])

    assert code == 2
    assert not (tmp_path / RUN_RECORD_FILENAME).exists()


@pytest.mark.unit
def test_missing_inputs_file_exits_two(cli, tmp_path: Path):
    code = cli.main(["quality-gates", "--dry-run", "--inputs-file", str(tmp_path / "absent.json")])
    assert code == 2


@pytest.mark.integration
def test_successful_dry_run_exits_zero(cli, tmp_path: Path):
    code = cli.main(
        ["quality-gates", "--dry-run", "--inputs", '{"projectPath": "/srv/shop"}', "--output-dir", str(tmp_path)]
    )

    assert code == 0
    record = json.loads((tmp_path / RUN_RECORD_FILENAME).read_text(encoding="utf-8"))
    assert record["success"] is True


@pytest.mark.integration
def test_dry_run_without_charters_exits_one(cli, tmp_path: Path):
    inputs_file = tmp_path / "inputs.json"
    inputs_file.write_text(json.dumps({"applicationFeatures": ["checkout"]}), encoding="utf-8")

    code = cli.main(
        ["exploratory-testing", "--dry-run", "--inputs-file", str(inputs_file), "--output-dir", str(tmp_path / "run")]
    )

    assert code == 1
    record = json.loads((tmp_path / "run" / RUN_RECORD_FILENAME).read_text(encoding="utf-8"))
    assert record["error"] == "Failed to create test charters"
