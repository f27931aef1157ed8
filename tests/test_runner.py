"""Tests for the process runner and the process registry."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from qaflow.engine.executor import ScriptedExecutor
from qaflow.engine.review import ReviewDecision, ScriptedReviewer
from qaflow.engine.runner import RUN_CONTEXT_FILENAME, RUN_RECORD_FILENAME, run_process
from qaflow.processes import PROCESS_PREFIX, get_process, list_processes
from qaflow.utils.schema_validation import validate_against_schema


EXPECTED_PROCESSES = {
    "mobile-testing",
    "metrics-dashboard",
    "exploratory-testing",
    "test-data-management",
    "visual-regression",
    "api-testing",
    "quality-gates",
}


@pytest.mark.unit
def test_registry_lists_every_process():
    processes = list_processes()
    assert {p.name for p in processes.values()} == EXPECTED_PROCESSES
    assert all(pid.startswith(PROCESS_PREFIX) for pid in processes)
    assert all(p.description for p in processes.values())


@pytest.mark.unit
def test_get_process_accepts_short_and_full_ids():
    short = get_process("api-testing")
    full = get_process(PROCESS_PREFIX + "api-testing")
    assert short is full
    with pytest.raises(KeyError, match="Unknown process"):
        get_process("load-testing")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_completed_run_persists_record_and_context(tmp_path: Path, fake_clock):
    record = await run_process(
        "quality-gates",
        {"projectPath": "/srv/shop"},
        executor=ScriptedExecutor(),
        reviewer=ScriptedReviewer(),
        output_dir=tmp_path,
        run_id="run-qg",
        clock=fake_clock,
    )

    assert record["success"] is True
    assert record["metadata"]["runId"] == "run-qg"
    assert record["duration"] > 0
    validate_against_schema(record, "run_record.schema.json")

    persisted = json.loads((tmp_path / RUN_RECORD_FILENAME).read_text(encoding="utf-8"))
    assert persisted == json.loads(json.dumps(record, default=str))
    run_context = json.loads((tmp_path / RUN_CONTEXT_FILENAME).read_text(encoding="utf-8"))
    assert run_context["state"] == "completed"
    assert "start" in run_context["checkpoints"] and "end" in run_context["checkpoints"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_rejected_review_becomes_failure_record(tmp_path: Path):
    reviewer = ScriptedReviewer({"Quality Gates Implementation Review": ReviewDecision.REJECT})
    executor = ScriptedExecutor()

    record = await run_process(
        "quality-gates",
        {"projectPath": "/srv/shop"},
        executor=executor,
        reviewer=reviewer,
        output_dir=tmp_path,
    )

    assert record["success"] is False
    assert record["error"] == "Review rejected: Quality Gates Implementation Review"
    assert record["details"]["title"] == "Quality Gates Implementation Review"
    assert "quality-gates/setup-continuous-improvement" not in executor.executed_names
    run_context = json.loads((tmp_path / RUN_CONTEXT_FILENAME).read_text(encoding="utf-8"))
    assert run_context["state"] == "failed"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_invalid_inputs_propagate():
    with pytest.raises(ValueError, match="projectPath"):
        await run_process("quality-gates", {}, executor=ScriptedExecutor())


@pytest.mark.integration
@pytest.mark.asyncio
async def test_unexpected_error_persists_schema_valid_failure_record(tmp_path: Path):
    with pytest.raises(ValueError, match="projectPath"):
        await run_process(
            "quality-gates",
            {},
            executor=ScriptedExecutor(),
            reviewer=ScriptedReviewer(),
            output_dir=tmp_path,
            run_id="run-bad-inputs",
        )

    persisted = json.loads((tmp_path / RUN_RECORD_FILENAME).read_text(encoding="utf-8"))
    validate_against_schema(persisted, "run_record.schema.json")
    assert persisted["success"] is False
    assert persisted["error"].startswith("ValueError: ")
    assert persisted["details"] == {"exceptionType": "ValueError"}
    assert persisted["metadata"]["runId"] == "run-bad-inputs"
    assert persisted["metadata"]["processId"] == PROCESS_PREFIX + "quality-gates"
