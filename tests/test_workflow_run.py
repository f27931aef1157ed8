"""Tests for the immutable run state."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from qaflow.engine.context import InvalidTransition, RunState, WorkflowRun
from qaflow.engine.results import Artifact, PhaseResult


def _result(task: str, *paths: str) -> PhaseResult:
    return PhaseResult(
        task=task,
        effect_id="effect-0001",
        payload={"artifacts": [{"path": p} for p in paths]},
        required=frozenset({"artifacts"}),
        artifacts=tuple(Artifact(path=p) for p in paths),
    )


@pytest.mark.unit
def test_mark_checkpoint_ignores_blank_name():
    run = WorkflowRun(process_id="p")
    assert run.mark_checkpoint(" ").checkpoints == {}
    assert run.mark_checkpoint("").checkpoints == {}


@pytest.mark.unit
def test_mark_checkpoint_sets_timestamp():
    run = WorkflowRun(process_id="p").mark_checkpoint("start")
    assert "start" in run.checkpoints
    assert isinstance(run.checkpoints["start"], str)


@pytest.mark.unit
def test_with_result_appends_artifacts_and_leaves_original_untouched():
    first = WorkflowRun(process_id="p").with_result("a", _result("a", "a1", "a2"))
    second = first.with_result("b", _result("b", "b1"))

    assert [a.path for a in first.artifacts] == ["a1", "a2"]
    assert [a.path for a in second.artifacts] == ["a1", "a2", "b1"]
    assert list(second.phase_results) == ["a", "b"]


@pytest.mark.unit
def test_with_result_rejects_duplicate_key():
    run = WorkflowRun(process_id="p").with_result("a", _result("a"))
    with pytest.raises(ValueError, match="already recorded"):
        run.with_result("a", _result("a"))


@pytest.mark.unit
def test_state_transitions():
    run = WorkflowRun(process_id="p")
    running = run.with_state(RunState.RUNNING)
    waiting = running.with_state(RunState.AWAITING_APPROVAL)
    failed = waiting.with_state(RunState.FAILED, error="Review rejected: X")

    assert failed.state is RunState.FAILED
    assert failed.error == "Review rejected: X"
    assert failed.success is False
    assert running.success is True


@pytest.mark.unit
def test_terminal_states_are_final():
    run = WorkflowRun(process_id="p").with_state(RunState.RUNNING).with_state(RunState.COMPLETED)
    with pytest.raises(InvalidTransition):
        run.with_state(RunState.RUNNING)


@pytest.mark.unit
def test_cannot_complete_before_start():
    with pytest.raises(InvalidTransition):
        WorkflowRun(process_id="p").with_state(RunState.COMPLETED)


@pytest.mark.unit
def test_payload_roundtrip(tmp_path: Path):
    run = (
        WorkflowRun(process_id="p", run_id="r1")
        .with_state(RunState.RUNNING)
        .with_result("a", _result("a", "a1"))
        .with_gate({"gate": "g", "triggered": False})
        .with_review({"title": "Review", "decision": "approve"})
        .mark_checkpoint("start")
    )
    path = tmp_path / "run_context.json"
    run.write_json(path)

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["run_id"] == "r1"
    assert payload["state"] == "running"
    assert payload["artifacts"] == [{"path": "a1"}]

    restored = WorkflowRun.from_payload(payload)
    assert restored.run_id == "r1"
    assert restored.state is RunState.RUNNING
    assert [a.path for a in restored.artifacts] == ["a1"]
    assert dict(restored.gates[0]) == {"gate": "g", "triggered": False}
    assert restored.reviews[0]["decision"] == "approve"


@pytest.mark.unit
def test_from_payload_tolerates_bad_values():
    restored = WorkflowRun.from_payload({"process_id": "p", "state": "bogus", "artifacts": [{"nope": 1}, "x"]})
    assert restored.state is RunState.NOT_STARTED
    assert restored.artifacts == ()
