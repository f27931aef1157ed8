"""Tests for the human review protocol."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from qaflow.engine.review import (
    AutoApproveReviewer,
    ConsoleReviewer,
    FileExchangeReviewer,
    ReviewDecision,
    ReviewRequest,
    ReviewResponse,
    ScriptedReviewer,
)


def _request(kind: str = "breakpoint", title: str = "Final Review") -> ReviewRequest:
    return ReviewRequest(
        request_id="run-1-breakpoint-001",
        run_id="run-1",
        kind=kind,  # type: ignore[arg-type]
        title=title,
        prompt="Approve?",
        context={"files": []},
    )


@pytest.mark.unit
def test_breakpoint_request_carries_question():
    payload = _request().to_dict()
    assert payload["question"] == "Approve?"
    assert "message" not in payload


@pytest.mark.unit
def test_checkpoint_request_carries_message():
    payload = _request(kind="checkpoint").to_dict()
    assert payload["message"] == "Approve?"
    assert "question" not in payload


@pytest.mark.unit
def test_response_from_dict_parses_modify():
    response = ReviewResponse.from_dict(
        {"decision": "modify", "comment": "tighten", "modifications": {"passRate": 98}}
    )
    assert response.decision is ReviewDecision.MODIFY
    assert response.modifications == {"passRate": 98}
    assert response.comment == "tighten"


@pytest.mark.unit
def test_response_from_dict_rejects_unknown_decision():
    with pytest.raises(ValueError, match="decision"):
        ReviewResponse.from_dict({"decision": "maybe"})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_auto_approve_reviewer():
    response = await AutoApproveReviewer().review(_request())
    assert response.decision is ReviewDecision.APPROVE


@pytest.mark.unit
@pytest.mark.asyncio
async def test_scripted_reviewer_answers_by_title():
    reviewer = ScriptedReviewer({"Final Review": ReviewDecision.REJECT})

    rejected = await reviewer.review(_request(title="Final Review"))
    approved = await reviewer.review(_request(title="Other"))

    assert rejected.decision is ReviewDecision.REJECT
    assert approved.decision is ReviewDecision.APPROVE
    assert reviewer.titles == ["Final Review", "Other"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_console_reviewer_modify_reads_json():
    answers = iter(["m", "needs work", '{"threshold": 90}'])
    printed = []
    reviewer = ConsoleReviewer(input_fn=lambda prompt: next(answers), output_fn=printed.append)

    response = await reviewer.review(_request())

    assert response.decision is ReviewDecision.MODIFY
    assert response.comment == "needs work"
    assert response.modifications == {"threshold": 90}
    assert any("Final Review" in line for line in printed)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_console_reviewer_reprompts_on_unknown_choice():
    answers = iter(["x", "approve", ""])
    printed = []
    reviewer = ConsoleReviewer(input_fn=lambda prompt: next(answers), output_fn=printed.append)

    response = await reviewer.review(_request())

    assert response.decision is ReviewDecision.APPROVE
    assert response.comment is None
    assert any("Unrecognized choice" in line for line in printed)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_file_exchange_reviewer_waits_for_response(tmp_path: Path):
    reviewer = FileExchangeReviewer(tmp_path, poll_interval=0.01)
    pending = asyncio.ensure_future(reviewer.review(_request()))

    folder = tmp_path / "breakpoints" / "run-1-breakpoint-001"
    for _ in range(200):
        if (folder / "request.json").exists():
            break
        await asyncio.sleep(0.01)

    request = json.loads((folder / "request.json").read_text(encoding="utf-8"))
    assert request["title"] == "Final Review"

    (folder / "response.json").write_text(json.dumps({"decision": "reject", "comment": "no"}), encoding="utf-8")
    response = await asyncio.wait_for(pending, timeout=5)
    assert response.decision is ReviewDecision.REJECT
    assert response.comment == "no"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_file_exchange_reviewer_writes_checkpoints(tmp_path: Path):
    await FileExchangeReviewer(tmp_path).notify(_request(kind="checkpoint", title="Phase 2 Complete"))

    written = json.loads((tmp_path / "checkpoints" / "run-1-breakpoint-001.json").read_text(encoding="utf-8"))
    assert written["kind"] == "checkpoint"
    assert written["title"] == "Phase 2 Complete"
