"""Tests for PhaseResult and Artifact."""

from __future__ import annotations

import pytest

from qaflow.engine.results import Artifact, PhaseResult, TaskOutputError, artifact_files
from qaflow.engine.tasks import BOOLEAN, INTEGER, STRING, TaskContext, agent_task, TASK_REGISTRY


@pytest.fixture
def spec():
    name = "unit/results-task"
    TASK_REGISTRY.pop(name, None)
    definition = agent_task(
        name,
        title="Results",
        role="r",
        task="t",
        instructions=[],
        properties={"success": BOOLEAN, "count": INTEGER, "note": STRING},
        required=["count"],
    )
    yield definition.build({}, TaskContext(effect_id="effect-0001"))
    TASK_REGISTRY.pop(name, None)


@pytest.mark.unit
def test_from_output_freezes_payload(spec):
    result = PhaseResult.from_output(spec, "effect-0001", {"count": 3, "artifacts": []})

    assert result["count"] == 3
    assert result.task == "unit/results-task"
    assert result.effect_id == "effect-0001"
    with pytest.raises(TypeError):
        result.payload["count"] = 4  # type: ignore[index]


@pytest.mark.unit
def test_from_output_copies_payload(spec):
    raw = {"count": 3, "artifacts": [{"path": "a.json"}]}
    result = PhaseResult.from_output(spec, "effect-0001", raw)

    raw["artifacts"].append({"path": "b.json"})
    assert len(result.to_dict()["artifacts"]) == 1


@pytest.mark.unit
def test_from_output_rejects_missing_required_field(spec):
    with pytest.raises(TaskOutputError, match="count"):
        PhaseResult.from_output(spec, "effect-0001", {"artifacts": []})


@pytest.mark.unit
def test_from_output_rejects_wrong_type(spec):
    with pytest.raises(TaskOutputError, match="output rejected"):
        PhaseResult.from_output(spec, "effect-0001", {"count": "three", "artifacts": []})


@pytest.mark.unit
def test_from_output_rejects_non_object(spec):
    with pytest.raises(TaskOutputError, match="expected an object"):
        PhaseResult.from_output(spec, "effect-0001", ["count", 3])


@pytest.mark.unit
def test_optional_fields_need_get(spec):
    result = PhaseResult.from_output(spec, "effect-0001", {"count": 1, "note": "hi", "artifacts": []})

    with pytest.raises(KeyError, match="optional"):
        result["note"]
    assert result.get("note") == "hi"
    assert result.get("missing", "fallback") == "fallback"
    assert "note" in result


@pytest.mark.unit
def test_success_defaults_to_true_without_flag(spec):
    result = PhaseResult.from_output(spec, "effect-0001", {"count": 1, "artifacts": []})
    assert result.success is True


@pytest.mark.unit
def test_success_false_is_reported(spec):
    result = PhaseResult.from_output(spec, "effect-0001", {"count": 1, "success": False, "artifacts": []})
    assert result.success is False


@pytest.mark.unit
def test_artifacts_are_parsed_in_order(spec):
    result = PhaseResult.from_output(
        spec,
        "effect-0001",
        {
            "count": 1,
            "artifacts": [
                {"path": "one.md", "format": "markdown"},
                {"path": "two.py", "language": "python", "label": "code"},
            ],
        },
    )

    assert [a.path for a in result.artifacts] == ["one.md", "two.py"]
    assert result.artifacts[1] == Artifact(path="two.py", label="code", language="python")


@pytest.mark.unit
def test_artifact_to_dict_omits_missing_values():
    assert Artifact(path="x.json").to_dict() == {"path": "x.json"}
    assert Artifact(path="x.json", format="json").to_dict() == {"path": "x.json", "format": "json"}


@pytest.mark.unit
def test_artifact_requires_path():
    with pytest.raises(ValueError, match="path"):
        Artifact.from_dict({"format": "json"})


@pytest.mark.unit
def test_artifact_files_applies_default_format():
    files = artifact_files([Artifact(path="a"), Artifact(path="b", format="html")], default_format="markdown")
    assert files == [{"path": "a", "format": "markdown"}, {"path": "b", "format": "html"}]
