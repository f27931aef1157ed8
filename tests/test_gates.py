"""Tests for threshold gates and the aggregation helpers."""

from __future__ import annotations

import pytest

from qaflow.engine.aggregator import build_failure_record, meets, percent
from qaflow.engine.gates import ThresholdGate, check_gate


@pytest.mark.unit
@pytest.mark.parametrize(
    "metric,triggered",
    [(39, True), (39.99, True), (40, False), (40.0, False), (95, False)],
)
def test_below_gate_is_strict(metric, triggered):
    outcome = check_gate(ThresholdGate.below("initial-pass-rate", 40), metric)
    assert outcome.triggered is triggered
    assert outcome.action == ("review" if triggered else "pass")


@pytest.mark.unit
@pytest.mark.parametrize("metric,triggered", [(5, False), (5.01, True), (0, False)])
def test_above_gate_is_strict(metric, triggered):
    assert check_gate(ThresholdGate.above("flakiness", 5), metric).triggered is triggered


@pytest.mark.unit
def test_missing_metric_is_skipped():
    outcome = check_gate(ThresholdGate.below("coverage", 80), None)
    assert outcome.triggered is False
    assert outcome.action == "skipped"
    assert outcome.metric is None


@pytest.mark.unit
def test_boolean_metric_is_not_compared():
    assert check_gate(ThresholdGate.below("coverage", 80), True).action == "skipped"


@pytest.mark.unit
def test_gate_outcome_to_dict():
    outcome = check_gate(ThresholdGate.below("kpi-count", 15), 12)
    assert outcome.to_dict() == {
        "gate": "kpi-count",
        "metric": 12.0,
        "threshold": 15.0,
        "direction": "below",
        "triggered": True,
        "action": "review",
    }


@pytest.mark.unit
def test_gate_rejects_unknown_direction():
    with pytest.raises(ValueError, match="direction"):
        ThresholdGate(name="g", threshold=1, direction="sideways")  # type: ignore[arg-type]


@pytest.mark.unit
def test_percent_handles_zero_denominator():
    assert percent(3, 4) == 75.0
    assert percent(0, 4) == 0.0
    assert percent(3, 0) is None
    assert percent(None, 4) is None


@pytest.mark.unit
def test_meets_is_inclusive():
    assert meets(85, 85) is True
    assert meets(84.9, 85) is False
    assert meets(5, 5, "at_most") is True
    assert meets(6, 5, "at_most") is False
    assert meets(None, 0) is False


@pytest.mark.unit
def test_failure_record_shape():
    record = build_failure_record(
        process_id="specializations/qa-testing-automation/api-testing",
        error="Failed to discover API endpoints",
        details={"discoveredEndpoints": []},
        timestamp=1000.0,
        run_id="r1",
    )
    assert record == {
        "success": False,
        "error": "Failed to discover API endpoints",
        "details": {"discoveredEndpoints": []},
        "metadata": {
            "processId": "specializations/qa-testing-automation/api-testing",
            "timestamp": 1000.0,
            "runId": "r1",
        },
    }
