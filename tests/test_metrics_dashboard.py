"""Tests for the metrics dashboard process."""

from __future__ import annotations

import pytest

from qaflow.engine.executor import ScriptedExecutor
from qaflow.engine.review import ScriptedReviewer
from qaflow.engine.runner import run_process
from qaflow.processes.metrics_dashboard import CORE_WIDGETS, INSIGHT_WIDGETS, Inputs


INPUTS = {"projectName": "payments"}


def _validation(accuracy):
    return {"validationPassed": accuracy >= 95, "accuracy": accuracy, "sampleDataLoaded": True, "accuracyIssues": []}


def _assessment(score):
    return {
        "overallScore": score,
        "componentScores": {},
        "recommendations": [],
        "assessmentReportPath": "dashboard/assessment.md",
    }


@pytest.mark.unit
def test_inputs_require_project_name():
    with pytest.raises(ValueError, match="projectName"):
        Inputs.from_dict({"dashboardType": "grafana"})


@pytest.mark.unit
def test_alerting_config_merges_over_defaults():
    inputs = Inputs.from_dict({**INPUTS, "alertingConfig": {"channels": ["email", "slack"]}})
    assert inputs.alerting_config["channels"] == ["email", "slack"]
    assert inputs.alerting_config["thresholds"]["passRate"] == 95


@pytest.mark.integration
@pytest.mark.asyncio
async def test_widgets_fan_out_in_declaration_order():
    executor = ScriptedExecutor(
        delays={
            "metrics-dashboard/execution-metrics-widget": 0.03,
            "metrics-dashboard/flakiness-metrics-widget": 0.01,
            "metrics-dashboard/defect-metrics-widget": 0.02,
        }
    )

    record = await run_process("metrics-dashboard", INPUTS, executor=executor, reviewer=ScriptedReviewer())

    widget_names = [s.name for s in executor.executed if s.name.endswith("-widget")]
    assert widget_names == [d.name for _, d in CORE_WIDGETS + INSIGHT_WIDGETS]
    assert list(record["dashboardComponents"]) == [
        "executionMetrics",
        "coverageMetrics",
        "flakinessMetrics",
        "performanceMetrics",
        "qualityGates",
        "trendAnalysis",
        "defectMetrics",
        "automationROI",
    ]
    assert all(record["dashboardComponents"].values())
    # The insight widgets start only after every core widget is done.
    core_done = max(executor.completed.index(d.name) for _, d in CORE_WIDGETS)
    insight_done = min(executor.completed.index(d.name) for _, d in INSIGHT_WIDGETS)
    assert core_done < insight_done


@pytest.mark.integration
@pytest.mark.asyncio
async def test_quality_gates_widget_receives_alerting_thresholds():
    executor = ScriptedExecutor()

    await run_process("metrics-dashboard", INPUTS, executor=executor, reviewer=ScriptedReviewer())

    [gates] = executor.calls("metrics-dashboard/quality-gates-widget")
    assert gates.prompt.context["alertingConfig"]["thresholds"]["flakinessRate"] == 5
    [trend] = executor.calls("metrics-dashboard/trend-analysis-widget")
    assert trend.prompt.context["historicalDataDays"] == 90


@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.parametrize("accuracy, expected", [(94, 1), (95, 0)])
async def test_data_accuracy_gate(accuracy, expected):
    executor = ScriptedExecutor({"metrics-dashboard/data-validation": _validation(accuracy)})
    reviewer = ScriptedReviewer()

    await run_process("metrics-dashboard", INPUTS, executor=executor, reviewer=reviewer)

    assert len(reviewer.requests_titled("Data Accuracy Issues")) == expected


@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "score, accuracy, expected",
    [(80, 90, True), (79, 99, False), (95, 89, False)],
)
async def test_success_needs_quality_score_and_accuracy(score, accuracy, expected):
    executor = ScriptedExecutor(
        {
            "metrics-dashboard/data-validation": _validation(accuracy),
            "metrics-dashboard/dashboard-quality-assessment": _assessment(score),
        }
    )

    record = await run_process("metrics-dashboard", INPUTS, executor=executor, reviewer=ScriptedReviewer())

    assert record["success"] is expected
    assert record["dashboardQualityMet"] is (score >= 80)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_partial_source_integration_raises_review():
    executor = ScriptedExecutor(
        {
            "metrics-dashboard/data-source-integration": {
                "integratedSources": 1,
                "failedSources": ["jenkins"],
                "parsers": [],
                "errors": ["401 from jenkins"],
            }
        }
    )
    reviewer = ScriptedReviewer()

    record = await run_process(
        "metrics-dashboard",
        {**INPUTS, "testSources": ["github-actions", "jenkins"]},
        executor=executor,
        reviewer=reviewer,
    )

    [request] = reviewer.requests_titled("Data Source Integration Issues")
    assert request.context["failedSources"] == ["jenkins"]
    assert record["dataSources"] == {"total": 2, "integrated": 1, "failed": ["jenkins"]}


@pytest.mark.integration
@pytest.mark.asyncio
async def test_design_review_always_raised():
    reviewer = ScriptedReviewer()

    await run_process("metrics-dashboard", INPUTS, executor=ScriptedExecutor(), reviewer=reviewer)

    assert "Dashboard Design Review" in reviewer.titles
    assert "Data Pipeline Issues" not in reviewer.titles
    assert reviewer.titles[-1] == "Dashboard Setup Complete - Final Approval"
