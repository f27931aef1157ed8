"""Tests for the API testing process."""

from __future__ import annotations

import pytest

from qaflow.engine.executor import ScriptedExecutor
from qaflow.engine.review import ReviewResponse, ScriptedReviewer
from qaflow.engine.runner import run_process
from qaflow.processes.api_testing import Inputs


INPUTS = {"projectName": "shop", "apiBaseUrl": "https://api.shop.test"}


def _endpoints(*paths):
    return [{"path": p, "method": "GET"} for p in paths]


def _discovery(**categories):
    endpoints = [e for group in categories.values() for e in group]
    return {
        "success": True,
        "discoveredEndpoints": endpoints,
        "endpointCategories": categories,
        "artifacts": [{"path": "api/discovery.json", "format": "json"}],
    }


@pytest.mark.unit
def test_inputs_require_project_and_base_url():
    with pytest.raises(ValueError, match="apiBaseUrl"):
        Inputs.from_dict({"projectName": "shop"})


@pytest.mark.unit
def test_inputs_defaults():
    inputs = Inputs.from_dict(INPUTS)
    assert inputs.api_type == "REST"
    assert inputs.acceptance_criteria["passRate"] == 95
    assert inputs.contract_testing_enabled is True
    assert inputs.mock_server_enabled is False


@pytest.mark.integration
@pytest.mark.asyncio
async def test_discovery_failure_short_circuits():
    executor = ScriptedExecutor(
        {
            "api-testing/api-discovery": {
                "success": False,
                "discoveredEndpoints": [],
                "endpointCategories": {},
            }
        }
    )
    reviewer = ScriptedReviewer()

    record = await run_process("api-testing", INPUTS, executor=executor, reviewer=reviewer)

    assert record["success"] is False
    assert record["error"] == "Failed to discover API endpoints"
    assert executor.executed_names == ["api-testing/api-discovery"]
    assert reviewer.requests == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_zero_endpoints_fail_even_when_reported_successful():
    executor = ScriptedExecutor()

    record = await run_process("api-testing", INPUTS, executor=executor, reviewer=ScriptedReviewer())

    assert record["success"] is False
    assert record["error"] == "Failed to discover API endpoints"
    assert executor.executed_names == ["api-testing/api-discovery"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_functional_tests_fan_out_per_non_empty_category():
    discovery = _discovery(
        authentication=_endpoints("/login", "/logout"),
        crud=_endpoints("/items", "/items/{id}", "/orders"),
        search=[],
        business=_endpoints("/checkout"),
    )
    executor = ScriptedExecutor({"api-testing/api-discovery": discovery})
    reviewer = ScriptedReviewer()

    record = await run_process("api-testing", INPUTS, executor=executor, reviewer=reviewer)

    categories = [s.prompt.context["category"] for s in executor.calls("api-testing/functional-test-implementation")]
    assert categories == ["authentication", "crud", "business"]
    assert record["apiCoverage"]["totalEndpoints"] == 6
    assert record["artifacts"][0] == {"path": "api/discovery.json", "format": "json"}
    # Six endpoints were discovered, so no discovery review.
    assert reviewer.requests_titled("API Endpoint Discovery Review") == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_few_discovered_endpoints_raise_review():
    executor = ScriptedExecutor({"api-testing/api-discovery": _discovery(crud=_endpoints("/items"))})
    reviewer = ScriptedReviewer()

    await run_process("api-testing", INPUTS, executor=executor, reviewer=reviewer)

    assert len(reviewer.requests_titled("API Endpoint Discovery Review")) == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_initial_pass_rate_boundary():
    def execution(pass_rate):
        return {"totalTests": 10, "passed": 4, "failed": 6, "passRate": pass_rate}

    for pass_rate, expected in ((49, 1), (50, 0)):
        executor = ScriptedExecutor(
            {
                "api-testing/api-discovery": _discovery(crud=_endpoints("/a", "/b", "/c", "/d", "/e")),
                "api-testing/api-test-execution": [execution(pass_rate), execution(100)],
            }
        )
        reviewer = ScriptedReviewer()
        await run_process("api-testing", INPUTS, executor=executor, reviewer=reviewer)
        assert len(reviewer.requests_titled("Initial Execution Results")) == expected


@pytest.mark.integration
@pytest.mark.asyncio
async def test_modify_on_test_data_review_reaches_functional_tests():
    executor = ScriptedExecutor(
        {
            "api-testing/api-discovery": _discovery(crud=_endpoints("/a", "/b", "/c", "/d", "/e")),
            "api-testing/api-test-data-creation": {
                "dataReady": False,
                "dataGaps": ["orders"],
                "testDatasets": [],
            },
        }
    )
    reviewer = ScriptedReviewer({"Test Data Review": ReviewResponse.modify({"addFixtures": ["orders"]})})

    record = await run_process("api-testing", INPUTS, executor=executor, reviewer=reviewer)

    assert record["success"] is True
    functional = executor.calls("api-testing/functional-test-implementation")
    assert functional[0].prompt.context["reviewerFeedback"]["addFixtures"] == ["orders"]
