"""Tests for environment-driven configuration."""

import dataclasses

import pytest

from qaflow.config import REVIEW, RUNNER, TRACING, RunnerConfig


@pytest.mark.unit
def test_singletons_are_frozen():
    with pytest.raises(dataclasses.FrozenInstanceError):
        RUNNER.POLL_INTERVAL = 0.1  # type: ignore[misc]


@pytest.mark.unit
def test_defaults_have_expected_types():
    assert TRACING.SERVICE_NAME == "qaflow"
    assert isinstance(TRACING.ENABLED, bool)
    assert isinstance(RUNNER.POLL_INTERVAL, float)
    assert RUNNER.LOG_LEVEL == RUNNER.LOG_LEVEL.upper()
    assert REVIEW.MODE == REVIEW.MODE.lower()


@pytest.mark.unit
def test_fields_can_be_overridden_per_instance():
    config = RunnerConfig(OUTPUT_ROOT="/tmp/runs", POLL_INTERVAL=0.5)
    assert config.OUTPUT_ROOT == "/tmp/runs"
    assert config.POLL_INTERVAL == 0.5
