"""Shared fixtures for qaflow tests."""

from __future__ import annotations

import itertools
import sys
from pathlib import Path
from typing import Callable, Optional

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from qaflow.engine.executor import ScriptedExecutor
from qaflow.engine.review import ScriptedReviewer
from qaflow.engine.sequencer import ProcessContext


@pytest.fixture
def fake_clock() -> Callable[[], float]:
    """Clock advancing one second per call, starting at 1000."""
    ticks = itertools.count(1000)
    return lambda: float(next(ticks))


@pytest.fixture
def reviewer() -> ScriptedReviewer:
    return ScriptedReviewer()


@pytest.fixture
def make_ctx(fake_clock, reviewer):
    """Build a ProcessContext around a ScriptedExecutor."""

    def _make(
        executor: Optional[ScriptedExecutor] = None,
        *,
        review: Optional[ScriptedReviewer] = None,
        process_id: str = "specializations/qa-testing-automation/unit",
    ) -> ProcessContext:
        return ProcessContext(
            process_id,
            executor=executor or ScriptedExecutor(),
            reviewer=review or reviewer,
            run_id="run-test",
            clock=fake_clock,
        )

    return _make
