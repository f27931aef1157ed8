"""Threshold quality gates.

A gate compares one task-reported metric with a threshold supplied by the
process inputs. Comparisons are strict: a "below" gate triggers when
``metric < threshold`` and an "above" gate when ``metric > threshold``, so a
metric sitting exactly on the threshold passes.

A gate never fails a run. When it triggers, the sequencer raises a breakpoint
and the reviewer decides. A missing metric (for example a ratio over zero
items) cannot be compared and does not trigger.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

from loguru import logger

from qaflow.tracing import safe_set_current_span_attributes


Direction = Literal["below", "above"]


@dataclass(frozen=True)
class ThresholdGate:
    """A named metric threshold."""

    name: str
    threshold: float
    direction: Direction = "below"

    def __post_init__(self) -> None:
        if self.direction not in ("below", "above"):
            raise ValueError(f"Gate '{self.name}': direction must be 'below' or 'above', got {self.direction!r}")

    @classmethod
    def below(cls, name: str, threshold: float) -> "ThresholdGate":
        return cls(name=name, threshold=float(threshold), direction="below")

    @classmethod
    def above(cls, name: str, threshold: float) -> "ThresholdGate":
        return cls(name=name, threshold=float(threshold), direction="above")

    def triggers(self, metric: Optional[float]) -> bool:
        if metric is None or isinstance(metric, bool):
            return False
        if self.direction == "below":
            return metric < self.threshold
        return metric > self.threshold


@dataclass(frozen=True)
class GateOutcome:
    gate: str
    metric: Optional[float]
    threshold: float
    direction: Direction
    triggered: bool

    @property
    def action(self) -> str:
        if self.metric is None:
            return "skipped"
        return "review" if self.triggered else "pass"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gate": self.gate,
            "metric": self.metric,
            "threshold": self.threshold,
            "direction": self.direction,
            "triggered": self.triggered,
            "action": self.action,
        }


def check_gate(gate: ThresholdGate, metric: Optional[float]) -> GateOutcome:
    """Evaluate a gate and record the outcome on the current span.

    Pure apart from logging and tracing.
    """
    value = float(metric) if isinstance(metric, (int, float)) and not isinstance(metric, bool) else None
    outcome = GateOutcome(
        gate=gate.name,
        metric=value,
        threshold=gate.threshold,
        direction=gate.direction,
        triggered=gate.triggers(value),
    )

    safe_set_current_span_attributes(
        {
            f"gate.{gate.name}.metric": outcome.metric,
            f"gate.{gate.name}.threshold": outcome.threshold,
            f"gate.{gate.name}.action": outcome.action,
        }
    )

    if outcome.triggered:
        comparator = "<" if gate.direction == "below" else ">"
        logger.warning(f"Gate '{gate.name}' triggered: {value} {comparator} {gate.threshold}")
    elif value is None:
        logger.debug(f"Gate '{gate.name}' skipped: metric unavailable")
    else:
        logger.info(f"Gate '{gate.name}' passed: {value} vs {gate.threshold}")

    return outcome
