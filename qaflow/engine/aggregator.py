"""Result aggregation.

Builds the record a process returns: either the failure record of a
short-circuited run or the output record of a completed one. Aggregation only
redistributes values reported by earlier phases; pass/fail booleans are
derived with ``meets`` against the caller's thresholds.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Literal, Mapping, Optional

from qaflow.utils.schema_validation import validate_against_schema

if TYPE_CHECKING:
    from qaflow.engine.sequencer import ProcessContext


_SCHEMA_FILENAME = "run_record.schema.json"


def build_failure_record(
    *,
    process_id: str,
    error: str,
    details: Any = None,
    timestamp: float,
    run_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Record returned when a run stops early."""
    metadata: Dict[str, Any] = {"processId": process_id, "timestamp": timestamp}
    if run_id:
        metadata["runId"] = run_id
    record = {
        "success": False,
        "error": error,
        "details": details,
        "metadata": metadata,
    }
    validate_against_schema(record, _SCHEMA_FILENAME)
    return record


def build_output_record(
    ctx: "ProcessContext",
    fields: Mapping[str, Any],
    *,
    success: bool = True,
    metadata: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Record returned by a completed run.

    ``fields`` are the process-specific summary values. The accumulated
    artifacts, the duration and the metadata block are added here.
    """
    end = ctx.now()
    meta: Dict[str, Any] = dict(metadata or {})
    meta["processId"] = ctx.process_id
    meta["timestamp"] = ctx.started_at
    meta["runId"] = ctx.run_id

    record: Dict[str, Any] = {"success": bool(success)}
    record.update(fields)
    record["artifacts"] = [a.to_dict() for a in ctx.artifacts]
    record["duration"] = max(0.0, end - ctx.started_at)
    record["metadata"] = meta

    validate_against_schema(record, _SCHEMA_FILENAME)
    return record


def percent(part: Optional[float], whole: Optional[float]) -> Optional[float]:
    """part / whole * 100, or None when the ratio is undefined."""
    if part is None or not whole:
        return None
    return float(part) / float(whole) * 100


def meets(
    metric: Optional[float],
    threshold: float,
    direction: Literal["at_least", "at_most"] = "at_least",
) -> bool:
    """True when metric satisfies the threshold (inclusive). A missing metric never does."""
    if metric is None or isinstance(metric, bool):
        return False
    if direction == "at_least":
        return metric >= threshold
    return metric <= threshold
