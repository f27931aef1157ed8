"""Process run state.

WorkflowRun is the serializable state of one process execution. It is a frozen
value: each phase folds its result into a new WorkflowRun, so the artifact list
only ever grows and earlier snapshots stay valid.

Only stable primitives are stored, which keeps ``run_context.json`` usable for
debugging after the fact.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple
from uuid import uuid4

from qaflow.engine.results import Artifact, PhaseResult


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _frozen(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


class RunState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    AWAITING_APPROVAL = "awaiting_approval"
    COMPLETED = "completed"
    FAILED = "failed"


_ALLOWED_TRANSITIONS = {
    RunState.NOT_STARTED: {RunState.RUNNING},
    RunState.RUNNING: {RunState.AWAITING_APPROVAL, RunState.COMPLETED, RunState.FAILED},
    RunState.AWAITING_APPROVAL: {RunState.RUNNING, RunState.FAILED},
    RunState.COMPLETED: set(),
    RunState.FAILED: set(),
}


class InvalidTransition(RuntimeError):
    """Raised when a run is moved to a state it cannot reach."""


@dataclass(frozen=True)
class WorkflowRun:
    """Serializable state of one process run."""

    process_id: str
    run_id: str = field(default_factory=lambda: uuid4().hex)
    created_at: str = field(default_factory=_utc_now_iso)
    state: RunState = RunState.NOT_STARTED
    error: Optional[str] = None

    artifacts: Tuple[Artifact, ...] = ()
    phase_results: Mapping[str, Mapping[str, Any]] = field(default_factory=lambda: _frozen({}))
    checkpoints: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    reviews: Tuple[Mapping[str, Any], ...] = ()
    gates: Tuple[Mapping[str, Any], ...] = ()

    @property
    def success(self) -> bool:
        return self.state is not RunState.FAILED

    def with_state(self, state: RunState, *, error: Optional[str] = None) -> "WorkflowRun":
        if state is self.state:
            return self
        if state not in _ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransition(f"Run {self.run_id}: {self.state.value} -> {state.value} is not allowed")
        return replace(self, state=state, error=error if error is not None else self.error)

    def with_result(self, key: str, result: PhaseResult) -> "WorkflowRun":
        """Fold a phase result in; its artifacts are appended after the existing ones."""
        if key in self.phase_results:
            raise ValueError(f"Phase result '{key}' already recorded for run {self.run_id}")
        results = dict(self.phase_results)
        results[key] = result.to_dict()
        return replace(
            self,
            phase_results=_frozen(results),
            artifacts=self.artifacts + tuple(result.artifacts),
        )

    def with_results(self, keyed: Tuple[Tuple[str, PhaseResult], ...]) -> "WorkflowRun":
        run = self
        for key, result in keyed:
            run = run.with_result(key, result)
        return run

    def mark_checkpoint(self, name: str) -> "WorkflowRun":
        if not name.strip():
            return self
        checkpoints = dict(self.checkpoints)
        checkpoints[name] = _utc_now_iso()
        return replace(self, checkpoints=_frozen(checkpoints))

    def with_review(self, entry: Mapping[str, Any]) -> "WorkflowRun":
        return replace(self, reviews=self.reviews + (_frozen(entry),))

    def with_gate(self, outcome: Mapping[str, Any]) -> "WorkflowRun":
        return replace(self, gates=self.gates + (_frozen(outcome),))

    def to_payload(self) -> Dict[str, Any]:
        return {
            "schema_version": "1.0",
            "process_id": self.process_id,
            "run_id": self.run_id,
            "created_at": self.created_at,
            "state": self.state.value,
            "success": self.success,
            "error": self.error,
            "artifacts": [a.to_dict() for a in self.artifacts],
            "phase_results": {k: dict(v) for k, v in self.phase_results.items()},
            "checkpoints": dict(self.checkpoints),
            "reviews": [dict(r) for r in self.reviews],
            "gates": [dict(g) for g in self.gates],
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "WorkflowRun":
        run = cls(process_id=str(payload.get("process_id", "")))

        run_id = payload.get("run_id")
        if isinstance(run_id, str) and run_id:
            run = replace(run, run_id=run_id)

        created_at = payload.get("created_at")
        if isinstance(created_at, str) and created_at:
            run = replace(run, created_at=created_at)

        try:
            state = RunState(payload.get("state", RunState.NOT_STARTED.value))
        except ValueError:
            state = RunState.NOT_STARTED

        error = payload.get("error")

        artifacts = []
        raw_artifacts = payload.get("artifacts")
        if isinstance(raw_artifacts, list):
            for item in raw_artifacts:
                if isinstance(item, dict) and item.get("path"):
                    artifacts.append(Artifact.from_dict(item))

        phase_results: Dict[str, Dict[str, Any]] = {}
        raw_results = payload.get("phase_results")
        if isinstance(raw_results, dict):
            for k, v in raw_results.items():
                if isinstance(v, dict):
                    phase_results[str(k)] = dict(v)

        checkpoints: Dict[str, str] = {}
        raw_checkpoints = payload.get("checkpoints")
        if isinstance(raw_checkpoints, dict):
            checkpoints = {str(k): str(v) for k, v in raw_checkpoints.items()}

        def _entries(key: str) -> Tuple[Mapping[str, Any], ...]:
            raw = payload.get(key)
            if not isinstance(raw, list):
                return ()
            return tuple(_frozen(e) for e in raw if isinstance(e, dict))

        return replace(
            run,
            state=state,
            error=str(error) if error else None,
            artifacts=tuple(artifacts),
            phase_results=_frozen(phase_results),
            checkpoints=_frozen(checkpoints),
            reviews=_entries("reviews"),
            gates=_entries("gates"),
        )

    def write_json(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(self.to_payload(), indent=2, sort_keys=True, default=str) + "\n",
            encoding="utf-8",
        )

    @classmethod
    def read_json(cls, path: Path) -> Optional["WorkflowRun"]:
        if not path.exists() or not path.is_file():
            return None

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return None

        if not isinstance(payload, dict):
            return None

        return cls.from_payload(payload)
