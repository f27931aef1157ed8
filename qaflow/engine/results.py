"""Phase results and artifacts.

A PhaseResult is created once, from an agent payload that already passed its
task's output schema, and is never mutated afterwards. Field access is split
by the schema contract: ``result["field"]`` only works for fields the schema
lists as required, optional fields go through ``result.get``.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from qaflow.engine.tasks import TaskSpec
from qaflow.utils.schema_validation import validate_against_inline_schema


class TaskOutputError(ValueError):
    """Raised when an agent payload does not satisfy its task's output schema."""


@dataclass(frozen=True)
class Artifact:
    path: str
    format: Optional[str] = None
    label: Optional[str] = None
    language: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Artifact":
        path = payload.get("path")
        if not isinstance(path, str) or not path:
            raise ValueError("Artifact requires a non-empty 'path'")

        def _opt(key: str) -> Optional[str]:
            value = payload.get(key)
            return str(value) if value is not None else None

        return cls(path=path, format=_opt("format"), label=_opt("label"), language=_opt("language"))

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"path": self.path}
        for key in ("format", "label", "language"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out


@dataclass(frozen=True)
class PhaseResult:
    """Immutable output of one task invocation."""

    task: str
    effect_id: str
    payload: Mapping[str, Any]
    required: FrozenSet[str]
    artifacts: Tuple[Artifact, ...] = ()

    @classmethod
    def from_output(cls, spec: TaskSpec, effect_id: str, output: Any) -> "PhaseResult":
        """Validate an agent payload against the task's output schema and freeze it.

        Raises:
            TaskOutputError: When output is not an object or violates the schema.
        """
        if not isinstance(output, Mapping):
            raise TaskOutputError(f"Task '{spec.name}' returned {type(output).__name__}, expected an object")

        payload = copy.deepcopy(dict(output))
        try:
            validate_against_inline_schema(payload, spec.output_schema)
        except ValueError as e:
            raise TaskOutputError(f"Task '{spec.name}' output rejected: {e}") from e

        artifacts = tuple(Artifact.from_dict(item) for item in payload.get("artifacts") or ())
        return cls(
            task=spec.name,
            effect_id=effect_id,
            payload=MappingProxyType(payload),
            required=spec.required_fields,
            artifacts=artifacts,
        )

    @property
    def success(self) -> bool:
        # Tasks whose schema has no success flag cannot report failure.
        return self.payload.get("success") is not False

    def __getitem__(self, key: str) -> Any:
        if key not in self.required:
            raise KeyError(f"'{key}' is optional in task '{self.task}' output; use .get('{key}')")
        return self.payload[key]

    def __contains__(self, key: object) -> bool:
        return key in self.payload

    def get(self, key: str, default: Any = None) -> Any:
        value = self.payload.get(key, default)
        return default if value is None else value

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(dict(self.payload))


def artifact_files(artifacts: Sequence[Artifact], default_format: str = "json") -> List[Dict[str, str]]:
    """Reviewer-facing file references for a list of artifacts."""
    return [{"path": a.path, "format": a.format or default_format} for a in artifacts]
