"""Task execution boundary.

The engine never runs an agent itself. A TaskExecutor receives a TaskSpec and
returns the agent's JSON payload; the sequencer validates that payload against
the task's output schema.

Executors provided here:
- ScriptedExecutor: canned payloads per task, for tests and dry runs
- FileExchangeExecutor: writes tasks/<effectId>/input.json under a run folder
  and waits for the agent to write tasks/<effectId>/result.json
"""

from __future__ import annotations

import asyncio
import inspect
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from loguru import logger

from qaflow.engine.tasks import TaskSpec
from qaflow.utils.exchange import wait_for_json, write_json_locked
from qaflow.utils.schema_validation import validate_against_schema


class TaskExecutionError(RuntimeError):
    """Raised when an executor cannot produce a payload for a task."""


class TaskExecutor(Protocol):
    async def execute(self, spec: TaskSpec, args: Mapping[str, Any]) -> Dict[str, Any]: ...


def stub_payload(schema: Mapping[str, Any]) -> Any:
    """Smallest value satisfying a task output schema.

    Only ``required`` object members are generated. Numbers take their
    ``minimum`` (or 0), booleans are True, enums take their first member.
    """
    if "const" in schema:
        return schema["const"]
    if "enum" in schema:
        return list(schema["enum"])[0]

    kind = schema.get("type", "object")
    if isinstance(kind, list):
        kind = kind[0] if kind else "object"

    if kind == "object":
        props = schema.get("properties", {})
        return {key: stub_payload(props.get(key, {})) for key in schema.get("required", ())}
    if kind == "array":
        return []
    if kind == "boolean":
        return True
    if kind == "integer":
        return int(schema.get("minimum", 0))
    if kind == "number":
        return schema.get("minimum", 0)
    if kind == "null":
        return None
    return ""


ScriptedPayload = Union[
    Mapping[str, Any],
    Callable[[TaskSpec], Union[Mapping[str, Any], Awaitable[Mapping[str, Any]]]],
    Sequence[Mapping[str, Any]],
]


class ScriptedExecutor:
    """Executor answering from canned payloads.

    ``responses`` maps a task name to either a payload, a callable receiving the
    TaskSpec, or a list of payloads consumed one per call (the last one repeats).
    Unscripted tasks fall back to ``stub_payload`` of their schema unless
    ``strict`` is set.
    """

    def __init__(
        self,
        responses: Optional[Mapping[str, ScriptedPayload]] = None,
        *,
        delays: Optional[Mapping[str, float]] = None,
        strict: bool = False,
    ):
        self.responses: Dict[str, ScriptedPayload] = dict(responses or {})
        self.delays: Dict[str, float] = dict(delays or {})
        self.strict = strict
        self.executed: List[TaskSpec] = []
        self.completed: List[str] = []
        self._cursor: Dict[str, int] = {}

    @property
    def executed_names(self) -> List[str]:
        return [spec.name for spec in self.executed]

    def calls(self, name: str) -> List[TaskSpec]:
        return [spec for spec in self.executed if spec.name == name]

    async def _resolve(self, spec: TaskSpec) -> Any:
        scripted = self.responses.get(spec.name)
        if scripted is None:
            if self.strict:
                raise TaskExecutionError(f"No scripted payload for task '{spec.name}'")
            return stub_payload(spec.output_schema)

        if callable(scripted):
            value = scripted(spec)
            if inspect.isawaitable(value):
                value = await value
            return value

        if isinstance(scripted, Mapping):
            return dict(scripted)

        idx = self._cursor.get(spec.name, 0)
        self._cursor[spec.name] = idx + 1
        items = list(scripted)
        if not items:
            raise TaskExecutionError(f"Empty payload list for task '{spec.name}'")
        return dict(items[min(idx, len(items) - 1)])

    async def execute(self, spec: TaskSpec, args: Mapping[str, Any]) -> Dict[str, Any]:
        self.executed.append(spec)
        delay = self.delays.get(spec.name)
        if delay:
            await asyncio.sleep(delay)

        payload = await self._resolve(spec)
        if isinstance(payload, Mapping) and "artifacts" not in payload and "artifacts" in spec.required_fields:
            payload = {**payload, "artifacts": []}
        self.completed.append(spec.name)
        return payload


class FileExchangeExecutor:
    """Executor that hands tasks to an external agent through the filesystem.

    The agent is expected to watch ``<run_dir>/tasks/*/input.json`` and write
    the matching ``result.json``. There is no timeout.
    """

    def __init__(self, run_dir: Path, *, poll_interval: Optional[float] = None):
        self.run_dir = Path(run_dir)
        self.poll_interval = poll_interval

    async def execute(self, spec: TaskSpec, args: Mapping[str, Any]) -> Dict[str, Any]:
        descriptor = spec.to_dict()
        try:
            validate_against_schema(descriptor, "task_spec.schema.json")
        except ValueError as e:
            raise TaskExecutionError(f"Task '{spec.name}' descriptor is malformed: {e}") from e

        input_path = self.run_dir / spec.io.input_json_path
        output_path = self.run_dir / spec.io.output_json_path

        try:
            write_json_locked(input_path, {"task": descriptor, "args": dict(args)})
        except (OSError, TimeoutError) as e:
            raise TaskExecutionError(f"Could not write {input_path}: {e}") from e

        logger.info(f"Task '{spec.name}' handed off at {input_path}")
        try:
            return await wait_for_json(output_path, poll_interval=self.poll_interval)
        except (OSError, ValueError, TimeoutError) as e:
            raise TaskExecutionError(f"Could not read {output_path}: {e}") from e
