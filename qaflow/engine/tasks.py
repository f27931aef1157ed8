"""
Task Registry
=============
Declarative task descriptors handed to an external agent executor.

A task definition is a pure builder: given an argument bag and a TaskContext
(which only carries the effect id), it returns a TaskSpec holding the agent
role, the instructions, the prompt context and the JSON schema the agent's
output must satisfy. Builders never branch on anything but their arguments,
so building twice with the same inputs yields equal descriptors.

The ``required`` list of an output schema is the contract with the sequencer:
those fields are the only ones process code may read without a null check.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Sequence, Tuple


# Schema fragments shared by every process module.
STRING: Dict[str, Any] = {"type": "string"}
BOOLEAN: Dict[str, Any] = {"type": "boolean"}
NUMBER: Dict[str, Any] = {"type": "number"}
INTEGER: Dict[str, Any] = {"type": "integer", "minimum": 0}
PERCENT: Dict[str, Any] = {"type": "number", "minimum": 0, "maximum": 100}
OBJECT: Dict[str, Any] = {"type": "object"}
ARRAY: Dict[str, Any] = {"type": "array"}

ARTIFACT_ITEM: Dict[str, Any] = {
    "type": "object",
    "required": ["path"],
    "properties": {
        "path": {"type": "string", "minLength": 1},
        "format": {"type": "string"},
        "label": {"type": "string"},
        "language": {"type": "string"},
    },
}

ARTIFACTS: Dict[str, Any] = {"type": "array", "items": ARTIFACT_ITEM}


def array_of(item: Mapping[str, Any]) -> Dict[str, Any]:
    return {"type": "array", "items": dict(item)}


def object_with(properties: Mapping[str, Any], required: Sequence[str] = ()) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "object", "properties": dict(properties)}
    if required:
        schema["required"] = list(required)
    return schema


def output_schema(properties: Mapping[str, Any], required: Sequence[str]) -> Dict[str, Any]:
    """Build a task output schema.

    Every task reports the files it produced, so ``artifacts`` is always
    declared and always required.
    """
    props = dict(properties)
    props.setdefault("artifacts", ARTIFACTS)
    req = list(required)
    if "artifacts" not in req:
        req.append("artifacts")
    return {"type": "object", "required": req, "properties": props}


@dataclass(frozen=True)
class TaskContext:
    """Per-invocation data a builder may use: the effect id that names its io paths."""

    effect_id: str


@dataclass(frozen=True)
class TaskIO:
    input_json_path: str
    output_json_path: str

    @classmethod
    def for_effect(cls, effect_id: str) -> "TaskIO":
        return cls(
            input_json_path=f"tasks/{effect_id}/input.json",
            output_json_path=f"tasks/{effect_id}/result.json",
        )


@dataclass(frozen=True)
class AgentPrompt:
    role: str
    task: str
    context: Dict[str, Any]
    instructions: Tuple[str, ...]
    output_format: str


@dataclass(frozen=True)
class TaskSpec:
    """Declarative descriptor of one agent task."""

    name: str
    title: str
    prompt: AgentPrompt
    output_schema: Dict[str, Any]
    io: TaskIO
    labels: Tuple[str, ...] = ()
    kind: str = "agent"
    agent_name: str = "general-purpose"

    @property
    def required_fields(self) -> FrozenSet[str]:
        return frozenset(self.output_schema.get("required", ()))

    def to_dict(self) -> Dict[str, Any]:
        """Wire form consumed by executors."""
        return {
            "kind": self.kind,
            "name": self.name,
            "title": self.title,
            "agent": {
                "name": self.agent_name,
                "prompt": {
                    "role": self.prompt.role,
                    "task": self.prompt.task,
                    "context": copy.deepcopy(self.prompt.context),
                    "instructions": list(self.prompt.instructions),
                    "outputFormat": self.prompt.output_format,
                },
                "outputSchema": copy.deepcopy(self.output_schema),
            },
            "io": {
                "inputJsonPath": self.io.input_json_path,
                "outputJsonPath": self.io.output_json_path,
            },
            "labels": list(self.labels),
        }


TaskBuilder = Callable[[Dict[str, Any], TaskContext], TaskSpec]


@dataclass(frozen=True)
class TaskDefinition:
    """A named, registered task builder."""

    name: str
    builder: TaskBuilder
    failure_message: Optional[str] = None
    description: str = ""

    def build(self, args: Mapping[str, Any], task_ctx: TaskContext) -> TaskSpec:
        # Builders get a private copy so a descriptor never aliases caller state.
        spec = self.builder(copy.deepcopy(dict(args)), task_ctx)
        if not isinstance(spec, TaskSpec):
            raise TypeError(f"Task '{self.name}' builder returned {type(spec).__name__}, expected TaskSpec")
        return spec


TASK_REGISTRY: Dict[str, TaskDefinition] = {}


def register_task(definition: TaskDefinition) -> TaskDefinition:
    existing = TASK_REGISTRY.get(definition.name)
    if existing is not None and existing is not definition:
        raise ValueError(f"Task '{definition.name}' is already registered")
    TASK_REGISTRY[definition.name] = definition
    return definition


def get_task(name: str) -> TaskDefinition:
    try:
        return TASK_REGISTRY[name]
    except KeyError:
        raise KeyError(f"Unknown task: {name}") from None


def define_task(
    name: str,
    *,
    failure_message: Optional[str] = None,
    register: bool = True,
) -> Callable[[TaskBuilder], TaskDefinition]:
    """Decorator turning a builder function into a TaskDefinition.

    Example:
        @define_task("smoke-check")
        def smoke_check(args, task_ctx):
            return TaskSpec(...)
    """

    def _wrap(builder: TaskBuilder) -> TaskDefinition:
        definition = TaskDefinition(
            name=name,
            builder=builder,
            failure_message=failure_message,
            description=(builder.__doc__ or "").strip(),
        )
        return register_task(definition) if register else definition

    return _wrap


class _KeepMissing(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


@dataclass(frozen=True)
class AgentTaskTemplate:
    """Static parts of an agent task; only the title and context vary with args."""

    title: str
    role: str
    task: str
    instructions: Tuple[str, ...]
    output_format: str
    schema: Dict[str, Any]
    labels: Tuple[str, ...] = field(default_factory=tuple)
    agent_name: str = "general-purpose"

    def render(self, name: str, args: Dict[str, Any], task_ctx: TaskContext) -> TaskSpec:
        return TaskSpec(
            name=name,
            title=self.title.format_map(_KeepMissing(args)),
            prompt=AgentPrompt(
                role=self.role,
                task=self.task,
                context=args,
                instructions=self.instructions,
                output_format=self.output_format,
            ),
            output_schema=copy.deepcopy(self.schema),
            io=TaskIO.for_effect(task_ctx.effect_id),
            labels=("agent",) + self.labels,
            agent_name=self.agent_name,
        )


def agent_task(
    name: str,
    *,
    title: str,
    role: str,
    task: str,
    instructions: Sequence[str],
    properties: Mapping[str, Any],
    required: Sequence[str],
    labels: Sequence[str] = (),
    output_format: str = "JSON object matching the output schema",
    failure_message: Optional[str] = None,
    agent_name: str = "general-purpose",
) -> TaskDefinition:
    """Define and register a general-purpose agent task.

    ``title`` may reference argument keys with str.format placeholders, for
    example "Final Assessment - {appName}".
    """
    template = AgentTaskTemplate(
        title=title,
        role=role,
        task=task,
        instructions=tuple(instructions),
        output_format=output_format,
        schema=output_schema(properties, required),
        labels=tuple(labels),
        agent_name=agent_name,
    )

    def _build(args: Dict[str, Any], task_ctx: TaskContext) -> TaskSpec:
        return template.render(name, args, task_ctx)

    return register_task(
        TaskDefinition(name=name, builder=_build, failure_message=failure_message, description=task)
    )
