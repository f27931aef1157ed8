"""QA-automation processes.

Each module defines one process: an inputs dataclass, its agent tasks, and an
``async process(inputs, ctx)`` coroutine. PROCESS_REGISTRY maps the process id
to its definition.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping

PROCESS_PREFIX = "specializations/qa-testing-automation/"


@dataclass(frozen=True)
class ProcessDefinition:
    process_id: str
    title: str
    description: str
    parse_inputs: Callable[[Mapping[str, Any]], Any]
    run: Callable[[Any, Any], Awaitable[Dict[str, Any]]]

    @property
    def name(self) -> str:
        return self.process_id.rsplit("/", 1)[-1]


def _build_registry() -> Dict[str, ProcessDefinition]:
    from qaflow.processes import (
        api_testing,
        exploratory_testing,
        metrics_dashboard,
        mobile_testing,
        quality_gates,
        test_data_management,
        visual_regression,
    )

    modules = (
        mobile_testing,
        metrics_dashboard,
        exploratory_testing,
        test_data_management,
        visual_regression,
        api_testing,
        quality_gates,
    )
    registry: Dict[str, ProcessDefinition] = {}
    for module in modules:
        definition = ProcessDefinition(
            process_id=module.PROCESS_ID,
            title=module.TITLE,
            description=(module.__doc__ or "").strip().splitlines()[0],
            parse_inputs=module.Inputs.from_dict,
            run=module.process,
        )
        registry[definition.process_id] = definition
    return registry


PROCESS_REGISTRY: Dict[str, ProcessDefinition] = {}


def get_process(process_id: str) -> ProcessDefinition:
    """Resolve a full process id or its short name (for example 'api-testing')."""
    if not PROCESS_REGISTRY:
        PROCESS_REGISTRY.update(_build_registry())

    if process_id in PROCESS_REGISTRY:
        return PROCESS_REGISTRY[process_id]
    full = PROCESS_PREFIX + process_id
    if full in PROCESS_REGISTRY:
        return PROCESS_REGISTRY[full]
    raise KeyError(f"Unknown process: {process_id}")


def list_processes() -> Dict[str, ProcessDefinition]:
    if not PROCESS_REGISTRY:
        PROCESS_REGISTRY.update(_build_registry())
    return dict(PROCESS_REGISTRY)
