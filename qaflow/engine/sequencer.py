"""Phase sequencer.

ProcessContext is the ``ctx`` every process receives. It runs single tasks and
fan-out groups, evaluates threshold gates, and pauses for human review. The
run state lives in an immutable WorkflowRun that is replaced after every fold.

Failure semantics:
- a task whose output reports ``success: false`` raises PhaseFailure and the
  run stops; there is no retry and no partial continuation
- a reviewer rejecting a breakpoint raises ReviewRejected
- executor and schema problems propagate as TaskExecutionError and
  TaskOutputError
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from uuid import uuid4

from loguru import logger

from qaflow.engine.context import RunState, WorkflowRun
from qaflow.engine.executor import TaskExecutionError, TaskExecutor
from qaflow.engine.gates import GateOutcome, ThresholdGate, check_gate
from qaflow.engine.results import Artifact, PhaseResult, TaskOutputError
from qaflow.engine.review import AutoApproveReviewer, ReviewDecision, ReviewRequest, ReviewResponse, Reviewer
from qaflow.engine.tasks import TaskContext, TaskDefinition, TaskSpec
from qaflow.tracing import init_tracing, safe_set_span_attributes


class PhaseFailure(RuntimeError):
    """Raised when a phase reports failure; ends the run with a failure record."""

    def __init__(self, message: str, *, task: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.task = task
        self.details = details


class ReviewRejected(RuntimeError):
    """Raised when a reviewer rejects a breakpoint."""

    def __init__(self, title: str, response: ReviewResponse):
        super().__init__(f"Review rejected: {title}")
        self.title = title
        self.response = response


@dataclass(frozen=True)
class Branch:
    """One task of a fan-out group."""

    definition: TaskDefinition
    args: Mapping[str, Any] = field(default_factory=dict)
    key: Optional[str] = None


BranchLike = Union[Branch, Tuple[TaskDefinition, Mapping[str, Any]], Tuple[TaskDefinition, Mapping[str, Any], str]]


@dataclass(frozen=True)
class _Prepared:
    definition: TaskDefinition
    spec: TaskSpec
    effect_id: str
    args: Dict[str, Any]
    key: str


class ProcessContext:
    """Orchestration context handed to a process."""

    def __init__(
        self,
        process_id: str,
        *,
        executor: TaskExecutor,
        reviewer: Optional[Reviewer] = None,
        run_id: Optional[str] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._run = WorkflowRun(process_id=process_id, run_id=run_id or uuid4().hex)
        self._executor = executor
        self._reviewer: Reviewer = reviewer or AutoApproveReviewer()
        self._clock = clock or time.time
        self._tracer = init_tracing()
        self._log = logger.bind(run_id=self._run.run_id, process_id=process_id)

        self._effect_seq = 0
        self._review_seq = 0
        self._keys: set[str] = set()
        self._pending_feedback: Optional[Dict[str, Any]] = None
        self.started_at = self.now()

    @property
    def run_id(self) -> str:
        return self._run.run_id

    @property
    def process_id(self) -> str:
        return self._run.process_id

    @property
    def run(self) -> WorkflowRun:
        return self._run

    @property
    def artifacts(self) -> Tuple[Artifact, ...]:
        return self._run.artifacts

    @property
    def state(self) -> RunState:
        return self._run.state

    @property
    def tracer(self):
        return self._tracer

    def now(self) -> float:
        return self._clock()

    def log(self, level: str, message: str) -> None:
        self._log.log(level.upper(), message)

    # -- lifecycle -------------------------------------------------------

    def start(self) -> None:
        if self._run.state is RunState.NOT_STARTED:
            self._run = self._run.with_state(RunState.RUNNING).mark_checkpoint("start")
            self._log.info(f"Run {self.run_id} started for {self.process_id}")

    def complete(self) -> None:
        self._run = self._run.with_state(RunState.COMPLETED).mark_checkpoint("end")
        self._log.info(f"Run {self.run_id} completed")

    def fail(self, error: str) -> None:
        if self._run.state is RunState.FAILED:
            return
        self._run = self._run.with_state(RunState.FAILED, error=error).mark_checkpoint("end")
        self._log.error(f"Run {self.run_id} failed: {error}")

    def _ensure_running(self) -> None:
        if self._run.state is RunState.NOT_STARTED:
            self.start()
        if self._run.state is not RunState.RUNNING:
            raise RuntimeError(f"Run {self.run_id} is {self._run.state.value}; no further phases may run")

    # -- tasks -----------------------------------------------------------

    def _reserve_key(self, base: str) -> str:
        key = base
        n = 2
        while key in self._keys:
            key = f"{base}#{n}"
            n += 1
        self._keys.add(key)
        return key

    def _prepare(
        self,
        definition: TaskDefinition,
        args: Optional[Mapping[str, Any]],
        key: Optional[str],
        feedback: Optional[Dict[str, Any]],
    ) -> _Prepared:
        task_args = dict(args or {})
        if feedback:
            task_args["reviewerFeedback"] = dict(feedback)

        self._effect_seq += 1
        effect_id = f"effect-{self._effect_seq:04d}"
        spec = definition.build(task_args, TaskContext(effect_id=effect_id))
        return _Prepared(
            definition=definition,
            spec=spec,
            effect_id=effect_id,
            args=task_args,
            key=self._reserve_key(key or definition.name),
        )

    def _pop_feedback(self) -> Optional[Dict[str, Any]]:
        feedback, self._pending_feedback = self._pending_feedback, None
        return feedback

    async def _invoke(self, prepared: _Prepared) -> PhaseResult:
        spec = prepared.spec
        effect_id = prepared.effect_id
        with self._tracer.start_as_current_span(f"task.{spec.name}") as span:
            safe_set_span_attributes(
                span,
                {"qaflow.run_id": self.run_id, "qaflow.task": spec.name, "qaflow.effect_id": effect_id},
            )
            try:
                output = await self._executor.execute(spec, prepared.args)
            except (TaskExecutionError, TaskOutputError):
                raise
            except Exception as e:
                raise TaskExecutionError(f"Executor failed on task '{spec.name}': {type(e).__name__}: {e}") from e

            result = PhaseResult.from_output(spec, effect_id, output)
            safe_set_span_attributes(span, {"qaflow.success": result.success, "qaflow.artifacts": len(result.artifacts)})
        return result

    def _raise_if_failed(self, definition: TaskDefinition, result: PhaseResult) -> None:
        if result.success:
            return
        message = definition.failure_message or f"Task '{definition.name}' reported failure"
        self._log.error(f"Phase '{definition.name}' reported failure: {message}")
        raise PhaseFailure(message, task=definition.name, details=result.to_dict())

    async def task(
        self,
        definition: TaskDefinition,
        args: Optional[Mapping[str, Any]] = None,
        *,
        key: Optional[str] = None,
    ) -> PhaseResult:
        """Run one task to completion and fold its result into the run."""
        self._ensure_running()
        prepared = self._prepare(definition, args, key, self._pop_feedback())
        self._log.info(f"Phase '{prepared.key}' started: {prepared.spec.title}")

        result = await self._invoke(prepared)
        self._run = self._run.with_result(prepared.key, result)
        self._raise_if_failed(definition, result)
        return result

    async def parallel(self, branches: Sequence[BranchLike]) -> List[PhaseResult]:
        """Run tasks concurrently and join when every one has settled.

        Results, and the artifacts folded into the run, follow the declaration
        order of ``branches`` regardless of completion order.
        """
        self._ensure_running()
        normalized = [b if isinstance(b, Branch) else Branch(*b) for b in branches]
        if not normalized:
            return []

        feedback = self._pop_feedback()
        prepared = [self._prepare(b.definition, b.args, b.key, feedback) for b in normalized]
        self._log.info(f"Fan-out of {len(prepared)} tasks: {', '.join(p.key for p in prepared)}")

        with self._tracer.start_as_current_span("fanout") as span:
            safe_set_span_attributes(span, {"qaflow.run_id": self.run_id, "qaflow.branches": [p.key for p in prepared]})
            settled = await asyncio.gather(*(self._invoke(p) for p in prepared), return_exceptions=True)

        for outcome in settled:
            if isinstance(outcome, BaseException):
                raise outcome

        results: List[PhaseResult] = list(settled)  # type: ignore[arg-type]
        self._run = self._run.with_results(tuple((p.key, r) for p, r in zip(prepared, results)))
        self._log.info(f"Fan-out joined: {len(results)} results, {sum(len(r.artifacts) for r in results)} artifacts")

        for p, r in zip(prepared, results):
            self._raise_if_failed(p.definition, r)
        return results

    # -- review ----------------------------------------------------------

    def _request(self, kind: str, title: str, prompt: str, context: Optional[Mapping[str, Any]]) -> ReviewRequest:
        self._review_seq += 1
        payload = dict(context or {})
        payload.setdefault("runId", self.run_id)
        return ReviewRequest(
            request_id=f"{self.run_id}-{kind}-{self._review_seq:03d}",
            run_id=self.run_id,
            kind=kind,  # type: ignore[arg-type]
            title=title,
            prompt=prompt,
            context=payload,
        )

    async def breakpoint(
        self,
        *,
        question: str,
        title: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> ReviewResponse:
        """Pause for a reviewer decision.

        approve continues; modify continues and hands the modifications to the
        next task as ``reviewerFeedback``; reject fails the run.
        """
        self._ensure_running()
        request = self._request("breakpoint", title, question, context)
        self._run = self._run.with_state(RunState.AWAITING_APPROVAL)
        self._log.info(f"Breakpoint '{title}' awaiting review")

        response = await self._reviewer.review(request)
        self._run = self._run.with_review(
            {
                "requestId": request.request_id,
                "kind": "breakpoint",
                "title": title,
                "decision": response.decision.value,
                "comment": response.comment,
                "modifications": dict(response.modifications),
            }
        )
        self._log.info(f"Breakpoint '{title}' answered: {response.decision.value}")

        if response.decision is ReviewDecision.REJECT:
            self.fail(f"Review rejected: {title}")
            raise ReviewRejected(title, response)

        self._run = self._run.with_state(RunState.RUNNING)
        if response.decision is ReviewDecision.MODIFY:
            feedback = dict(response.modifications)
            if response.comment:
                feedback.setdefault("comment", response.comment)
            feedback["breakpoint"] = title
            self._pending_feedback = feedback
        return response

    async def checkpoint(
        self,
        *,
        title: str,
        message: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Notify the reviewer of progress; does not wait for a decision."""
        self._ensure_running()
        request = self._request("checkpoint", title, message, context)
        self._run = self._run.with_state(RunState.AWAITING_APPROVAL)
        await self._reviewer.notify(request)
        self._run = (
            self._run.with_state(RunState.RUNNING)
            .mark_checkpoint(title)
            .with_review({"requestId": request.request_id, "kind": "checkpoint", "title": title})
        )

    async def gate(
        self,
        gate: ThresholdGate,
        metric: Optional[float],
        *,
        title: str,
        question: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> GateOutcome:
        """Evaluate a threshold gate and raise a breakpoint when it triggers."""
        outcome = check_gate(gate, metric)
        self._run = self._run.with_gate(outcome.to_dict())
        if outcome.triggered:
            await self.breakpoint(question=question, title=title, context=context)
        return outcome
