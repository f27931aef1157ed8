"""Process runner.

Looks a process up by id, runs it against an executor and a reviewer, and turns
the two fatal paths (a phase reporting failure, a reviewer rejecting a
breakpoint) into the failure record. The run is filesystem-first: when an
output folder is given, the run state and the returned record are persisted
there whatever the outcome.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from loguru import logger

from qaflow.engine.aggregator import build_failure_record
from qaflow.engine.executor import TaskExecutor
from qaflow.engine.review import Reviewer
from qaflow.engine.sequencer import PhaseFailure, ProcessContext, ReviewRejected
from qaflow.processes import get_process
from qaflow.tracing import safe_set_span_attributes


RUN_CONTEXT_FILENAME = "run_context.json"
RUN_RECORD_FILENAME = "run_record.json"


async def run_process(
    process_id: str,
    inputs: Mapping[str, Any],
    *,
    executor: TaskExecutor,
    reviewer: Optional[Reviewer] = None,
    output_dir: Optional[str | Path] = None,
    run_id: Optional[str] = None,
    clock: Optional[Callable[[], float]] = None,
) -> Dict[str, Any]:
    """Run one process to completion.

    Args:
        process_id: Registry id, for example 'specializations/qa-testing-automation/api-testing'.
        inputs: Loosely typed process inputs (camelCase keys).
        executor: Task executor.
        reviewer: Breakpoint reviewer; defaults to auto-approve.
        output_dir: Optional folder for run_context.json and run_record.json.
        run_id: Optional fixed run id.
        clock: Optional clock returning seconds.

    Returns:
        The process output record, or the failure record.

    Raises:
        KeyError: Unknown process id.
        TaskExecutionError, TaskOutputError: Boundary problems, which are not
            reported-failure short-circuits and so are not turned into records.
    """
    definition = get_process(process_id)
    ctx = ProcessContext(
        definition.process_id,
        executor=executor,
        reviewer=reviewer,
        run_id=run_id,
        clock=clock,
    )

    def _finalize(record: Dict[str, Any]) -> Dict[str, Any]:
        if output_dir is None:
            return record
        out = Path(output_dir).expanduser().resolve()
        try:
            ctx.run.write_json(out / RUN_CONTEXT_FILENAME)
            (out / RUN_RECORD_FILENAME).write_text(
                json.dumps(record, indent=2, sort_keys=True, default=str) + "\n",
                encoding="utf-8",
            )
        except OSError:
            logger.exception(
                "Failed to persist run files for process='{}', run_id='{}' in '{}'",
                definition.process_id,
                ctx.run_id,
                out,
            )
        return record

    with ctx.tracer.start_as_current_span(f"process.{definition.name}") as span:
        safe_set_span_attributes(span, {"qaflow.process_id": definition.process_id, "qaflow.run_id": ctx.run_id})
        ctx.start()
        try:
            inputs_obj = definition.parse_inputs(inputs)
            record = await definition.run(inputs_obj, ctx)
        except PhaseFailure as e:
            ctx.fail(e.message)
            safe_set_span_attributes(span, {"qaflow.success": False, "qaflow.error": e.message})
            return _finalize(
                build_failure_record(
                    process_id=definition.process_id,
                    error=e.message,
                    details=e.details,
                    timestamp=ctx.started_at,
                    run_id=ctx.run_id,
                )
            )
        except ReviewRejected as e:
            ctx.fail(str(e))
            safe_set_span_attributes(span, {"qaflow.success": False, "qaflow.error": str(e)})
            return _finalize(
                build_failure_record(
                    process_id=definition.process_id,
                    error=str(e),
                    details={"title": e.title, "comment": e.response.comment},
                    timestamp=ctx.started_at,
                    run_id=ctx.run_id,
                )
            )
        except Exception as e:
            ctx.fail(f"{type(e).__name__}: {e}")
            _finalize(
                build_failure_record(
                    process_id=definition.process_id,
                    error=f"{type(e).__name__}: {e}",
                    details={"exceptionType": type(e).__name__},
                    timestamp=ctx.started_at,
                    run_id=ctx.run_id,
                )
            )
            raise

        ctx.complete()
        safe_set_span_attributes(span, {"qaflow.success": bool(record.get("success"))})
        return _finalize(record)
