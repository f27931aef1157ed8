"""Run one QA-automation process.

Usage:
    python scripts/run_process.py --list
    python scripts/run_process.py api-testing --inputs '{"projectName": "shop", "apiBaseUrl": "https://api.shop.test"}'
    python scripts/run_process.py mobile-testing --inputs-file inputs.json --dry-run

By default tasks are handed to an external agent through the run folder
(tasks/<effectId>/input.json -> result.json). ``--dry-run`` answers every task
with the smallest schema-valid payload and auto-approves breakpoints.
Stub payloads carry empty arrays, so processes that stop when a phase returns
nothing (api-testing with no endpoints, exploratory-testing with no charters)
end with a failure record on a dry run.

Exit codes: 0 when the run succeeds, 1 when it returns a failure record, 2 on
an unknown process or unusable inputs.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional


def _load_inputs(args: argparse.Namespace) -> dict:
    if args.inputs_file:
        raw = Path(args.inputs_file).read_text(encoding="utf-8")
    else:
        raw = args.inputs or "{}"
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Process inputs must be a JSON object")
    return data


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run a phased QA-automation process")
    parser.add_argument("process_id", nargs="?", help="Process id or short name, e.g. api-testing")
    parser.add_argument("--list", action="store_true", help="List available processes and exit")
    parser.add_argument("--inputs", help="Process inputs as a JSON object")
    parser.add_argument("--inputs-file", help="Path to a JSON file holding the process inputs")
    parser.add_argument("--output-dir", help="Run folder (default: <QAFLOW_OUTPUT_ROOT>/<name>-<timestamp>)")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Answer tasks with stub payloads and auto-approve every breakpoint",
    )
    parser.add_argument(
        "--reviewer",
        choices=["auto", "console", "file"],
        default=None,
        help="How breakpoints are answered (default: QAFLOW_REVIEW_MODE)",
    )

    args = parser.parse_args(argv)

    # Allow running this script directly without requiring installation.
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

    from loguru import logger
    from rich import print as rprint
    from rich.table import Table

    from qaflow.config import REVIEW, RUNNER
    from qaflow.engine.executor import FileExchangeExecutor, ScriptedExecutor
    from qaflow.engine.review import AutoApproveReviewer, ConsoleReviewer, FileExchangeReviewer
    from qaflow.engine.runner import run_process
    from qaflow.processes import get_process, list_processes

    logger.remove()
    logger.add(sys.stderr, level=RUNNER.LOG_LEVEL)

    if args.list:
        table = Table(title="QA Automation Processes")
        table.add_column("Name", style="cyan")
        table.add_column("Title", style="green")
        table.add_column("Description")
        for definition in list_processes().values():
            table.add_row(definition.name, definition.title, definition.description)
        rprint(table)
        return 0

    if not args.process_id:
        parser.error("process_id is required unless --list is given")

    try:
        definition = get_process(args.process_id)
    except KeyError as e:
        print(str(e.args[0]))
        return 2

    try:
        inputs = _load_inputs(args)
        definition.parse_inputs(inputs)
    except (OSError, ValueError) as e:
        print(f"Invalid inputs: {e}")
        return 2

    if args.output_dir:
        run_dir = Path(args.output_dir)
    else:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        run_dir = Path(RUNNER.OUTPUT_ROOT) / f"{definition.name}-{stamp}"
    run_dir = run_dir.expanduser().resolve()
    run_dir.mkdir(parents=True, exist_ok=True)

    mode = "auto" if args.dry_run else (args.reviewer or REVIEW.MODE)
    if mode == "console":
        reviewer = ConsoleReviewer()
    elif mode == "file":
        reviewer = FileExchangeReviewer(run_dir, poll_interval=RUNNER.POLL_INTERVAL)
    else:
        reviewer = AutoApproveReviewer()

    if args.dry_run:
        executor = ScriptedExecutor()
    else:
        executor = FileExchangeExecutor(run_dir, poll_interval=RUNNER.POLL_INTERVAL)

    rprint(f"[bold]{definition.title}[/bold] -> {run_dir}")
    record = asyncio.run(
        run_process(
            definition.process_id,
            inputs,
            executor=executor,
            reviewer=reviewer,
            output_dir=run_dir,
        )
    )

    status = "[green]SUCCESS[/green]" if record.get("success") else "[red]FAILED[/red]"
    rprint(f"{status} {definition.name}")
    if record.get("error"):
        rprint(f"error: {record['error']}")
    rprint(f"artifacts: {len(record.get('artifacts') or [])}")
    rprint(f"record: {run_dir / 'run_record.json'}")

    return 0 if record.get("success") else 1


if __name__ == "__main__":
    raise SystemExit(main())
