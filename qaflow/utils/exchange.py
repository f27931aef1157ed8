"""File-exchange helpers.

Tasks and reviews can be handed to out-of-process collaborators through the
filesystem: qaflow writes a request JSON file and waits for a response JSON
file next to it. Writes and reads take a sibling ``.lock`` file so a partially
written response is never parsed.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from filelock import FileLock, Timeout
from loguru import logger

from qaflow.config import RUNNER


def _lock_path(path: Path) -> Path:
    return path.with_name(path.name + ".lock")


def write_json_locked(path: Path, payload: Any, *, lock_timeout: Optional[float] = None) -> None:
    """Write payload as JSON under a file lock, replacing any previous file."""
    timeout = RUNNER.LOCK_TIMEOUT if lock_timeout is None else lock_timeout
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")

    try:
        with FileLock(str(_lock_path(path)), timeout=timeout):
            tmp_path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n",
                encoding="utf-8",
            )
            os.replace(tmp_path, path)
    except Timeout as e:
        raise TimeoutError(f"Timed out acquiring lock for {path} after {timeout}s") from e


def read_json_locked(path: Path, *, lock_timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
    """Read a JSON object under a file lock.

    Returns None when the file does not exist yet.

    Raises:
        ValueError: When the file exists but is not a JSON object.
    """
    timeout = RUNNER.LOCK_TIMEOUT if lock_timeout is None else lock_timeout
    if not path.exists():
        return None

    try:
        with FileLock(str(_lock_path(path)), timeout=timeout):
            raw = path.read_text(encoding="utf-8")
    except Timeout as e:
        raise TimeoutError(f"Timed out acquiring lock for {path} after {timeout}s") from e

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"{path} is not valid JSON: {e}")

    if not isinstance(payload, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return payload


async def wait_for_json(path: Path, *, poll_interval: Optional[float] = None) -> Dict[str, Any]:
    """Poll until path holds a JSON object and return it.

    There is no timeout; the caller owns cancellation.
    """
    interval = RUNNER.POLL_INTERVAL if poll_interval is None else poll_interval
    logger.debug(f"Waiting for {path}")
    while True:
        payload = read_json_locked(path)
        if payload is not None:
            return payload
        await asyncio.sleep(interval)
