"""Human review protocol.

Breakpoints and checkpoints are the points where a run surfaces its state to a
person. A breakpoint asks a question and waits for a ReviewDecision; a
checkpoint only notifies.

The canonical validation sources are:
- qaflow/schemas/review_request.schema.json
- qaflow/schemas/review_response.schema.json
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Protocol, Union

from loguru import logger

from qaflow.utils.exchange import wait_for_json, write_json_locked
from qaflow.utils.schema_validation import validate_against_schema


_REQUEST_SCHEMA = "review_request.schema.json"
_RESPONSE_SCHEMA = "review_response.schema.json"

ReviewKind = Literal["breakpoint", "checkpoint"]


def _iso_utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ReviewDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    MODIFY = "modify"


@dataclass(frozen=True)
class ReviewRequest:
    """What a reviewer is shown."""

    request_id: str
    run_id: str
    kind: ReviewKind
    title: str
    prompt: str
    context: Dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=_iso_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "requestId": self.request_id,
            "runId": self.run_id,
            "kind": self.kind,
            "title": self.title,
            "context": dict(self.context),
            "createdAt": self.created_at,
        }
        # Breakpoints ask a question; checkpoints carry a message.
        payload["question" if self.kind == "breakpoint" else "message"] = self.prompt
        validate_against_schema(payload, _REQUEST_SCHEMA)
        return payload


@dataclass(frozen=True)
class ReviewResponse:
    decision: ReviewDecision
    comment: Optional[str] = None
    modifications: Dict[str, Any] = field(default_factory=dict)
    responded_at: str = field(default_factory=_iso_utc_now)

    @classmethod
    def approve(cls, comment: Optional[str] = None) -> "ReviewResponse":
        return cls(decision=ReviewDecision.APPROVE, comment=comment)

    @classmethod
    def reject(cls, comment: Optional[str] = None) -> "ReviewResponse":
        return cls(decision=ReviewDecision.REJECT, comment=comment)

    @classmethod
    def modify(cls, modifications: Mapping[str, Any], comment: Optional[str] = None) -> "ReviewResponse":
        return cls(decision=ReviewDecision.MODIFY, comment=comment, modifications=dict(modifications))

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ReviewResponse":
        """Parse a reviewer answer.

        Raises:
            ValueError: When payload does not conform to review_response.schema.json.
        """
        validate_against_schema(dict(payload), _RESPONSE_SCHEMA)
        modifications = payload.get("modifications")
        return cls(
            decision=ReviewDecision(payload["decision"]),
            comment=payload.get("comment"),
            modifications=dict(modifications) if isinstance(modifications, dict) else {},
            responded_at=str(payload.get("respondedAt") or _iso_utc_now()),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "decision": self.decision.value,
            "modifications": dict(self.modifications),
            "respondedAt": self.responded_at,
        }
        if self.comment is not None:
            payload["comment"] = self.comment
        return payload


class Reviewer(Protocol):
    async def review(self, request: ReviewRequest) -> ReviewResponse: ...

    async def notify(self, request: ReviewRequest) -> None: ...


class AutoApproveReviewer:
    """Approves every breakpoint. Used for unattended and dry runs."""

    async def review(self, request: ReviewRequest) -> ReviewResponse:
        logger.info(f"Auto-approving breakpoint '{request.title}' (run {request.run_id})")
        return ReviewResponse.approve(comment="auto-approved")

    async def notify(self, request: ReviewRequest) -> None:
        logger.info(f"Checkpoint '{request.title}': {request.prompt}")


ScriptedAnswer = Union[ReviewResponse, ReviewDecision, Callable[[ReviewRequest], ReviewResponse]]


class ScriptedReviewer:
    """Answers breakpoints from a title -> answer mapping and records every request."""

    def __init__(
        self,
        answers: Optional[Mapping[str, ScriptedAnswer]] = None,
        *,
        default: ReviewDecision = ReviewDecision.APPROVE,
    ):
        self.answers: Dict[str, ScriptedAnswer] = dict(answers or {})
        self.default = default
        self.requests: List[ReviewRequest] = []
        self.notifications: List[ReviewRequest] = []

    @property
    def titles(self) -> List[str]:
        return [r.title for r in self.requests]

    def requests_titled(self, title: str) -> List[ReviewRequest]:
        return [r for r in self.requests if r.title == title]

    async def review(self, request: ReviewRequest) -> ReviewResponse:
        self.requests.append(request)
        answer = self.answers.get(request.title, self.default)
        if callable(answer) and not isinstance(answer, ReviewDecision):
            return answer(request)
        if isinstance(answer, ReviewDecision):
            return ReviewResponse(decision=answer)
        return answer

    async def notify(self, request: ReviewRequest) -> None:
        self.notifications.append(request)


class ConsoleReviewer:
    """Interactive reviewer reading decisions from stdin."""

    _CHOICES = {
        "a": ReviewDecision.APPROVE,
        "approve": ReviewDecision.APPROVE,
        "r": ReviewDecision.REJECT,
        "reject": ReviewDecision.REJECT,
        "m": ReviewDecision.MODIFY,
        "modify": ReviewDecision.MODIFY,
    }

    def __init__(self, input_fn: Callable[[str], str] = input, output_fn: Callable[[str], None] = print):
        self._input = input_fn
        self._output = output_fn

    async def _ask(self, prompt: str) -> str:
        return (await asyncio.to_thread(self._input, prompt)).strip()

    async def review(self, request: ReviewRequest) -> ReviewResponse:
        self._output(f"\n== {request.title} ==")
        self._output(request.prompt)
        self._output(json.dumps(request.context, indent=2, sort_keys=True, default=str))

        while True:
            raw = (await self._ask("[a]pprove / [r]eject / [m]odify: ")).lower()
            decision = self._CHOICES.get(raw)
            if decision is not None:
                break
            self._output(f"Unrecognized choice: {raw!r}")

        comment = await self._ask("Comment (optional): ") or None
        modifications: Dict[str, Any] = {}
        if decision is ReviewDecision.MODIFY:
            raw_mods = await self._ask("Modifications as a JSON object: ")
            try:
                parsed = json.loads(raw_mods) if raw_mods else {}
            except json.JSONDecodeError:
                parsed = {"notes": raw_mods}
            modifications = parsed if isinstance(parsed, dict) else {"notes": parsed}

        return ReviewResponse(decision=decision, comment=comment, modifications=modifications)

    async def notify(self, request: ReviewRequest) -> None:
        self._output(f"\n-- {request.title} -- {request.prompt}")


class FileExchangeReviewer:
    """Reviewer reached through the filesystem.

    Writes ``<root>/breakpoints/<requestId>/request.json`` and waits for
    ``response.json`` in the same folder. Checkpoints are written to
    ``<root>/checkpoints/<requestId>.json`` and do not wait.
    """

    def __init__(self, root: Path, *, poll_interval: Optional[float] = None):
        self.root = Path(root)
        self.poll_interval = poll_interval

    async def review(self, request: ReviewRequest) -> ReviewResponse:
        folder = self.root / "breakpoints" / request.request_id
        write_json_locked(folder / "request.json", request.to_dict())
        logger.info(f"Breakpoint '{request.title}' waiting for {folder / 'response.json'}")
        payload = await wait_for_json(folder / "response.json", poll_interval=self.poll_interval)
        return ReviewResponse.from_dict(payload)

    async def notify(self, request: ReviewRequest) -> None:
        write_json_locked(self.root / "checkpoints" / f"{request.request_id}.json", request.to_dict())
