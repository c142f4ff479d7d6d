from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .state_store import is_step_completed, mark_step_completed

logger = logging.getLogger(__name__)


class Step(Protocol):
    """A single idempotent step."""

    step_id: str
    title: str

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class PipelineResult:
    state: Dict[str, Any]
    ran_steps: List[str]
    skipped_steps: List[str]


def run_pipeline(
    *,
    state: Dict[str, Any],
    steps: Sequence[Step],
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    rerun: bool = False,
) -> PipelineResult:
    """Run steps in order with resume/idempotency semantics.

    Steps with ``always_run = True`` ignore the completed ledger and are not
    skipped by ``start_at`` either, so preflight and the snapshot still precede
    the first step that runs.
    """

    known = {s.step_id for s in steps}
    for name, value in (("start_at", start_at), ("stop_after", stop_after)):
        if value is not None and value not in known:
            raise ValueError(f"Unknown step for {name}: {value} (known: {', '.join(s.step_id for s in steps)})")

    ran: List[str] = []
    skipped: List[str] = []

    started = start_at is None
    total = len(steps)

    for index, step in enumerate(steps, start=1):
        always = bool(getattr(step, "always_run", False))
        if not started:
            if step.step_id == start_at:
                started = True
            elif not always:
                continue

        state.setdefault("execution", {})["current_step"] = step.step_id
        title = getattr(step, "title", step.step_id)

        if (not rerun) and (not always) and is_step_completed(state, step.step_id):
            logger.info("[STEP %d/%d] %s: skipped (already completed)", index, total, title)
            skipped.append(step.step_id)
        else:
            logger.info(">>> [STEP %d/%d] %s", index, total, title)
            state = step.run(state)
            mark_step_completed(state, step.step_id)
            ran.append(step.step_id)

        if started and stop_after is not None and step.step_id == stop_after:
            logger.info("Stopping after %s", stop_after)
            break

    state.setdefault("execution", {})["current_step"] = None
    return PipelineResult(state=state, ran_steps=ran, skipped_steps=skipped)
