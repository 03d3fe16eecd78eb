"""Step results and the compensation stack shared by the lifecycle workflows."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from rubberband.errors.exceptions import RubberbandError
from rubberband.models.enums import StepOutcome

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    """Outcome of one remote call in a workflow."""

    name: str
    outcome: StepOutcome
    value: Any = None
    error: Exception | None = None
    # Workflow state reached when the step succeeded
    state: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == StepOutcome.SUCCESS

    def as_dict(self) -> dict:
        data = {"name": self.name, "outcome": self.outcome.value}
        if self.state is not None:
            data["state"] = str(self.state)
        if self.error is not None:
            data["error"] = str(self.error)
        return data


async def run_step(
    name: str, call: Callable[[], Awaitable[Any]], *, fatal: bool, reached: str | None = None
) -> StepResult:
    """Await ``call`` and classify the result.

    Only ``RubberbandError`` is classified; backends wrap transport and
    storage failures in it, so anything else is a programming error and
    propagates.
    """
    try:
        value = await call()
    except RubberbandError as exc:
        outcome = StepOutcome.FATAL_FAILURE if fatal else StepOutcome.NON_FATAL_FAILURE
        logger.error("Step %s failed (%s): %s", name, outcome.value, exc.message)
        return StepResult(name, outcome, error=exc)
    if reached is not None:
        logger.info("Step %s succeeded, now %s", name, reached)
    else:
        logger.info("Step %s succeeded", name)
    return StepResult(name, StepOutcome.SUCCESS, value=value, state=reached)


@dataclass
class Compensation:
    description: str
    # None records a deliberate decision to leave the step's effect in place
    action: Callable[[], Awaitable[None]] | None = None


@dataclass
class CompensationStack:
    """LIFO plan of what to undo when a later step fails fatally."""

    items: list[Compensation] = field(default_factory=list)

    def push(self, description: str, action: Callable[[], Awaitable[None]] | None = None) -> None:
        self.items.append(Compensation(description, action))

    def retain(self, description: str) -> None:
        """Record a no-op compensation: the effect is intentionally kept."""
        self.push(description, None)

    async def unwind(self) -> list[str]:
        """Run compensations newest first and return what was done."""
        report = []
        while self.items:
            item = self.items.pop()
            if item.action is None:
                logger.warning("Compensation skipped, effect retained: %s", item.description)
                report.append(f"retained: {item.description}")
                continue
            try:
                await item.action()
            except RubberbandError as exc:
                logger.error("Compensation failed: %s: %s", item.description, exc.message)
                report.append(f"failed: {item.description}")
            else:
                report.append(f"undone: {item.description}")
        return report
