"""Explicit results for sub-steps whose failure must not fail the parent call."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Generic, Optional, TypeVar

from app.core.errors import BridgeError

T = TypeVar("T")


@dataclass(frozen=True)
class StepOutcome(Generic[T]):
    """Value or error of one non-fatal step."""

    step: str
    value: Optional[T] = None
    error: Optional[BridgeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_non_fatal(step: str, operation: Awaitable[T]) -> StepOutcome[T]:
    """Await ``operation`` and capture remote/domain failures as an outcome.

    Only :class:`BridgeError` is captured; programming errors still propagate.
    Callers are expected to log failed outcomes.
    """
    try:
        value = await operation
    except BridgeError as exc:
        return StepOutcome(step=step, error=exc)
    return StepOutcome(step=step, value=value)


__all__ = ["StepOutcome", "run_non_fatal"]
