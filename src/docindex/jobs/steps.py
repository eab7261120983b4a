"""Helpers for pipeline steps that must not fail the whole run."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger


@dataclass
class StepOutcome:
    """Result of one best-effort step."""

    name: str
    performed: bool
    value: Any = None
    error: str | None = None


async def run_best_effort(
    name: str,
    step: Callable[[], Awaitable[Any]],
    **context: Any,
) -> StepOutcome:
    """Run ``step``; any exception becomes a warning and ``performed=False``.

    Keyword arguments are attached to the log record as context.
    """
    try:
        value = await step()
    except Exception as exc:
        error = f"{type(exc).__name__}: {exc}"
        logger.warning("Best-effort step failed", step=name, error=error, **context)
        return StepOutcome(name=name, performed=False, error=error)

    return StepOutcome(name=name, performed=True, value=value)
