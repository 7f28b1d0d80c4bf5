"""
Saga helper for multi-step writes without a database transaction.

Usage:
    saga = Saga("create_zone")
    saga.add_step("insert_zone", insert_zone, compensate=delete_zone)
    saga.add_step("insert_areas", insert_areas)
    results = await saga.run()

Each action receives the results collected so far (dict keyed by step
name). If a step raises, compensations of the steps that already
completed run in reverse order and the original exception is re-raised.
A compensation receives the result of its own step.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from core.logging import get_logger

logger = get_logger(__name__)

Action = Callable[[dict[str, Any]], Awaitable[Any]]
Compensation = Callable[[Any], Awaitable[None]]


@dataclass
class SagaStep:
    name: str
    action: Action
    compensate: Compensation | None = None


@dataclass
class Saga:
    """Ordered list of (action, compensation) steps."""

    name: str
    steps: list[SagaStep] = field(default_factory=list)

    def add_step(
        self, name: str, action: Action, compensate: Compensation | None = None
    ) -> "Saga":
        self.steps.append(SagaStep(name, action, compensate))
        return self

    async def run(self) -> dict[str, Any]:
        results: dict[str, Any] = {}
        completed: list[SagaStep] = []

        for step in self.steps:
            try:
                results[step.name] = await step.action(results)
            except Exception:
                logger.warning("Saga %s failed at step %s, compensating", self.name, step.name)
                await self._compensate(completed, results)
                raise
            completed.append(step)

        return results

    async def _compensate(self, completed: list[SagaStep], results: dict[str, Any]) -> None:
        for step in reversed(completed):
            if step.compensate is None:
                continue
            try:
                await step.compensate(results.get(step.name))
            except Exception:
                # Leaves an orphan behind; the original error is still raised
                logger.error(
                    "Saga %s: compensation for step %s failed",
                    self.name,
                    step.name,
                    exc_info=True,
                )
