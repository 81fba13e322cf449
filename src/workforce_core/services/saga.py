"""
workforce_core.services.saga

Minimal saga runner for multi-store writes without a spanning transaction.

Responsibilities:
- Execute steps in order, sharing a context dict between them.
- On failure, run the compensations of completed steps in reverse order.
- Report which compensations could not be applied (left for reconciliation).
"""

from __future__ import annotations

import enum
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from workforce_core.observability.logging import get_logger

log = get_logger(__name__)

Action = Callable[[dict[str, Any]], Awaitable[Any]]
Compensation = Callable[[dict[str, Any], Any], Awaitable[None]]


class StepStatus(enum.StrEnum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    compensated = "compensated"
    compensation_failed = "compensation_failed"


@dataclass(slots=True)
class SagaStep:
    name: str
    action: Action
    compensation: Compensation | None = None
    status: StepStatus = StepStatus.pending
    result: Any = None


class SagaFailed(Exception):
    """
    Raised when a step fails. `cause` is the step's exception; `unreverted` names the
    completed steps whose side effects are still in place after compensation.
    """

    def __init__(
        self,
        *,
        saga: str,
        step: str,
        cause: BaseException,
        completed: list[str],
        unreverted: list[str],
    ) -> None:
        super().__init__(f"saga {saga} failed at step {step}: {cause}")
        self.saga = saga
        self.step = step
        self.cause = cause
        self.completed = completed
        self.unreverted = unreverted

    @property
    def fully_compensated(self) -> bool:
        return not self.unreverted


@dataclass(slots=True)
class Saga:
    name: str
    compensate: bool = True
    # Stop unwinding at the first failed compensation; earlier steps stay in place.
    halt_on_compensation_failure: bool = False
    context: dict[str, Any] = field(default_factory=dict)
    steps: list[SagaStep] = field(default_factory=list)

    def step(self, name: str, action: Action, compensation: Compensation | None = None) -> Saga:
        self.steps.append(SagaStep(name=name, action=action, compensation=compensation))
        return self

    async def run(self) -> dict[str, Any]:
        completed: list[SagaStep] = []
        for step in self.steps:
            try:
                step.result = await step.action(self.context)
            except Exception as e:
                step.status = StepStatus.failed
                log.warning("saga_step_failed", saga=self.name, step=step.name, error=str(e))
                unreverted = await self._unwind(completed)
                raise SagaFailed(
                    saga=self.name,
                    step=step.name,
                    cause=e,
                    completed=[s.name for s in completed],
                    unreverted=unreverted,
                ) from e
            step.status = StepStatus.completed
            self.context[step.name] = step.result
            completed.append(step)
        return self.context

    async def _unwind(self, completed: list[SagaStep]) -> list[str]:
        if not self.compensate:
            return [s.name for s in completed if s.compensation is not None]

        unreverted: list[str] = []
        halted = False
        for step in reversed(completed):
            if step.compensation is None:
                continue
            if halted:
                unreverted.append(step.name)
                continue
            try:
                await step.compensation(self.context, step.result)
            except Exception as e:
                # Left in place for operator reconciliation.
                step.status = StepStatus.compensation_failed
                unreverted.append(step.name)
                log.error(
                    "saga_compensation_failed", saga=self.name, step=step.name, error=str(e)
                )
                halted = self.halt_on_compensation_failure
                continue
            step.status = StepStatus.compensated
            log.info("saga_step_compensated", saga=self.name, step=step.name)
        return unreverted


# --- Module Notes -----------------------------------------------------------
# Steps without a compensation are treated as having nothing to undo.
