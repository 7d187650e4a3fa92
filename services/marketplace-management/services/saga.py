"""Saga orchestration: ordered steps with compensating actions."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Sequence

from opentelemetry import trace

from monitoring import checkout_compensations_counter, checkout_step_failures_counter

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class SagaError(Exception):
    """A critical step failed; completed steps have been compensated."""

    def __init__(self, step_name: str, cause: Exception):
        self.step_name = step_name
        self.cause = cause
        super().__init__(f"Step {step_name} failed: {cause}")


class Step(ABC):
    """
    One unit of work in a saga.

    A critical step aborts the saga when it fails. A non-critical step is
    best effort: its failure is logged and the saga moves on, and it is not
    compensated later because it never completed.
    """

    critical = True

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def execute(self) -> None: ...

    @abstractmethod
    def compensate(self) -> None: ...

    def run(self, saga_id: str) -> None:
        with tracer.start_as_current_span(f"saga.step.{self.name()}") as span:
            span.set_attribute("saga.id", saga_id)
            span.set_attribute("saga.step.critical", self.critical)
            logger.info(f"STEP {self.name()}", extra={"saga_id": saga_id})
            self.execute()
            logger.info(f"STEP {self.name()} OK", extra={"saga_id": saga_id})

    def run_compensation(self, saga_id: str) -> None:
        with tracer.start_as_current_span(f"saga.compensate.{self.name()}"):
            logger.warning(f"COMPENSATE {self.name()}", extra={"saga_id": saga_id})
            self.compensate()
            logger.warning(f"COMPENSATE {self.name()} OK", extra={"saga_id": saga_id})


class SagaOrchestrator:
    """Runs steps in order and unwinds completed ones when a critical step fails."""

    def __init__(self, saga_id: str, name: str = "checkout"):
        self.saga_id = saga_id
        self.name = name

    def execute(self, steps: Sequence[Step]) -> List[str]:
        """
        Run every step.

        Returns:
            Names of non-critical steps that failed

        Raises:
            SagaError: If a critical step fails
        """
        completed: List[Step] = []
        soft_failures: List[str] = []

        with tracer.start_as_current_span(f"{self.name}.saga") as span:
            span.set_attribute("saga.id", self.saga_id)
            logger.info("SAGA START", extra={"saga": self.name, "saga_id": self.saga_id})

            for step in steps:
                try:
                    step.run(self.saga_id)
                except Exception as e:
                    checkout_step_failures_counter.add(1, {
                        "saga": self.name,
                        "step": step.name(),
                        "critical": str(step.critical).lower()
                    })

                    if not step.critical:
                        logger.warning("Best-effort step failed, continuing", extra={
                            "saga": self.name,
                            "saga_id": self.saga_id,
                            "step": step.name(),
                            "error": str(e)
                        })
                        soft_failures.append(step.name())
                        continue

                    logger.error("SAGA FAILED", extra={
                        "saga": self.name,
                        "saga_id": self.saga_id,
                        "step": step.name(),
                        "error": str(e)
                    })
                    span.set_attribute("saga.failed_step", step.name())
                    self._compensate(completed)
                    raise SagaError(step.name(), e) from e

                completed.append(step)

            logger.info("SAGA OK", extra={
                "saga": self.name,
                "saga_id": self.saga_id,
                "soft_failures": soft_failures
            })
            return soft_failures

    def _compensate(self, completed: List[Step]) -> None:
        for step in reversed(completed):
            checkout_compensations_counter.add(1, {"saga": self.name, "step": step.name()})
            try:
                step.run_compensation(self.saga_id)
            except Exception as comp_exc:
                logger.error("COMPENSATION FAILED", extra={
                    "saga": self.name,
                    "saga_id": self.saga_id,
                    "step": step.name(),
                    "error": str(comp_exc)
                })
