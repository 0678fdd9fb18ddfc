"""
Ordered, fail-fast step execution.

A step is either fatal (its failure aborts the run) or tolerated (its
failure is reported and the run continues). Nothing is retried.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .errors import SetupError, WorkflowAborted
from .ui import logger, print_error, print_section, print_success, print_warning

DONE = "done"
TOLERATED = "tolerated"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass
class Step:
    """
    One stage of the installation.

    Attributes:
        name: Short name shown in the summary
        description: Section title printed when the step starts
        action: Callable doing the work; raises SetupError on failure
        tolerated: Whether a failure lets the workflow continue
    """

    name: str
    description: str
    action: Callable[[], None]
    tolerated: bool = False


@dataclass
class StepResult:
    name: str
    status: str
    message: str = ""
    elapsed: float = 0.0


@dataclass
class WorkflowRunner:
    """Runs steps in order and keeps a result for each one."""

    clock: Callable[[], float] = time.monotonic
    results: List[StepResult] = field(default_factory=list)

    def run(self, steps: List[Step]) -> List[StepResult]:
        """
        Execute ``steps`` top to bottom.

        Raises:
            WorkflowAborted: When a fatal step raises SetupError; later steps
                are recorded as skipped and never run
        """
        self.results = []
        total = len(steps)
        for position, step in enumerate(steps, 1):
            print_section(f"[{position}/{total}] {step.description}")
            started = self.clock()
            error = self._execute(step)
            elapsed = self.clock() - started

            if error is None:
                self.results.append(StepResult(step.name, DONE, elapsed=elapsed))
                continue

            if step.tolerated:
                print_warning(f"{step.name} did not complete, continuing: {error}")
                self.results.append(
                    StepResult(step.name, TOLERATED, str(error), elapsed)
                )
                continue

            print_error(f"{step.name} failed: {error}")
            self.results.append(StepResult(step.name, FAILED, str(error), elapsed))
            self.results.extend(StepResult(s.name, SKIPPED) for s in steps[position:])
            raise WorkflowAborted(step.name, position, total, error) from error

        print_success("All steps finished.")
        return self.results

    @staticmethod
    def _execute(step: Step) -> Optional[SetupError]:
        logger.debug(f"Starting step: {step.name}")
        try:
            step.action()
        except SetupError as e:
            return e
        except OSError as e:
            return SetupError(f"{e.__class__.__name__}: {e}")
        return None
