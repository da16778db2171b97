"""Plan generation error types.

Taxonomy:
- TransientGenerationError: truncated, empty, capacity-limited or unparseable
  output. Handled inside the chunk executor by escalating the budget; never
  reaches the orchestrator.
- PermanentGenerationError: refusal / content filter, or every budget level
  exhausted. Terminates the job as "error".
- DataIntegrityError: a chunk or the accumulator does not have the structure
  the step table demands. Terminates the job as "error".
- PersistenceError: the store could not be reached. Nothing is written and the
  job stays at its last good state.
- GenerationTransportError: the text generation service failed for reasons
  unrelated to output size. Propagates like a persistence failure.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fitplan.generation.jobs import JobState


class FailureKind(StrEnum):
    TRANSIENT_TRUNCATED = "transient-truncated"
    TRANSIENT_EMPTY = "transient-empty"
    TRANSIENT_MALFORMED = "transient-malformed"
    PERMANENT_REFUSED = "permanent-refused"
    PERMANENT_EXHAUSTED = "permanent-exhausted"
    DATA_INTEGRITY = "data-integrity"


class GenerationPipelineError(Exception):
    """Base class for all plan generation pipeline errors."""


class TransientGenerationError(GenerationPipelineError):
    """Raised for an attempt that a larger budget may fix."""

    def __init__(self, kind: FailureKind, budget: int, message: str):
        self.kind = kind
        self.budget = budget
        super().__init__(f"{kind} at budget {budget}: {message}")


class PermanentGenerationError(GenerationPipelineError):
    """Raised when a step cannot be generated at any budget.

    Attributes:
        kind: PERMANENT_REFUSED or PERMANENT_EXHAUSTED
        step_index: Step that failed
        reason: Human readable reason
        attempted_budgets: Budgets tried, in order
    """

    def __init__(self, kind: FailureKind, step_index: int, reason: str, attempted_budgets: list[int]):
        self.kind = kind
        self.step_index = step_index
        self.reason = reason
        self.attempted_budgets = attempted_budgets
        super().__init__(f"{kind}: step {step_index}: {reason}")

    @property
    def detail(self) -> str:
        return f"{self.kind}: step {self.step_index}: {self.reason}"


class DataIntegrityError(GenerationPipelineError):
    """Raised when chunk structure or plan coverage violates the step table.

    Attributes:
        code: Error code (e.g., "DAY_RANGE_MISMATCH", "INCOMPLETE_COVERAGE")
        details: List of error detail strings
    """

    def __init__(self, code: str, details: list[str]):
        self.code = code
        self.details = details
        super().__init__(f"{code}: {details}")

    @property
    def detail(self) -> str:
        return f"{FailureKind.DATA_INTEGRITY}: {self.code}: {'; '.join(self.details)}"


class StepOutOfRangeError(DataIntegrityError):
    """Raised when a job asks for a step the step table does not define."""

    def __init__(self, step_index: int, total_steps: int):
        self.step_index = step_index
        super().__init__("STEP_OUT_OF_RANGE", [f"step {step_index} is outside 1..{total_steps}"])


class PersistenceError(GenerationPipelineError):
    """Raised when a job or plan store cannot be read or written."""


class JobNotFoundError(GenerationPipelineError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Generation job not found: {job_id}")


class JobConflictError(GenerationPipelineError):
    """Raised by a job store when the stored version moved since load."""

    def __init__(self, job_id: str, expected_version: int):
        self.job_id = job_id
        self.expected_version = expected_version
        super().__init__(f"Generation job {job_id} was modified concurrently (expected version {expected_version})")


class JobBusyError(GenerationPipelineError):
    """Raised to a caller that lost a race to advance a job.

    Attributes:
        state: The job state as persisted by the winning caller
    """

    def __init__(self, state: JobState):
        self.state = state
        super().__init__(f"Generation job {state.job_id} is busy or already advanced (current step {state.current_step})")


class GenerationTransportError(GenerationPipelineError):
    """Raised by a text generation client when a request fails in transit.

    Attributes:
        capacity_limited: True when the failure is attributable to the
            output size or context length limit
    """

    def __init__(self, message: str, capacity_limited: bool = False):
        self.capacity_limited = capacity_limited
        super().__init__(message)
