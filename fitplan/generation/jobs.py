"""Generation job record and state transitions.

A job is mutated only through the transition helpers below, each of which
returns a new record. The store persists a transition as one write.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import StrEnum

from fitplan.generation.schemas import Accumulator
from fitplan.profile.context import PlanContext


class JobStatus(StrEnum):
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_STATUSES: frozenset[JobStatus] = frozenset({JobStatus.COMPLETED, JobStatus.ERROR})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class GenerationJob:
    """One progressive plan-generation workflow.

    Attributes:
        id: Job identifier (UUID string)
        user_id: Owning user
        status: Lifecycle status
        current_step: Last merged step, 0 before any step ran
        total_steps: Number of steps in the table the job was created against
        accumulator: Partial plan document
        context: Generation context snapshot
        version: Optimistic concurrency version as loaded from the store
        result_plan_id: Finalized plan id (completed only)
        error_detail: Classified failure reason (error only)
    """

    id: str
    user_id: str
    status: JobStatus
    current_step: int
    total_steps: int
    accumulator: Accumulator
    context: PlanContext
    version: int = 0
    result_plan_id: str | None = None
    error_detail: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def new(cls, user_id: str, context: PlanContext, total_steps: int) -> GenerationJob:
        return cls(
            id=str(uuid.uuid4()),
            user_id=user_id,
            status=JobStatus.PENDING,
            current_step=0,
            total_steps=total_steps,
            accumulator=Accumulator(),
            context=context,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def advanced(self, step_index: int, accumulator: Accumulator) -> GenerationJob:
        """Record a merged intermediate step."""
        return replace(
            self,
            status=JobStatus.GENERATING,
            current_step=step_index,
            accumulator=accumulator,
            updated_at=_utcnow(),
        )

    def completed(self, step_index: int, accumulator: Accumulator, plan_id: str) -> GenerationJob:
        """Record the final step and the finalized plan."""
        return replace(
            self,
            status=JobStatus.COMPLETED,
            current_step=step_index,
            accumulator=accumulator,
            result_plan_id=plan_id,
            updated_at=_utcnow(),
        )

    def failed(self, error_detail: str) -> GenerationJob:
        """Record a terminal failure; step counter and accumulator are untouched."""
        return replace(
            self,
            status=JobStatus.ERROR,
            error_detail=error_detail,
            updated_at=_utcnow(),
        )


@dataclass(frozen=True)
class JobState:
    """What callers of advance() observe about a job."""

    job_id: str
    status: JobStatus
    current_step: int
    total_steps: int
    result_plan_id: str | None = None
    error_detail: str | None = None

    @classmethod
    def from_job(cls, job: GenerationJob) -> JobState:
        return cls(
            job_id=job.id,
            status=job.status,
            current_step=job.current_step,
            total_steps=job.total_steps,
            result_plan_id=job.result_plan_id,
            error_detail=job.error_detail,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = str(self.status)
        return data
